"""Common page actions shared by the page objects."""

from typing import Any, List, Optional

from vm_chatbot_tests.step import step
from vm_chatbot_tests.wait import WaitUtils, resolve_timeout


class BasePage:
    """Driver-level page actions with waits and step logging."""

    def __init__(self, driver, wait: WaitUtils, screenshots=None):
        self.driver = driver
        self.wait = wait
        self.screenshots = screenshots

    @property
    def default_timeout(self) -> int:
        return self.wait.default_timeout

    @property
    def short_timeout(self) -> int:
        return self.wait.short_timeout

    @property
    def long_timeout(self) -> int:
        return self.wait.long_timeout

    # === Navigation ===
    def navigate_to(self, url: str):
        with step(f"Navigate to {url}"):
            self.driver.navigate(url)
        self.wait.wait_for_page_load()

    def refresh_page(self):
        with step("Refresh page"):
            self.driver.refresh()
        self.wait.wait_for_page_load()

    def go_back(self):
        with step("Navigate back"):
            self.driver.back()
        self.wait.wait_for_page_load()

    def go_forward(self):
        with step("Navigate forward"):
            self.driver.forward()
        self.wait.wait_for_page_load()

    def get_current_url(self) -> str:
        return self.driver.get_url()

    def get_page_title(self) -> str:
        return self.driver.get_title()

    # === Element actions ===
    def safe_click(self, selector: str, timeout: Optional[int] = None):
        """Wait until the element is clickable, then click it."""
        element = self.wait.wait_for_element_clickable(selector, timeout)
        with step(f"Click {selector}"):
            element.click()

    def safe_type(self, selector: str, text: str, timeout: Optional[int] = None):
        """Wait for the element, clear it and type ``text``."""
        element = self.wait.wait_for_element(selector, timeout)
        with step(f"Type \"{text}\" into {selector}"):
            element.clear_value()
            element.set_value(text)

    def get_element_text(self, selector: str, timeout: Optional[int] = None) -> str:
        return self.wait.wait_for_element(selector, timeout).get_text()

    def get_element_attribute(self, selector: str, attribute: str, timeout: Optional[int] = None) -> Optional[str]:
        return self.wait.wait_for_element_exist(selector, timeout).get_attribute(attribute)

    def is_element_displayed(self, selector: str, timeout: Optional[int] = None) -> bool:
        """Whether the element becomes visible within ``timeout`` (short timeout by default)."""
        element = self.driver.find_element(selector)
        return self.wait.check(element.is_displayed, resolve_timeout(timeout, self.short_timeout))

    def is_element_exist(self, selector: str, timeout: Optional[int] = None) -> bool:
        element = self.driver.find_element(selector)
        return self.wait.check(element.is_existing, resolve_timeout(timeout, self.short_timeout))

    def scroll_to_element(self, selector: str, timeout: Optional[int] = None):
        element = self.wait.wait_for_element_exist(selector, timeout)
        element.scroll_into_view()

    def get_all_elements(self, selector: str) -> List[Any]:
        return self.driver.find_elements(selector)

    def get_element_count(self, selector: str) -> int:
        return len(self.driver.find_elements(selector))

    # === Page state ===
    def take_screenshot(self, name: str):
        if self.screenshots is None:
            raise ValueError("Page was created without a screenshot manager")
        return self.screenshots.take_custom_screenshot(name)

    def execute_script(self, script: str, *args) -> Any:
        return self.wait.wait_for_script_execution(script, *args)

    def get_console_logs(self) -> List[dict]:
        return self.driver.console_logs()

    def clear_storage(self):
        with step("Clear cookies and storage"):
            self.driver.clear_storage()
