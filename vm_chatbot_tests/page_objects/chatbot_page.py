"""Page object for chat widget interactions."""
from typing import Dict, List, Optional, Tuple

from vm_chatbot_tests.errors import ElementNotFoundError
from vm_chatbot_tests.step import info, step
from vm_chatbot_tests.wait import resolve_timeout

from .base_page import BasePage
from .message import ChatMessage, format_history


class ChatbotSelectors:
    """Candidate CSS selectors for a generic chat widget, tried in order."""

    # Containers
    CHAT_WIDGET = ("#chat-widget", ".chat-container", "[data-testid='chat-widget']")
    CHAT_TOGGLE = ("#chat-toggle", ".chat-toggle", "[data-testid='chat-toggle']", ".chat-widget-button")

    # Input elements
    MESSAGE_INPUT = (
        "#chat-input",
        ".chat-input",
        "input[placeholder*='message']",
        "textarea[placeholder*='message']",
        "[data-testid='chat-input']",
    )
    SEND_BUTTON = (
        "#send-button",
        ".send-button",
        "button[type='submit']",
        "[data-testid='send-button']",
        ".chat-send-btn",
    )

    # Messages
    MESSAGES = (".chat-message", ".message", "[data-testid='message']", ".msg", ".conversation-item")
    MESSAGE_TEXT = (".message-text", ".msg-text", ".content", "[data-testid='message-text']", ".chat-bubble-text")
    BOT_MESSAGES = (".bot-message", ".assistant-message", "[data-testid='bot-message']", ".chat-bubble.bot")
    USER_MESSAGES = (".user-message", ".human-message", "[data-testid='user-message']", ".chat-bubble.user")

    # States
    TYPING_INDICATOR = (".typing-indicator", ".loading", "[data-testid='loading']", ".chat-typing", ".typing-dots")
    ERROR_MESSAGE = (".error-message", ".chat-error", "[data-testid='error']")
    WELCOME_MESSAGE = (".welcome-message", ".chat-welcome", "[data-testid='welcome']")

    # Buttons
    CLEAR_CHAT = (
        "[data-testid='clear-chat']",
        ".clear-chat",
        ".reset-chat",
        "button:has-text('Clear')",
        "button:has-text('Reset')",
    )
    BUTTONS = ("button, [role='button']",)


class VirginMediaSelectors(ChatbotSelectors):
    """Virgin Media / O2 support widget (Draft.js message editor)."""

    CHAT_TOGGLE = ("#openChatIconVertical",) + ChatbotSelectors.CHAT_TOGGLE
    MESSAGE_INPUT = (".DraftEditor-root [contenteditable='true']", ".DraftEditor-root") + ChatbotSelectors.MESSAGE_INPUT
    CHAT_WIDGET = (".DraftEditor-root",) + ChatbotSelectors.CHAT_WIDGET


CATALOGS = {
    "generic": ChatbotSelectors,
    "virgin_media": VirginMediaSelectors,
}


class SelectorResolver:
    """Picks the first candidate selector present in the page, per control.

    The winner is cached; ``clear_cache`` forgets it after the page changes.
    """

    def __init__(self, driver, catalog=ChatbotSelectors):
        self.driver = driver
        self.catalog = catalog
        self._resolved: Dict[str, str] = {}

    def candidates(self, control: str) -> Tuple[str, ...]:
        try:
            return getattr(self.catalog, control.upper())
        except AttributeError:
            raise KeyError(f"Unknown control: {control}") from None

    def find(self, control: str) -> Optional[str]:
        """Return the resolved selector, or None when no candidate is present yet."""
        if control in self._resolved:
            return self._resolved[control]
        for candidate in self.candidates(control):
            if self.driver.find_element(candidate).is_existing():
                self._resolved[control] = candidate
                return candidate
        return None

    def resolve(self, control: str) -> str:
        selector = self.find(control)
        if selector is None:
            raise ElementNotFoundError(", ".join(self.candidates(control)),
                                       f"Element not found for {control}: no candidate selector matched")
        return selector

    def clear_cache(self):
        self._resolved.clear()


class ChatbotPage(BasePage):
    """Chat widget page object; also the chat interface used by ConversationRunner."""

    def __init__(self, driver, wait, settings, selectors=None, screenshots=None):
        super().__init__(driver, wait, screenshots)
        self.settings = settings
        self.selectors = selectors or CATALOGS[settings.widget]
        self.resolver = SelectorResolver(driver, self.selectors)
        self.response_timeout = settings.response_timeout
        self.typing_timeout = settings.typing_timeout
        self.message_timeout = settings.message_timeout
        self.widget_load_timeout = settings.widget_load_timeout
        # Bot replies already handed out by wait_for_bot_reply; None until first use
        self._seen_replies: Optional[int] = None

    @classmethod
    def from_session(cls, session) -> "ChatbotPage":
        return cls(session.driver, session.wait, session.settings, screenshots=session.screenshots)

    # === Selector helpers ===
    def _wait_for_control(self, control: str, timeout: int, displayed: bool = True) -> str:
        """Wait until some candidate for ``control`` is present (and visible) and return it."""
        def present():
            selector = self.resolver.find(control)
            if selector is None:
                return False
            return not displayed or self.driver.find_element(selector).is_displayed()

        self.wait.wait_for_condition(present, timeout, f"{control} did not appear within {timeout}ms")
        return self.resolver.resolve(control)

    def _control_visible(self, control: str, timeout: int) -> bool:
        def visible():
            selector = self.resolver.find(control)
            return selector is not None and self.driver.find_element(selector).is_displayed()
        return self.wait.check(visible, timeout)

    def _elements(self, control: str) -> list:
        selector = self.resolver.find(control)
        return self.driver.find_elements(selector) if selector else []

    def _message_text(self, element) -> str:
        for candidate in self.selectors.MESSAGE_TEXT:
            child = element.find_element(candidate)
            if child.is_existing():
                return child.get_text()
        return element.get_text()

    # === Widget lifecycle ===
    def open(self, url: Optional[str] = None):
        """Navigate to the chat page and open the widget."""
        with step("Open chatbot page"):
            self.navigate_to(url or self.settings.chatbot_url)
            self.open_chat_widget()

    def wait_for_chat_widget(self, timeout: Optional[int] = None):
        timeout = resolve_timeout(timeout, self.widget_load_timeout)
        with step("Wait for chat widget", step_type="wait"):
            self._wait_for_control("chat_widget", timeout)

    def is_chat_widget_open(self, timeout: Optional[int] = None) -> bool:
        return self._control_visible("chat_widget", resolve_timeout(timeout, self.short_timeout))

    def open_chat_widget(self, timeout: Optional[int] = None):
        if self.is_chat_widget_open():
            info("Chat widget is already open")
            return
        with step("Open chat widget"):
            toggle = self._wait_for_control("chat_toggle", resolve_timeout(timeout, self.default_timeout))
            self.safe_click(toggle, timeout)
            self.wait_for_chat_widget()
        self._seen_replies = None

    def close_chat_widget(self, timeout: Optional[int] = None):
        if not self.is_chat_widget_open():
            info("Chat widget is already closed")
            return
        with step("Close chat widget"):
            toggle = self.resolver.resolve("chat_toggle")
            self.safe_click(toggle, timeout)
            self.wait.wait_for_element_disappear(self.resolver.resolve("chat_widget"), timeout)

    def wait_for_welcome_message(self, timeout: Optional[int] = None) -> Optional[str]:
        """Return the welcome message text, or None when none shows up."""
        if not self._control_visible("welcome_message", resolve_timeout(timeout, self.default_timeout)):
            info("Welcome message not found")
            return None
        return self.driver.find_element(self.resolver.resolve("welcome_message")).get_text()

    def check_for_errors(self, timeout: Optional[int] = None) -> Optional[str]:
        """Return the text of a visible widget error, or None."""
        if not self._control_visible("error_message", resolve_timeout(timeout, self.short_timeout)):
            return None
        error_text = self.driver.find_element(self.resolver.resolve("error_message")).get_text()
        info(f"Error message found: {error_text}", outcome="failed")
        return error_text

    # === Messaging ===
    def send_message(self, message: str, timeout: Optional[int] = None):
        """Type ``message`` into the chat input and send it.

        Falls back to pressing Enter when the widget has no send button.
        """
        timeout = resolve_timeout(timeout, self.message_timeout)
        if self._seen_replies is None:
            self._seen_replies = self.get_message_count("bot")

        with step(f"Send message: {message}"):
            input_selector = self._wait_for_control("message_input", timeout)
            self.safe_type(input_selector, message, timeout)
            send_button = self.resolver.find("send_button")
            if send_button is not None:
                self.safe_click(send_button, timeout)
            else:
                self.driver.find_element(input_selector).press("Enter")

    def wait_for_bot_reply(self, timeout_ms: Optional[int] = None) -> str:
        """Wait for the next bot reply not yet returned and return its text.

        Consecutive calls return consecutive replies, so two bot turns in a
        row consume two messages.
        """
        timeout_ms = resolve_timeout(timeout_ms, self.response_timeout)
        if self._seen_replies is None:
            self._seen_replies = 0
        wanted = self._seen_replies + 1

        self.wait.wait_for_condition(
            lambda: len(self._elements("bot_messages")) >= wanted,
            timeout_ms,
            "Bot response did not appear within the specified timeout",
        )
        if self.is_typing_indicator_visible(timeout=1):
            self.wait_for_typing_indicator_disappear(timeout_ms)

        self._seen_replies = wanted
        return self._message_text(self._elements("bot_messages")[wanted - 1])

    def wait_for_response(self, timeout: Optional[int] = None):
        """Wait for the typing indicator to come and go, then for a new bot message."""
        timeout = resolve_timeout(timeout, self.response_timeout)
        initial_count = self.get_message_count("bot")
        if self.is_typing_indicator_visible():
            self.wait_for_typing_indicator_disappear(timeout)
        self.wait.wait_for_condition(
            lambda: self.get_message_count("bot") > initial_count,
            timeout,
            "Bot response did not appear within the specified timeout",
        )

    def get_last_response(self) -> Optional[str]:
        bot_messages = self._elements("bot_messages")
        if not bot_messages:
            return None
        return self._message_text(bot_messages[-1])

    def send_message_and_wait_for_response(self, message: str, timeout: Optional[int] = None) -> str:
        self.send_message(message)
        return self.wait_for_bot_reply(resolve_timeout(timeout, self.response_timeout))

    def verify_response_contains(self, expected_text: str) -> bool:
        response = self.get_last_response()
        return response is not None and expected_text.lower() in response.lower()

    def click_button(self, button_text: str, timeout: Optional[int] = None):
        """Click a chat button by its text, title or aria-label."""
        with step(f"Click button: {button_text}"):
            for selector in (
                f"button:has-text('{button_text}')",
                f"button[title*='{button_text}']",
                f"[aria-label*='{button_text}']",
            ):
                element = self.driver.find_element(selector)
                if element.is_existing() and element.is_displayed():
                    self.safe_click(selector, timeout)
                    return

            for button in self.driver.find_elements(self.selectors.BUTTONS[0]):
                if button_text.lower() in button.get_text().lower():
                    button.click()
                    return

            raise ElementNotFoundError(button_text, f"Button with text \"{button_text}\" not found")

    # === Typing indicator ===
    def is_typing_indicator_visible(self, timeout: Optional[int] = None) -> bool:
        return self._control_visible("typing_indicator", resolve_timeout(timeout, self.typing_timeout))

    def wait_for_typing_indicator(self, timeout: Optional[int] = None):
        self._wait_for_control("typing_indicator", resolve_timeout(timeout, self.typing_timeout))

    def wait_for_typing_indicator_disappear(self, timeout: Optional[int] = None):
        selector = self.resolver.find("typing_indicator")
        if selector is not None:
            self.wait.wait_for_element_disappear(selector, resolve_timeout(timeout, self.response_timeout))

    # === Conversation ===
    def get_all_messages(self) -> List[ChatMessage]:
        bot_selectors = self.selectors.BOT_MESSAGES
        user_selectors = self.selectors.USER_MESSAGES
        messages = []
        for element in self._elements("messages"):
            classes = (element.get_attribute("class") or "").split()
            if any(element.find_element(s).is_existing() for s in bot_selectors) or "bot-message" in classes:
                sender = "bot"
            elif any(element.find_element(s).is_existing() for s in user_selectors) or "user-message" in classes:
                sender = "user"
            else:
                sender = "unknown"
            messages.append(ChatMessage(text=self._message_text(element), sender=sender))
        return messages

    def get_conversation_history(self) -> str:
        return format_history(self.get_all_messages())

    def get_message_count(self, sender: str) -> int:
        """Number of 'bot' or 'user' messages."""
        return len(self._elements("bot_messages" if sender == "bot" else "user_messages"))

    def clear_conversation(self, timeout: Optional[int] = None):
        """Use the widget's clear button, or reload the page when it has none."""
        with step("Clear conversation"):
            clear_button = self.resolver.find("clear_chat")
            if clear_button is not None and self.is_element_displayed(clear_button, timeout):
                self.safe_click(clear_button, timeout)
            else:
                self.refresh_page()
                self.resolver.clear_cache()
                self.open_chat_widget()
        self._seen_replies = None
