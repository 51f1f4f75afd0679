import pytest
from playwright.sync_api import Page, expect

from vm_chatbot_tests.config import get_settings
from vm_chatbot_tests.driver import PlaywrightDriver
from vm_chatbot_tests.page_objects import ChatbotPage
from vm_chatbot_tests.screenshots import sanitize_name
from vm_chatbot_tests.session import create_session
from vm_chatbot_tests.test_data import TestDataManager


def load_conversations():
    """Load the conversation scripts replayed by the conversation suite."""
    settings = get_settings()
    manager = TestDataManager(settings.fixtures_path)
    return manager.load_conversations(settings.conversations_file)


def load_scenarios():
    """Load question/answer rows for the data-driven suite."""
    settings = get_settings()
    manager = TestDataManager(settings.fixtures_path)
    return manager.load_scenarios(settings.scenarios_file)


@pytest.fixture
def context(browser):
    """Create a new browser context sized for the support site layout."""
    context = browser.new_context(
        viewport={'width': 1650, 'height': 950}
    )
    yield context
    context.close()


@pytest.fixture(scope="session", autouse=True)
def settings():
    """Get test settings."""
    return get_settings()


@pytest.fixture(scope="session", autouse=True)
def configure_expect_timeout(settings):
    """Set global expect timeout from settings."""
    expect.set_options(timeout=settings.expect_timeout)


@pytest.fixture
def page(context, settings):
    page = context.new_page()
    page.set_default_timeout(settings.timeout)  # For actions/responses
    yield page
    page.close()


@pytest.fixture
def driver(page: Page, settings) -> PlaywrightDriver:
    return PlaywrightDriver(page, timeout=settings.timeout, capture_console=settings.capture_console_logs)


@pytest.fixture
def harness(request, driver, settings):
    """Per-test harness; captures failure artifacts and writes reports on teardown."""
    session = create_session(driver, settings)
    session.init_test_context(request.module.__name__.rsplit(".", 1)[-1], request.node.name)
    yield session

    error = getattr(request.node, "call_error", None)
    if error is not None:
        session.capture_failure(error)
    session.create_reports(settings.reports_path / sanitize_name(request.node.name))


@pytest.fixture
def chatbot_page(harness) -> ChatbotPage:
    """Create a ChatbotPage, navigate to the support page and open the widget."""
    chatbot_page = ChatbotPage.from_session(harness)
    chatbot_page.open()
    return chatbot_page


@pytest.fixture
def conversation(request):
    """Conversation script for the current parametrized test."""
    return request.param


@pytest.fixture
def scenario(request):
    """Scenario row for the current parametrized test."""
    return request.param


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_makereport(item, call):
    """Keep the test body's exception for the harness teardown."""
    yield
    if call.when == "call" and call.excinfo is not None and not call.excinfo.errisinstance(pytest.skip.Exception):
        item.call_error = call.excinfo.value


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--limit",
        action="store",
        default=None,
        type=int,
        help="Limit to first N conversations/scenarios (does not affect other tests)",
    )


def pytest_configure(config):
    for marker in ("widget", "conversation", "scenarios", "smoke"):
        config.addinivalue_line("markers", f"{marker}: {marker} tests")


def pytest_generate_tests(metafunc):
    """Parametrize data-driven tests with limit applied at collection time."""
    limit = metafunc.config.getoption("--limit")

    if "conversation" in metafunc.fixturenames:
        conversations = load_conversations()
        if limit is not None:
            conversations = conversations[:limit]
        metafunc.parametrize("conversation", conversations, ids=lambda c: c.name, indirect=True)

    if "scenario" in metafunc.fixturenames:
        scenarios = load_scenarios()
        if limit is not None:
            scenarios = scenarios[:limit]
        metafunc.parametrize("scenario", scenarios, ids=lambda s: s.scenario, indirect=True)
