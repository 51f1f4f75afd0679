"""Page objects for chat widget testing."""

from .base_page import BasePage
from .chatbot_page import CATALOGS, ChatbotPage, ChatbotSelectors, SelectorResolver, VirginMediaSelectors
from .message import ChatMessage

__all__ = [
    "BasePage",
    "CATALOGS",
    "ChatbotPage",
    "ChatbotSelectors",
    "ChatMessage",
    "SelectorResolver",
    "VirginMediaSelectors",
]
