"""End-to-end checks that the support page chat widget loads and answers."""

import pytest
from playwright.sync_api import Page, expect

from vm_chatbot_tests.page_objects import ChatbotPage
from vm_chatbot_tests.step import step, info


@pytest.mark.widget
@pytest.mark.smoke
class TestChatWidget:
    """The widget opens, accepts input and produces a reply."""

    def test_widget_opens_with_message_input(self, chatbot_page: ChatbotPage, harness, page: Page):
        with step("Verify chat widget is open"):
            harness.assertions.assert_true(chatbot_page.is_chat_widget_open(), "Chat widget should be open")

        with step("Verify message input is present"):
            selector = chatbot_page.resolver.find("message_input")
            harness.assertions.assert_not_none(selector, "Message input should be present")
            message_input = page.locator(selector).first
            expect(message_input).to_be_visible()
            expect(message_input).to_be_editable()

        with step("Verify widget shows no error"):
            error_text = chatbot_page.check_for_errors()
            harness.assertions.assert_true(error_text is None, f"Widget shows an error: {error_text}")

        welcome = chatbot_page.wait_for_welcome_message(timeout=chatbot_page.short_timeout)
        if welcome:
            info(f"Welcome message: {welcome}")

    def test_greeting_gets_a_reply(self, chatbot_page: ChatbotPage, harness, settings):
        reply = chatbot_page.send_message_and_wait_for_response("Hello", settings.response_timeout)

        with step("Verify the bot replied"):
            harness.assertions.assert_not_empty(reply, "Bot reply should not be empty")

        with step("Verify reply shows up in the conversation"):
            harness.assertions.assert_true(
                chatbot_page.get_message_count("bot") >= 1, "Conversation should hold a bot message"
            )
            info(chatbot_page.get_conversation_history())
