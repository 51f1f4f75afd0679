"""Data-driven single-question checks from the scenarios CSV."""

import time

import pytest

from vm_chatbot_tests.page_objects import ChatbotPage
from vm_chatbot_tests.step import step
from vm_chatbot_tests.test_data import TestScenario


@pytest.mark.scenarios
def test_scenario(chatbot_page: ChatbotPage, harness, scenario: TestScenario):
    start = time.time()
    reply = chatbot_page.send_message_and_wait_for_response(scenario.user_input, scenario.timeout)
    elapsed_ms = (time.time() - start) * 1000

    with step(f"Verify reply mentions '{scenario.expected_response}'"):
        harness.assertions.assert_contains(reply, scenario.expected_response)

    with step("Verify reply arrived in time"):
        harness.assertions.assert_response_time(elapsed_ms, scenario.timeout)
