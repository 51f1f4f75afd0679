import re

import pytest

from vm_chatbot_tests.assertions import Assertions, wildcard_to_regex
from vm_chatbot_tests.errors import HarnessAssertionError
from vm_chatbot_tests.page_objects import ChatMessage


@pytest.fixture
def check():
    return Assertions()


def test_wildcard_to_regex():
    assert wildcard_to_regex("Hello *!") == r"Hello\ .*!"
    assert wildcard_to_regex("a?c") == "a.c"
    assert wildcard_to_regex("Your bill is [amount].") == r"Your\ bill\ is\ .*\."


class TestTextAssertions:

    def test_contains(self, check):
        check.assert_contains("Your BILL is due", "bill")
        with pytest.raises(HarnessAssertionError, match="Expected text to contain \"refund\""):
            check.assert_contains("Your bill is due", "refund")
        with pytest.raises(HarnessAssertionError):
            check.assert_contains(None, "bill")

    def test_matches(self, check):
        check.assert_matches("Reference VM-2024-001234", r"vm-\d{4}-\d+")
        check.assert_matches("abc", re.compile("b"))
        with pytest.raises(HarnessAssertionError):
            check.assert_matches("abc", re.compile("B"))

    def test_equals_and_emptiness(self, check):
        check.assert_equals(3, 3)
        check.assert_not_empty("reply")
        for empty in ("   ", [], None):
            with pytest.raises(HarnessAssertionError):
                check.assert_not_empty(empty)
        with pytest.raises(HarnessAssertionError) as excinfo:
            check.assert_equals("a", "b")
        assert excinfo.value.actual == "a"
        assert excinfo.value.expected == "b"

    def test_lengths(self, check):
        check.assert_min_length("hello", 5)
        check.assert_max_length("hello", 5)
        with pytest.raises(HarnessAssertionError, match="Actual length: 0"):
            check.assert_min_length(None, 1)
        with pytest.raises(HarnessAssertionError):
            check.assert_max_length([1, 2, 3], 2)


class TestValueAssertions:

    def test_timing_and_counts(self, check):
        check.assert_response_time(1500, 2000)
        check.assert_element_count(2, 2)
        with pytest.raises(HarnessAssertionError, match="Actual: 2500ms"):
            check.assert_response_time(2500, 2000)

    def test_booleans(self, check):
        check.assert_true(1)
        check.assert_false("")
        check.assert_not_none(0)
        with pytest.raises(HarnessAssertionError):
            check.assert_true(None)
        with pytest.raises(HarnessAssertionError):
            check.assert_not_none(None)

    def test_collections(self, check):
        check.assert_array_contains(["a", "b"], "b")
        check.assert_array_length(["a"], 1)
        check.assert_has_property({"id": 1}, "id")
        check.assert_property_equals({"id": 1}, "id", 1)
        with pytest.raises(HarnessAssertionError):
            check.assert_array_contains(None, "a")
        with pytest.raises(HarnessAssertionError):
            check.assert_has_property({}, "id")


class TestChatbotAssertions:

    def test_keywords(self, check):
        check.assert_response_contains_keywords("M250 Fibre at £32 per month", ["fibre", "MONTH"])
        with pytest.raises(HarnessAssertionError, match=r"Missing keywords: \[contract\]"):
            check.assert_response_contains_keywords("M250 Fibre", ["fibre", "contract"])

    def test_wildcard_pattern(self, check):
        check.assert_response_pattern("Your ticket VM-2024-001234 is open", "ticket * is open")
        check.assert_response_pattern("Hi Alex!", "hi ????!")
        with pytest.raises(HarnessAssertionError):
            check.assert_response_pattern("Hi Alex", "Bye *")

    def test_conversation_assertions(self, check):
        conversation = [
            {"messageText": "Can I pay online?"},
            ChatMessage(text="Yes, visit virginmedia.com and choose Pay Bill", sender="bot"),
        ]
        check.assert_conversation_length(conversation, 2)
        check.assert_conversation_ends_with(conversation, "pay bill")
        check.assert_conversation_ends_with(["hello", "Goodbye"], "goodbye")
        with pytest.raises(HarnessAssertionError):
            check.assert_conversation_ends_with([], "bye")

    def test_custom(self, check):
        check.assert_custom(lambda: True, "always")
        with pytest.raises(HarnessAssertionError, match="falsy"):
            check.assert_custom(lambda: 0, "falsy")

        def broken():
            raise KeyError("reply")

        with pytest.raises(HarnessAssertionError, match="lookup") as excinfo:
            check.assert_custom(broken, "lookup")
        assert isinstance(excinfo.value.__cause__, KeyError)


def test_stats_track_every_assertion(check):
    check.assert_true(True)
    with pytest.raises(HarnessAssertionError):
        check.assert_equals(1, 2, "numbers differ")
    check.assert_contains("abc", "b")

    stats = check.get_stats()
    assert stats["total"] == 3
    assert stats["failed"] == 1
    assert stats["passed"] == 2
    assert stats["failedAssertions"][0]["message"] == "numbers differ"

    check.reset_stats()
    assert check.get_stats()["total"] == 0


def test_failures_are_plain_assertion_errors(check):
    with pytest.raises(AssertionError):
        check.assert_true(False)
