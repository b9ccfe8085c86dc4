from __future__ import annotations

from whut.core.agent.intents import KNOWN_INTENTS, detect_intent


def test_detect_intent_examples() -> None:
    briefing = detect_intent("good morning")
    assert briefing is not None
    assert briefing.intent == "morning_briefing"
    assert briefing.tools == ["fetch_emails", "fetch_calendar"]

    inbox = detect_intent("check my inbox")
    assert inbox is not None
    assert inbox.intent == "check_email"
    assert inbox.tools == ["fetch_emails"]

    assert detect_intent("tell me a joke") is None


def test_detect_intent_is_case_insensitive_and_ordered() -> None:
    match = detect_intent("Good Morning, any new email?")
    assert match is not None
    assert match.intent == "morning_briefing"

    calendar = detect_intent("What's on my calendar")
    assert calendar is not None
    assert calendar.intent == "check_calendar"

    files = detect_intent("show my recent files")
    assert files is not None
    assert files.intent == "check_files"


def test_detect_intent_empty_input() -> None:
    assert detect_intent("") is None
    assert detect_intent("   ") is None


def test_known_intents_in_priority_order() -> None:
    assert KNOWN_INTENTS == ("morning_briefing", "check_email", "check_calendar", "finances", "check_files")
