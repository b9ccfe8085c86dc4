from __future__ import annotations

import re
from dataclasses import dataclass, field


@dataclass(frozen=True)
class IntentMatch:
    intent: str
    tools: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class _IntentPattern:
    pattern: re.Pattern[str]
    intent: str
    tools: tuple[str, ...]


# Order is priority: earlier entries win when several patterns match.
INTENT_PATTERNS: tuple[_IntentPattern, ...] = (
    _IntentPattern(
        re.compile(r"\b(good morning|morning briefing|what'?s my day|how'?s my day|daily briefing|start my day|brief me)\b"),
        "morning_briefing",
        ("fetch_emails", "fetch_calendar"),
    ),
    _IntentPattern(
        re.compile(r"\b(check.*(email|mail|inbox)|show.*(email|mail|inbox)|any.*(email|mail)|new.*(email|mail)|unread)\b"),
        "check_email",
        ("fetch_emails",),
    ),
    _IntentPattern(
        re.compile(r"\b(what'?s on my calendar|my schedule|my meetings|upcoming events|today'?s.*calendar|calendar.*today)\b"),
        "check_calendar",
        ("fetch_calendar",),
    ),
    _IntentPattern(
        re.compile(r"\b(show.*finances|financial|revenue|money|earnings|how.*doing financially)\b"),
        "finances",
        ("fetch_emails", "fetch_calendar"),
    ),
    _IntentPattern(
        re.compile(r"\b(my files|recent files|drive files|documents|show.*files)\b"),
        "check_files",
        ("fetch_drive_files",),
    ),
)

KNOWN_INTENTS: tuple[str, ...] = tuple(entry.intent for entry in INTENT_PATTERNS)


def detect_intent(message: str) -> IntentMatch | None:
    text = (message or "").strip().lower()
    if not text:
        return None
    for entry in INTENT_PATTERNS:
        if entry.pattern.search(text):
            return IntentMatch(intent=entry.intent, tools=list(entry.tools))
    return None
