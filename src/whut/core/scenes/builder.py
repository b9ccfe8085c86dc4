from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from whut.core.integrations.normalize import (
    CalendarEvent,
    CalendarResult,
    DriveFilesResult,
    EmailListResult,
    EmailMessage,
    normalize_tool_result,
)

from .schemas import Scene, SceneElement


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _parse_datetime(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_relative_time(value: str | None, now: datetime | None = None) -> str:
    if not value:
        return ""
    parsed = _parse_datetime(value)
    if parsed is None:
        return value
    current = now or datetime.now(timezone.utc)
    minutes = int((current - parsed).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    return f"{parsed:%b} {parsed.day}"


def format_event_time(start: dict[str, Any] | str | None) -> str:
    if not start:
        return ""
    if isinstance(start, dict):
        if start.get("date") and not start.get("dateTime"):
            return "All day"
        raw = start.get("dateTime") or ""
    else:
        raw = start
    if not raw:
        return ""
    parsed = _parse_datetime(str(raw))
    if parsed is None:
        return ""
    return f"{parsed.hour % 12 or 12}:{parsed.minute:02d} {'AM' if parsed.hour < 12 else 'PM'}"


def _email_items(emails: list[EmailMessage], limit: int, now: datetime, with_detail: bool) -> list[dict[str, Any]]:
    items = []
    for email in emails[:limit]:
        item: dict[str, Any] = {
            "id": email.id,
            "title": email.subject or "(no subject)",
            "subtitle": email.sender,
            "meta": format_relative_time(email.date, now),
            "unread": email.unread,
        }
        if with_detail and email.snippet:
            item["detail"] = {"description": email.snippet}
        items.append(item)
    return items


def _event_items(events: list[CalendarEvent], limit: int) -> list[dict[str, Any]]:
    return [
        {
            "id": event.id or f"event-{position}",
            "title": event.title or "(untitled)",
            "subtitle": event.location,
            "meta": format_event_time(event.start),
        }
        for position, event in enumerate(events[:limit])
    ]


def _inbox_title(unread: int) -> str:
    return f"Inbox — {unread} unread" if unread > 0 else "Inbox"


def _scene(now: datetime, intent: str, elements: list[SceneElement], spoken: str) -> Scene:
    return Scene(
        id=f"scene-{int(now.timestamp() * 1000)}",
        intent=intent,
        layout="grid" if len(elements) > 1 else "focused",
        elements=elements,
        spoken=spoken,
    )


def _result(results: Mapping[str, Any], tool_name: str) -> Any:
    raw = results.get(tool_name)
    return normalize_tool_result(tool_name, raw) if raw is not None else None


def _email_scene(results: Mapping[str, Any], now: datetime) -> Scene | None:
    inbox: EmailListResult | None = _result(results, "fetch_emails")
    if inbox is None or not inbox.emails:
        return None

    unread = inbox.unread_count
    element = SceneElement(
        id="email-list",
        type="list",
        title=_inbox_title(unread),
        data={"items": _email_items(inbox.emails, 15, now, with_detail=True)},
        priority=1,
        size="lg",
    )
    if unread > 0:
        spoken = f"You have {_plural(unread, 'unread email')}. Here's your inbox."
    else:
        spoken = "Your inbox is up to date. Here are your recent emails."
    return _scene(now, "email inbox", [element], spoken)


def _calendar_scene(results: Mapping[str, Any], now: datetime) -> Scene | None:
    calendar: CalendarResult | None = _result(results, "fetch_calendar")
    if calendar is None:
        return None

    if not calendar.events:
        element = SceneElement(
            id="cal-empty",
            type="text",
            title="Calendar",
            data={"content": "No upcoming events on your calendar."},
            priority=1,
            size="md",
        )
        return _scene(now, "calendar", [element], "Your calendar is clear, no upcoming events.")

    element = SceneElement(
        id="cal-list",
        type="list",
        title="Upcoming Events",
        data={"items": _event_items(calendar.events, 10)},
        priority=1,
        size="lg",
    )
    return _scene(now, "schedule", [element], f"You have {_plural(len(calendar.events), 'upcoming event')}.")


def _briefing_scene(results: Mapping[str, Any], now: datetime) -> Scene | None:
    inbox: EmailListResult | None = _result(results, "fetch_emails")
    calendar: CalendarResult | None = _result(results, "fetch_calendar")
    if inbox is None and calendar is None:
        return None

    elements: list[SceneElement] = []
    spoken_parts: list[str] = []

    if calendar is not None and calendar.events:
        count = len(calendar.events)
        elements.append(
            SceneElement(
                id="briefing-cal",
                type="list",
                title=f"Today's Schedule — {_plural(count, 'event')}",
                data={"items": _event_items(calendar.events, 8)},
                priority=1,
                size="lg",
            )
        )
        spoken_parts.append(f"{_plural(count, 'event')} on your calendar")

    if inbox is not None and inbox.emails:
        unread = inbox.unread_count
        elements.append(
            SceneElement(
                id="briefing-email",
                type="list",
                title=_inbox_title(unread),
                data={"items": _email_items(inbox.emails, 8, now, with_detail=False)},
                priority=1 if not elements else 2,
                size="lg",
            )
        )
        spoken_parts.append(f"{unread} unread emails" if unread > 0 else "no new emails")

    if not elements:
        return None
    return _scene(now, "morning briefing", elements, f"Good morning. You have {' and '.join(spoken_parts)}.")


def _files_scene(results: Mapping[str, Any], now: datetime) -> Scene | None:
    drive: DriveFilesResult | None = _result(results, "fetch_drive_files")
    if drive is None or not drive.files:
        return None

    element = SceneElement(
        id="file-list",
        type="list",
        title="Recent Files",
        data={
            "items": [
                {
                    "id": item.id or f"file-{position}",
                    "title": item.name or "(untitled)",
                    "subtitle": item.mime_type,
                    "meta": format_relative_time(item.modified_time, now),
                }
                for position, item in enumerate(drive.files[:15])
            ]
        },
        priority=1,
        size="lg",
    )
    return _scene(now, "recent files", [element], f"Here are your {len(drive.files)} most recent files.")


_BUILDERS: dict[str, Callable[[Mapping[str, Any], datetime], Scene | None]] = {
    "check_email": _email_scene,
    "check_calendar": _calendar_scene,
    "morning_briefing": _briefing_scene,
    "check_files": _files_scene,
}


def build_scene(intent: str, tool_results: Mapping[str, Any], now: datetime | None = None) -> Scene | None:
    """Assemble a display scene for a recognized intent from already-fetched tool results.

    Returns ``None`` when the intent has no deterministic layout or the data it needs is
    missing or empty; the caller then falls back to planning a task.
    """
    builder = _BUILDERS.get(intent)
    if builder is None:
        return None
    return builder(tool_results, now or datetime.now(timezone.utc))
