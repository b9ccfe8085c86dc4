from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class EmailMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    subject: str = ""
    sender: str = Field(default="", alias="from")
    date: str | None = None
    unread: bool = False
    snippet: str | None = None


class CalendarEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    title: str = ""
    location: str = ""
    start: dict[str, Any] | str | None = None
    end: dict[str, Any] | str | None = None


class DriveFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    mime_type: str = ""
    modified_time: str | None = None


class EmailListResult(BaseModel):
    emails: list[EmailMessage] = Field(default_factory=list)

    @property
    def unread_count(self) -> int:
        return sum(1 for email in self.emails if email.unread)


class CalendarResult(BaseModel):
    events: list[CalendarEvent] = Field(default_factory=list)


class DriveFilesResult(BaseModel):
    files: list[DriveFile] = Field(default_factory=list)


def _unwrap(raw: Any, keys: tuple[str, ...]) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in keys:
            value = raw.get(key)
            if isinstance(value, list):
                return value
    return []


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _email(item: dict[str, Any]) -> EmailMessage:
    return EmailMessage(
        id=_as_text(item.get("id")),
        subject=_as_text(item.get("subject")),
        sender=_as_text(item.get("from") or item.get("sender")),
        date=item.get("date"),
        unread=bool(item.get("unread", False)),
        snippet=item.get("snippet"),
    )


def _event(item: dict[str, Any]) -> CalendarEvent:
    return CalendarEvent(
        id=_as_text(item.get("id")),
        title=_as_text(item.get("summary") or item.get("title")),
        location=_as_text(item.get("location")),
        start=item.get("start"),
        end=item.get("end"),
    )


def _file(item: dict[str, Any]) -> DriveFile:
    return DriveFile(
        id=_as_text(item.get("id")),
        name=_as_text(item.get("name") or item.get("title")),
        mime_type=_as_text(item.get("mimeType") or item.get("mime_type")),
        modified_time=item.get("modifiedTime") or item.get("createdTime") or item.get("modified_time"),
    )


def _collect(items: list[Any], build) -> list:
    collected = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            collected.append(build(item))
        except ValidationError:
            continue
    return collected


def normalize_tool_result(tool_name: str, raw: Any) -> Any:
    """Unwrap provider payloads for the read tools the scene builder knows about.

    Gmail results may arrive as a bare list or under "emails"/"messages", calendar
    results under "events"/"items" and Drive results under "files". Other tools and
    ``None`` pass through untouched, as do results that are already normalized.
    """
    if raw is None:
        return None
    if tool_name == "fetch_emails":
        if isinstance(raw, EmailListResult):
            return raw
        return EmailListResult(emails=_collect(_unwrap(raw, ("emails", "messages")), _email))
    if tool_name == "fetch_calendar":
        if isinstance(raw, CalendarResult):
            return raw
        return CalendarResult(events=_collect(_unwrap(raw, ("events", "items")), _event))
    if tool_name == "fetch_drive_files":
        if isinstance(raw, DriveFilesResult):
            return raw
        return DriveFilesResult(files=_collect(_unwrap(raw, ("files",)), _file))
    return raw
