from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_ALWAYS_APPROVE: tuple[str, ...] = (
    "send_email",
    "slack_send_message",
    "telegram_send_message",
    "telegram_send_document",
    "create_calendar_event",
    "update_calendar_event",
    "delete_calendar_event",
    "notion_create_page",
    "notion_update_page",
    "notion_append_blocks",
    "create_drive_document",
    "archive_email",
)

DEFAULT_NEVER_APPROVE: tuple[str, ...] = (
    "fetch_emails",
    "get_email",
    "fetch_calendar",
    "fetch_drive_files",
    "slack_list_channels",
    "slack_list_users",
    "slack_read_messages",
    "slack_search_messages",
    "notion_search",
    "notion_get_page",
    "notion_query_database",
    "telegram_get_updates",
    "telegram_get_chat",
    "search_web",
    "read_page",
)


class AgentConfig(BaseModel):
    always_approve: list[str] = Field(default_factory=lambda: list(DEFAULT_ALWAYS_APPROVE))
    never_approve: list[str] = Field(default_factory=lambda: list(DEFAULT_NEVER_APPROVE))
    max_steps: int = Field(default=20, ge=1)
    max_concurrent_tasks: int = Field(default=5, ge=1)
    approval_timeout_s: int | None = Field(default=None, ge=1)
    reject_policy: Literal["skip", "halt"] = "skip"
    step_failure_policy: Literal["fail", "skip"] = "fail"


class AgentConfigPatch(BaseModel):
    always_approve: list[str] | None = None
    never_approve: list[str] | None = None
    max_steps: int | None = Field(default=None, ge=1)
    max_concurrent_tasks: int | None = Field(default=None, ge=1)
    approval_timeout_s: int | None = Field(default=None, ge=1)
    reject_policy: Literal["skip", "halt"] | None = None
    step_failure_policy: Literal["fail", "skip"] | None = None


def needs_approval(tool_name: str | None, config: AgentConfig) -> bool:
    name = tool_name or ""
    if name in config.never_approve:
        return False
    if name in config.always_approve:
        return True
    return True
