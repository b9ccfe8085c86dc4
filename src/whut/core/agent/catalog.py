from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    integration: str | None = None
    external: bool = False
    args_hint: str = "{}"
    preview: str | None = None


_TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec("fetch_emails", "List recent Gmail messages", "google", args_hint='{"query":"...","max_results":10}'),
    ToolSpec("get_email", "Read one Gmail message", "google", args_hint='{"id":"..."}'),
    ToolSpec(
        "send_email",
        "Send an email",
        "google",
        external=True,
        args_hint='{"to":"a@b.com","subject":"...","body":"..."}',
        preview="Send an email to {to} with subject '{subject}'.",
    ),
    ToolSpec(
        "archive_email",
        "Archive a Gmail message",
        "google",
        external=True,
        args_hint='{"id":"..."}',
        preview="Archive email {id}.",
    ),
    ToolSpec("fetch_calendar", "List upcoming calendar events", "google", args_hint='{"days":7}'),
    ToolSpec(
        "create_calendar_event",
        "Create a calendar event",
        "google",
        external=True,
        args_hint='{"title":"...","start":"ISO","end":"ISO","attendees":["a@b.com"]}',
        preview="Create calendar event '{title}' starting {start}.",
    ),
    ToolSpec(
        "update_calendar_event",
        "Update a calendar event",
        "google",
        external=True,
        args_hint='{"id":"...","title":"...","start":"ISO","end":"ISO"}',
        preview="Update calendar event {id}.",
    ),
    ToolSpec(
        "delete_calendar_event",
        "Delete a calendar event",
        "google",
        external=True,
        args_hint='{"id":"..."}',
        preview="Delete calendar event {id}.",
    ),
    ToolSpec("fetch_drive_files", "List recent Drive files", "google", args_hint='{"query":"...","max_results":15}'),
    ToolSpec(
        "create_drive_document",
        "Create a Google Doc",
        "google",
        external=True,
        args_hint='{"title":"...","content":"..."}',
        preview="Create Google Doc '{title}'.",
    ),
    ToolSpec("notion_search", "Search Notion", "notion", args_hint='{"query":"..."}'),
    ToolSpec("notion_get_page", "Read a Notion page", "notion", args_hint='{"page_id":"..."}'),
    ToolSpec(
        "notion_create_page",
        "Create a Notion page",
        "notion",
        external=True,
        args_hint='{"parent_id":"...","title":"...","content":"..."}',
        preview="Create Notion page '{title}'.",
    ),
    ToolSpec(
        "notion_update_page",
        "Update a Notion page",
        "notion",
        external=True,
        args_hint='{"page_id":"...","properties":{}}',
        preview="Update Notion page {page_id}.",
    ),
    ToolSpec("notion_query_database", "Query a Notion database", "notion", args_hint='{"database_id":"...","filter":{}}'),
    ToolSpec(
        "notion_append_blocks",
        "Append blocks to a Notion page",
        "notion",
        external=True,
        args_hint='{"page_id":"...","content":"..."}',
        preview="Append content to Notion page {page_id}.",
    ),
    ToolSpec("slack_list_channels", "List Slack channels", "slack"),
    ToolSpec("slack_read_messages", "Read recent Slack messages", "slack", args_hint='{"channel":"...","limit":20}'),
    ToolSpec(
        "slack_send_message",
        "Post a Slack message",
        "slack",
        external=True,
        args_hint='{"channel":"...","text":"..."}',
        preview="Post to Slack {channel}: '{text}'.",
    ),
    ToolSpec("slack_search_messages", "Search Slack messages", "slack", args_hint='{"query":"..."}'),
    ToolSpec("slack_list_users", "List Slack users", "slack"),
    ToolSpec(
        "telegram_send_message",
        "Send a Telegram message",
        "telegram",
        external=True,
        args_hint='{"chat_id":"...","text":"..."}',
        preview="Send Telegram message to {chat_id}: '{text}'.",
    ),
    ToolSpec(
        "telegram_send_document",
        "Send a document over Telegram",
        "telegram",
        external=True,
        args_hint='{"chat_id":"...","url":"..."}',
        preview="Send a document to Telegram chat {chat_id}.",
    ),
    ToolSpec("telegram_get_updates", "Read Telegram updates", "telegram"),
    ToolSpec("telegram_get_chat", "Read Telegram chat info", "telegram", args_hint='{"chat_id":"..."}'),
    ToolSpec("search_web", "Search the web", args_hint='{"query":"..."}'),
    ToolSpec("read_page", "Read a web page", args_hint='{"url":"..."}'),
    ToolSpec("display", "Render a scene on the dashboard", args_hint='{"elements":[]}'),
)

TOOL_CATALOG: dict[str, ToolSpec] = {tool.name: tool for tool in _TOOLS}

EXTERNAL_ACTIONS: frozenset[str] = frozenset(tool.name for tool in _TOOLS if tool.external)


def is_external_action(tool_name: str) -> bool:
    return tool_name in EXTERNAL_ACTIONS


def get_tool(name: str) -> ToolSpec | None:
    return TOOL_CATALOG.get(name)


def tool_names() -> list[str]:
    return [tool.name for tool in _TOOLS]


def tools_for_integrations(integration_ids: Iterable[str]) -> list[ToolSpec]:
    connected = {item.strip().casefold() for item in integration_ids if item and item.strip()}
    return [tool for tool in _TOOLS if tool.integration is None or tool.integration in connected]


def approval_preview(tool_name: str | None, params: dict[str, Any] | None, description: str) -> str:
    spec = TOOL_CATALOG.get(tool_name or "")
    fallback = f"This action will run {tool_name or 'a step'}: {description}"
    if spec is None or spec.preview is None:
        return fallback
    values = {key: (", ".join(str(item) for item in value) if isinstance(value, list) else value) for key, value in (params or {}).items()}
    try:
        return spec.preview.format_map(values)
    except (KeyError, ValueError, IndexError):
        return fallback
