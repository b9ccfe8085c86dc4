from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from whut.core.agent.errors import ToolExecutionFailed, ToolNotFoundError

ToolHandler = Callable[[dict[str, Any]], Any]


class ToolExecutor(Protocol):
    def execute(self, tool_name: str, tool_params: dict[str, Any], integration_id: str | None = None) -> Any: ...


class ToolRegistry:
    """Maps tool names to handler callables taking the step's params."""

    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}
        self.logger = logging.getLogger("whut.tools")

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name] = handler

    def execute(self, tool_name: str, tool_params: dict[str, Any], integration_id: str | None = None) -> Any:
        handler = self._handlers.get(tool_name)
        if handler is None:
            self.logger.warning("tool_not_registered", extra={"extra_fields": {"tool_name": tool_name, "integration_id": integration_id}})
            raise ToolNotFoundError(tool_name)
        try:
            return handler(dict(tool_params))
        except ToolExecutionFailed:
            raise
        except Exception as exc:
            raise ToolExecutionFailed(tool_name, f"{tool_name} failed: {exc}") from exc
