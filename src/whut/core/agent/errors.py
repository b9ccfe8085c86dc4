from __future__ import annotations


class AgentError(RuntimeError):
    """Base error for task orchestration."""


class TaskNotFoundError(AgentError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id


class StepNotFoundError(AgentError):
    def __init__(self, task_id: str, index: int) -> None:
        super().__init__(f"step {index} not found on task {task_id}")
        self.task_id = task_id
        self.index = index


class InvalidTransitionError(AgentError):
    def __init__(self, task_id: str, operation: str, reason: str) -> None:
        super().__init__(f"{operation} rejected for task {task_id}: {reason}")
        self.task_id = task_id
        self.operation = operation
        self.reason = reason


class ConcurrencyLimitError(AgentError):
    def __init__(self, user_id: str, limit: int) -> None:
        super().__init__(f"user {user_id} already has {limit} active tasks")
        self.user_id = user_id
        self.limit = limit


class PlanningFailed(AgentError):
    """Raised when no usable step list can be extracted from the model."""


class ToolExecutionFailed(AgentError):
    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class ToolNotFoundError(ToolExecutionFailed):
    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"unknown tool: {tool_name}")
