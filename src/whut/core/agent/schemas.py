from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from whut.core.scenes.schemas import Scene

TaskStatus = Literal["pending", "planning", "running", "waiting_approval", "paused", "completed", "failed", "cancelled"]
StepStatus = Literal["pending", "running", "completed", "failed", "skipped", "waiting_approval"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid4())


class StepSpec(BaseModel):
    """One planned step as produced by the planner, before the task assigns identity and approval."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    description: str
    tool_name: str | None = Field(default=None, alias="toolName")
    tool_params: dict[str, Any] = Field(default_factory=dict, alias="toolParams")
    integration_id: str | None = Field(default=None, alias="integrationId")
    best_effort: bool = Field(default=False, alias="bestEffort")


class Step(BaseModel):
    id: str = Field(default_factory=new_id)
    index: int
    description: str
    tool_name: str | None = None
    tool_params: dict[str, Any] = Field(default_factory=dict)
    integration_id: str | None = None
    status: StepStatus = "pending"
    result: Any | None = None
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None
    requires_approval: bool = False
    approval_preview: str | None = None
    best_effort: bool = False


class Task(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    intent: str
    status: TaskStatus = "planning"
    steps: list[Step] = Field(default_factory=list)
    current_step_index: int = 0
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)
    completed_at: str | None = None
    error: str | None = None
    conversation_id: str | None = None
    waiting_since: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def current_step(self) -> Step | None:
        if 0 <= self.current_step_index < len(self.steps):
            return self.steps[self.current_step_index]
        return None


class CreateTaskRequest(BaseModel):
    intent: str
    user_id: str = "default"
    connected_integrations: list[str] = Field(default_factory=list)
    conversation_id: str | None = None


class PlanRequest(BaseModel):
    intent: str
    connected_integrations: list[str] = Field(default_factory=list)


class TaskListResponse(BaseModel):
    tasks: list[Task]


class ChatRequest(BaseModel):
    message: str
    user_id: str = "default"
    connected_integrations: list[str] = Field(default_factory=list)
    conversation_id: str | None = None


class AgentResponse(BaseModel):
    mode: Literal["cached", "single_shot", "task", "error"]
    spoken: str
    scene: Scene | None = None
    task: Task | None = None
    intent: str | None = None
    error: str | None = None
    trace_events: list[dict[str, Any]] = Field(default_factory=list)
