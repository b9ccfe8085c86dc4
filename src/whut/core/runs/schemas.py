from __future__ import annotations

from pydantic import BaseModel, Field

from whut.core.agent.schemas import Task, now_iso


class TaskRecord(BaseModel):
    task_id: str
    ts_iso: str
    user_id: str
    intent: str
    status: str
    error: str | None = None
    conversation_id: str | None = None
    created_at: str
    completed_at: str | None = None
    steps: list[dict] = Field(default_factory=list)

    @classmethod
    def from_task(cls, task: Task) -> "TaskRecord":
        return cls(
            task_id=task.id,
            ts_iso=now_iso(),
            user_id=task.user_id,
            intent=task.intent,
            status=task.status,
            error=task.error,
            conversation_id=task.conversation_id,
            created_at=task.created_at,
            completed_at=task.completed_at,
            steps=[
                {
                    "index": step.index,
                    "description": step.description,
                    "tool_name": step.tool_name,
                    "status": step.status,
                    "error": step.error,
                }
                for step in task.steps
            ],
        )
