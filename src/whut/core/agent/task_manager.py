from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from .errors import ConcurrencyLimitError, InvalidTransitionError, StepNotFoundError, TaskNotFoundError
from .policy import AgentConfig, needs_approval
from .schemas import Step, StepSpec, Task, TaskStatus, new_id, now_iso

TaskListener = Callable[[Task], None]

_IMMUTABLE_STEP_FIELDS = frozenset({"id", "index", "requires_approval"})
_MUTABLE_STEP_FIELDS = frozenset(Step.model_fields) - _IMMUTABLE_STEP_FIELDS
# a task needs steps before it can be paused
_PAUSABLE_STATUSES = frozenset({"running", "waiting_approval"})


class TaskManager:
    """Owns the lifecycle of agent tasks and their steps.

    Every public operation runs under one re-entrant lock, so a single transition is
    atomic with respect to any other. Listeners are invoked after the lock is released,
    per-task listeners before global ones, each with its own snapshot of the task.
    Tasks handed out are copies; the only way to change a task is through the
    transition methods.
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        self._config = config or AgentConfig()
        self._tasks: dict[str, Task] = {}
        self._listeners: dict[str, list[TaskListener]] = {}
        self._global_listeners: list[TaskListener] = []
        self._lock = threading.RLock()
        self.logger = logging.getLogger("whut.tasks")

    # -- queries -----------------------------------------------------------

    def get_task(self, task_id: str) -> Task:
        with self._lock:
            return self._require(task_id).model_copy(deep=True)

    def find_task(self, task_id: str) -> Task | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task is not None else None

    def list_tasks(self) -> list[Task]:
        with self._lock:
            tasks = [task.model_copy(deep=True) for task in self._tasks.values()]
        return sorted(tasks, key=lambda item: item.created_at, reverse=True)

    def get_user_tasks(self, user_id: str) -> list[Task]:
        return [task for task in self.list_tasks() if task.user_id == user_id]

    def get_active_tasks(self, user_id: str) -> list[Task]:
        return [task for task in self.get_user_tasks(user_id) if not task.is_terminal]

    def get_config(self) -> AgentConfig:
        with self._lock:
            return self._config.model_copy(deep=True)

    def set_config(self, **changes: Any) -> AgentConfig:
        with self._lock:
            updates = {key: value for key, value in changes.items() if value is not None or key == "approval_timeout_s"}
            merged = {**self._config.model_dump(), **updates}
            self._config = AgentConfig.model_validate(merged)
            return self._config.model_copy(deep=True)

    # -- transitions -------------------------------------------------------

    def create_task(self, user_id: str, intent: str, conversation_id: str | None = None) -> Task:
        with self._lock:
            active = sum(1 for task in self._tasks.values() if task.user_id == user_id and not task.is_terminal)
            if active >= self._config.max_concurrent_tasks:
                raise ConcurrencyLimitError(user_id, self._config.max_concurrent_tasks)
            task = Task(user_id=user_id, intent=intent, status="planning", conversation_id=conversation_id)
            self._tasks[task.id] = task
            snapshot = task.model_copy(deep=True)
        self.logger.info("task_created", extra={"extra_fields": {"task_id": snapshot.id, "user_id": user_id}})
        self._emit(snapshot)
        return snapshot

    def set_steps(self, task_id: str, specs: Iterable[StepSpec | dict[str, Any]]) -> Task:
        with self._lock:
            task = self._require(task_id)
            if task.status not in {"pending", "planning"}:
                raise InvalidTransitionError(task_id, "set_steps", f"task is {task.status}")
            parsed = [spec if isinstance(spec, StepSpec) else StepSpec.model_validate(spec) for spec in specs]
            if not parsed:
                raise InvalidTransitionError(task_id, "set_steps", "a plan needs at least one step")
            if len(parsed) > self._config.max_steps:
                raise InvalidTransitionError(task_id, "set_steps", f"plan exceeds {self._config.max_steps} steps")

            task.steps = [
                Step(
                    id=new_id(),
                    index=index,
                    description=spec.description,
                    tool_name=spec.tool_name,
                    tool_params=dict(spec.tool_params),
                    integration_id=spec.integration_id,
                    best_effort=spec.best_effort,
                    status="pending",
                    requires_approval=needs_approval(spec.tool_name, self._config),
                )
                for index, spec in enumerate(parsed)
            ]
            task.status = "running"
            task.current_step_index = 0
            snapshot = self._touch(task)
        self._emit(snapshot)
        return snapshot

    def update_step(self, task_id: str, index: int, **changes: Any) -> Task:
        unknown = set(changes) - _MUTABLE_STEP_FIELDS
        if unknown:
            raise ValueError(f"cannot update step fields: {', '.join(sorted(unknown))}")
        with self._lock:
            task = self._require_open(task_id, "update_step")
            step = self._require_step(task, index)
            validated = Step.model_validate({**step.model_dump(), **changes})
            task.steps[index] = validated
            snapshot = self._touch(task)
        self._emit(snapshot)
        return snapshot

    def merge_context(self, task_id: str, values: dict[str, Any]) -> Task:
        with self._lock:
            task = self._require_open(task_id, "merge_context")
            task.context.update(values)
            snapshot = self._touch(task)
        self._emit(snapshot)
        return snapshot

    def advance_step(self, task_id: str) -> Step | None:
        with self._lock:
            snapshot = self._advance(self._require_open(task_id, "advance_step"))
        self._emit(snapshot)
        return snapshot.current_step() if snapshot.status != "completed" else None

    def request_approval(self, task_id: str, index: int, preview: str) -> Task:
        with self._lock:
            task = self._require_open(task_id, "request_approval")
            step = self._require_step(task, index)
            if task.status != "running":
                raise InvalidTransitionError(task_id, "request_approval", f"task is {task.status}")
            if index != task.current_step_index:
                raise InvalidTransitionError(task_id, "request_approval", f"step {index} is not the current step")
            if step.status not in {"pending", "waiting_approval"}:
                raise InvalidTransitionError(task_id, "request_approval", f"step {index} is {step.status}")
            task.status = "waiting_approval"
            task.waiting_since = now_iso()
            step.status = "waiting_approval"
            step.approval_preview = preview
            snapshot = self._touch(task)
        self.logger.info("approval_requested", extra={"extra_fields": {"task_id": task_id, "step_index": index, "tool_name": step.tool_name}})
        self._emit(snapshot)
        return snapshot

    def approve_step(self, task_id: str, index: int) -> Task:
        with self._lock:
            task = self._require_open(task_id, "approve_step")
            if task.status != "waiting_approval":
                raise InvalidTransitionError(task_id, "approve_step", f"task is {task.status}")
            step = self._require_waiting_step(task, index, "approve_step")
            task.status = "running"
            task.waiting_since = None
            step.status = "running"
            step.approval_preview = None
            snapshot = self._touch(task)
        self.logger.info("approval_granted", extra={"extra_fields": {"task_id": task_id, "step_index": index}})
        self._emit(snapshot)
        return snapshot

    def reject_step(self, task_id: str, index: int) -> Task:
        with self._lock:
            task = self._require_open(task_id, "reject_step")
            step = self._require_waiting_step(task, index, "reject_step")
            step.status = "skipped"
            step.approval_preview = None
            step.completed_at = now_iso()
            if task.status == "waiting_approval":
                task.status = "running"
            task.waiting_since = None
            self._touch(task)
            snapshot = self._advance(task)
            if self._config.reject_policy == "halt" and snapshot.status != "completed":
                task.status = "paused"
                snapshot = self._touch(task)
        self.logger.info(
            "approval_rejected",
            extra={"extra_fields": {"task_id": task_id, "step_index": index, "policy": self._config.reject_policy}},
        )
        self._emit(snapshot)
        return snapshot

    def pause_task(self, task_id: str) -> Task:
        return self._set_status(task_id, "paused", "pause_task", allowed=_PAUSABLE_STATUSES)

    def resume_task(self, task_id: str) -> Task:
        return self._set_status(task_id, "running", "resume_task", allowed=frozenset({"paused"}))

    def cancel_task(self, task_id: str) -> Task:
        return self._set_status(task_id, "cancelled", "cancel_task")

    def fail_task(self, task_id: str, error: str) -> Task:
        with self._lock:
            task = self._require_open(task_id, "fail_task")
            task.status = "failed"
            task.error = error
            task.waiting_since = None
            task.completed_at = now_iso()
            snapshot = self._touch(task)
        self.logger.warning("task_failed", extra={"extra_fields": {"task_id": task_id, "error": error}})
        self._emit(snapshot)
        return snapshot

    def expire_stale_approvals(self, now: datetime | None = None) -> list[str]:
        with self._lock:
            timeout_s = self._config.approval_timeout_s
            if timeout_s is None:
                return []
            cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=timeout_s)
            stale = [
                task.id
                for task in self._tasks.values()
                if task.status == "waiting_approval"
                and task.waiting_since is not None
                and datetime.fromisoformat(task.waiting_since) <= cutoff
            ]
        expired: list[str] = []
        for task_id in stale:
            try:
                self.fail_task(task_id, "approval_timeout")
            except InvalidTransitionError:
                # resolved by a human between the scan and now
                continue
            expired.append(task_id)
        return expired

    # -- subscriptions -----------------------------------------------------

    def subscribe(self, task_id: str, listener: TaskListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(task_id, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(task_id, [])
                if listener in listeners:
                    listeners.remove(listener)
                if not listeners:
                    self._listeners.pop(task_id, None)

        return unsubscribe

    def subscribe_all(self, listener: TaskListener) -> Callable[[], None]:
        with self._lock:
            self._global_listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._global_listeners:
                    self._global_listeners.remove(listener)

        return unsubscribe

    # -- internals ---------------------------------------------------------

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _require_open(self, task_id: str, operation: str) -> Task:
        task = self._require(task_id)
        if task.is_terminal:
            raise InvalidTransitionError(task_id, operation, f"task is {task.status}")
        return task

    def _require_step(self, task: Task, index: int) -> Step:
        if index < 0 or index >= len(task.steps):
            raise StepNotFoundError(task.id, index)
        return task.steps[index]

    def _require_waiting_step(self, task: Task, index: int, operation: str) -> Step:
        step = self._require_step(task, index)
        if step.status != "waiting_approval":
            raise InvalidTransitionError(task.id, operation, f"step {index} is {step.status}")
        return step

    def _advance(self, task: Task) -> Task:
        if not task.steps:
            raise InvalidTransitionError(task.id, "advance_step", "task has no steps")
        task.current_step_index = min(task.current_step_index + 1, len(task.steps))
        if task.current_step_index == len(task.steps):
            task.status = "completed"
            task.completed_at = now_iso()
            self.logger.info("task_completed", extra={"extra_fields": {"task_id": task.id, "step_count": len(task.steps)}})
        return self._touch(task)

    def _set_status(
        self,
        task_id: str,
        status: TaskStatus,
        operation: str,
        allowed: frozenset[str] | None = None,
    ) -> Task:
        with self._lock:
            task = self._require_open(task_id, operation)
            if allowed is not None and task.status not in allowed:
                raise InvalidTransitionError(task_id, operation, f"task is {task.status}")
            task.status = status
            if status == "cancelled":
                task.completed_at = now_iso()
                task.waiting_since = None
            snapshot = self._touch(task)
        self.logger.info("task_status_changed", extra={"extra_fields": {"task_id": task_id, "status": status}})
        self._emit(snapshot)
        return snapshot

    def _touch(self, task: Task) -> Task:
        task.updated_at = now_iso()
        return task.model_copy(deep=True)

    def _emit(self, snapshot: Task) -> None:
        with self._lock:
            listeners = list(self._listeners.get(snapshot.id, [])) + list(self._global_listeners)
        for listener in listeners:
            try:
                listener(snapshot.model_copy(deep=True))
            except Exception:
                self.logger.exception("task_listener_failed", extra={"extra_fields": {"task_id": snapshot.id}})
