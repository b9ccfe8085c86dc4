from __future__ import annotations

import logging
import time
from typing import Any

from whut.core.integrations.base import ToolExecutor
from whut.core.logging.context import log_context

from .catalog import approval_preview
from .errors import InvalidTransitionError, ToolExecutionFailed
from .schemas import Step, Task, now_iso
from .task_manager import TaskManager

_HALTED_STATUSES = frozenset({"paused", "waiting_approval"})


class StepExecutor:
    """Drives a task forward until it finishes or has to wait for a human."""

    def __init__(self, task_manager: TaskManager, tools: ToolExecutor) -> None:
        self.task_manager = task_manager
        self.tools = tools
        self.logger = logging.getLogger("whut.executor")

    def run(self, task_id: str) -> Task:
        with log_context(task_id=task_id):
            while True:
                task = self.task_manager.get_task(task_id)
                if task.is_terminal or task.status in _HALTED_STATUSES:
                    return task
                step = task.current_step()
                if step is None:
                    return task

                if step.status == "skipped":
                    self._advance(task_id)
                    continue
                if step.requires_approval and step.status != "running":
                    preview = approval_preview(step.tool_name, step.tool_params, step.description)
                    return self.task_manager.request_approval(task_id, step.index, preview)

                try:
                    keep_going = self._run_step(task_id, step)
                except InvalidTransitionError as exc:
                    self.logger.info("step_interrupted", extra={"extra_fields": {"task_id": task_id, "reason": exc.reason}})
                    keep_going = False
                if not keep_going:
                    return self.task_manager.get_task(task_id)

    def _run_step(self, task_id: str, step: Step) -> bool:
        self.task_manager.update_step(task_id, step.index, status="running", started_at=now_iso())
        start = time.perf_counter()
        fields: dict[str, Any] = {"task_id": task_id, "step_index": step.index, "tool_name": step.tool_name}

        with log_context(step_id=step.id):
            self.logger.info("step_started", extra={"extra_fields": fields})
            try:
                result = self._invoke(step)
            except ToolExecutionFailed as exc:
                duration_ms = int((time.perf_counter() - start) * 1000)
                self.logger.warning("step_failed", extra={"extra_fields": {**fields, "duration_ms": duration_ms, "error": str(exc)}})
                return self._record_failure(task_id, step, str(exc))
            except Exception as exc:
                duration_ms = int((time.perf_counter() - start) * 1000)
                self.logger.exception("step_failed", extra={"extra_fields": {**fields, "duration_ms": duration_ms}})
                return self._record_failure(task_id, step, f"{type(exc).__name__}: {exc}")

            duration_ms = int((time.perf_counter() - start) * 1000)
            self.logger.info("step_completed", extra={"extra_fields": {**fields, "duration_ms": duration_ms}})

        return self._record_success(task_id, step, result)

    def _invoke(self, step: Step) -> Any:
        if not step.tool_name:
            return None
        return self.tools.execute(step.tool_name, dict(step.tool_params), step.integration_id)

    def _record_success(self, task_id: str, step: Step, result: Any) -> bool:
        current = self.task_manager.get_task(task_id)
        if current.is_terminal:
            self.logger.info("step_result_discarded", extra={"extra_fields": {"task_id": task_id, "status": current.status}})
            return False

        self.task_manager.update_step(task_id, step.index, status="completed", result=result, completed_at=now_iso())
        context_update: dict[str, Any] = {f"step_{step.index}": result}
        if step.tool_name:
            context_update[step.tool_name] = result
        self.task_manager.merge_context(task_id, context_update)
        self._advance(task_id)
        return current.status not in _HALTED_STATUSES

    def _record_failure(self, task_id: str, step: Step, error: str) -> bool:
        current = self.task_manager.get_task(task_id)
        if current.is_terminal:
            return False

        self.task_manager.update_step(task_id, step.index, status="failed", error=error, completed_at=now_iso())
        if step.best_effort or self.task_manager.get_config().step_failure_policy == "skip":
            self._advance(task_id)
            return current.status not in _HALTED_STATUSES

        label = step.tool_name or "no tool"
        self.task_manager.fail_task(task_id, f"Step {step.index + 1} ({label}) failed: {error}")
        return False

    def _advance(self, task_id: str) -> None:
        try:
            self.task_manager.advance_step(task_id)
        except InvalidTransitionError:
            # closed concurrently; the next loop iteration sees it
            self.logger.info("advance_skipped", extra={"extra_fields": {"task_id": task_id}})
