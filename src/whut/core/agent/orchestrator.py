from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from whut.core.background.queue import BackgroundQueue
from whut.core.integrations.base import ToolExecutor
from whut.core.integrations.normalize import normalize_tool_result
from whut.core.logging.context import get_log_context, log_context
from whut.core.observability.trace import Trace
from whut.core.runs.store import TaskHistoryStore
from whut.core.scenes.builder import build_scene
from whut.core.scenes.cache import SceneCache, is_repeat_request

from .catalog import get_tool
from .errors import ConcurrencyLimitError, InvalidTransitionError, PlanningFailed
from .executor import StepExecutor
from .intents import detect_intent
from .planner import Planner
from .schemas import AgentResponse, ChatRequest, StepSpec, Task
from .task_manager import TaskManager


def describe_task(task: Task) -> str:
    if task.status == "waiting_approval":
        step = task.current_step()
        preview = step.approval_preview if step is not None else None
        return f"I need your approval before I continue. {preview}" if preview else "I need your approval before I continue."
    if task.status == "completed":
        done = sum(1 for step in task.steps if step.status == "completed")
        return f"Done. Completed {done} of {len(task.steps)} steps."
    if task.status == "failed":
        return f"The task failed. {task.error}" if task.error else "The task failed."
    if task.status == "cancelled":
        return "The task was cancelled."
    if task.status == "paused":
        return "The task is paused."
    return "Working on it."


class Orchestrator:
    """Routes a user message to a cached scene, a single-shot scene or a planned task."""

    def __init__(
        self,
        task_manager: TaskManager,
        planner: Planner,
        tools: ToolExecutor,
        scene_cache: SceneCache | None = None,
        history: TaskHistoryStore | None = None,
        background: BackgroundQueue | None = None,
    ) -> None:
        self.task_manager = task_manager
        self.planner = planner
        self.tools = tools
        self.executor = StepExecutor(task_manager, tools)
        self.scene_cache = scene_cache or SceneCache()
        self.history = history
        self.background = background or BackgroundQueue()
        self.logger = logging.getLogger("whut.orchestrator")
        if self.history is not None:
            self.task_manager.subscribe_all(self._record_history)

    def handle(
        self,
        user_id: str,
        message: str,
        connected_integrations: Iterable[str] = (),
        conversation_id: str | None = None,
    ) -> AgentResponse:
        integrations = list(connected_integrations)
        trace = Trace(message=message, correlation_id=get_log_context().get("correlation_id"))

        with log_context(user_id=user_id):
            if is_repeat_request(message):
                cached = self.scene_cache.last_scene()
                if cached is not None:
                    trace.emit("SceneCacheHit", {})
                    return AgentResponse(mode="cached", spoken=cached.spoken, scene=cached.scene, trace_events=trace.events)

            match = detect_intent(message)
            if match is not None:
                trace.emit("IntentDetected", {"intent": match.intent, "tools": list(match.tools)})
                results = self._prefetch(match.tools)
                trace.emit("PrefetchCompleted", {"tools": sorted(results)})
                scene = build_scene(match.intent, results)
                if scene is not None:
                    self.scene_cache.put(message, scene)
                    trace.emit("SingleShotBuilt", {"intent": match.intent, "element_count": len(scene.elements)})
                    return AgentResponse(
                        mode="single_shot",
                        spoken=scene.spoken,
                        scene=scene,
                        intent=match.intent,
                        trace_events=trace.events,
                    )

            return self._run_task(user_id, message, integrations, conversation_id, trace)

    def handle_request(self, request: ChatRequest) -> AgentResponse:
        return self.handle(
            request.user_id,
            request.message,
            connected_integrations=request.connected_integrations,
            conversation_id=request.conversation_id,
        )

    def start_task(
        self,
        user_id: str,
        intent: str,
        connected_integrations: Iterable[str] = (),
        conversation_id: str | None = None,
    ) -> AgentResponse:
        trace = Trace(message=intent, correlation_id=get_log_context().get("correlation_id"))
        with log_context(user_id=user_id):
            return self._run_task(user_id, intent, list(connected_integrations), conversation_id, trace)

    def plan(self, intent: str, connected_integrations: Iterable[str] = ()) -> list[StepSpec]:
        return self.planner.plan_task(intent, list(connected_integrations))

    def approve(self, task_id: str, index: int) -> AgentResponse:
        with log_context(task_id=task_id):
            self.task_manager.approve_step(task_id, index)
            return self._resume(task_id, "ApprovalGranted", index)

    def reject(self, task_id: str, index: int) -> AgentResponse:
        with log_context(task_id=task_id):
            self.task_manager.reject_step(task_id, index)
            return self._resume(task_id, "ApprovalRejected", index)

    def resume(self, task_id: str) -> AgentResponse:
        with log_context(task_id=task_id):
            self.task_manager.resume_task(task_id)
            return self._resume(task_id, "TaskResumed", None)

    def _resume(self, task_id: str, event: str, index: int | None) -> AgentResponse:
        trace = Trace(message="", task_id=task_id, correlation_id=get_log_context().get("correlation_id"))
        trace.emit(event, {"step_index": index} if index is not None else {})
        task = self.executor.run(task_id)
        self._emit_halt(trace, task)
        return AgentResponse(mode="task", spoken=describe_task(task), task=task, trace_events=trace.events)

    def _run_task(
        self,
        user_id: str,
        intent: str,
        integrations: list[str],
        conversation_id: str | None,
        trace: Trace,
    ) -> AgentResponse:
        try:
            task = self.task_manager.create_task(user_id, intent, conversation_id=conversation_id)
        except ConcurrencyLimitError as exc:
            trace.emit("TaskRejected", {"reason": "concurrency_limit", "limit": exc.limit})
            return AgentResponse(
                mode="error",
                spoken="You already have too many tasks running. Finish or cancel one first.",
                error=str(exc),
                trace_events=trace.events,
            )

        trace.task_id = task.id
        with log_context(task_id=task.id):
            trace.emit("PlannerStarted", {"integrations": integrations})
            try:
                specs = self.planner.plan_task(intent, integrations)
            except PlanningFailed as exc:
                return self._planning_failed(task.id, str(exc), trace)
            except Exception as exc:
                self.logger.exception("planner_crashed", extra={"extra_fields": {"task_id": task.id}})
                return self._planning_failed(task.id, f"{type(exc).__name__}: {exc}", trace)
            trace.emit("PlannerSucceeded", {"step_count": len(specs)})

            try:
                self.task_manager.set_steps(task.id, specs)
            except InvalidTransitionError as exc:
                return self._planning_failed(task.id, exc.reason, trace)
            trace.emit("TaskStarted", {"step_count": len(specs)})
            task = self.executor.run(task.id)
            self._emit_halt(trace, task)
            return AgentResponse(mode="task", spoken=describe_task(task), task=task, trace_events=trace.events)

    def _planning_failed(self, task_id: str, reason: str, trace: Trace) -> AgentResponse:
        trace.emit("PlannerFailed", {"reason": reason})
        try:
            task = self.task_manager.fail_task(task_id, f"planning_failed: {reason}")
        except InvalidTransitionError:
            # cancelled while the planner was running
            task = self.task_manager.get_task(task_id)
        return AgentResponse(
            mode="error",
            spoken="Could not plan task",
            task=task,
            error=reason,
            trace_events=trace.events,
        )

    def _emit_halt(self, trace: Trace, task: Task) -> None:
        payload: dict[str, Any] = {"status": task.status, "current_step_index": task.current_step_index}
        if task.status == "waiting_approval":
            payload["step_index"] = task.current_step_index
        trace.emit("TaskCompleted" if task.status == "completed" else "TaskHalted", payload)

    def _prefetch(self, tool_names: Iterable[str]) -> dict[str, Any]:
        results: dict[str, Any] = {}
        for name in tool_names:
            spec = get_tool(name)
            integration_id = spec.integration if spec is not None else None
            try:
                raw = self.tools.execute(name, {}, integration_id)
            except Exception:
                self.logger.warning("prefetch_failed", extra={"extra_fields": {"tool_name": name}}, exc_info=True)
                continue
            results[name] = normalize_tool_result(name, raw)
        return results

    def _record_history(self, task: Task) -> None:
        if task.is_terminal and self.history is not None:
            self.background.submit("task_history", self.history.record_task, task)
