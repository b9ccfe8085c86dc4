from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from whut.core.agent.errors import (
    AgentError,
    ConcurrencyLimitError,
    InvalidTransitionError,
    PlanningFailed,
    StepNotFoundError,
    TaskNotFoundError,
)
from whut.core.agent.orchestrator import Orchestrator
from whut.core.agent.policy import AgentConfig, AgentConfigPatch
from whut.core.agent.schemas import AgentResponse, CreateTaskRequest, PlanRequest, StepSpec, Task, TaskListResponse
from whut.core.agent.task_manager import TaskManager
from whut.core.runs.schemas import TaskRecord
from whut.core.runs.store import TaskHistoryStore

from .deps import get_history_store, get_orchestrator, get_task_manager

router = APIRouter()


def _http_error(exc: AgentError) -> HTTPException:
    if isinstance(exc, (TaskNotFoundError, StepNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ConcurrencyLimitError):
        return HTTPException(status_code=429, detail=str(exc))
    if isinstance(exc, PlanningFailed):
        return HTTPException(status_code=400, detail=f"Could not plan task: {exc}")
    return HTTPException(status_code=500, detail=str(exc))


@router.post("/plan", response_model=list[StepSpec])
def plan(request: PlanRequest, orchestrator: Orchestrator = Depends(get_orchestrator)) -> list[StepSpec]:
    try:
        return orchestrator.plan(request.intent, request.connected_integrations)
    except PlanningFailed as exc:
        raise _http_error(exc) from exc


@router.post("/tasks", response_model=AgentResponse)
def create_task(request: CreateTaskRequest, orchestrator: Orchestrator = Depends(get_orchestrator)) -> AgentResponse:
    response = orchestrator.start_task(
        request.user_id,
        request.intent,
        connected_integrations=request.connected_integrations,
        conversation_id=request.conversation_id,
    )
    if response.mode == "error":
        status_code = 429 if response.task is None else 400
        raise HTTPException(status_code=status_code, detail=response.error or response.spoken)
    return response


@router.get("/tasks", response_model=TaskListResponse)
def list_tasks(
    user_id: str | None = Query(default=None),
    active: bool = Query(default=False),
    task_manager: TaskManager = Depends(get_task_manager),
) -> TaskListResponse:
    if user_id is None:
        tasks = task_manager.list_tasks()
        if active:
            tasks = [task for task in tasks if not task.is_terminal]
    elif active:
        tasks = task_manager.get_active_tasks(user_id)
    else:
        tasks = task_manager.get_user_tasks(user_id)
    return TaskListResponse(tasks=tasks)


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(task_id: str, task_manager: TaskManager = Depends(get_task_manager)) -> Task:
    try:
        return task_manager.get_task(task_id)
    except AgentError as exc:
        raise _http_error(exc) from exc


@router.post("/tasks/{task_id}/steps/{index}/approve", response_model=AgentResponse)
def approve_step(task_id: str, index: int, orchestrator: Orchestrator = Depends(get_orchestrator)) -> AgentResponse:
    try:
        return orchestrator.approve(task_id, index)
    except AgentError as exc:
        raise _http_error(exc) from exc


@router.post("/tasks/{task_id}/steps/{index}/reject", response_model=AgentResponse)
def reject_step(task_id: str, index: int, orchestrator: Orchestrator = Depends(get_orchestrator)) -> AgentResponse:
    try:
        return orchestrator.reject(task_id, index)
    except AgentError as exc:
        raise _http_error(exc) from exc


@router.post("/tasks/{task_id}/pause", response_model=Task)
def pause_task(task_id: str, task_manager: TaskManager = Depends(get_task_manager)) -> Task:
    try:
        return task_manager.pause_task(task_id)
    except AgentError as exc:
        raise _http_error(exc) from exc


@router.post("/tasks/{task_id}/resume", response_model=AgentResponse)
def resume_task(task_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)) -> AgentResponse:
    try:
        return orchestrator.resume(task_id)
    except AgentError as exc:
        raise _http_error(exc) from exc


@router.post("/tasks/{task_id}/cancel", response_model=Task)
def cancel_task(task_id: str, task_manager: TaskManager = Depends(get_task_manager)) -> Task:
    try:
        return task_manager.cancel_task(task_id)
    except AgentError as exc:
        raise _http_error(exc) from exc


@router.get("/config", response_model=AgentConfig)
def get_config(task_manager: TaskManager = Depends(get_task_manager)) -> AgentConfig:
    return task_manager.get_config()


@router.patch("/config", response_model=AgentConfig)
def patch_config(patch: AgentConfigPatch, task_manager: TaskManager = Depends(get_task_manager)) -> AgentConfig:
    return task_manager.set_config(**patch.model_dump(exclude_unset=True))


@router.get("/history", response_model=list[TaskRecord])
def history(
    q: str = Query(default=""),
    user_id: str | None = Query(default=None),
    limit: int = Query(default=50),
    store: TaskHistoryStore = Depends(get_history_store),
) -> list[TaskRecord]:
    normalized_limit = max(1, min(200, limit))
    if q:
        return store.search(q, limit=normalized_limit)
    return store.list_recent(limit=normalized_limit, user_id=user_id)
