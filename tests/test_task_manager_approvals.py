from __future__ import annotations

import pytest

from whut.core.agent.errors import InvalidTransitionError
from whut.core.agent.executor import StepExecutor
from whut.core.agent.policy import AgentConfig
from whut.core.agent.schemas import StepSpec
from whut.core.agent.task_manager import TaskManager
from whut.core.integrations.base import ToolRegistry


def _waiting_task(manager: TaskManager, step_count: int = 2) -> str:
    task = manager.create_task("u1", "email sam")
    specs = [StepSpec(description="Send", tool_name="send_email", tool_params={"to": "sam@example.com"})]
    specs += [StepSpec(description=f"read {i}", tool_name="fetch_emails") for i in range(step_count - 1)]
    manager.set_steps(task.id, specs)
    manager.request_approval(task.id, 0, "Send an email to sam@example.com")
    return task.id


def test_request_approval_sets_waiting_state() -> None:
    manager = TaskManager()
    task_id = _waiting_task(manager)
    task = manager.get_task(task_id)
    assert task.status == "waiting_approval"
    assert task.waiting_since is not None
    assert task.steps[0].status == "waiting_approval"
    assert task.steps[0].approval_preview == "Send an email to sam@example.com"


def test_request_approval_only_for_current_step() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, [StepSpec(description="a"), StepSpec(description="b")])
    with pytest.raises(InvalidTransitionError):
        manager.request_approval(task.id, 1, "later step")


def test_approve_resumes_running() -> None:
    manager = TaskManager()
    task_id = _waiting_task(manager)
    approved = manager.approve_step(task_id, 0)
    assert approved.status == "running"
    assert approved.waiting_since is None
    assert approved.steps[0].status == "running"
    assert approved.steps[0].approval_preview is None
    assert approved.current_step_index == 0


def test_reject_skips_and_advances_once() -> None:
    manager = TaskManager()
    task_id = _waiting_task(manager, step_count=3)
    rejected = manager.reject_step(task_id, 0)
    assert rejected.steps[0].status == "skipped"
    assert rejected.current_step_index == 1
    assert rejected.status == "running"

    with pytest.raises(InvalidTransitionError):
        manager.reject_step(task_id, 0)
    assert manager.get_task(task_id).current_step_index == 1


def test_reject_last_step_completes() -> None:
    manager = TaskManager()
    task_id = _waiting_task(manager, step_count=1)
    rejected = manager.reject_step(task_id, 0)
    assert rejected.status == "completed"
    assert rejected.current_step_index == 1


def test_reject_with_halt_policy_pauses() -> None:
    manager = TaskManager(AgentConfig(reject_policy="halt"))
    task_id = _waiting_task(manager, step_count=2)
    rejected = manager.reject_step(task_id, 0)
    assert rejected.status == "paused"
    assert rejected.current_step_index == 1
    assert manager.resume_task(task_id).status == "running"


def test_approve_requires_waiting_step() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, [StepSpec(description="a", tool_name="send_email")])
    with pytest.raises(InvalidTransitionError):
        manager.approve_step(task.id, 0)


def test_cancel_while_waiting() -> None:
    manager = TaskManager()
    task_id = _waiting_task(manager)
    cancelled = manager.cancel_task(task_id)
    assert cancelled.status == "cancelled"
    with pytest.raises(InvalidTransitionError):
        manager.approve_step(task_id, 0)


def test_reject_keeps_a_paused_task_paused() -> None:
    calls: list[str] = []
    registry = ToolRegistry()
    registry.register("send_email", lambda params: calls.append("send_email"))
    registry.register("fetch_calendar", lambda params: calls.append("fetch_calendar"))
    manager = TaskManager()
    task = manager.create_task("u1", "email sam then check my calendar")
    manager.set_steps(
        task.id,
        [
            StepSpec(description="Send", tool_name="send_email", tool_params={"to": "sam@example.com"}),
            StepSpec(description="Calendar", tool_name="fetch_calendar"),
        ],
    )
    executor = StepExecutor(manager, registry)
    assert executor.run(task.id).status == "waiting_approval"

    manager.pause_task(task.id)
    rejected = manager.reject_step(task.id, 0)
    assert rejected.status == "paused"
    assert rejected.current_step_index == 1

    assert executor.run(task.id).status == "paused"
    assert calls == []

    manager.resume_task(task.id)
    assert executor.run(task.id).status == "completed"
    assert calls == ["fetch_calendar"]
