from __future__ import annotations

import threading

import pytest

from whut.core.agent.errors import (
    ConcurrencyLimitError,
    InvalidTransitionError,
    StepNotFoundError,
    TaskNotFoundError,
)
from whut.core.agent.policy import AgentConfig
from whut.core.agent.schemas import StepSpec
from whut.core.agent.task_manager import TaskManager


def _specs(count: int) -> list[StepSpec]:
    return [StepSpec(description=f"read {i}", tool_name="fetch_emails") for i in range(count)]


def test_create_and_plan_task() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "summarize my inbox")
    assert task.status == "planning"
    assert task.steps == []

    planned = manager.set_steps(task.id, _specs(2))
    assert planned.status == "running"
    assert planned.current_step_index == 0
    assert [step.index for step in planned.steps] == [0, 1]
    assert all(step.status == "pending" for step in planned.steps)
    assert all(step.requires_approval is False for step in planned.steps)


def test_set_steps_accepts_planner_dicts_and_flags_writes() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "email sam")
    planned = manager.set_steps(
        task.id,
        [
            {"description": "Look up thread", "toolName": "fetch_emails"},
            {"description": "Send reply", "toolName": "send_email", "toolParams": {"to": "sam@example.com"}},
            {"description": "Think"},
        ],
    )
    assert [step.requires_approval for step in planned.steps] == [False, True, True]


def test_steps_are_set_exactly_once() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(1))
    with pytest.raises(InvalidTransitionError):
        manager.set_steps(task.id, _specs(1))


def test_set_steps_bounds() -> None:
    manager = TaskManager(AgentConfig(max_steps=2))
    task = manager.create_task("u1", "x")
    with pytest.raises(InvalidTransitionError):
        manager.set_steps(task.id, [])
    with pytest.raises(InvalidTransitionError):
        manager.set_steps(task.id, _specs(3))
    assert manager.get_task(task.id).status == "planning"


def test_advance_is_monotonic_and_completes() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(3))

    seen = [manager.get_task(task.id).current_step_index]
    for _ in range(2):
        next_step = manager.advance_step(task.id)
        assert next_step is not None
        seen.append(manager.get_task(task.id).current_step_index)
    assert manager.advance_step(task.id) is None

    done = manager.get_task(task.id)
    seen.append(done.current_step_index)
    assert seen == [0, 1, 2, 3]
    assert done.status == "completed"
    assert done.completed_at is not None
    assert done.current_step_index == len(done.steps)

    with pytest.raises(InvalidTransitionError):
        manager.advance_step(task.id)


def test_terminal_tasks_reject_transitions() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(2))
    cancelled = manager.cancel_task(task.id)
    assert cancelled.status == "cancelled"
    assert cancelled.completed_at is not None

    for operation in (
        lambda: manager.pause_task(task.id),
        lambda: manager.advance_step(task.id),
        lambda: manager.fail_task(task.id, "late"),
        lambda: manager.merge_context(task.id, {"a": 1}),
        lambda: manager.update_step(task.id, 0, status="completed"),
    ):
        with pytest.raises(InvalidTransitionError):
            operation()
    assert manager.get_task(task.id).status == "cancelled"


def test_pause_and_resume() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(1))

    with pytest.raises(InvalidTransitionError):
        manager.resume_task(task.id)
    assert manager.pause_task(task.id).status == "paused"
    assert manager.resume_task(task.id).status == "running"


def test_fail_task_records_error() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    failed = manager.fail_task(task.id, "boom")
    assert failed.status == "failed"
    assert failed.error == "boom"
    assert failed.completed_at is not None


def test_update_step_protects_identity_fields() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(1))

    with pytest.raises(ValueError):
        manager.update_step(task.id, 0, requires_approval=True)
    with pytest.raises(StepNotFoundError):
        manager.update_step(task.id, 5, status="running")

    updated = manager.update_step(task.id, 0, status="running", started_at="2026-01-01T00:00:00+00:00")
    assert updated.steps[0].status == "running"


def test_missing_task_raises() -> None:
    manager = TaskManager()
    with pytest.raises(TaskNotFoundError):
        manager.get_task("nope")
    with pytest.raises(TaskNotFoundError):
        manager.cancel_task("nope")
    assert manager.find_task("nope") is None


def test_returned_tasks_are_copies() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(1))

    snapshot = manager.get_task(task.id)
    snapshot.status = "completed"
    snapshot.steps[0].status = "failed"
    snapshot.context["leak"] = True

    fresh = manager.get_task(task.id)
    assert fresh.status == "running"
    assert fresh.steps[0].status == "pending"
    assert fresh.context == {}


def test_concurrency_limit_per_user() -> None:
    manager = TaskManager(AgentConfig(max_concurrent_tasks=2))
    first = manager.create_task("u1", "a")
    manager.create_task("u1", "b")
    with pytest.raises(ConcurrencyLimitError):
        manager.create_task("u1", "c")

    manager.create_task("u2", "other user")
    manager.cancel_task(first.id)
    assert manager.create_task("u1", "c").status == "planning"


def test_user_queries_newest_first() -> None:
    manager = TaskManager()
    first = manager.create_task("u1", "a")
    second = manager.create_task("u1", "b")
    manager.create_task("u2", "c")
    manager.fail_task(first.id, "x")

    user_tasks = manager.get_user_tasks("u1")
    assert {task.id for task in user_tasks} == {first.id, second.id}
    assert [task.id for task in manager.get_active_tasks("u1")] == [second.id]
    assert len(manager.list_tasks()) == 3


def test_merge_context_accumulates() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.merge_context(task.id, {"a": 1})
    merged = manager.merge_context(task.id, {"b": 2})
    assert merged.context == {"a": 1, "b": 2}


def test_set_config_merges_changes() -> None:
    manager = TaskManager()
    updated = manager.set_config(max_steps=4, reject_policy="halt")
    assert updated.max_steps == 4
    assert updated.reject_policy == "halt"
    assert manager.get_config().max_concurrent_tasks == 5


def test_pause_needs_a_planned_task() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    with pytest.raises(InvalidTransitionError):
        manager.pause_task(task.id)

    planned = manager.set_steps(task.id, _specs(1))
    assert planned.status == "running"
    assert planned.current_step_index == 0


def test_concurrent_resume_succeeds_once() -> None:
    manager = TaskManager()
    task = manager.create_task("u1", "x")
    manager.set_steps(task.id, _specs(1))
    manager.pause_task(task.id)

    barrier = threading.Barrier(8)
    outcomes: list[str] = []

    def resume() -> None:
        barrier.wait()
        try:
            manager.resume_task(task.id)
            outcomes.append("resumed")
        except InvalidTransitionError:
            outcomes.append("refused")

    threads = [threading.Thread(target=resume) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("resumed") == 1
    assert outcomes.count("refused") == 7
