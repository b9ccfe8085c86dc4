from __future__ import annotations

from functools import lru_cache

from whut.core.agent.orchestrator import Orchestrator
from whut.core.agent.planner import Planner
from whut.core.agent.task_manager import TaskManager
from whut.core.background.queue import BackgroundQueue
from whut.core.integrations.base import ToolRegistry
from whut.core.models.llm_provider import WhutLLM
from whut.core.runs.store import TaskHistoryStore
from whut.core.scenes.cache import SceneCache
from whut.core.scheduler.scheduler import SchedulerService
from whut.core.settings import load_agent_config, state_dir


def _display(params: dict) -> dict:
    return {"displayed": True, **params}


@lru_cache(maxsize=1)
def get_task_manager() -> TaskManager:
    return TaskManager(config=load_agent_config())


@lru_cache(maxsize=1)
def get_llm() -> WhutLLM:
    return WhutLLM()


@lru_cache(maxsize=1)
def get_planner() -> Planner:
    return Planner(llm=get_llm(), config_provider=get_task_manager().get_config)


@lru_cache(maxsize=1)
def get_tool_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register("display", _display)
    return registry


@lru_cache(maxsize=1)
def get_background_queue() -> BackgroundQueue:
    return BackgroundQueue()


@lru_cache(maxsize=1)
def get_history_store() -> TaskHistoryStore:
    return TaskHistoryStore(state_dir=state_dir())


@lru_cache(maxsize=1)
def get_scene_cache() -> SceneCache:
    return SceneCache()


@lru_cache(maxsize=1)
def get_scheduler_service() -> SchedulerService:
    return SchedulerService()


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    return Orchestrator(
        task_manager=get_task_manager(),
        planner=get_planner(),
        tools=get_tool_registry(),
        scene_cache=get_scene_cache(),
        history=get_history_store(),
        background=get_background_queue(),
    )


def reset_dependencies() -> None:
    for provider in (
        get_orchestrator,
        get_scheduler_service,
        get_scene_cache,
        get_history_store,
        get_background_queue,
        get_tool_registry,
        get_planner,
        get_llm,
        get_task_manager,
    ):
        provider.cache_clear()
