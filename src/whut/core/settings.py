from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from whut.core.agent.policy import AgentConfig


def is_on(name: str, default: str = "off") -> bool:
    return os.getenv(name, default).strip().casefold() in {"1", "true", "yes", "on"}


def is_test_mode() -> bool:
    return is_on("WHUT_TEST_MODE")


def state_dir() -> Path:
    configured = os.getenv("WHUT_STATE_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".whut"


def _get_int_env(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"agent config at {path} must be a mapping")
    # accept both a bare mapping and one nested under "agent"
    nested = data.get("agent")
    return nested if isinstance(nested, dict) else data


def load_agent_config(path: str | Path | None = None) -> AgentConfig:
    data: dict[str, Any] = AgentConfig().model_dump()

    configured = path or os.getenv("WHUT_AGENT_CONFIG_PATH")
    if configured:
        config_path = Path(configured).expanduser()
        if config_path.exists():
            data.update(_load_yaml(config_path))

    max_steps = _get_int_env("WHUT_AGENT_MAX_STEPS")
    if max_steps is not None:
        data["max_steps"] = max_steps
    max_concurrent = _get_int_env("WHUT_AGENT_MAX_CONCURRENT_TASKS")
    if max_concurrent is not None:
        data["max_concurrent_tasks"] = max_concurrent
    timeout_s = _get_int_env("WHUT_APPROVAL_TIMEOUT_S")
    if timeout_s is not None:
        data["approval_timeout_s"] = timeout_s if timeout_s > 0 else None

    reject_policy = os.getenv("WHUT_REJECT_POLICY", "").strip().casefold()
    if reject_policy:
        data["reject_policy"] = reject_policy
    failure_policy = os.getenv("WHUT_STEP_FAILURE_POLICY", "").strip().casefold()
    if failure_policy:
        data["step_failure_policy"] = failure_policy

    return AgentConfig.model_validate(data)
