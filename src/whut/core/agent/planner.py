from __future__ import annotations

import json
import logging
from typing import Any, Callable

from pydantic import ValidationError

from whut.core.models.llm_provider import LLMClient, LLMUnavailable
from whut.core.models.prompts import planner_system_prompt, planner_user_prompt

from .catalog import TOOL_CATALOG, tools_for_integrations
from .errors import PlanningFailed
from .model_router import select_model
from .policy import AgentConfig
from .schemas import StepSpec


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if "```" not in cleaned:
        return cleaned
    parts = cleaned.split("```")
    # odd-indexed chunks are fence bodies; prefer the first one holding an array
    for body in parts[1::2]:
        candidate = body[4:] if body.startswith("json") else body
        if "[" in candidate:
            return candidate.strip()
    return cleaned.replace("```", "")


def _balanced_end(text: str, start: int) -> int:
    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        char = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return idx
    return -1


def extract_json_array(text: str) -> list[Any] | None:
    if not text:
        return None
    cleaned = _strip_fences(text)

    position = cleaned.find("[")
    while position != -1:
        end = _balanced_end(cleaned, position)
        if end == -1:
            break
        try:
            parsed = json.loads(cleaned[position : end + 1])
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return parsed
        position = cleaned.find("[", position + 1)

    first, last = cleaned.find("["), cleaned.rfind("]")
    if first == -1 or last <= first:
        return None
    try:
        parsed = json.loads(cleaned[first : last + 1])
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


class Planner:
    def __init__(self, llm: LLMClient, config_provider: Callable[[], AgentConfig] | None = None) -> None:
        self.llm = llm
        self.config_provider = config_provider or AgentConfig
        self.logger = logging.getLogger("whut.planner")

    def plan_task(self, intent: str, connected_integrations: list[str] | None = None) -> list[StepSpec]:
        integrations = list(connected_integrations or [])
        config = self.config_provider()
        choice = select_model(intent)
        self.logger.info(
            "planner_started",
            extra={"extra_fields": {"model": choice.model, "intent_class": choice.intent_class, "integrations": integrations}},
        )

        system = planner_system_prompt(tools_for_integrations(integrations), integrations)
        try:
            raw = self.llm.complete(system, planner_user_prompt(intent), model=choice.model)
        except LLMUnavailable as exc:
            return self._fail(f"model unavailable: {exc}")
        except Exception as exc:
            self.logger.exception("planner_llm_error", extra={"extra_fields": {"model": choice.model}})
            return self._fail(f"model error: {type(exc).__name__}: {exc}")
        if not isinstance(raw, str):
            return self._fail("model returned a non-text response")

        parsed = extract_json_array(raw)
        if parsed is None:
            return self._fail("no JSON array in model response")
        if not parsed:
            return self._fail("model returned an empty plan")
        if len(parsed) > config.max_steps:
            return self._fail(f"plan has {len(parsed)} steps, limit is {config.max_steps}")

        steps: list[StepSpec] = []
        for position, item in enumerate(parsed):
            if not isinstance(item, dict):
                return self._fail(f"step {position} is not an object")
            try:
                spec = StepSpec.model_validate(item)
            except ValidationError as exc:
                return self._fail(f"step {position} is malformed: {exc.errors()[0].get('msg', 'invalid')}")
            if spec.tool_name and spec.tool_name not in TOOL_CATALOG:
                self.logger.warning("planner_unknown_tool", extra={"extra_fields": {"tool_name": spec.tool_name, "position": position}})
            steps.append(spec)

        self.logger.info("planner_succeeded", extra={"extra_fields": {"step_count": len(steps), "model": choice.model}})
        return steps

    def _fail(self, reason: str) -> list[StepSpec]:
        self.logger.warning("planner_failed", extra={"extra_fields": {"reason": reason}})
        raise PlanningFailed(reason)
