from __future__ import annotations

from whut.core.agent.catalog import ToolSpec


def planner_system_prompt(tools: list[ToolSpec], connected_integrations: list[str]) -> str:
    integrations = "\n".join(f"- {item}" for item in connected_integrations) or "- (none connected)"
    tool_lines = "\n".join(f"- {tool.name}: {tool.description}. Params: {tool.args_hint}" for tool in tools)
    return (
        "You are a task planner for WHUT OS. Break down user intents into executable steps.\n"
        "Each step should use one of the available tools. Return a JSON array of steps.\n\n"
        f"Connected integrations:\n{integrations}\n\n"
        f"Available tools:\n{tool_lines}\n\n"
        "Respond ONLY with a JSON array of steps, each having: description, toolName, toolParams, "
        "integrationId (optional), bestEffort (optional, true when the task can continue if this step fails).\n"
        "If the task is simple (single action), return a single step."
    )


def planner_user_prompt(intent: str) -> str:
    return intent
