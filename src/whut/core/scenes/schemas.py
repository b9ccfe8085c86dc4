from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

SceneLayout = Literal["focused", "grid"]


class SceneElement(BaseModel):
    id: str
    type: str
    title: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    priority: int = 1
    size: str = "md"


class Scene(BaseModel):
    id: str
    intent: str
    layout: SceneLayout = "focused"
    elements: list[SceneElement] = Field(default_factory=list)
    spoken: str
