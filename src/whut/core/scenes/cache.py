from __future__ import annotations

import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from whut.core.cache.ttl import TTLCache

from .schemas import Scene

SCENE_TTL_S = 60
SCENE_MAX_ENTRIES = 20

_REPEAT_PATTERN = re.compile(r"\b(show that again|repeat|same thing|show me that|what was that)\b", re.IGNORECASE)
_NON_KEY_CHARS = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class CachedScene:
    scene: Scene
    spoken: str


def normalize_key(query: str) -> str:
    return _WHITESPACE.sub(" ", _NON_KEY_CHARS.sub("", query.lower().strip())).strip()


def is_repeat_request(query: str) -> bool:
    return bool(_REPEAT_PATTERN.search(query or ""))


class SceneCache:
    """Short-lived memory of recently shown scenes, for "show that again" style requests."""

    def __init__(
        self,
        ttl_s: float = SCENE_TTL_S,
        max_entries: int = SCENE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache = TTLCache(ttl_s, max_entries=max_entries, clock=clock)

    def put(self, query: str, scene: Scene) -> None:
        key = normalize_key(query)
        if not key:
            return
        self._cache.set(key, CachedScene(scene=scene, spoken=scene.spoken))

    def get(self, query: str) -> CachedScene | None:
        key = normalize_key(query)
        if not key:
            return None
        entry = self._cache.get(key)
        return entry if isinstance(entry, CachedScene) else None

    def last_scene(self) -> CachedScene | None:
        entry = self._cache.latest()
        return entry if isinstance(entry, CachedScene) else None

    def __len__(self) -> int:
        return len(self._cache)
