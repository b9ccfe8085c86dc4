from .builder import build_scene, format_event_time, format_relative_time
from .cache import SceneCache, is_repeat_request, normalize_key
from .schemas import Scene, SceneElement

__all__ = [
    "Scene",
    "SceneCache",
    "SceneElement",
    "build_scene",
    "format_event_time",
    "format_relative_time",
    "is_repeat_request",
    "normalize_key",
]
