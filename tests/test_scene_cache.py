from __future__ import annotations

from whut.core.scenes import Scene, SceneCache, is_repeat_request, normalize_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _scene(spoken: str) -> Scene:
    return Scene(id=f"scene-{spoken}", intent="email inbox", elements=[], spoken=spoken)


def test_normalize_key() -> None:
    assert normalize_key("  Check   my INBOX!! ") == "check my inbox"
    assert normalize_key("???") == ""


def test_repeat_requests() -> None:
    assert is_repeat_request("Can you show that again?")
    assert is_repeat_request("what was that")
    assert not is_repeat_request("check my inbox")


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = SceneCache(ttl_s=60, clock=clock)
    cache.put("Check my inbox", _scene("one"))

    hit = cache.get("check my inbox!")
    assert hit is not None
    assert hit.spoken == "one"

    clock.now += 61
    assert cache.get("check my inbox") is None
    assert cache.last_scene() is None


def test_last_scene_is_most_recent_and_size_is_bounded() -> None:
    cache = SceneCache(max_entries=2, clock=FakeClock())
    cache.put("first", _scene("1"))
    cache.put("second", _scene("2"))
    cache.put("third", _scene("3"))

    assert len(cache) == 2
    assert cache.get("first") is None
    last = cache.last_scene()
    assert last is not None
    assert last.spoken == "3"
