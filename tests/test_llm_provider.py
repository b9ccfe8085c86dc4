from __future__ import annotations

import httpx
import pytest

from whut.core.models.llm_provider import LLMUnavailable, WhutLLM


class FakeResponse:
    def __init__(self, payload: dict) -> None:
        self.payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> dict:
        return self.payload


def test_llm_off_raises() -> None:
    llm = WhutLLM()
    assert llm.enabled is False
    with pytest.raises(LLMUnavailable):
        llm.complete("system", "user")


def test_llm_posts_chat_completion(monkeypatch) -> None:
    monkeypatch.setenv("WHUT_LLM_PROVIDER", "http")
    monkeypatch.setenv("WHUT_LLM_URL", "http://llm.local/v1/chat/completions")
    monkeypatch.setenv("WHUT_LLM_API_KEY", "secret")
    captured: dict = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured.update({"url": url, "json": json, "headers": headers})
        return FakeResponse({"choices": [{"message": {"content": "[]"}}]})

    monkeypatch.setattr("whut.core.models.llm_openai_compat.httpx.post", fake_post)

    output = WhutLLM().complete("plan things", "check inbox", model="planner-model")
    assert output == "[]"
    assert captured["url"] == "http://llm.local/v1/chat/completions"
    assert captured["json"]["model"] == "planner-model"
    assert captured["json"]["messages"][1] == {"role": "user", "content": "check inbox"}
    assert captured["headers"] == {"Authorization": "Bearer secret"}


def test_llm_retries_once_then_gives_up(monkeypatch) -> None:
    monkeypatch.setenv("WHUT_LLM_PROVIDER", "http")
    attempts = {"count": 0}

    def failing_post(url, json=None, headers=None, timeout=None):
        attempts["count"] += 1
        raise httpx.ConnectError("refused")

    monkeypatch.setattr("whut.core.models.llm_openai_compat.httpx.post", failing_post)

    with pytest.raises(LLMUnavailable):
        WhutLLM().complete("system", "user")
    assert attempts["count"] == 2


def test_llm_rejects_non_object_body(monkeypatch) -> None:
    monkeypatch.setenv("WHUT_LLM_PROVIDER", "http")

    def list_post(url, json=None, headers=None, timeout=None):
        return FakeResponse([{"oops": 1}])

    monkeypatch.setattr("whut.core.models.llm_openai_compat.httpx.post", list_post)

    with pytest.raises(LLMUnavailable):
        WhutLLM().complete("system", "user")
