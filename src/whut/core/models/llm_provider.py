from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from whut.core.agent.model_router import standard_model

from .llm_openai_compat import OpenAICompatClient


class LLMUnavailable(RuntimeError):
    pass


class LLMClient(Protocol):
    def complete(self, system: str, user: str, model: str | None = None) -> str: ...


@dataclass
class LLMConfig:
    provider: str
    url: str
    timeout_s: float
    temperature: float
    max_tokens: int


class WhutLLM:
    def __init__(self, client: OpenAICompatClient | None = None) -> None:
        self.config = LLMConfig(
            provider=os.getenv("WHUT_LLM_PROVIDER", "off").strip().casefold(),
            url=os.getenv("WHUT_LLM_URL", "http://127.0.0.1:8001/v1/chat/completions"),
            timeout_s=float(os.getenv("WHUT_LLM_TIMEOUT_S", "45")),
            temperature=float(os.getenv("WHUT_LLM_TEMPERATURE", "0.2")),
            max_tokens=int(os.getenv("WHUT_LLM_MAX_TOKENS", "2000")),
        )
        self._client = client or OpenAICompatClient(
            url=self.config.url,
            timeout_s=self.config.timeout_s,
            api_key=os.getenv("WHUT_LLM_API_KEY") or None,
        )
        self.logger = logging.getLogger("whut.llm")

    @property
    def enabled(self) -> bool:
        return self.config.provider != "off"

    def complete(self, system: str, user: str, model: str | None = None) -> str:
        if not self.enabled:
            raise LLMUnavailable("LLM provider is off")

        used_model = model or standard_model()
        start = time.perf_counter()
        last_error: Exception | None = None
        for _ in range(2):
            try:
                output = self._client.chat_completion(
                    system=system,
                    user=user,
                    model=used_model,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                )
                self._log_call(used_model, start, ok=True, system=system, user=user)
                return output
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc
                continue

        self._log_call(used_model, start, ok=False, system=system, user=user)
        raise LLMUnavailable(f"LLM request failed: {last_error}")

    def _log_call(self, model: str, start: float, *, ok: bool, system: str, user: str) -> None:
        self.logger.info(
            "llm_call",
            extra={
                "extra_fields": {
                    "provider": self.config.provider,
                    "model": model,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                    "ok": ok,
                    "system_len": len(system),
                    "user_len": len(user),
                }
            },
        )
