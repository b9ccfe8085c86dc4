from __future__ import annotations

import httpx


class OpenAICompatClient:
    def __init__(self, url: str, timeout_s: float = 45.0, api_key: str | None = None) -> None:
        self.url = url
        self.timeout_s = timeout_s
        self.api_key = api_key

    def chat_completion(self, system: str, user: str, model: str, temperature: float, max_tokens: int) -> str:
        payload: dict[str, object] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None

        response = httpx.post(self.url, json=payload, headers=headers, timeout=self.timeout_s)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("chat completion response is not a JSON object")
        choices = data.get("choices") or []
        if not choices:
            return ""
        first = choices[0] if isinstance(choices, list) else None
        if not isinstance(first, dict):
            raise ValueError("chat completion choice is not a JSON object")
        message = first.get("message") or {}
        if not isinstance(message, dict):
            raise ValueError("chat completion message is not a JSON object")
        return str(message.get("content") or "")
