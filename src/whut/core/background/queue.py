from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from whut.core.settings import is_test_mode


class BackgroundQueue:
    """Fire-and-forget jobs where one failing job never affects another."""

    def __init__(self, max_workers: int = 4, inline: bool | None = None) -> None:
        self.inline = is_test_mode() if inline is None else inline
        self._pool = None if self.inline else ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="whut-bg")
        self.logger = logging.getLogger("whut.background")

    def submit(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future | None:
        if self._pool is None:
            self._safe(name, fn, *args, **kwargs)
            return None
        return self._pool.submit(self._safe, name, fn, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=wait)

    def _safe(self, name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            self.logger.exception("background_job_failed", extra={"extra_fields": {"job": name}})
