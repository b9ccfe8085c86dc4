from __future__ import annotations

import os

import pytest

# the API module configures logging at import time, before fixtures run
os.environ.setdefault("WHUT_LOG_TO_FILE", "off")


@pytest.fixture(autouse=True)
def isolated_state(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("WHUT_TEST_MODE", "1")
    monkeypatch.setenv("WHUT_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("WHUT_LOG_TO_FILE", "off")
    monkeypatch.setenv("WHUT_LLM_PROVIDER", "off")
    for name in (
        "WHUT_AGENT_CONFIG_PATH",
        "WHUT_AGENT_MAX_STEPS",
        "WHUT_AGENT_MAX_CONCURRENT_TASKS",
        "WHUT_APPROVAL_TIMEOUT_S",
        "WHUT_REJECT_POLICY",
        "WHUT_STEP_FAILURE_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)
