from __future__ import annotations

import io
import json
import logging

from whut.core.logging.context import log_context
from whut.core.logging.json_formatter import JSONFormatter


def test_logging_json_line_with_context() -> None:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())

    logger = logging.getLogger("whut.test.json")
    logger.handlers = []
    logger.setLevel(logging.INFO)
    logger.propagate = False
    logger.addHandler(handler)

    with log_context(correlation_id="c1", task_id="t1"):
        with log_context(step_id="s1"):
            logger.info("step_started", extra={"extra_fields": {"tool_name": "send_email"}})

    payload = json.loads(stream.getvalue().strip())
    assert payload["msg"] == "step_started"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "whut.test.json"
    assert payload["correlation_id"] == "c1"
    assert payload["task_id"] == "t1"
    assert payload["step_id"] == "s1"
    assert payload["tool_name"] == "send_email"
    assert "ts_iso_utc" in payload
