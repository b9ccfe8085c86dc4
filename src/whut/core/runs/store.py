from __future__ import annotations

import json
import os
import threading
from pathlib import Path

from whut.core.agent.schemas import Task

from .schemas import TaskRecord


def _max_records_from_env(default: int = 500) -> int:
    try:
        return int(os.getenv("WHUT_TASKS_MAX", str(default)))
    except ValueError:
        return default


class TaskHistoryStore:
    """Append-only JSONL history of tasks that reached a terminal state."""

    def __init__(self, state_dir: Path, max_records: int | None = None) -> None:
        self.file_path = state_dir / "tasks.jsonl"
        self.max_records = max(1, max_records if max_records is not None else _max_records_from_env())
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._line_count: int | None = None

    def _load_all(self) -> list[TaskRecord]:
        if not self.file_path.exists():
            return []
        records: list[TaskRecord] = []
        with self.file_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(TaskRecord.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValueError):
                    continue
        return records

    def _write_all(self, records: list[TaskRecord]) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with self.file_path.open("w", encoding="utf-8") as handle:
            for record in records:
                handle.write(json.dumps(record.model_dump(), ensure_ascii=False) + "\n")

    def append(self, record: TaskRecord) -> TaskRecord:
        with self._lock:
            with self.file_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record.model_dump(), ensure_ascii=False) + "\n")
            if self._line_count is None:
                self._line_count = self._count_lines()
            else:
                self._line_count += 1
            if self._line_count > self.max_records:
                self._trim_locked(self.max_records)
        return record

    def record_task(self, task: Task) -> TaskRecord | None:
        if not task.is_terminal:
            return None
        return self.append(TaskRecord.from_task(task))

    def list_recent(self, limit: int = 50, user_id: str | None = None) -> list[TaskRecord]:
        if limit <= 0:
            return []
        records = self._load_all()
        if user_id is not None:
            records = [record for record in records if record.user_id == user_id]
        return list(reversed(records[-limit:]))

    def search(self, q: str, limit: int = 50) -> list[TaskRecord]:
        query = q.casefold().strip()
        if limit <= 0:
            return []

        records = self._load_all()
        if not query:
            return list(reversed(records[-limit:]))

        matches: list[TaskRecord] = []
        for record in reversed(records):
            haystack = " ".join([record.task_id, record.user_id, record.intent, record.error or ""]).casefold()
            if query in haystack:
                matches.append(record)
            if len(matches) >= limit:
                break
        return matches

    def get(self, task_id: str) -> TaskRecord | None:
        for record in reversed(self._load_all()):
            if record.task_id == task_id:
                return record
        return None

    def trim(self, max_records: int) -> None:
        with self._lock:
            self._trim_locked(max_records)

    def _count_lines(self) -> int:
        if not self.file_path.exists():
            return 0
        with self.file_path.open("r", encoding="utf-8") as handle:
            return sum(1 for line in handle if line.strip())

    def _trim_locked(self, max_records: int) -> None:
        max_records = max(1, max_records)
        kept = self._load_all()[-max_records:]
        self._write_all(kept)
        self._line_count = len(kept)
