from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any
from zoneinfo import ZoneInfo

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler

from whut.core.settings import is_test_mode

APPROVAL_SWEEP_JOB_ID = "approval-timeout-sweep"


class SchedulerService:
    def __init__(self) -> None:
        self.test_mode = is_test_mode()
        self.timezone = ZoneInfo(os.getenv("WHUT_TIMEZONE", "UTC"))
        self.scheduler = BackgroundScheduler(jobstores={"default": MemoryJobStore()}, timezone=self.timezone)
        self._started = False
        self.logger = logging.getLogger("whut.scheduler")

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self.test_mode or self._started:
            return
        self.scheduler.start()
        self._started = True

    def shutdown(self) -> None:
        if self._started:
            self.scheduler.shutdown(wait=False)
            self._started = False

    def add_interval(self, job_id: str, seconds: int, func: Callable[..., Any], kwargs: dict[str, Any] | None = None) -> None:
        self.scheduler.add_job(
            func,
            trigger="interval",
            id=job_id,
            seconds=max(1, seconds),
            kwargs=kwargs or {},
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", extra={"extra_fields": {"job_id": job_id, "every_s": seconds}})

    def job_ids(self) -> list[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    def remove_job(self, job_id: str) -> None:
        self.scheduler.remove_job(job_id)


def sweep_stale_approvals(task_manager) -> list[str]:
    expired = task_manager.expire_stale_approvals()
    if expired:
        logging.getLogger("whut.scheduler").info(
            "approvals_expired", extra={"extra_fields": {"count": len(expired), "task_ids": expired}}
        )
    return expired
