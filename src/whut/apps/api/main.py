from __future__ import annotations

import os
from uuid import uuid4

import uvicorn
from fastapi import FastAPI

from whut.core.logging import configure_logging
from whut.core.logging.context import log_context
from whut.core.scheduler.scheduler import APPROVAL_SWEEP_JOB_ID, sweep_stale_approvals
from whut.core.settings import state_dir

from .deps import get_background_queue, get_orchestrator, get_scheduler_service, get_task_manager
from .routes_agent import router as agent_router
from .routes_chat import router as chat_router

app = FastAPI(title="WHUT Agent API")
configure_logging(state_dir())

app.include_router(chat_router, prefix="/chat", tags=["chat"])
app.include_router(agent_router, prefix="/agent", tags=["agent"])


@app.middleware("http")
async def request_context_middleware(request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
    with log_context(correlation_id=correlation_id):
        response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


@app.on_event("startup")
def startup() -> None:
    app.state.task_manager = get_task_manager()
    app.state.orchestrator = get_orchestrator()
    app.state.scheduler_service = get_scheduler_service()

    if app.state.task_manager.get_config().approval_timeout_s is not None:
        app.state.scheduler_service.add_interval(
            APPROVAL_SWEEP_JOB_ID,
            seconds=int(os.getenv("WHUT_APPROVAL_SWEEP_S", "60")),
            func=sweep_stale_approvals,
            kwargs={"task_manager": app.state.task_manager},
        )
    app.state.scheduler_service.start()


@app.on_event("shutdown")
def shutdown() -> None:
    get_scheduler_service().shutdown()
    get_background_queue().shutdown(wait=False)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def run() -> None:
    uvicorn.run("whut.apps.api.main:app", host=os.getenv("WHUT_HOST", "127.0.0.1"), port=int(os.getenv("WHUT_PORT", "8000")))
