from fastapi import APIRouter, Depends

from whut.core.agent.orchestrator import Orchestrator
from whut.core.agent.schemas import AgentResponse, ChatRequest

from .deps import get_orchestrator

router = APIRouter()


@router.post("/", response_model=AgentResponse)
def chat(request: ChatRequest, orchestrator: Orchestrator = Depends(get_orchestrator)) -> AgentResponse:
    return orchestrator.handle_request(request)
