"""
Routing, agent and quota endpoints
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from testpilot.components.contracts import AgentAnswer, QueryContext, RoutingDecision
from testpilot.core.logging_config import LoggingConfig
from testpilot.core.service_registry import ServiceRegistry, get_service_registry

logger = LoggingConfig.get_logger(__name__)
router = APIRouter(prefix="/api", tags=["routing"])


class DecideRequest(BaseModel):
    query: str = ""
    context: Optional[QueryContext] = None
    apply_quota: bool = Field(default=False, description="Consume the daily live-check quota for this decision")


class AskRequest(BaseModel):
    query: str = ""
    context: Optional[QueryContext] = None
    tier: str = "premium"


@router.post("/routing/decide", response_model=RoutingDecision)
async def decide(request: DecideRequest, registry: ServiceRegistry = Depends(get_service_registry)):
    """Routing decision for a question, without running either path"""
    router_ = registry.bounded_router() if request.apply_quota else registry.decision_router()
    return router_.route(request.query, request.context)


@router.post("/agent/ask", response_model=AgentAnswer)
async def ask(request: AskRequest, registry: ServiceRegistry = Depends(get_service_registry)):
    """Answer a question, running a live check when the router asks for one"""
    knowledge_base = registry.knowledge_base()
    if request.tier not in knowledge_base.tier_names():
        raise HTTPException(status_code=404, detail=f'Tier "{request.tier}" not found')
    return await registry.subscription_agent().ask(request.query, request.context, tier=request.tier)


@router.get("/quota")
async def quota_status(registry: ServiceRegistry = Depends(get_service_registry)) -> Dict[str, Any]:
    """Usage of today's live check quota"""
    return registry.quota_service().status()
