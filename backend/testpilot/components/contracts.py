"""
Contract models for the decision components and the agent.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QueryContext(BaseModel):
    last_check_timestamp: Optional[datetime] = Field(default=None, description="When the last live check finished")
    cached_result_available: Optional[bool] = Field(default=None)
    urgency: Optional[Urgency] = None


class RoutingDecision(BaseModel):
    use_expensive_path: bool
    reason: str = Field(..., min_length=1)
    rule: str = Field(default="default", description="Name of the rule that produced the decision")
    quota_limited: bool = False
    decided_at: datetime = Field(default_factory=datetime.now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class HealthCheckResult(BaseModel):
    healthy: bool
    errors: List[str] = Field(default_factory=list)
    duration_ms: int = Field(default=0, ge=0)
    tier: Optional[str] = None
    checked_at: datetime = Field(default_factory=datetime.now)


class AgentAnswer(BaseModel):
    query: str
    answer: str
    decision: RoutingDecision
    health: Optional[HealthCheckResult] = None
