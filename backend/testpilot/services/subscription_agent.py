"""
Subscription agent - answers questions about the subscription site

Routes each question, runs the chosen path and merges the result:
- cheap path: knowledge base (plus the last live check result when one is cached)
- expensive path: live health check through the injected executor
"""
import threading
from datetime import datetime
from typing import Dict, Optional, Union

from testpilot.components.contracts import AgentAnswer, HealthCheckResult, QueryContext, RoutingDecision
from testpilot.components.decision_routing import DecisionRouter
from testpilot.core.logging_config import LoggingConfig
from testpilot.services.health_check_service import HealthCheckExecutor
from testpilot.services.knowledge_base import KnowledgeBase
from testpilot.services.quota_management_service import QuotaBoundedRouter

logger = LoggingConfig.get_logger(__name__)

Router = Union[DecisionRouter, QuotaBoundedRouter]


class HealthResultCache:
    """Last live check result per tier"""

    def __init__(self):
        self._results: Dict[str, HealthCheckResult] = {}
        self._lock = threading.Lock()

    def get(self, tier: str) -> Optional[HealthCheckResult]:
        with self._lock:
            return self._results.get(tier)

    def put(self, tier: str, result: HealthCheckResult) -> None:
        with self._lock:
            self._results[tier] = result

    def context_for(self, tier: str) -> QueryContext:
        cached = self.get(tier)
        if cached is None:
            return QueryContext(cached_result_available=False)
        return QueryContext(last_check_timestamp=cached.checked_at, cached_result_available=True)


def describe_health(result: HealthCheckResult) -> str:
    if result.healthy:
        return f"Live check passed for {result.tier} in {result.duration_ms} ms."
    return f"Live check found problems for {result.tier}: " + "; ".join(result.errors)


class SubscriptionAgent:
    """
    Decides per question whether to run a live check, then answers.
    """

    def __init__(
        self,
        router: Router,
        executor: HealthCheckExecutor,
        knowledge_base: Optional[KnowledgeBase] = None,
        cache: Optional[HealthResultCache] = None,
    ):
        self.router = router
        self.executor = executor
        self.knowledge_base = knowledge_base or KnowledgeBase()
        self.cache = cache or HealthResultCache()

    async def ask(
        self,
        query: str,
        context: Optional[QueryContext] = None,
        tier: str = "premium",
        now: Optional[datetime] = None,
    ) -> AgentAnswer:
        if context is None:
            context = self.cache.context_for(tier)

        decision = self.router.route(query, context, now=now)
        logger.info(
            "Answering query via %s path",
            "expensive" if decision.use_expensive_path else "cheap",
            extra={"tier": tier, "rule": decision.rule, "routing_reason": decision.reason},
        )

        if decision.use_expensive_path:
            health = await self.executor(tier)
            self.cache.put(tier, health)
            return AgentAnswer(query=query, answer=describe_health(health), decision=decision, health=health)

        return self._answer_from_known_data(query, tier, decision)

    def _answer_from_known_data(self, query: str, tier: str, decision: RoutingDecision) -> AgentAnswer:
        answer = self.knowledge_base.answer(query)
        cached = None
        if decision.rule == "freshness" or decision.quota_limited:
            cached = self.cache.get(tier)
            if cached is not None:
                answer = f"{describe_health(cached)} (cached)\n{answer}"
        return AgentAnswer(query=query, answer=answer, decision=decision, health=cached)
