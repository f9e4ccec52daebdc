"""
Live health check of the subscription page (expensive path)
"""
import re
import time
from typing import Optional, Protocol

import httpx

from testpilot.components.contracts import HealthCheckResult
from testpilot.core.logging_config import LoggingConfig
from testpilot.services.knowledge_base import (
    SUBSCRIPTION_PAGE_HEADING,
    URLS,
    KnowledgeBase,
)

logger = LoggingConfig.get_logger(__name__)


class HealthCheckExecutor(Protocol):
    async def __call__(self, tier: str) -> HealthCheckResult:
        """Run a live check for a tier and report the outcome"""


class HttpSubscriptionHealthCheck:
    """
    Fetches the subscription page and checks it still shows the expected content.

    Failures are reported in the result, never raised.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        knowledge_base: Optional[KnowledgeBase] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.knowledge_base = knowledge_base or KnowledgeBase()
        self.transport = transport

    async def __call__(self, tier: str) -> HealthCheckResult:
        start_time = time.monotonic()
        errors = []

        try:
            expected = self.knowledge_base.get_tier(tier)
        except LookupError as e:
            return HealthCheckResult(healthy=False, errors=[str(e)], duration_ms=0, tier=tier)

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(URLS["subscription_page"])
        except httpx.HTTPError as e:
            logger.warning("Subscription page check failed: %s", e, extra={"tier": tier})
            errors.append(f"Failed to load page: {e}")
            return self._result(False, errors, start_time, tier)

        if response.status_code >= 400:
            errors.append(f"Subscription page returned HTTP {response.status_code}")
            return self._result(False, errors, start_time, tier)

        if str(response.url).startswith("http://"):
            errors.append("Subscription page was served over plain HTTP")

        body = response.text
        if SUBSCRIPTION_PAGE_HEADING not in body:
            errors.append("Subscription page heading not displayed")
        if expected.display_name not in body:
            errors.append(f"{expected.display_name} tier not displayed")
        if expected.monthly_price not in body:
            errors.append(f"Expected price {expected.monthly_price} not displayed")
        if not re.search(expected.cta_url_pattern, body):
            errors.append(f"Missing subscription CTA for {expected.display_name}")

        return self._result(not errors, errors, start_time, tier)

    @staticmethod
    def _result(healthy: bool, errors, start_time: float, tier: str) -> HealthCheckResult:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Live check finished",
            extra={"tier": tier, "healthy": healthy, "duration_ms": duration_ms, "error_count": len(errors)},
        )
        return HealthCheckResult(healthy=healthy, errors=list(errors), duration_ms=duration_ms, tier=tier)
