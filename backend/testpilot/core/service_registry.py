"""
Service Registry - builds and caches the process-wide service instances
"""
import threading
from typing import Any, Callable, Dict, Optional

from testpilot.components.decision_routing import DecisionRouter
from testpilot.components.policy_guard import PolicyGuard
from testpilot.core.config import Settings, get_settings
from testpilot.core.database import create_all_tables, get_session_local
from testpilot.core.environments import get_environment_config
from testpilot.core.logging_config import LoggingConfig
from testpilot.services.health_check_service import HttpSubscriptionHealthCheck
from testpilot.services.knowledge_base import KnowledgeBase
from testpilot.services.quota_management_service import QuotaBoundedRouter, QuotaManagementService
from testpilot.services.subscription_agent import SubscriptionAgent

logger = LoggingConfig.get_logger(__name__)


class ServiceRegistry:
    """
    Lazily builds services from settings and hands out the same instance on every call.

    Services are wired explicitly: the guard gets its environment, the router its
    freshness window, the quota its store.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._services: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def _get_or_create(self, key: str, factory: Callable[[], Any]) -> Any:
        with self._lock:
            if key not in self._services:
                self._services[key] = factory()
                logger.debug(f"Created service {key}")
            return self._services[key]

    def register(self, key: str, instance: Any) -> None:
        """Replace a service, e.g. with a fake in tests"""
        with self._lock:
            self._services[key] = instance

    def policy_guard(self) -> PolicyGuard:
        return self._get_or_create("policy_guard", PolicyGuard.from_settings)

    def knowledge_base(self) -> KnowledgeBase:
        return self._get_or_create("knowledge_base", KnowledgeBase)

    def decision_router(self) -> DecisionRouter:
        return self._get_or_create(
            "decision_router",
            lambda: DecisionRouter(freshness_window_seconds=self.settings.freshness_window_seconds),
        )

    def quota_service(self) -> QuotaManagementService:
        def build() -> QuotaManagementService:
            limit = self.settings.expensive_daily_limit
            if self.settings.quota_backend == "database":
                create_all_tables()
                return QuotaManagementService.from_database(get_session_local(), limit)
            return QuotaManagementService.in_memory(limit)

        return self._get_or_create("quota_service", build)

    def bounded_router(self) -> QuotaBoundedRouter:
        return self._get_or_create(
            "bounded_router",
            lambda: QuotaBoundedRouter(self.decision_router(), self.quota_service()),
        )

    def health_check(self) -> HttpSubscriptionHealthCheck:
        def build() -> HttpSubscriptionHealthCheck:
            config = get_environment_config(self.policy_guard().environment)
            return HttpSubscriptionHealthCheck(
                base_url=config.base_url,
                timeout=self.settings.health_check_timeout_seconds,
                knowledge_base=self.knowledge_base(),
            )

        return self._get_or_create("health_check", build)

    def subscription_agent(self) -> SubscriptionAgent:
        return self._get_or_create(
            "subscription_agent",
            lambda: SubscriptionAgent(
                router=self.bounded_router(),
                executor=self.health_check(),
                knowledge_base=self.knowledge_base(),
            ),
        )


_registry: Optional[ServiceRegistry] = None
_registry_lock = threading.Lock()


def get_service_registry() -> ServiceRegistry:
    """
    Get the global ServiceRegistry

    Returns:
        ServiceRegistry singleton
    """
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = ServiceRegistry()
    return _registry


def reset_service_registry() -> None:
    """Drop all cached services (settings are re-read on next access)"""
    global _registry
    with _registry_lock:
        _registry = None
