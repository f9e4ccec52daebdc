"""
Policy Guard component.

Answers "is this action allowed right now" for the environment a test run targets.
The guard never performs the action: callers either branch on `is_allowed` or
put `assert_allowed` in front of a single sensitive step.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from testpilot.core.environments import (
    ACTION_FLAGS,
    ENVIRONMENTS,
    Action,
    Environment,
    EnvironmentConfig,
    get_current_environment,
)
from testpilot.core.exceptions import ConfigurationError, PolicyViolation
from testpilot.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)

ActionLike = Union[Action, str]


class PolicyGuard:
    component_name = "policy_guard"

    def __init__(
        self,
        environment: Environment,
        registry: Optional[Mapping[Environment, EnvironmentConfig]] = None,
    ):
        self.environment = Environment(environment)
        self.registry = registry if registry is not None else ENVIRONMENTS

    @classmethod
    def from_settings(cls) -> "PolicyGuard":
        """Guard bound to the environment resolved once for this process"""
        return cls(get_current_environment())

    def get_config(self) -> EnvironmentConfig:
        config = self.registry.get(self.environment)
        if config is None:
            raise ConfigurationError(
                f"No configuration registered for environment {self.environment.value!r}"
            )
        return config

    def is_allowed(self, action: ActionLike) -> bool:
        # Closed set: an unknown action string raises ValueError here
        action = Action(action)
        return bool(getattr(self.get_config(), ACTION_FLAGS[action]))

    def assert_allowed(self, action: ActionLike) -> None:
        action = Action(action)
        if not self.is_allowed(action):
            logger.error(
                "Blocked %s action in %s environment",
                action.value,
                self.environment.value,
                extra={"action": action.value, "environment": self.environment.value},
            )
            raise PolicyViolation(action.value, self.environment.value)

    def describe(self) -> Dict[str, Any]:
        """Permission table for the bound environment"""
        config = self.get_config()
        return {
            "environment": self.environment.value,
            "base_url": config.base_url,
            "max_test_timeout": config.max_test_timeout,
            "retries": config.retries,
            "actions": {action.value: self.is_allowed(action) for action in Action},
        }

    def __repr__(self) -> str:
        return f"<PolicyGuard(environment={self.environment.value})>"
