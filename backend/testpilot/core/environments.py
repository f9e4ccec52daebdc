"""
Environment configuration

Controls test behavior based on the target environment.
Production runs must be read-only: no writes, no data creation, no form submission.
"""
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from testpilot.core.config import get_settings
from testpilot.core.exceptions import ConfigurationError
from testpilot.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


class Environment(str, Enum):
    """Deployment target a test run is pointed at"""
    STAGING = "staging"
    PRODUCTION = "production"


class Action(str, Enum):
    """Gated operation categories"""
    WRITE = "write"
    CREATE = "create"
    SUBMIT = "submit"


class EnvironmentConfig(BaseModel):
    """Per-environment test policy"""

    model_config = ConfigDict(frozen=True)

    name: Environment
    base_url: str = Field(..., description="Base URL for the environment")
    allow_write_operations: bool = Field(..., description="Whether write operations are allowed")
    allow_data_creation: bool = Field(..., description="Whether test data creation is allowed")
    allow_form_submission: bool = Field(..., description="Whether form submission is allowed")
    max_test_timeout: int = Field(..., gt=0, description="Maximum test timeout in milliseconds")
    retries: int = Field(..., ge=0, description="Number of retries for failed tests")


# Action -> EnvironmentConfig flag
ACTION_FLAGS: Mapping[Action, str] = MappingProxyType({
    Action.WRITE: "allow_write_operations",
    Action.CREATE: "allow_data_creation",
    Action.SUBMIT: "allow_form_submission",
})

ENVIRONMENTS: Mapping[Environment, EnvironmentConfig] = MappingProxyType({
    Environment.STAGING: EnvironmentConfig(
        name=Environment.STAGING,
        base_url="https://www.mailsubscriptions.co.uk",
        allow_write_operations=True,
        allow_data_creation=True,
        allow_form_submission=True,
        max_test_timeout=60000,
        retries=2,
    ),
    Environment.PRODUCTION: EnvironmentConfig(
        name=Environment.PRODUCTION,
        base_url="https://www.mailsubscriptions.co.uk",
        allow_write_operations=False,
        allow_data_creation=False,
        allow_form_submission=False,
        max_test_timeout=30000,
        retries=1,
    ),
})


def resolve_environment(raw: Optional[str], fallback: Environment = Environment.STAGING) -> Environment:
    """
    Map a raw configuration value to an Environment.

    Unknown, empty or missing values log a single warning and resolve to `fallback`.
    Values that only match after trimming/lower-casing resolve with a warning.
    """
    value = (raw or "").strip().lower()
    try:
        environment = Environment(value)
    except ValueError:
        logger.warning(
            'Unknown environment "%s", defaulting to %s',
            raw if raw is not None else "",
            fallback.value,
            extra={"raw_environment": raw, "fallback_environment": fallback.value},
        )
        return fallback
    if raw != value:
        logger.warning(
            'Environment "%s" is not an exact match, using %s',
            raw,
            environment.value,
            extra={"raw_environment": raw},
        )
    return environment


@lru_cache()
def get_current_environment() -> Environment:
    """Resolve ENVIRONMENT once per process"""
    settings = get_settings()
    try:
        fallback = Environment(settings.environment_fallback.strip().lower())
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid environment fallback: {settings.environment_fallback!r}"
        ) from exc
    environment = resolve_environment(settings.environment, fallback=fallback)
    logger.info("Resolved test environment: %s", environment.value)
    return environment


def get_environment_config(
    environment: Optional[Environment] = None,
    registry: Mapping[Environment, EnvironmentConfig] = ENVIRONMENTS,
) -> EnvironmentConfig:
    """Get the registered config for an environment (defaults to the current one)"""
    if environment is None:
        environment = get_current_environment()
    config = registry.get(environment)
    if config is None:
        raise ConfigurationError(f"No configuration registered for environment {environment.value!r}")
    return config


def is_production() -> bool:
    """Check if currently in production environment"""
    return get_current_environment() is Environment.PRODUCTION


def is_staging() -> bool:
    """Check if currently in staging environment"""
    return get_current_environment() is Environment.STAGING
