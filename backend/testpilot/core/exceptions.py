"""
Error types for environment policy and routing
"""
from enum import Enum
from typing import Any, Dict


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    FATAL = "fatal"  # Programmer error, surfaced immediately
    BLOCKING = "blocking"  # Aborts the attempted operation, never retried


class TestPilotError(Exception):
    """Base error for the policy service"""

    __test__ = False  # not a pytest test class

    severity: ErrorSeverity = ErrorSeverity.FATAL
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary"""
        return {
            "error": type(self).__name__,
            "message": str(self),
            "severity": self.severity.value,
            "retryable": self.retryable,
        }


class ConfigurationError(TestPilotError):
    """The resolved environment has no registered configuration"""

    severity = ErrorSeverity.FATAL


class PolicyViolation(TestPilotError):
    """A gated action was attempted while the environment disallows it"""

    severity = ErrorSeverity.BLOCKING

    def __init__(self, action: str, environment: str):
        self.action = action
        self.environment = environment
        super().__init__(
            f'SAFETY BLOCK: Action "{action}" is not allowed in {environment} environment'
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(action=self.action, environment=self.environment)
        return data
