"""
Environment policy endpoints
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from testpilot.core.environments import Action
from testpilot.core.service_registry import ServiceRegistry, get_service_registry

router = APIRouter(prefix="/api/guard", tags=["guard"])


@router.get("")
async def get_policy(registry: ServiceRegistry = Depends(get_service_registry)) -> Dict[str, Any]:
    """Permission table for the environment this process targets"""
    return registry.policy_guard().describe()


@router.get("/{action}")
async def check_action(action: Action, registry: ServiceRegistry = Depends(get_service_registry)) -> Dict[str, Any]:
    """
    Check whether an action is allowed

    Returns:
        dict: action, environment and the allowed flag
    """
    guard = registry.policy_guard()
    return {
        "action": action.value,
        "environment": guard.environment.value,
        "allowed": guard.is_allowed(action),
    }


@router.post("/{action}/assert")
async def assert_action(action: Action, registry: ServiceRegistry = Depends(get_service_registry)) -> Dict[str, Any]:
    """Fail with 403 when the action is not allowed (PolicyViolation handler in main)"""
    guard = registry.policy_guard()
    guard.assert_allowed(action)
    return {"action": action.value, "environment": guard.environment.value, "allowed": True}
