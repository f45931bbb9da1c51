"""Ordered acceptance rules for VerticalPodAutoscaler objects submitted for create or update."""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from src.common.settings import AdmissionSettings

from .errors import PolicyValidationError
from .models import ContainerResourcePolicy, VerticalPodAutoscaler

PolicyRule = Callable[[VerticalPodAutoscaler, bool, AdmissionSettings], Optional[str]]
ContainerPolicyRule = Callable[[ContainerResourcePolicy, AdmissionSettings], Optional[str]]


def check_target_ref(policy: VerticalPodAutoscaler, is_create: bool, settings: AdmissionSettings) -> Optional[str]:
    if is_create and policy.spec.target_ref is None:
        return "TargetRef is required. If you're using v1beta1 version of the API, please migrate to v1beta2."
    return None


def check_update_policy(policy: VerticalPodAutoscaler, is_create: bool, settings: AdmissionSettings) -> Optional[str]:
    update_policy = policy.spec.update_policy
    if update_policy is None:
        return None
    if update_policy.update_mode is None:
        return "UpdateMode is required if UpdatePolicy is used"
    if update_policy.update_mode not in settings.update_modes:
        return f"unexpected UpdateMode value {update_policy.update_mode}"
    return None


def check_container_name(container_policy: ContainerResourcePolicy, settings: AdmissionSettings) -> Optional[str]:
    if not container_policy.container_name:
        return "ContainerPolicies.ContainerName is required"
    return None


def check_scaling_mode(container_policy: ContainerResourcePolicy, settings: AdmissionSettings) -> Optional[str]:
    mode = container_policy.mode
    if mode is not None and mode not in settings.scaling_modes:
        return f"unexpected Mode value {mode}"
    return None


def check_bounds(container_policy: ContainerResourcePolicy, settings: AdmissionSettings) -> Optional[str]:
    for resource, lower in container_policy.min_allowed.items():
        upper = container_policy.max_allowed.get(resource)
        if upper is not None and upper < lower:
            return f"max resource for {resource} is lower than min"
    return None


CONTAINER_POLICY_RULES: List[Tuple[str, ContainerPolicyRule]] = [
    ("container-name", check_container_name),
    ("scaling-mode", check_scaling_mode),
    ("bounds", check_bounds),
]


def check_resource_policy(
    policy: VerticalPodAutoscaler, is_create: bool, settings: AdmissionSettings
) -> Optional[str]:
    resource_policy = policy.spec.resource_policy
    if resource_policy is None:
        return None
    for container_policy in resource_policy.container_policies:
        for _, rule in CONTAINER_POLICY_RULES:
            message = rule(container_policy, settings)
            if message is not None:
                return message
    return None


POLICY_RULES: List[Tuple[str, PolicyRule]] = [
    ("target-ref", check_target_ref),
    ("update-policy", check_update_policy),
    ("resource-policy", check_resource_policy),
]


def validate_policy(
    policy: VerticalPodAutoscaler,
    is_create: bool,
    settings: Optional[AdmissionSettings] = None,
) -> None:
    """Raise :class:`PolicyValidationError` for the first rule *policy* breaks."""

    settings = settings or AdmissionSettings()
    for _, rule in POLICY_RULES:
        message = rule(policy, is_create, settings)
        if message is not None:
            raise PolicyValidationError(message)


__all__ = [
    "CONTAINER_POLICY_RULES",
    "POLICY_RULES",
    "check_bounds",
    "check_container_name",
    "check_resource_policy",
    "check_scaling_mode",
    "check_target_ref",
    "check_update_policy",
    "validate_policy",
]
