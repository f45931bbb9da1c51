"""Pydantic models for the pod and VerticalPodAutoscaler documents seen at admission."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.common.quantity import Quantity

ResourceList = Dict[str, Quantity]

DEFAULT_CONTAINER_POLICY = "*"


class UpdateMode:
    OFF = "Off"
    INITIAL = "Initial"
    RECREATE = "Recreate"
    AUTO = "Auto"


class ContainerScalingMode:
    AUTO = "Auto"
    OFF = "Off"


def _parse_resource_list(value: Any) -> Optional[ResourceList]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError("resource list must be a mapping of resource name to quantity")
    return {str(name): Quantity.parse(amount) for name, amount in value.items()}


class _KubeModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True, extra="ignore")


class ObjectMeta(_KubeModel):
    name: str = ""
    generate_name: str = Field(default="", alias="generateName")
    namespace: str = ""
    annotations: Optional[Dict[str, str]] = None

    @field_validator("name", "generate_name", "namespace", mode="before")
    @classmethod
    def _null_strings(cls, value: Any) -> Any:
        return "" if value is None else value


class ResourceRequirements(_KubeModel):
    requests: Optional[ResourceList] = None
    limits: Optional[ResourceList] = None

    @field_validator("requests", "limits", mode="before")
    @classmethod
    def _check_lists(cls, value: Any) -> Optional[ResourceList]:
        return _parse_resource_list(value)


class Container(_KubeModel):
    name: str = ""
    resources: Optional[ResourceRequirements] = None

    @field_validator("name", mode="before")
    @classmethod
    def _null_name(cls, value: Any) -> Any:
        return "" if value is None else value


class PodSpec(_KubeModel):
    containers: List[Container] = Field(default_factory=list)

    @field_validator("containers", mode="before")
    @classmethod
    def _null_containers(cls, value: Any) -> Any:
        return [] if value is None else value


class Pod(_KubeModel):
    """The subset of a core/v1 Pod the admission core reads."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)

    @field_validator("metadata", "spec", mode="before")
    @classmethod
    def _null_sections(cls, value: Any) -> Any:
        return {} if value is None else value


class CrossVersionObjectReference(_KubeModel):
    kind: str = ""
    name: str = ""
    api_version: str = Field(default="", alias="apiVersion")


class PodUpdatePolicy(_KubeModel):
    update_mode: Optional[str] = Field(default=None, alias="updateMode")


class ContainerResourcePolicy(_KubeModel):
    container_name: str = Field(default="", alias="containerName")
    mode: Optional[str] = None
    min_allowed: ResourceList = Field(default_factory=dict, alias="minAllowed")
    max_allowed: ResourceList = Field(default_factory=dict, alias="maxAllowed")

    @field_validator("min_allowed", "max_allowed", mode="before")
    @classmethod
    def _check_bounds(cls, value: Any) -> ResourceList:
        return _parse_resource_list(value) or {}


class PodResourcePolicy(_KubeModel):
    container_policies: List[ContainerResourcePolicy] = Field(default_factory=list, alias="containerPolicies")


class RecommendedContainerResources(_KubeModel):
    container_name: str = Field(default="", alias="containerName")
    target: ResourceList = Field(default_factory=dict)
    lower_bound: ResourceList = Field(default_factory=dict, alias="lowerBound")
    upper_bound: ResourceList = Field(default_factory=dict, alias="upperBound")
    uncapped_target: ResourceList = Field(default_factory=dict, alias="uncappedTarget")

    @field_validator("target", "lower_bound", "upper_bound", "uncapped_target", mode="before")
    @classmethod
    def _check_lists(cls, value: Any) -> ResourceList:
        return _parse_resource_list(value) or {}


class RecommendedPodResources(_KubeModel):
    container_recommendations: List[RecommendedContainerResources] = Field(
        default_factory=list, alias="containerRecommendations"
    )


class VerticalPodAutoscalerCondition(_KubeModel):
    type: str = ""
    status: str = ""
    reason: str = ""
    message: str = ""


class VerticalPodAutoscalerSpec(_KubeModel):
    target_ref: Optional[CrossVersionObjectReference] = Field(default=None, alias="targetRef")
    update_policy: Optional[PodUpdatePolicy] = Field(default=None, alias="updatePolicy")
    resource_policy: Optional[PodResourcePolicy] = Field(default=None, alias="resourcePolicy")


class VerticalPodAutoscalerStatus(_KubeModel):
    recommendation: Optional[RecommendedPodResources] = None
    conditions: List[VerticalPodAutoscalerCondition] = Field(default_factory=list)


class VerticalPodAutoscaler(_KubeModel):
    """An autoscaling.k8s.io VerticalPodAutoscaler object."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: VerticalPodAutoscalerSpec = Field(default_factory=VerticalPodAutoscalerSpec)
    status: VerticalPodAutoscalerStatus = Field(default_factory=VerticalPodAutoscalerStatus)


def get_update_mode(policy: VerticalPodAutoscaler) -> str:
    """Effective update mode; a policy without one is treated as ``Auto``."""

    update_policy = policy.spec.update_policy
    if update_policy is None or update_policy.update_mode is None:
        return UpdateMode.AUTO
    return update_policy.update_mode


def get_recommendation_for_container(
    container_name: str, recommendation: RecommendedPodResources
) -> Optional[RecommendedContainerResources]:
    for container_recommendation in recommendation.container_recommendations:
        if container_recommendation.container_name == container_name:
            return container_recommendation
    return None


def get_container_resource_policy(
    container_name: str, resource_policy: Optional[PodResourcePolicy]
) -> Optional[ContainerResourcePolicy]:
    """Policy for *container_name*, falling back to the ``"*"`` default policy."""

    if resource_policy is None:
        return None
    default_policy: Optional[ContainerResourcePolicy] = None
    for container_policy in resource_policy.container_policies:
        if container_policy.container_name == container_name:
            return container_policy
        if container_policy.container_name == DEFAULT_CONTAINER_POLICY:
            default_policy = container_policy
    return default_policy


__all__ = [
    "Container",
    "ContainerResourcePolicy",
    "ContainerScalingMode",
    "CrossVersionObjectReference",
    "DEFAULT_CONTAINER_POLICY",
    "ObjectMeta",
    "Pod",
    "PodResourcePolicy",
    "PodSpec",
    "PodUpdatePolicy",
    "RecommendedContainerResources",
    "RecommendedPodResources",
    "ResourceList",
    "ResourceRequirements",
    "UpdateMode",
    "VerticalPodAutoscaler",
    "VerticalPodAutoscalerCondition",
    "VerticalPodAutoscalerSpec",
    "VerticalPodAutoscalerStatus",
    "get_container_resource_policy",
    "get_recommendation_for_container",
    "get_update_mode",
]
