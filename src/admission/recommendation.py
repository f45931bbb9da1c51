"""Resolve the controlling policy for a pod and line its recommendation up with the pod's containers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from src.common.quantity import Quantity

from .errors import RecommendationError
from .models import (
    Pod,
    PodResourcePolicy,
    RecommendedPodResources,
    UpdateMode,
    VerticalPodAutoscaler,
    VerticalPodAutoscalerCondition,
    get_recommendation_for_container,
    get_update_mode,
)

logger = logging.getLogger(__name__)

ContainerToAnnotations = Dict[str, List[str]]


@dataclass
class ContainerResources:
    """Recommended requests for one pod container; empty means nothing to change."""

    requests: Dict[str, Quantity] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyWithSelector:
    policy: VerticalPodAutoscaler
    selector: Any


class PolicyLister(Protocol):
    def list(self, namespace: str) -> List[VerticalPodAutoscaler]:
        ...


class SelectorFetcher(Protocol):
    def fetch(self, policy: VerticalPodAutoscaler) -> Any:
        ...


class ControllingPolicyResolver(Protocol):
    def resolve(self, pod: Pod, candidates: Sequence[PolicyWithSelector]) -> Optional[PolicyWithSelector]:
        ...


class RecommendationProcessor(Protocol):
    def apply(
        self,
        recommendation: RecommendedPodResources,
        resource_policy: Optional[PodResourcePolicy],
        conditions: List[VerticalPodAutoscalerCondition],
        pod: Pod,
    ) -> Tuple[RecommendedPodResources, ContainerToAnnotations]:
        ...


class RecommendationProvider(Protocol):
    def get_containers_resources_for_pod(
        self, pod: Pod
    ) -> Tuple[Optional[List[ContainerResources]], Optional[ContainerToAnnotations], str]:
        ...


def get_containers_resources(pod: Pod, recommendation: RecommendedPodResources) -> List[ContainerResources]:
    """Recommended requests for each container, in the order the pod declares them."""

    resources: List[ContainerResources] = []
    for container in pod.spec.containers:
        container_recommendation = get_recommendation_for_container(container.name, recommendation)
        if container_recommendation is None:
            logger.debug("no matching recommendation found for container %s", container.name)
            resources.append(ContainerResources())
            continue
        resources.append(ContainerResources(requests=dict(container_recommendation.target)))
    return resources


class PolicyRecommendationProvider:
    """Looks up the pod's controlling policy and processes its stored recommendation."""

    def __init__(
        self,
        policy_lister: PolicyLister,
        recommendation_processor: RecommendationProcessor,
        selector_fetcher: SelectorFetcher,
        policy_resolver: ControllingPolicyResolver,
    ) -> None:
        self.policy_lister = policy_lister
        self.recommendation_processor = recommendation_processor
        self.selector_fetcher = selector_fetcher
        self.policy_resolver = policy_resolver

    def get_containers_resources_for_pod(
        self, pod: Pod
    ) -> Tuple[Optional[List[ContainerResources]], Optional[ContainerToAnnotations], str]:
        logger.debug("updating requirements for pod %s", pod.metadata.name)
        policy = self._get_matching_policy(pod)
        if policy is None:
            logger.debug("no matching policy found for pod %s", pod.metadata.name)
            return None, None, ""

        annotations: Optional[ContainerToAnnotations] = None
        recommendation = RecommendedPodResources()
        if policy.status.recommendation is not None:
            try:
                recommendation, annotations = self.recommendation_processor.apply(
                    policy.status.recommendation,
                    policy.spec.resource_policy,
                    policy.status.conditions,
                    pod,
                )
            except Exception as exc:
                logger.debug("cannot process recommendation for pod %s", pod.metadata.name)
                raise RecommendationError(
                    str(exc), policy.metadata.name, getattr(exc, "annotations", None)
                ) from exc
        return get_containers_resources(pod, recommendation), annotations, policy.metadata.name

    def _get_matching_policy(self, pod: Pod) -> Optional[VerticalPodAutoscaler]:
        try:
            policies = self.policy_lister.list(pod.metadata.namespace)
        except Exception as exc:
            logger.error("failed to get vpa configs: %s", exc)
            return None

        candidates: List[PolicyWithSelector] = []
        for policy in policies:
            if get_update_mode(policy) == UpdateMode.OFF:
                continue
            try:
                selector = self.selector_fetcher.fetch(policy)
            except Exception:
                logger.debug("skipping VPA object %s because we cannot fetch selector", policy.metadata.name)
                continue
            candidates.append(PolicyWithSelector(policy=policy, selector=selector))

        logger.debug(
            "choosing from %d configs for pod %s/%s",
            len(candidates),
            pod.metadata.namespace,
            pod.metadata.name,
        )
        result = self.policy_resolver.resolve(pod, candidates)
        return result.policy if result is not None else None


__all__ = [
    "ContainerResources",
    "ContainerToAnnotations",
    "ControllingPolicyResolver",
    "PolicyLister",
    "PolicyRecommendationProvider",
    "PolicyWithSelector",
    "RecommendationProcessor",
    "RecommendationProvider",
    "SelectorFetcher",
    "get_containers_resources",
]
