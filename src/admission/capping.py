"""Recommendation processors that run before recommendations reach the patch builder."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from src.common.quantity import Quantity

from .models import (
    ContainerScalingMode,
    Pod,
    PodResourcePolicy,
    RecommendedContainerResources,
    RecommendedPodResources,
    VerticalPodAutoscalerCondition,
    get_container_resource_policy,
)
from .recommendation import ContainerToAnnotations

logger = logging.getLogger(__name__)


class NoopRecommendationProcessor:
    """Passes the stored recommendation through untouched."""

    def apply(
        self,
        recommendation: RecommendedPodResources,
        resource_policy: Optional[PodResourcePolicy],
        conditions: List[VerticalPodAutoscalerCondition],
        pod: Pod,
    ) -> Tuple[RecommendedPodResources, ContainerToAnnotations]:
        return recommendation, {}


class CappingRecommendationProcessor:
    """Clamps container recommendations into the ``minAllowed``/``maxAllowed`` range of the resource policy.

    ``target``, ``lowerBound`` and ``upperBound`` are all clamped. Containers
    whose policy sets ``mode: Off`` are dropped. Each clamped target value
    leaves an advisory string such as ``"cpu capped to maxAllowed"`` under the
    container name.
    """

    def apply(
        self,
        recommendation: RecommendedPodResources,
        resource_policy: Optional[PodResourcePolicy],
        conditions: List[VerticalPodAutoscalerCondition],
        pod: Pod,
    ) -> Tuple[RecommendedPodResources, ContainerToAnnotations]:
        annotations: ContainerToAnnotations = {}
        capped: List[RecommendedContainerResources] = []
        for container_recommendation in recommendation.container_recommendations:
            name = container_recommendation.container_name
            container_policy = get_container_resource_policy(name, resource_policy)
            if container_policy is not None and container_policy.mode == ContainerScalingMode.OFF:
                logger.debug("scaling disabled for container %s, dropping recommendation", name)
                continue
            target = dict(container_recommendation.target)
            lower_bound = dict(container_recommendation.lower_bound)
            upper_bound = dict(container_recommendation.upper_bound)
            container_annotations: List[str] = []
            if container_policy is not None:
                target, container_annotations = _cap_to_bounds(
                    target, container_policy.min_allowed, container_policy.max_allowed
                )
                lower_bound, _ = _cap_to_bounds(lower_bound, container_policy.min_allowed, container_policy.max_allowed)
                upper_bound, _ = _cap_to_bounds(upper_bound, container_policy.min_allowed, container_policy.max_allowed)
            if container_annotations:
                logger.debug("capped recommendation for container %s: %s", name, ", ".join(container_annotations))
                annotations[name] = container_annotations
            capped.append(
                container_recommendation.model_copy(
                    update={
                        "target": target,
                        "lower_bound": lower_bound,
                        "upper_bound": upper_bound,
                        "uncapped_target": dict(container_recommendation.target),
                    }
                )
            )
        return RecommendedPodResources(container_recommendations=capped), annotations


def _cap_to_bounds(
    target: Dict[str, Quantity],
    min_allowed: Dict[str, Quantity],
    max_allowed: Dict[str, Quantity],
) -> Tuple[Dict[str, Quantity], List[str]]:
    capped: Dict[str, Quantity] = {}
    notes: List[str] = []
    for resource, amount in target.items():
        lower = min_allowed.get(resource)
        upper = max_allowed.get(resource)
        if lower is not None and amount < lower:
            amount = lower
            notes.append(f"{resource} capped to minAllowed")
        elif upper is not None and amount > upper:
            amount = upper
            notes.append(f"{resource} capped to maxAllowed")
        capped[resource] = amount
    return capped, notes


__all__ = ["CappingRecommendationProcessor", "NoopRecommendationProcessor"]
