"""Admission decisions for pods and VerticalPodAutoscaler objects.

The transport layer hands over raw request objects; this module decodes them,
runs the injected collaborators, and returns patches or raises.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol, Union

import yaml
from pydantic import ValidationError

from src.common.settings import AdmissionSettings

from .errors import PodParseError, PolicyParseError
from .models import Pod, VerticalPodAutoscaler
from .patches import PatchRecord, build_patches
from .recommendation import RecommendationProvider
from .validation import validate_policy

logger = logging.getLogger(__name__)

RawDocument = Union[bytes, str]


class PodPreProcessor(Protocol):
    def process(self, pod: Pod) -> Pod:
        ...


class PolicyPreProcessor(Protocol):
    def process(self, policy: VerticalPodAutoscaler, is_create: bool) -> VerticalPodAutoscaler:
        ...


class NoopPodPreProcessor:
    def process(self, pod: Pod) -> Pod:
        return pod


class NoopPolicyPreProcessor:
    def process(self, policy: VerticalPodAutoscaler, is_create: bool) -> VerticalPodAutoscaler:
        return policy


class AdmissionServer:
    def __init__(
        self,
        recommendation_provider: RecommendationProvider,
        pod_pre_processor: Optional[PodPreProcessor] = None,
        policy_pre_processor: Optional[PolicyPreProcessor] = None,
        settings: Optional[AdmissionSettings] = None,
    ) -> None:
        self.recommendation_provider = recommendation_provider
        self.pod_pre_processor = pod_pre_processor or NoopPodPreProcessor()
        self.policy_pre_processor = policy_pre_processor or NoopPolicyPreProcessor()
        self.settings = settings or AdmissionSettings()

    def get_patches_for_pod_resource_request(self, raw: RawDocument, namespace: str) -> List[PatchRecord]:
        pod = parse_pod(raw)
        if not pod.metadata.name:
            pod.metadata.name = pod.metadata.generate_name + "%"
        if not pod.metadata.namespace:
            pod.metadata.namespace = namespace
        logger.debug("admitting pod %s/%s", pod.metadata.namespace, pod.metadata.name)

        pod = self.pod_pre_processor.process(pod)
        containers_resources, annotations, policy_name = (
            self.recommendation_provider.get_containers_resources_for_pod(pod)
        )
        patches = build_patches(pod, containers_resources, annotations, policy_name, self.settings)
        logger.info(
            "pod %s/%s: %d patch(es) from %s",
            pod.metadata.namespace,
            pod.metadata.name,
            len(patches),
            policy_name or "no controlling policy",
        )
        return patches

    def admit_policy(self, raw: RawDocument, is_create: bool) -> VerticalPodAutoscaler:
        """Decode (JSON or YAML), pre-process and validate a policy; returns the processed policy."""

        policy = parse_policy(raw)
        policy = self.policy_pre_processor.process(policy, is_create)
        validate_policy(policy, is_create, self.settings)
        logger.debug("accepted VPA %s/%s", policy.metadata.namespace, policy.metadata.name)
        return policy


def parse_pod(raw: RawDocument) -> Pod:
    try:
        document = json.loads(raw)
    except ValueError as exc:
        raise PodParseError(str(exc)) from exc
    try:
        return Pod.model_validate(document)
    except ValidationError as exc:
        raise PodParseError(str(exc)) from exc


def parse_policy(raw: RawDocument) -> VerticalPodAutoscaler:
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise PolicyParseError(str(exc)) from exc
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise PolicyParseError("policy document must be a mapping")
    try:
        return VerticalPodAutoscaler.model_validate(document)
    except ValidationError as exc:
        raise PolicyParseError(str(exc)) from exc


__all__ = [
    "AdmissionServer",
    "NoopPodPreProcessor",
    "NoopPolicyPreProcessor",
    "PodPreProcessor",
    "PolicyPreProcessor",
    "parse_pod",
    "parse_policy",
]
