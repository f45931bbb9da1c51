"""Turn recommended container requests into RFC6902 ``add`` operations against the admitted pod."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import jsonpatch
from jsonpointer import JsonPointer, JsonPointerException

from src.common.settings import RESOURCE_ORDER_SORTED, AdmissionSettings

from .errors import PatchError, RecommendationError
from .models import Pod
from .recommendation import ContainerResources, ContainerToAnnotations

ADD = "add"


@dataclass(frozen=True)
class PatchRecord:
    op: str
    path: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"op": self.op, "path": self.path, "value": self.value}


def _pointer(*parts: Any) -> str:
    return JsonPointer.from_parts([str(part) for part in parts]).path


def resources_path(index: int, *parts: str) -> str:
    return _pointer("spec", "containers", index, "resources", *parts)


def ordered_resources(requests: Dict[str, Any], resource_order: str) -> List[str]:
    if resource_order == RESOURCE_ORDER_SORTED:
        return sorted(requests)
    return list(requests)


def get_container_patch(
    pod: Pod,
    index: int,
    container_resources: ContainerResources,
    settings: AdmissionSettings,
) -> Tuple[List[PatchRecord], List[str]]:
    """Patches for container *index* plus the ``"<resource> request"`` entries they update."""

    if not container_resources.requests:
        return [], []
    current = pod.spec.containers[index].resources
    patches: List[PatchRecord] = []
    if current is None:
        patches.append(PatchRecord(ADD, resources_path(index), {}))
        patches.append(PatchRecord(ADD, resources_path(index, "requests"), {}))
    elif current.requests is None:
        patches.append(PatchRecord(ADD, resources_path(index, "requests"), {}))

    updated: List[str] = []
    for resource in ordered_resources(container_resources.requests, settings.resource_order):
        amount = container_resources.requests[resource]
        patches.append(PatchRecord(ADD, resources_path(index, "requests", resource), amount.canonical()))
        updated.append(f"{resource} request")
    return patches, updated


def build_updates_summary(policy_name: str, fragments: Sequence[str]) -> str:
    return f"Pod resources updated by {policy_name}: {'; '.join(fragments)}"


def get_annotation_patch(pod: Pod, key: str, summary: str) -> PatchRecord:
    # Existing annotations are kept by adding a single key instead of replacing the map.
    if pod.metadata.annotations:
        return PatchRecord(ADD, _pointer("metadata", "annotations", key), summary)
    return PatchRecord(ADD, "/metadata/annotations", {key: summary})


def build_patches(
    pod: Pod,
    containers_resources: Optional[Sequence[ContainerResources]],
    annotations_per_container: Optional[ContainerToAnnotations],
    policy_name: str,
    settings: Optional[AdmissionSettings] = None,
) -> List[PatchRecord]:
    """Ordered patches that write the recommended requests into *pod*.

    Containers are visited in pod order and paths index into the original pod
    document. A trailing annotation patch summarises the update when at least
    one request was written.
    """

    settings = settings or AdmissionSettings()
    if not containers_resources:
        return []
    if len(containers_resources) != len(pod.spec.containers):
        raise RecommendationError(
            f"recommendation covers {len(containers_resources)} containers "
            f"but pod declares {len(pod.spec.containers)}",
            policy_name,
            annotations_per_container,
        )
    annotations_per_container = annotations_per_container or {}

    patches: List[PatchRecord] = []
    fragments: List[str] = []
    for index, container_resources in enumerate(containers_resources):
        container_patches, updated = get_container_patch(pod, index, container_resources, settings)
        if not updated:
            continue
        patches.extend(container_patches)
        advisories = annotations_per_container.get(pod.spec.containers[index].name, [])
        fragments.append(f"container {index}: " + ", ".join([*advisories, *updated]))

    if fragments:
        summary = build_updates_summary(policy_name, fragments)
        patches.append(get_annotation_patch(pod, settings.annotation_key, summary))
    return patches


def patches_to_json(patches: Iterable[PatchRecord]) -> List[Dict[str, Any]]:
    return [patch.to_dict() for patch in patches]


def apply_patches(document: Dict[str, Any], patches: Iterable[PatchRecord]) -> Dict[str, Any]:
    """Apply *patches* to a copy of *document* and return the patched copy."""

    try:
        return jsonpatch.apply_patch(copy.deepcopy(document), patches_to_json(patches), in_place=False)
    except (jsonpatch.JsonPatchException, JsonPointerException) as exc:
        raise PatchError(str(exc)) from exc


__all__ = [
    "ADD",
    "PatchRecord",
    "apply_patches",
    "build_patches",
    "build_updates_summary",
    "get_annotation_patch",
    "get_container_patch",
    "ordered_resources",
    "patches_to_json",
    "resources_path",
]
