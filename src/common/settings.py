"""Runtime settings for the admission core."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

RESOURCE_ORDER_SORTED = "sorted"
RESOURCE_ORDER_RECOMMENDATION = "recommendation"
_RESOURCE_ORDERS = (RESOURCE_ORDER_SORTED, RESOURCE_ORDER_RECOMMENDATION)

DEFAULT_UPDATE_MODES: Tuple[str, ...] = ("Off", "Initial", "Recreate", "Auto")
DEFAULT_SCALING_MODES: Tuple[str, ...] = ("Auto", "Off")


@dataclass(frozen=True)
class AdmissionSettings:
    update_modes: Tuple[str, ...] = field(default=DEFAULT_UPDATE_MODES)
    scaling_modes: Tuple[str, ...] = field(default=DEFAULT_SCALING_MODES)
    resource_order: str = RESOURCE_ORDER_SORTED
    annotation_key: str = "vpaUpdates"

    def __post_init__(self) -> None:
        if self.resource_order not in _RESOURCE_ORDERS:
            raise ValueError(
                f"resource_order must be one of {', '.join(_RESOURCE_ORDERS)}, got {self.resource_order!r}"
            )
        if not self.annotation_key:
            raise ValueError("annotation_key must not be empty")

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "AdmissionSettings":
        section = data.get("admission", data)
        if not isinstance(section, dict):
            raise ValueError("admission settings must be a mapping")
        kwargs: Dict[str, Any] = {}
        if "update_modes" in section:
            kwargs["update_modes"] = _as_modes(section["update_modes"], "update_modes")
        if "scaling_modes" in section:
            kwargs["scaling_modes"] = _as_modes(section["scaling_modes"], "scaling_modes")
        if "resource_order" in section:
            kwargs["resource_order"] = str(section["resource_order"])
        if "annotation_key" in section:
            kwargs["annotation_key"] = str(section["annotation_key"])
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "AdmissionSettings":
        with Path(path).open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, base: Optional["AdmissionSettings"] = None) -> "AdmissionSettings":
        settings = base or cls()
        overrides: Dict[str, Any] = {}
        update_modes = os.getenv("VPA_ADMISSION_UPDATE_MODES")
        if update_modes:
            overrides["update_modes"] = _as_modes(update_modes, "VPA_ADMISSION_UPDATE_MODES")
        scaling_modes = os.getenv("VPA_ADMISSION_SCALING_MODES")
        if scaling_modes:
            overrides["scaling_modes"] = _as_modes(scaling_modes, "VPA_ADMISSION_SCALING_MODES")
        resource_order = os.getenv("VPA_ADMISSION_RESOURCE_ORDER")
        if resource_order:
            overrides["resource_order"] = resource_order.strip()
        annotation_key = os.getenv("VPA_ADMISSION_ANNOTATION_KEY")
        if annotation_key:
            overrides["annotation_key"] = annotation_key.strip()
        return replace(settings, **overrides) if overrides else settings


def _as_modes(raw: Any, source: str) -> Tuple[str, ...]:
    if isinstance(raw, str):
        items = [item.strip() for item in raw.split(",")]
    elif isinstance(raw, (list, tuple)):
        items = [str(item).strip() for item in raw]
    else:
        raise ValueError(f"{source} must be a list or comma-separated string")
    modes = tuple(item for item in items if item)
    if not modes:
        raise ValueError(f"{source} must name at least one mode")
    return modes


__all__ = [
    "AdmissionSettings",
    "DEFAULT_SCALING_MODES",
    "DEFAULT_UPDATE_MODES",
    "RESOURCE_ORDER_RECOMMENDATION",
    "RESOURCE_ORDER_SORTED",
]
