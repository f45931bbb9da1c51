"""Admission package for injecting VPA recommendations into pods and validating VPA objects."""

from .errors import (
    AdmissionError,
    PatchError,
    PodParseError,
    PolicyParseError,
    PolicyValidationError,
    RecommendationError,
)
from .patches import PatchRecord, apply_patches, build_patches
from .recommendation import ContainerResources, PolicyRecommendationProvider
from .server import AdmissionServer
from .validation import validate_policy

__all__ = [
    "AdmissionError",
    "AdmissionServer",
    "ContainerResources",
    "PatchError",
    "PatchRecord",
    "PodParseError",
    "PolicyParseError",
    "PolicyRecommendationProvider",
    "PolicyValidationError",
    "RecommendationError",
    "apply_patches",
    "build_patches",
    "validate_policy",
]
