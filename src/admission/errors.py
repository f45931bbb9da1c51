from __future__ import annotations

from typing import Dict, List, Optional


class AdmissionError(Exception):
    """Base class for errors returned by the admission core."""


class PodParseError(AdmissionError):
    """Raised when the admitted pod document cannot be decoded."""


class PolicyParseError(AdmissionError):
    """Raised when an autoscaling policy document cannot be decoded."""


class PolicyValidationError(AdmissionError):
    """Raised when an autoscaling policy breaks one of the validation rules."""


class PatchError(AdmissionError):
    """Raised when patch records cannot be applied to a document."""


class RecommendationError(AdmissionError):
    """Raised when the recommendation processor rejects a policy's recommendation.

    Carries the controlling policy name and whatever per-container annotations
    were produced before the failure.
    """

    def __init__(
        self,
        message: str,
        policy_name: str = "",
        annotations: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        super().__init__(message)
        self.policy_name = policy_name
        self.annotations = annotations


__all__ = [
    "AdmissionError",
    "PatchError",
    "PodParseError",
    "PolicyParseError",
    "PolicyValidationError",
    "RecommendationError",
]
