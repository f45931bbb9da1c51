from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import typer
import yaml
from pydantic import ValidationError

from src.common.settings import AdmissionSettings

from .capping import CappingRecommendationProcessor
from .errors import AdmissionError
from .models import ObjectMeta, Pod, RecommendedPodResources, VerticalPodAutoscaler
from .patches import patches_to_json
from .recommendation import PolicyRecommendationProvider, PolicyWithSelector
from .server import AdmissionServer
from .validation import validate_policy

app = typer.Typer(help="Build resource request patches for pods and validate VerticalPodAutoscaler objects.")


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@app.command()
def patch(
    pod: Path = typer.Option(
        ...,
        "--pod",
        help="Pod manifest (JSON or YAML).",
    ),
    recommendation: Path = typer.Option(
        ...,
        "--recommendation",
        "-r",
        help="Stored recommendation (containerRecommendations) as JSON or YAML.",
    ),
    policy: Optional[Path] = typer.Option(
        None,
        "--policy",
        help="VerticalPodAutoscaler whose resource policy caps the recommendation.",
    ),
    namespace: str = typer.Option(
        "default",
        "--namespace",
        "-n",
        help="Namespace of the admission request.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Admission settings file.",
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Where to write the JSON Patch array (stdout when omitted).",
    ),
) -> None:
    settings = _load_settings(config)
    pod_document = _load_document(pod, "pod")
    stored = _parse_model(RecommendedPodResources, _load_document(recommendation, "recommendation"), "recommendation")
    if policy is not None:
        vpa = _parse_model(VerticalPodAutoscaler, _load_document(policy, "policy"), "policy")
    else:
        vpa = VerticalPodAutoscaler(metadata=ObjectMeta(name="cli", namespace=namespace))
    vpa.status.recommendation = stored

    provider = PolicyRecommendationProvider(
        policy_lister=_FixedPolicyLister([vpa]),
        recommendation_processor=CappingRecommendationProcessor(),
        selector_fetcher=_NoSelectorFetcher(),
        policy_resolver=_FirstCandidateResolver(),
    )
    server = AdmissionServer(provider, settings=settings)
    try:
        patches = server.get_patches_for_pod_resource_request(json.dumps(pod_document, default=str), namespace)
    except AdmissionError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    rendered = json.dumps(patches_to_json(patches), indent=2)
    if out is None:
        typer.echo(rendered)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(rendered, encoding="utf-8")
    typer.echo(f"Wrote {len(patches)} patch(es) to {out.resolve()}")


@app.command()
def validate(
    policy: Path = typer.Option(
        ...,
        "--policy",
        "-p",
        help="VerticalPodAutoscaler manifest (JSON or YAML).",
    ),
    create: bool = typer.Option(
        True,
        "--create/--update",
        help="Validate as a create request (TargetRef required) or as an update.",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Admission settings file.",
    ),
) -> None:
    settings = _load_settings(config)
    vpa = _parse_model(VerticalPodAutoscaler, _load_document(policy, "policy"), "policy")
    try:
        validate_policy(vpa, create, settings)
    except AdmissionError as exc:
        typer.echo(f"rejected: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"accepted: {vpa.metadata.name or policy.name}")


class _FixedPolicyLister:
    def __init__(self, policies: List[VerticalPodAutoscaler]) -> None:
        self.policies = policies

    def list(self, namespace: str) -> List[VerticalPodAutoscaler]:
        return list(self.policies)


class _NoSelectorFetcher:
    def fetch(self, policy: VerticalPodAutoscaler) -> None:
        return None


class _FirstCandidateResolver:
    def resolve(self, pod: Pod, candidates: Sequence[PolicyWithSelector]) -> Optional[PolicyWithSelector]:
        return candidates[0] if candidates else None


def _load_settings(config: Optional[Path]) -> AdmissionSettings:
    try:
        base = AdmissionSettings.from_yaml(config) if config is not None else AdmissionSettings()
        return AdmissionSettings.from_env(base)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Config file not found: {config}") from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_document(path: Path, kind: str) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"{kind.title()} file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise typer.BadParameter(f"{kind.title()} file is not valid JSON or YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{kind.title()} file must contain a mapping")
    return data


def _parse_model(model: Any, data: Dict[str, Any], kind: str) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise typer.BadParameter(f"Invalid {kind}: {exc}") from exc


if __name__ == "__main__":  # pragma: no cover
    app()
