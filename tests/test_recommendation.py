import unittest
from typing import List, Optional, Sequence

from src.admission.capping import NoopRecommendationProcessor
from src.admission.errors import RecommendationError
from src.admission.models import Pod, RecommendedPodResources, VerticalPodAutoscaler
from src.admission.recommendation import (
    ContainerResources,
    PolicyRecommendationProvider,
    PolicyWithSelector,
    get_containers_resources,
)
from src.common.quantity import Quantity


def _pod(*names: str, namespace: str = "default") -> Pod:
    return Pod.model_validate(
        {
            "metadata": {"name": "web-0", "namespace": namespace},
            "spec": {"containers": [{"name": name} for name in names]},
        }
    )


def _vpa(name: str, update_mode: Optional[str] = None, recommendation: Optional[dict] = None) -> VerticalPodAutoscaler:
    document: dict = {"metadata": {"name": name, "namespace": "default"}, "spec": {}, "status": {}}
    if update_mode is not None:
        document["spec"]["updatePolicy"] = {"updateMode": update_mode}
    if recommendation is not None:
        document["status"]["recommendation"] = recommendation
    return VerticalPodAutoscaler.model_validate(document)


APP_RECOMMENDATION = {
    "containerRecommendations": [
        {"containerName": "app", "target": {"cpu": "250m", "memory": "128Mi"}},
    ]
}


class _FakeLister:
    def __init__(self, policies: List[VerticalPodAutoscaler], error: Optional[Exception] = None) -> None:
        self.policies = policies
        self.error = error
        self.namespaces: List[str] = []

    def list(self, namespace: str) -> List[VerticalPodAutoscaler]:
        self.namespaces.append(namespace)
        if self.error is not None:
            raise self.error
        return self.policies


class _FakeSelectorFetcher:
    def __init__(self, broken: Sequence[str] = ()) -> None:
        self.broken = set(broken)

    def fetch(self, policy: VerticalPodAutoscaler) -> str:
        if policy.metadata.name in self.broken:
            raise RuntimeError("no scale subresource")
        return f"selector-{policy.metadata.name}"


class _FirstResolver:
    def __init__(self) -> None:
        self.candidates: List[PolicyWithSelector] = []

    def resolve(self, pod: Pod, candidates: Sequence[PolicyWithSelector]) -> Optional[PolicyWithSelector]:
        self.candidates = list(candidates)
        return candidates[0] if candidates else None


class _FailingProcessor:
    def apply(self, recommendation, resource_policy, conditions, pod):
        error = RuntimeError("cannot apply recommendation")
        error.annotations = {"app": ["partial"]}  # type: ignore[attr-defined]
        raise error


def _provider(policies, processor=None, lister_error=None, broken=()):
    resolver = _FirstResolver()
    provider = PolicyRecommendationProvider(
        policy_lister=_FakeLister(policies, lister_error),
        recommendation_processor=processor or NoopRecommendationProcessor(),
        selector_fetcher=_FakeSelectorFetcher(broken),
        policy_resolver=resolver,
    )
    return provider, resolver


class GetContainersResourcesTests(unittest.TestCase):
    def test_aligned_with_pod_containers(self) -> None:
        recommendation = RecommendedPodResources.model_validate(
            {
                "containerRecommendations": [
                    {"containerName": "b", "target": {"cpu": "2"}},
                    {"containerName": "a", "target": {"cpu": "1"}},
                ]
            }
        )
        resources = get_containers_resources(_pod("a", "b", "c"), recommendation)
        self.assertEqual(len(resources), 3)
        self.assertEqual(resources[0].requests, {"cpu": Quantity.parse("1")})
        self.assertEqual(resources[1].requests, {"cpu": Quantity.parse("2")})
        self.assertEqual(resources[2], ContainerResources())

    def test_name_match_is_case_sensitive(self) -> None:
        recommendation = RecommendedPodResources.model_validate(
            {"containerRecommendations": [{"containerName": "App", "target": {"cpu": "1"}}]}
        )
        resources = get_containers_resources(_pod("app"), recommendation)
        self.assertEqual(resources[0].requests, {})


class PolicyRecommendationProviderTests(unittest.TestCase):
    def test_no_policy_is_not_an_error(self) -> None:
        provider, _ = _provider([])
        self.assertEqual(provider.get_containers_resources_for_pod(_pod("app")), (None, None, ""))

    def test_uses_stored_recommendation(self) -> None:
        provider, _ = _provider([_vpa("web-vpa", recommendation=APP_RECOMMENDATION)])
        resources, annotations, name = provider.get_containers_resources_for_pod(_pod("app", "sidecar"))
        self.assertEqual(name, "web-vpa")
        self.assertEqual(annotations, {})
        self.assertEqual(
            resources[0].requests,
            {"cpu": Quantity.parse("250m"), "memory": Quantity.parse("128Mi")},
        )
        self.assertEqual(resources[1].requests, {})

    def test_missing_recommendation_treated_as_empty(self) -> None:
        provider, _ = _provider([_vpa("web-vpa")], processor=_FailingProcessor())
        resources, annotations, name = provider.get_containers_resources_for_pod(_pod("app"))
        self.assertEqual(name, "web-vpa")
        self.assertIsNone(annotations)
        self.assertEqual(resources, [ContainerResources()])

    def test_processor_failure_carries_policy_name_and_annotations(self) -> None:
        provider, _ = _provider(
            [_vpa("web-vpa", recommendation=APP_RECOMMENDATION)], processor=_FailingProcessor()
        )
        with self.assertRaises(RecommendationError) as ctx:
            provider.get_containers_resources_for_pod(_pod("app"))
        self.assertEqual(str(ctx.exception), "cannot apply recommendation")
        self.assertEqual(ctx.exception.policy_name, "web-vpa")
        self.assertEqual(ctx.exception.annotations, {"app": ["partial"]})
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)

    def test_policies_in_off_mode_are_skipped(self) -> None:
        provider, resolver = _provider(
            [
                _vpa("off-vpa", update_mode="Off", recommendation=APP_RECOMMENDATION),
                _vpa("auto-vpa", update_mode="Auto", recommendation=APP_RECOMMENDATION),
            ]
        )
        _, _, name = provider.get_containers_resources_for_pod(_pod("app"))
        self.assertEqual(name, "auto-vpa")
        self.assertEqual([c.policy.metadata.name for c in resolver.candidates], ["auto-vpa"])
        self.assertEqual(resolver.candidates[0].selector, "selector-auto-vpa")

    def test_policies_without_selector_are_skipped(self) -> None:
        provider, resolver = _provider(
            [_vpa("broken"), _vpa("healthy", recommendation=APP_RECOMMENDATION)], broken=["broken"]
        )
        _, _, name = provider.get_containers_resources_for_pod(_pod("app"))
        self.assertEqual(name, "healthy")
        self.assertEqual(len(resolver.candidates), 1)

    def test_lister_failure_means_no_policy(self) -> None:
        provider, _ = _provider([], lister_error=RuntimeError("cache not synced"))
        with self.assertLogs("src.admission.recommendation", level="ERROR"):
            result = provider.get_containers_resources_for_pod(_pod("app"))
        self.assertEqual(result, (None, None, ""))

    def test_lists_policies_in_pod_namespace(self) -> None:
        provider, _ = _provider([])
        provider.get_containers_resources_for_pod(_pod("app", namespace="payments"))
        self.assertEqual(provider.policy_lister.namespaces, ["payments"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
