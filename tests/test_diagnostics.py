"""Diagnostics engine tests: issue classification, scoring, remediations, namespace scan."""

import pytest
from unittest.mock import MagicMock, patch

from kubepilot.diagnostics import DiagnosticEngine, classify_waiting, clamp_score
from kubepilot.errors import ProviderUnavailable, ResourceNotFound, UnsupportedResource
from kubepilot.models import Confidence, GenerationResponse, Severity
from kubepilot.plugins import PluginRegistry, RestartStormAnalyzer
from kubepilot.providers import AIProvider, MockProvider, OpenAIProvider
from kubepilot.resources import ContainerStatus, PodDetail, PodSummary, ResourceQuery


def _pod(name="web-1", phase="Running", containers=None):
    containers = containers or [ContainerStatus(name="app", ready=True)]
    return PodDetail(
        name=name,
        namespace="default",
        phase=phase,
        ready=all(c.ready for c in containers),
        restarts=sum(c.restart_count for c in containers),
        containers=containers,
    )


def _resources(pod=None, pods=None):
    resources = MagicMock(spec=ResourceQuery)
    if pod is not None:
        resources.get_pod.return_value = pod
    if pods is not None:
        resources.list_pods.return_value = pods
    return resources


def _engine(resources, provider=None, registry=None):
    return DiagnosticEngine(resources, provider or MockProvider(), namespace="default",
                            registry=registry)


class TestHelpers:
    def test_clamp(self):
        assert clamp_score(-40) == 0
        assert clamp_score(130) == 100
        assert clamp_score(55) == 55

    @pytest.mark.parametrize("reason,expected_type,severity,penalty", [
        ("CrashLoopBackOff", "CrashLoopBackOff", Severity.CRITICAL, 40),
        ("ImagePullBackOff", "ImagePullBackOff", Severity.HIGH, 35),
        ("ErrImagePull", "ImagePullBackOff", Severity.HIGH, 35),
        ("ContainerCreating", "ContainerCreating", Severity.MEDIUM, 20),
    ])
    def test_classify_waiting(self, reason, expected_type, severity, penalty):
        assert classify_waiting(reason) == (expected_type, severity, penalty)


class TestDiagnosePod:
    """Single-pod inspection and scoring."""

    def test_healthy_pod(self):
        provider = MagicMock(spec=AIProvider)
        report = _engine(_resources(pod=_pod()), provider).diagnose("pod", "web-1")
        assert report.health_score == 100
        assert report.issues == []
        assert report.remediations == []
        provider.generate.assert_not_called()

    @patch("kubepilot.diagnostics.logger")
    def test_crashloop_with_restarts_double_counted(self, mock_logger):
        pod = _pod(containers=[ContainerStatus(
            name="app", restart_count=12, waiting_reason="CrashLoopBackOff",
            waiting_message="back-off 5m0s restarting failed container",
        )])
        report = _engine(_resources(pod=pod)).diagnose("pod", "web-1")

        assert report.health_score == 45
        assert [i.severity for i in report.issues] == [Severity.CRITICAL, Severity.MEDIUM]
        assert all(i.type == "CrashLoopBackOff" for i in report.issues)
        assert report.issues[0].resource == "web-1/app"
        assert "back-off" in report.issues[0].description
        restart_issue = report.issues[1]
        assert restart_issue.details == {"restart_count": 12, "double_counted": True}
        assert "12 times" in restart_issue.description
        mock_logger.warning.assert_called_once()
        assert "Scoring anomaly" in mock_logger.warning.call_args[0][0]

    def test_restarts_without_waiting_not_flagged_as_double(self):
        pod = _pod(containers=[ContainerStatus(name="app", ready=True, restart_count=6)])
        report = _engine(_resources(pod=pod)).diagnose("pod", "web-1")
        assert report.health_score == 85
        assert report.issues[0].details == {"restart_count": 6}

    def test_restart_threshold_is_exclusive(self):
        pod = _pod(containers=[ContainerStatus(name="app", ready=True, restart_count=5)])
        report = _engine(_resources(pod=pod)).diagnose("pod", "web-1")
        assert report.health_score == 100

    def test_pending_with_image_pull(self):
        pod = _pod(phase="Pending", containers=[ContainerStatus(
            name="app", waiting_reason="ErrImagePull", waiting_message="not found",
        )])
        report = _engine(_resources(pod=pod)).diagnose("pod", "web-1")
        assert report.health_score == 35
        assert report.issues[0].type == "Pending"
        assert report.issues[0].severity == Severity.HIGH
        assert report.issues[0].resource == "web-1"
        assert report.issues[1].type == "ImagePullBackOff"

    def test_other_waiting_reason(self):
        pod = _pod(containers=[ContainerStatus(name="app", waiting_reason="ContainerCreating")])
        report = _engine(_resources(pod=pod)).diagnose("pod", "web-1")
        assert report.health_score == 80
        assert report.issues[0].severity == Severity.MEDIUM

    def test_score_floors_at_zero(self):
        containers = [
            ContainerStatus(name=f"c{i}", restart_count=20, waiting_reason="CrashLoopBackOff")
            for i in range(3)
        ]
        report = _engine(_resources(pod=_pod(phase="Failed", containers=containers))).diagnose("pod", "web-1")
        assert report.health_score == 0
        assert len(report.issues) == 7

    def test_pod_not_found(self):
        resources = MagicMock(spec=ResourceQuery)
        resources.get_pod.side_effect = ResourceNotFound("pod default/ghost not found")
        with pytest.raises(ResourceNotFound):
            _engine(resources).diagnose("pod", "ghost")

    def test_plugin_issues_merged_without_scoring(self):
        registry = PluginRegistry()
        registry.register(RestartStormAnalyzer(threshold=10))
        pod = _pod(containers=[ContainerStatus(name="app", ready=True, restart_count=11)])
        report = _engine(_resources(pod=pod), registry=registry).diagnose("pod", "web-1")
        assert [i.type for i in report.issues] == ["CrashLoopBackOff", "RestartStorm"]
        assert report.health_score == 85


class TestRemediations:
    """Canned inspection steps plus the AI suggestion."""

    def _crashing_pod(self):
        return _pod(containers=[ContainerStatus(name="app", waiting_reason="CrashLoopBackOff")])

    def test_three_remediations_in_order(self):
        report = _engine(_resources(pod=self._crashing_pod())).diagnose("pod", "web-1")
        rems = report.remediations
        assert len(rems) == 3
        assert rems[0].command == "kubectl logs web-1 -n default"
        assert rems[0].confidence == Confidence.HIGH
        assert rems[1].command == "kubectl describe pod web-1 -n default"
        assert rems[1].confidence == Confidence.HIGH
        assert rems[2].confidence == Confidence.MEDIUM
        assert rems[2].command.startswith("#")

    def test_ai_title_truncated(self):
        provider = MagicMock(spec=AIProvider)
        provider.name.return_value = "fake"
        long_text = "Increase the memory limit of the app container and redeploy it"
        provider.generate.return_value = GenerationResponse(content=long_text, model="fake")
        report = _engine(_resources(pod=self._crashing_pod()), provider).diagnose("pod", "web-1")
        ai = report.remediations[2]
        assert ai.title == long_text[:50] + "..."
        assert ai.description == long_text

    def test_short_ai_title_not_truncated(self):
        provider = MagicMock(spec=AIProvider)
        provider.name.return_value = "fake"
        provider.generate.return_value = GenerationResponse(content="Roll back", model="fake")
        report = _engine(_resources(pod=self._crashing_pod()), provider).diagnose("pod", "web-1")
        assert report.remediations[2].title == "Roll back"

    def test_prompt_lists_issues(self):
        provider = MagicMock(spec=AIProvider)
        provider.name.return_value = "fake"
        provider.generate.return_value = GenerationResponse(content="x", model="fake")
        _engine(_resources(pod=self._crashing_pod()), provider).diagnose("pod", "web-1")
        prompt = provider.generate.call_args[0][0]
        assert "web-1" in prompt
        assert "- [critical] CrashLoopBackOff:" in prompt
        assert "3 remediation steps" in prompt

    def test_provider_failure_yields_no_remediations(self):
        provider = MagicMock(spec=AIProvider)
        provider.name.return_value = "fake"
        provider.generate.side_effect = ProviderUnavailable("down")
        report = _engine(_resources(pod=self._crashing_pod()), provider).diagnose("pod", "web-1")
        assert report.remediations == []
        assert report.health_score == 60
        assert len(report.issues) == 1

    def test_openai_empty_choices_yields_no_remediations(self):
        client = MagicMock()
        client.chat.completions.create.return_value.choices = []
        provider = OpenAIProvider(api_key="sk-x", client=client)
        report = _engine(_resources(pod=self._crashing_pod()), provider).diagnose("pod", "web-1")
        assert report.remediations == []
        assert report.health_score == 60


class TestDiagnoseNamespace:
    """Namespace-wide scan."""

    def _pods(self):
        return [
            PodSummary(name="ok", phase="Running", ready=True, restarts=0),
            PodSummary(name="flappy", phase="Running", ready=True, restarts=4),
            PodSummary(name="stormy", phase="Running", ready=False, restarts=11),
            PodSummary(name="pending", phase="Pending", ready=False, restarts=0),
        ]

    def test_scan(self):
        report = _engine(_resources(pods=self._pods())).diagnose()
        assert report.health_score == 70
        assert len(report.issues) == 3
        by_resource = {i.resource: i for i in report.issues}
        assert by_resource["pod/stormy"].severity == Severity.HIGH
        assert by_resource["pod/flappy"].severity == Severity.MEDIUM
        assert by_resource["pod/pending"].description == "Pod pending: Phase=Pending, Ready=False, Restarts=0"
        assert report.summary == "Found 3 issue(s) across 4 pods. Health score: 70/100"
        assert report.remediations == []

    def test_pod_kind_without_name_scans(self):
        resources = _resources(pods=self._pods())
        _engine(resources).diagnose("pods")
        resources.list_pods.assert_called_once_with("default")
        resources.get_pod.assert_not_called()

    def test_empty_namespace(self):
        report = _engine(_resources(pods=[])).diagnose("")
        assert report.health_score == 100
        assert report.summary == "Found 0 issue(s) across 0 pods. Health score: 100/100"

    def test_scan_floors_at_zero(self):
        pods = [PodSummary(name=f"p{i}", phase="Failed") for i in range(12)]
        report = _engine(_resources(pods=pods)).diagnose()
        assert report.health_score == 0


class TestDispatch:
    @pytest.mark.parametrize("kind", ["deployment", "service", "node"])
    def test_unsupported_kind(self, kind):
        with pytest.raises(UnsupportedResource):
            _engine(_resources()).diagnose(kind, "x")

    @pytest.mark.parametrize("kind", ["pod", "Pod", "po", "pods"])
    def test_pod_aliases(self, kind):
        resources = _resources(pod=_pod())
        _engine(resources).diagnose(kind, "web-1")
        resources.get_pod.assert_called_once_with("web-1", "default")
