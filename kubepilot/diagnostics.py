"""Diagnostics and scoring engine.

Turns raw pod state into weighted issues, a 0-100 health score and a ranked
remediation list. Scoring weights:

    single pod                          namespace scan
    phase != Running          -30       per problem pod   -10
    waiting CrashLoopBackOff  -40
    waiting ImagePull*        -35
    waiting other reason      -20
    restarts > 5              -15

Deductions accumulate unclamped; the reported score is clamped to [0, 100]
once at the end.
"""

import logging

from kubepilot.errors import ProviderError, UnsupportedResource
from kubepilot.logging_config import log_event
from kubepilot.models import Confidence, GenerationOptions, Issue, Remediation, Report, Severity
from kubepilot.prompts import build_remediation_prompt
from kubepilot.providers import AIProvider
from kubepilot.resources import ResourceQuery

logger = logging.getLogger("kubepilot")

PHASE_PENALTY = 30
CRASHLOOP_PENALTY = 40
IMAGE_PULL_PENALTY = 35
WAITING_PENALTY = 20
RESTART_PENALTY = 15
RESTART_THRESHOLD = 5

SCAN_RESTART_THRESHOLD = 3
SCAN_ESCALATE_RESTARTS = 10
SCAN_PROBLEM_PENALTY = 10

AI_TITLE_CHARS = 50

POD_KINDS = ("pod", "pods", "po")


def clamp_score(score):
    return max(0, min(100, score))


def classify_waiting(reason):
    """Map a container waiting reason to (issue type, severity, penalty)."""
    if reason == "CrashLoopBackOff":
        return "CrashLoopBackOff", Severity.CRITICAL, CRASHLOOP_PENALTY
    if reason in ("ImagePullBackOff", "ErrImagePull"):
        return "ImagePullBackOff", Severity.HIGH, IMAGE_PULL_PENALTY
    return reason, Severity.MEDIUM, WAITING_PENALTY


class DiagnosticEngine:
    """Inspects pods through a ResourceQuery and scores what it finds."""

    def __init__(self, resources: ResourceQuery, provider: AIProvider, namespace="default",
                 registry=None, options: GenerationOptions | None = None):
        self.resources = resources
        self.provider = provider
        self.namespace = namespace or "default"
        self.registry = registry
        self.options = options

    def diagnose(self, resource_kind: str = "", resource_name: str | None = None) -> Report:
        """Dispatch by resource kind.

        "pod" with a name inspects that pod; "pod" without a name or an empty
        kind scans the whole namespace.

        Raises:
            UnsupportedResource: no inspector for the kind.
            ResourceNotFound: the named pod does not exist.
        """
        kind = (resource_kind or "").strip().lower()
        if kind in POD_KINDS:
            if resource_name:
                report = self.diagnose_pod(resource_name)
            else:
                report = self.diagnose_namespace()
        elif not kind:
            report = self.diagnose_namespace()
        else:
            raise UnsupportedResource(f"unsupported resource type: {resource_kind}")

        log_event("diagnosis_complete", {
            "namespace": self.namespace,
            "kind": kind or "namespace",
            "name": resource_name,
            "issues": len(report.issues),
            "health_score": report.health_score,
        })
        return report

    def diagnose_pod(self, pod_name: str) -> Report:
        pod = self.resources.get_pod(pod_name, self.namespace)

        issues: list[Issue] = []
        score = 100

        if pod.phase != "Running":
            issues.append(Issue(
                severity=Severity.HIGH,
                type=pod.phase,
                resource=pod_name,
                description=f"Pod is in {pod.phase} phase",
            ))
            score -= PHASE_PENALTY

        for cs in pod.containers:
            resource = f"{pod_name}/{cs.name}"
            crashlooping = False

            if cs.waiting_reason is not None:
                issue_type, severity, penalty = classify_waiting(cs.waiting_reason)
                crashlooping = issue_type == "CrashLoopBackOff"
                issues.append(Issue(
                    severity=severity,
                    type=issue_type,
                    resource=resource,
                    description=f"Container {cs.name}: {cs.waiting_reason} - {cs.waiting_message}",
                ))
                score -= penalty

            # Independent of the waiting check; a crashlooping container
            # with many restarts is deducted twice.
            if cs.restart_count > RESTART_THRESHOLD:
                details = {"restart_count": cs.restart_count}
                if crashlooping:
                    details["double_counted"] = True
                    logger.warning(
                        f"Scoring anomaly: {resource} deducted for both CrashLoopBackOff "
                        f"and {cs.restart_count} restarts"
                    )
                issues.append(Issue(
                    severity=Severity.MEDIUM,
                    type="CrashLoopBackOff",
                    resource=resource,
                    description=f"Container has restarted {cs.restart_count} times",
                    details=details,
                ))
                score -= RESTART_PENALTY

        if self.registry is not None:
            issues.extend(self.registry.run_analysis(pod))

        remediations = []
        if issues:
            remediations = self.generate_remediations(issues, pod_name)

        return Report(
            summary=f"Diagnostics for pod: {pod_name}",
            issues=issues,
            remediations=remediations,
            health_score=clamp_score(score),
        )

    def diagnose_namespace(self) -> Report:
        pods = self.resources.list_pods(self.namespace)

        issues: list[Issue] = []
        problem_pods = 0

        for pod in pods:
            if pod.phase == "Running" and pod.ready and pod.restarts <= SCAN_RESTART_THRESHOLD:
                continue
            problem_pods += 1
            severity = Severity.HIGH if pod.restarts > SCAN_ESCALATE_RESTARTS else Severity.MEDIUM
            issues.append(Issue(
                severity=severity,
                type="UnhealthyPod",
                resource=f"pod/{pod.name}",
                description=(
                    f"Pod {pod.name}: Phase={pod.phase}, Ready={pod.ready}, "
                    f"Restarts={pod.restarts}"
                ),
            ))

        if self.registry is not None:
            issues.extend(self.registry.run_analysis(pods))

        score = clamp_score(100 - problem_pods * SCAN_PROBLEM_PENALTY)
        return Report(
            summary=(
                f"Found {len(issues)} issue(s) across {len(pods)} pods. "
                f"Health score: {score}/100"
            ),
            issues=issues,
            health_score=score,
        )

    def generate_remediations(self, issues, resource_name) -> list[Remediation]:
        """Two canned inspection steps plus one AI suggestion.

        Best-effort: a provider failure yields an empty list.
        """
        prompt = build_remediation_prompt(resource_name, issues)
        try:
            response = self.provider.generate(prompt, self.options)
        except ProviderError as e:
            logger.warning(f"Remediation suggestions unavailable ({self.provider.name()}): {e}")
            return []

        content = response.content.strip()
        title = content[:AI_TITLE_CHARS]
        if len(content) > AI_TITLE_CHARS:
            title += "..."

        return [
            Remediation(
                title="Check pod logs",
                description="Inspect pod logs for error messages",
                command=f"kubectl logs {resource_name} -n {self.namespace}",
                confidence=Confidence.HIGH,
                safe=True,
            ),
            Remediation(
                title="Describe pod",
                description="Get detailed pod information and events",
                command=f"kubectl describe pod {resource_name} -n {self.namespace}",
                confidence=Confidence.HIGH,
                safe=True,
            ),
            Remediation(
                title=title,
                description=content or "AI-suggested remediation",
                command="# See AI response for details",
                confidence=Confidence.MEDIUM,
                safe=True,
            ),
        ]
