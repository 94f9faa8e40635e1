"""Resource query interface: pods, logs and events as plain data.

The diagnostics engine and explainer only see the ResourceQuery protocol.
KubernetesResourceQuery backs it with the official kubernetes client.
"""

import logging
import threading
from typing import Protocol, runtime_checkable

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from pydantic import BaseModel, Field

from kubepilot.errors import ResourceNotFound, ResourceQueryError

logger = logging.getLogger("kubepilot")


class ContainerStatus(BaseModel):
    name: str
    image: str = ""
    ready: bool = False
    restart_count: int = 0
    waiting_reason: str | None = None
    waiting_message: str = ""
    terminated_reason: str | None = None
    last_terminated_reason: str | None = None


class PodSummary(BaseModel):
    """A pod as seen by a namespace listing."""
    name: str
    namespace: str = "default"
    phase: str = "Unknown"
    ready: bool = False
    restarts: int = 0
    containers: list[ContainerStatus] = Field(default_factory=list)


class PodDetail(PodSummary):
    """A single pod with scheduling and resource-limit detail."""
    node_name: str | None = None
    limits: dict[str, dict[str, str]] = Field(default_factory=dict)


class Event(BaseModel):
    type: str = ""
    reason: str = ""
    message: str = ""
    involved_object: str = ""


@runtime_checkable
class ResourceQuery(Protocol):
    def list_pods(self, namespace: str) -> list[PodSummary]: ...

    def get_pod(self, name: str, namespace: str) -> PodDetail: ...

    def get_logs(self, pod: str, container: str | None, namespace: str, tail_lines: int = 50) -> str: ...

    def get_events(self, namespace: str) -> list[Event]: ...


# --- Conversion from kubernetes client objects ---

def _container_status(cs) -> ContainerStatus:
    state = getattr(cs, "state", None)
    last_state = getattr(cs, "last_state", None)
    waiting = getattr(state, "waiting", None) if state else None
    terminated = getattr(state, "terminated", None) if state else None
    last_terminated = getattr(last_state, "terminated", None) if last_state else None
    return ContainerStatus(
        name=cs.name,
        image=cs.image or "",
        ready=bool(cs.ready),
        restart_count=cs.restart_count or 0,
        waiting_reason=(getattr(waiting, "reason", None) or "Waiting") if waiting else None,
        waiting_message=(getattr(waiting, "message", None) or "") if waiting else "",
        terminated_reason=getattr(terminated, "reason", None) if terminated else None,
        last_terminated_reason=getattr(last_terminated, "reason", None) if last_terminated else None,
    )


def pod_summary_from_api(pod) -> PodSummary:
    """Pod readiness is the AND of container readiness; restarts are summed."""
    containers = [_container_status(cs) for cs in (pod.status.container_statuses or [])]
    return PodSummary(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace or "default",
        phase=pod.status.phase or "Unknown",
        ready=all(c.ready for c in containers),
        restarts=sum(c.restart_count for c in containers),
        containers=containers,
    )


def pod_detail_from_api(pod) -> PodDetail:
    summary = pod_summary_from_api(pod)
    limits = {}
    for container in (pod.spec.containers or []):
        resources = getattr(container, "resources", None)
        if resources and resources.limits:
            limits[container.name] = {k: str(v) for k, v in resources.limits.items()}
    return PodDetail(
        **summary.model_dump(),
        node_name=pod.spec.node_name,
        limits=limits,
    )


class KubernetesResourceQuery:
    """ResourceQuery backed by the kubernetes CoreV1Api.

    Config is loaded lazily on first use: in-cluster first, kubeconfig
    fallback (honouring *context*).
    """

    def __init__(self, context=None, core_v1=None):
        self.context = context or None
        self._core_v1 = core_v1
        self._init_lock = threading.Lock()

    def _api(self):
        if self._core_v1 is not None:
            return self._core_v1
        with self._init_lock:
            if self._core_v1 is None:
                try:
                    k8s_config.load_incluster_config()
                except k8s_config.ConfigException:
                    try:
                        k8s_config.load_kube_config(context=self.context)
                    except (k8s_config.ConfigException, OSError) as e:
                        raise ResourceQueryError(f"failed to get kubernetes config: {e}") from e
                self._core_v1 = k8s_client.CoreV1Api()
        return self._core_v1

    @staticmethod
    def _raise(e, what):
        if isinstance(e, ApiException) and e.status == 404:
            raise ResourceNotFound(f"{what} not found") from e
        reason = getattr(e, "reason", None) or str(e)
        raise ResourceQueryError(f"failed to get {what}: {reason}") from e

    def list_pods(self, namespace):
        try:
            pods = self._api().list_namespaced_pod(namespace=namespace)
        except ApiException as e:
            self._raise(e, f"pods in namespace {namespace}")
        return [pod_summary_from_api(p) for p in pods.items]

    def get_pod(self, name, namespace):
        try:
            pod = self._api().read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            self._raise(e, f"pod {namespace}/{name}")
        return pod_detail_from_api(pod)

    def get_logs(self, pod, container, namespace, tail_lines=50):
        kwargs = {"name": pod, "namespace": namespace}
        if container:
            kwargs["container"] = container
        if tail_lines and tail_lines > 0:
            kwargs["tail_lines"] = tail_lines
        try:
            return self._api().read_namespaced_pod_log(**kwargs) or ""
        except ApiException as e:
            self._raise(e, f"logs for pod {namespace}/{pod}")

    def get_events(self, namespace):
        try:
            events = self._api().list_namespaced_event(namespace=namespace)
        except ApiException as e:
            self._raise(e, f"events in namespace {namespace}")
        result = []
        for ev in events.items:
            obj = getattr(ev, "involved_object", None)
            involved = f"{obj.kind}/{obj.name}" if obj is not None and obj.kind else ""
            result.append(Event(
                type=ev.type or "",
                reason=ev.reason or "",
                message=ev.message or "",
                involved_object=involved,
            ))
        return result
