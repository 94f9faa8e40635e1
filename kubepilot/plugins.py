"""Extension registry: named analyzers that contribute extra diagnostic issues.

Mutations (register/unregister/clear) hold the write lock. Reads and
run_analysis hold the read lock, so analyses may overlap each other but
never a mutation. The lock is not reentrant: an analyzer must not mutate
the registry from inside analyze().
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

from kubepilot.errors import PluginAlreadyRegistered, PluginNotFound, UnknownPlugin
from kubepilot.logging_config import log_event
from kubepilot.models import Issue, Severity

logger = logging.getLogger("kubepilot")


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    def acquire_read(self):
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1

    def release_read(self):
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self):
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True

    def release_write(self):
        with self._cond:
            self._writer = False
            self._cond.notify_all()


# --- Analyzer capability ---

class Analyzer(ABC):
    """A pluggable diagnostic analyzer."""

    name: str = ""
    version: str = "0.0.0"
    description: str = ""

    @abstractmethod
    def analyze(self, resource: Any) -> list[Issue]:
        """Return issues found on *resource* (a PodDetail or PodSummary list)."""
        ...


class PluginRegistry:
    """Concurrency-safe mapping of analyzer name -> analyzer."""

    def __init__(self):
        self._plugins: dict[str, Analyzer] = {}
        self._lock = ReadWriteLock()

    # --- mutations ---

    def register(self, plugin: Analyzer):
        self._lock.acquire_write()
        try:
            if plugin.name in self._plugins:
                raise PluginAlreadyRegistered(f"plugin {plugin.name} is already registered")
            self._plugins[plugin.name] = plugin
        finally:
            self._lock.release_write()
        log_event("plugin_registered", {"name": plugin.name, "version": plugin.version})

    def unregister(self, name: str):
        self._lock.acquire_write()
        try:
            if name not in self._plugins:
                raise PluginNotFound(f"plugin {name} is not registered")
            del self._plugins[name]
        finally:
            self._lock.release_write()
        log_event("plugin_unregistered", {"name": name})

    def clear(self):
        self._lock.acquire_write()
        try:
            self._plugins = {}
        finally:
            self._lock.release_write()

    def install_by_name(self, name: str) -> Analyzer:
        """Register a builtin analyzer by catalog name."""
        factory = BUILTIN_ANALYZERS.get(name)
        if factory is None:
            available = ", ".join(sorted(BUILTIN_ANALYZERS))
            raise UnknownPlugin(f"unknown plugin: {name} (available: {available})")
        plugin = factory()
        self.register(plugin)
        return plugin

    # --- reads ---

    def get(self, name: str) -> Analyzer:
        self._lock.acquire_read()
        try:
            plugin = self._plugins.get(name)
        finally:
            self._lock.release_read()
        if plugin is None:
            raise PluginNotFound(f"plugin {name} not found")
        return plugin

    def list_plugins(self) -> list[Analyzer]:
        self._lock.acquire_read()
        try:
            return list(self._plugins.values())
        finally:
            self._lock.release_read()

    def list_names(self) -> list[str]:
        self._lock.acquire_read()
        try:
            return list(self._plugins)
        finally:
            self._lock.release_read()

    def count(self) -> int:
        self._lock.acquire_read()
        try:
            return len(self._plugins)
        finally:
            self._lock.release_read()

    def exists(self, name: str) -> bool:
        self._lock.acquire_read()
        try:
            return name in self._plugins
        finally:
            self._lock.release_read()

    def run_analysis(self, resource: Any) -> list[Issue]:
        """Run every analyzer; a failing analyzer is logged and skipped."""
        issues: list[Issue] = []
        self._lock.acquire_read()
        try:
            for plugin in self._plugins.values():
                try:
                    issues.extend(plugin.analyze(resource) or [])
                except Exception as e:
                    logger.error(f"Plugin {plugin.name} analysis failed: {e}", exc_info=True)
                    log_event("plugin_analysis_failed", {"name": plugin.name, "error": str(e)})
        finally:
            self._lock.release_read()
        return issues


# --- Builtin analyzers ---

def _pods_of(resource):
    if resource is None:
        return []
    if isinstance(resource, (list, tuple)):
        return list(resource)
    return [resource]


class RestartStormAnalyzer(Analyzer):
    """Flags containers restarting more often than a threshold."""

    name = "restart-storm"
    version = "1.0.0"
    description = "Detects containers stuck in a restart storm"

    def __init__(self, threshold=10):
        self.threshold = threshold

    def analyze(self, resource):
        issues = []
        for pod in _pods_of(resource):
            for cs in pod.containers:
                if cs.restart_count > self.threshold:
                    issues.append(Issue(
                        severity=Severity.HIGH,
                        type="RestartStorm",
                        resource=f"{pod.name}/{cs.name}",
                        description=(
                            f"Container {cs.name} restarted {cs.restart_count} times "
                            f"(threshold {self.threshold})"
                        ),
                        details={"plugin": self.name, "restart_count": cs.restart_count},
                    ))
        return issues


class OOMKilledAnalyzer(Analyzer):
    """Flags containers terminated by the kernel OOM killer."""

    name = "oom-killed"
    version = "1.0.0"
    description = "Detects containers killed for exceeding their memory limit"

    def analyze(self, resource):
        issues = []
        for pod in _pods_of(resource):
            for cs in pod.containers:
                if "OOMKilled" in (cs.terminated_reason, cs.last_terminated_reason):
                    issues.append(Issue(
                        severity=Severity.HIGH,
                        type="OOMKilled",
                        resource=f"{pod.name}/{cs.name}",
                        description=f"Container {cs.name} was OOMKilled; raise its memory limit or fix the leak",
                        details={"plugin": self.name},
                    ))
        return issues


class ExampleAnalyzer(RestartStormAnalyzer):
    """Restart-storm detector installed under the name "example"."""

    name = "example"
    description = "Example analyzer: flags containers stuck in a restart storm"


BUILTIN_ANALYZERS = {
    "restart-storm": RestartStormAnalyzer,
    "example": ExampleAnalyzer,
    "oom-killed": OOMKilledAnalyzer,
}
