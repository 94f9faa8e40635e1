"""Explain mode: AI explanations of pod logs, events, resources and concepts."""

import logging

from kubepilot.errors import ResourceNotFound, ResourceQueryError
from kubepilot.models import Explanation, GenerationOptions
from kubepilot.prompts import (
    build_concept_prompt,
    build_events_prompt,
    build_logs_prompt,
    build_resource_prompt,
)
from kubepilot.providers import AIProvider
from kubepilot.redaction import redact_text
from kubepilot.resources import ResourceQuery

logger = logging.getLogger("kubepilot")

LOG_TAIL_LINES = 50
MAX_EVENTS = 10


class Explainer:
    """Routes a query to the right explanation and asks the AI backend."""

    def __init__(self, provider: AIProvider, resources: ResourceQuery, namespace="default",
                 options: GenerationOptions | None = None):
        self.provider = provider
        self.resources = resources
        self.namespace = namespace or "default"
        self.options = options

    def explain(self, query: str) -> Explanation:
        query_lower = query.lower()
        if "logs" in query_lower:
            answer = self._explain_logs(query)
        elif "events" in query_lower:
            answer = self._explain_events()
        elif "pod" in query_lower or "deployment" in query_lower:
            answer = self._ask(build_resource_prompt(query))
        else:
            answer = self._ask(build_concept_prompt(query))

        return Explanation(
            query=query,
            answer=answer,
            related_commands=extract_commands(answer),
            tip=tip_for(query),
        )

    def _ask(self, prompt):
        return self.provider.generate(prompt, self.options).content

    def _explain_logs(self, query):
        words = query.split()
        pod_name = ""
        for i, word in enumerate(words):
            if word.lower() == "logs" and i + 1 < len(words):
                pod_name = words[i + 1]
                break
        if not pod_name:
            return "Please specify a pod name. Example: explain logs mypod"

        try:
            logs = self.resources.get_logs(pod_name, None, self.namespace, LOG_TAIL_LINES)
        except (ResourceNotFound, ResourceQueryError) as e:
            logger.warning(f"Could not retrieve logs for {pod_name}: {e}")
            return f"Could not retrieve logs: {e}"

        return self._ask(build_logs_prompt(pod_name, redact_text(logs)))

    def _explain_events(self):
        events = self.resources.get_events(self.namespace)
        lines = [f"Recent events in namespace {self.namespace}:", ""]
        for event in events[:MAX_EVENTS]:
            lines.append(f"- [{event.type}] {event.reason}: {event.message}")
        return self._ask(build_events_prompt("\n".join(lines)))


def extract_commands(content):
    """Lines of *content* that start with kubectl."""
    commands = []
    for line in content.splitlines():
        trimmed = line.strip()
        if trimmed.startswith("kubectl"):
            commands.append(trimmed)
    return commands


def tip_for(query):
    query_lower = query.lower()
    if "logs" in query_lower:
        return "Use -f flag to follow logs in real-time: kubectl logs -f <pod>"
    if "events" in query_lower:
        return "Filter events by type with --field-selector: kubectl get events --field-selector type=Warning"
    if "pod" in query_lower:
        return "Use 'kubectl describe pod' to see detailed information including events"
    return "Use 'kubectl explain <resource>' to see detailed documentation"
