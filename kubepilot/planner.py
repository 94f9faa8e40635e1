"""Plan generation: operator intent -> prompt -> AI free text -> Plan."""

import logging

from kubepilot.errors import GenerationFailed, ProviderError
from kubepilot.logging_config import log_event
from kubepilot.models import Command, GenerationOptions, Plan
from kubepilot.plan_parser import parse_plan_response
from kubepilot.prompts import build_plan_prompt
from kubepilot.providers import AIProvider

logger = logging.getLogger("kubepilot")


class Planner:
    """Translates a natural-language query into a reviewable Plan."""

    def __init__(self, provider: AIProvider, namespace="default", dry_run=True,
                 options: GenerationOptions | None = None):
        self.provider = provider
        self.namespace = namespace or "default"
        self.dry_run = dry_run
        self.options = options

    def generate(self, query: str) -> Plan:
        """Generate an execution plan for *query*.

        Raises:
            GenerationFailed: the provider call failed; no plan is produced.
        """
        prompt = build_plan_prompt(query, self.namespace)
        try:
            response = self.provider.generate(prompt, self.options)
        except ProviderError as e:
            logger.error(f"Plan generation failed ({self.provider.name()}): {e}")
            raise GenerationFailed(f"failed to generate plan: {e}") from e

        plan = self.parse_response(response.content, query)

        log_event("plan_generated", {
            "query": query,
            "namespace": self.namespace,
            "provider": self.provider.name(),
            "model": response.model,
            "commands": [c.command for c in plan.commands],
            "warnings": plan.warnings,
            "dry_run": plan.dry_run,
        })
        return plan

    def parse_response(self, text: str, query: str) -> Plan:
        """Build a Plan from free text; never fails, never returns zero commands."""
        parsed = parse_plan_response(text, dry_run=self.dry_run)

        commands = parsed.commands
        if not commands:
            commands = [Command(
                command=f"# Generated from: {query}",
                description="See AI response for details",
                safe=True,
                dry_run=self.dry_run,
            )]

        return Plan(
            summary=parsed.summary or f"Execution plan for: {query}",
            commands=commands,
            warnings=parsed.warnings,
            requires_auth=any(not c.safe for c in commands),
            dry_run=self.dry_run,
        )
