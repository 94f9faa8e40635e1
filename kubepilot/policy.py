"""Policy gate: screens command text before it is previewed or applied.

Rules are data, checked in list order against the lower-cased command text.
A "warn" rule adds a warning and never denies. A "deny" rule adds a
Violation, and any violation denies the command. All rules are evaluated;
effects are cumulative.
"""

from dataclasses import dataclass

from kubepilot.models import ValidationResult, Violation, ViolationSeverity

WARN = "warn"
DENY = "deny"


@dataclass(frozen=True)
class PolicyRule:
    """Predicate -> effect over normalized command text.

    The rule matches when any of *markers* is present and none of *absent*
    is. With per_marker, one effect is produced for each marker found and
    ``{marker}`` in the message is filled in.
    """
    name: str
    markers: tuple[str, ...]
    effect: str
    message: str
    severity: ViolationSeverity = ViolationSeverity.HIGH
    absent: tuple[str, ...] = ()
    per_marker: bool = False

    def matches(self, text):
        """Return the markers that fire on *text* (already lower-cased)."""
        if any(a.lower() in text for a in self.absent):
            return []
        return [m for m in self.markers if m.lower() in text]


DEFAULT_RULES = [
    PolicyRule(
        name="dangerous-operations",
        markers=("delete", "drain", "cordon"),
        effect=WARN,
        message="Potentially dangerous operation detected: {marker}",
        per_marker=True,
    ),
    PolicyRule(
        name="no-privileged-containers",
        markers=("privileged", "hostNetwork"),
        effect=DENY,
        message="Privileged containers are not allowed",
    ),
    PolicyRule(
        name="no-root-containers",
        markers=("runAsUser: 0",),
        effect=DENY,
        message="Running containers as root is not allowed",
    ),
    PolicyRule(
        name="resource-limits",
        markers=("create",),
        absent=("limits",),
        effect=WARN,
        message="No resource limits specified - consider adding limits",
    ),
]


class PolicyGate:
    """Allow/deny decision point for command text."""

    def __init__(self, enabled=True, rules=None):
        self.enabled = enabled
        self.rules = list(DEFAULT_RULES if rules is None else rules)

    def validate(self, command: str) -> ValidationResult:
        if not self.enabled:
            return ValidationResult(allowed=True)

        text = (command or "").lower()
        violations = []
        warnings = []

        for rule in self.rules:
            found = rule.matches(text)
            if not found:
                continue
            messages = (
                [rule.message.format(marker=m) for m in found]
                if rule.per_marker else [rule.message]
            )
            for message in messages:
                if rule.effect == DENY:
                    violations.append(Violation(
                        policy=rule.name,
                        severity=rule.severity,
                        message=message,
                    ))
                else:
                    warnings.append(message)

        return ValidationResult(
            allowed=not violations,
            violations=violations,
            warnings=warnings,
        )

    def review_plan(self, plan) -> list[ValidationResult]:
        """One verdict per plan command, in plan order."""
        return [self.validate(cmd.command) for cmd in plan.commands]
