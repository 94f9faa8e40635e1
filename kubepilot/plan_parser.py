"""Line-marker plan protocol parser.

The AI backend answers plan prompts in a small line-oriented format:

    SUMMARY: <text>
    COMMANDS:
    - <command> | <description> | <true|false>
    WARNINGS:
    - <warning>

The scanner walks lines through three states (HEADER -> IN_COMMANDS /
IN_WARNINGS). Malformed lines are dropped, never raised. Callers only see
parse_plan_response(); a schema-validated JSON format could replace it
without touching them.
"""

from dataclasses import dataclass, field
from enum import Enum

from kubepilot.models import Command

SUMMARY_MARKER = "SUMMARY:"
COMMANDS_MARKER = "COMMANDS:"
WARNINGS_MARKER = "WARNINGS:"
COMMAND_PREFIX = "kubectl"
FIELD_DELIMITER = "|"


class ScanState(Enum):
    HEADER = "header"
    IN_COMMANDS = "in_commands"
    IN_WARNINGS = "in_warnings"


@dataclass
class ParsedResponse:
    summary: str | None = None
    commands: list[Command] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_command_line(line, dry_run=False):
    """Split a command line on '|' into a Command, or None if malformed.

    The third field marks the command unsafe only if it contains "false".
    """
    parts = line.split(FIELD_DELIMITER)
    if len(parts) < 2:
        return None
    text = parts[0].strip()
    if text.startswith("-"):
        text = text[1:].strip()
    if not text:
        return None
    safe = not (len(parts) >= 3 and "false" in parts[2].lower())
    return Command(
        command=text,
        description=parts[1].strip(),
        safe=safe,
        dry_run=dry_run,
    )


def parse_plan_response(text, dry_run=False) -> ParsedResponse:
    """Scan an AI free-text response into summary, commands and warnings."""
    parsed = ParsedResponse()
    state = ScanState.HEADER

    for raw in (text or "").splitlines():
        line = raw.strip()

        if line.startswith(SUMMARY_MARKER):
            parsed.summary = line[len(SUMMARY_MARKER):].strip()
            continue
        if line.startswith(COMMANDS_MARKER):
            state = ScanState.IN_COMMANDS
            continue
        if line.startswith(WARNINGS_MARKER):
            state = ScanState.IN_WARNINGS
            continue

        if state is ScanState.IN_COMMANDS:
            if line.startswith("-") or line.startswith(COMMAND_PREFIX):
                command = parse_command_line(line, dry_run=dry_run)
                if command is not None:
                    parsed.commands.append(command)
        elif state is ScanState.IN_WARNINGS:
            if line.startswith("-"):
                warning = line[1:].strip()
                if warning:
                    parsed.warnings.append(warning)

    return parsed
