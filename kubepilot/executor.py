"""Executor abstraction and plan execution.

Commands run in plan order. Failures are collected into the result's error
list and never stop the remaining commands.
"""

import shlex
import logging
import subprocess
from abc import ABC, abstractmethod

from kubepilot.logging_config import log_event
from kubepilot.models import ExecutionResult

logger = logging.getLogger("kubepilot")

DEFAULT_COMMAND_TIMEOUT = 30
DEFAULT_MAX_OUTPUT_CHARS = 8000
DRY_RUN_PREFIX = "[DRY-RUN]"
ALLOWED_BINARY = "kubectl"


# --- Executor ABC ---

class Executor(ABC):
    """Strategy interface for command execution."""

    @abstractmethod
    def execute(self, command, timeout=None):
        """Returns (output, status).

        status is "success" or a failure token ("exit_<code>", "timeout",
        "error").
        """
        ...

    def cleanup(self):
        pass


# --- LocalExecutor ---

class LocalExecutor(Executor):
    """Runs kubectl on the local host via subprocess (no shell).

    Any other program is refused with status "blocked".
    """

    def __init__(self, timeout=None, max_output_chars=None):
        self.timeout = timeout or DEFAULT_COMMAND_TIMEOUT
        self.max_output_chars = max_output_chars or DEFAULT_MAX_OUTPUT_CHARS

    def execute(self, command, timeout=None):
        timeout = timeout if timeout is not None else self.timeout

        # Placeholder commands document intent only
        if command.strip().startswith("#"):
            return "(Placeholder - not executed)", "success"

        try:
            argv = shlex.split(command)
        except ValueError as e:
            return f"Error: could not parse command: {e}", "error"

        if not argv or argv[0] != ALLOWED_BINARY:
            program = argv[0] if argv else "(empty)"
            logger.warning(f"Blocked non-kubectl command: {command}")
            return f"BLOCKED: only {ALLOWED_BINARY} commands are executed, got '{program}'", "blocked"

        try:
            result = subprocess.run(
                argv, capture_output=True, timeout=timeout,
                encoding="utf-8", errors="replace",
            )
        except subprocess.TimeoutExpired:
            return f"Error: Command timed out after {timeout} seconds.", "timeout"
        except OSError as e:
            return f"Error executing command: {str(e)}", "error"

        output = (result.stdout or "") + (result.stderr or "")
        if not output.strip():
            output = "(No output)"
        elif len(output) > self.max_output_chars:
            output = output[:self.max_output_chars] + f"\n... (truncated, {len(output)} chars total)"

        status = "success" if result.returncode == 0 else f"exit_{result.returncode}"
        return output, status


# --- Plan execution ---

def run_plan(plan, executor: Executor, gate=None, approve_unsafe=False):
    """Execute *plan* command by command.

    In a dry-run plan, commands that carry their own dry_run flag are recorded
    as previews; a command with dry_run=False is a forced command and runs.
    Commands marked unsafe are refused unless *approve_unsafe* is set.
    When *gate* is given, denied commands are recorded as errors and skipped.
    """
    result = ExecutionResult()

    for cmd in plan.commands:
        if plan.dry_run and cmd.dry_run:
            result.executed_commands.append(f"{DRY_RUN_PREFIX} {cmd.command}")
            continue

        if not cmd.safe and not approve_unsafe:
            result.errors.append(f"{cmd.command}: refused, unsafe command not approved")
            log_event("command_refused", {"command": cmd.command, "description": cmd.description})
            continue

        if gate is not None:
            verdict = gate.validate(cmd.command)
            if not verdict.allowed:
                reasons = "; ".join(v.message for v in verdict.violations)
                result.errors.append(f"{cmd.command}: denied by policy ({reasons})")
                log_event("command_denied", {
                    "command": cmd.command,
                    "violations": [v.policy for v in verdict.violations],
                })
                continue

        output, status = executor.execute(cmd.command)
        result.executed_commands.append(cmd.command)
        if status != "success":
            logger.warning(f"Command failed ({status}): {cmd.command}")
            result.errors.append(f"{cmd.command}: {status}: {output}")

    log_event("plan_executed", {
        "summary": plan.summary,
        "dry_run": plan.dry_run,
        "executed": result.executed_commands,
        "errors": len(result.errors),
    })
    return result
