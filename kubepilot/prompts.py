"""Prompt builders for plan generation, remediation and explain mode."""

PLAN_RULES = """You are a Kubernetes expert assistant. Your task is to translate natural language queries into safe kubectl commands.

Rules:
1. Always prefer dry-run commands when possible
2. Never suggest commands that delete critical resources without warning
3. Include explanations for each command
4. Warn about potentially dangerous operations
5. Use the namespace provided in context when applicable
6. Suggest RBAC-safe alternatives when possible

Format your response as:
SUMMARY: <brief summary>
COMMANDS:
- <kubectl command> | <description> | <safe: true/false>

WARNINGS:
- <warning if any>
"""


def build_plan_prompt(query, namespace=None):
    """Rule preamble followed by the per-request namespace and query."""
    namespace = namespace or "default"
    request = (
        f"Namespace: {namespace}\n"
        f"Query: {query}\n\n"
        "Generate a safe execution plan for this query."
    )
    return PLAN_RULES + "\n\n" + request


def build_remediation_prompt(resource_name, issues):
    """List every issue and ask for three remediation steps."""
    lines = [f"Kubernetes diagnostics for resource: {resource_name}", "", "Detected issues:"]
    for issue in issues:
        lines.append(f"- [{issue.severity.value}] {issue.type}: {issue.description}")
    lines.append("")
    lines.append("Provide 3 remediation steps with kubectl commands.")
    return "\n".join(lines)


def build_logs_prompt(pod_name, logs):
    return f"""Analyze these Kubernetes pod logs and explain what's happening:

Pod: {pod_name}
Logs:
{logs}

Provide:
1. A summary of what the application is doing
2. Any errors or warnings present
3. Recommendations if issues are found"""


def build_events_prompt(event_summary):
    return f"""Analyze these Kubernetes events and explain what they mean:

{event_summary}

Provide a summary of cluster activity and any issues that need attention."""


def build_resource_prompt(query):
    return f"""User asked: "{query}"

Explain this Kubernetes resource or concept clearly and concisely.
Include:
1. What the resource does
2. Common use cases
3. Best practices
4. Example kubectl commands"""


def build_concept_prompt(query):
    return f"""Explain this Kubernetes concept or question:

"{query}"

Provide a clear, educational explanation that helps the user understand the concept.
Include practical examples and kubectl commands where relevant."""
