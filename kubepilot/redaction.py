"""Secret redaction for log entries and for text sent to AI backends."""

import re

REDACT_PLACEHOLDER = "[REDACTED]"

# Patterns that match secrets/credentials in free text.
# Each tuple: (compiled_regex, description_for_testing).
_REDACT_PATTERNS = [
    # --- API keys / tokens (known prefixes) ---
    (re.compile(r"sk-ant-[A-Za-z0-9_-]{20,}"),         "Anthropic API key"),
    (re.compile(r"sk-proj-[A-Za-z0-9_-]{20,}"),       "OpenAI project key"),
    (re.compile(r"sk-[A-Za-z0-9_-]{20,}"),            "OpenAI API key"),
    (re.compile(r"AKIA[0-9A-Z]{16}"),                  "AWS Access Key ID"),
    (re.compile(r"ghp_[A-Za-z0-9]{36,}"),              "GitHub PAT"),
    (re.compile(r"glpat-[A-Za-z0-9_-]{20,}"),          "GitLab PAT"),
    # --- Bearer tokens (Authorization headers, kubectl --token) ---
    (re.compile(r"(?i)(Bearer\s+)[A-Za-z0-9_\-.]{20,}"), "Bearer token"),
    (re.compile(r"--token[= ]\S+"),                     "kubectl --token flag"),
    # --- kubeconfig credential fields ---
    (re.compile(
        r"(?i)\b(?:token|client-key-data|client-certificate-data|password)\s*:\s*\S+"
    ), "kubeconfig credential field"),
    # --- Shell variable assignments with secret-looking names ---
    (re.compile(
        r"(?i)\b(?:export|set)\s+"
        r"[A-Za-z_]*(?:SECRET|TOKEN|PASSWORD|PASSWD|API_?KEY|APIKEY|CREDENTIALS?)"
        r"[A-Za-z_]*"
        r"\s*=\s*"
        r"""('[^']*'|"[^"]*"|\S+)"""
    ), "shell secret assignment"),
    # --- Bare upper-case env assignments (pod env dumps, .env lines) ---
    (re.compile(
        r"\b[A-Z_]*(?:SECRET|TOKEN|PASSWORD|PASSWD|API_?KEY|APIKEY|CREDENTIALS?)"
        r"[A-Z_]*"
        r"\s*=\s*"
        r"""('[^']*'|"[^"]*"|\S+)"""
    ), "env secret assignment"),
    # --- Private key blocks ---
    (re.compile(
        r"-----BEGIN[ A-Z]*PRIVATE KEY-----"
        r"[\s\S]*?"
        r"-----END[ A-Z]*PRIVATE KEY-----"
    ), "private key block"),
]


def redact_text(text):
    """Replace secrets/credentials in *text* with a placeholder."""
    for pattern, _ in _REDACT_PATTERNS:
        text = pattern.sub(REDACT_PLACEHOLDER, text)
    return text


def redact_data(obj):
    """Recursively redact secret values in a dict/list/string."""
    if isinstance(obj, str):
        return redact_text(obj)
    if isinstance(obj, dict):
        return {k: redact_data(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [redact_data(item) for item in obj]
    return obj
