"""Pydantic Settings for kubepilot configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings

KNOWN_PROVIDERS = ("openai", "anthropic", "ollama", "mock")


class Settings(BaseSettings):
    """All configuration via environment variables (or .env file)."""

    # --- AI Provider ---
    AI_PROVIDER: str = "mock"
    AI_API_KEY: str = ""
    AI_MODEL: str = ""
    AI_BASE_URL: str = ""
    AI_TEMPERATURE: float = 0.7
    AI_MAX_TOKENS: int = 2000
    AI_TIMEOUT: float = 60.0

    # --- Kubernetes ---
    KUBE_NAMESPACE: str = "default"
    KUBE_CONTEXT: str = ""

    # --- Safety ---
    POLICY_ENABLED: bool = True
    DRY_RUN: bool = True

    # --- Extensions ---
    PLUGINS: list[str] = []

    # --- Execution Limits ---
    COMMAND_TIMEOUT: int = 30
    MAX_OUTPUT_CHARS: int = 8000

    # --- API ---
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # --- Logging ---
    LOG_DIR: str = str(Path.home() / ".kubepilot" / "logs")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()


def validate_settings(cfg: Settings | None = None) -> list[str]:
    """Return list of missing or invalid settings. Empty list means all OK."""
    cfg = cfg or settings
    problems = []
    provider = cfg.AI_PROVIDER.lower()
    if provider not in KNOWN_PROVIDERS:
        problems.append(f"AI_PROVIDER (unsupported: {cfg.AI_PROVIDER})")
    elif provider in ("openai", "anthropic") and not cfg.AI_API_KEY:
        problems.append("AI_API_KEY")
    return problems
