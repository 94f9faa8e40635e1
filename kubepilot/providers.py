"""AI provider gateway: one request/response boundary over interchangeable backends.

Backends:
- mock       deterministic, offline, keyword-triggered canned answers
- openai     OpenAI chat completions via the openai SDK
- anthropic  Anthropic Messages HTTP API via requests
- ollama     local Ollama /api/generate via requests

Every backend failure is raised as a ProviderError subclass so callers can
treat it as an ordinary recoverable failure.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import requests
from openai import OpenAI

from kubepilot.errors import (
    MissingCredential,
    ProviderError,
    ProviderNotImplemented,
    ProviderUnavailable,
    UnsupportedProvider,
)
from kubepilot.models import GenerationOptions, GenerationRequest, GenerationResponse

logger = logging.getLogger("kubepilot")

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_TIMEOUT = 60.0

STRUCTURED_INSTRUCTION = (
    "Respond ONLY with a single JSON object and nothing else."
)


def default_options() -> GenerationOptions:
    """Default generation options: temperature 0.7, 2000 max tokens."""
    return GenerationOptions()


def extract_json(text):
    """Grab the largest {...} block from the text and parse it."""
    if not text:
        return None
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        return None
    try:
        obj = json.loads(text[first : last + 1])
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


# --- Provider ABC ---

class AIProvider(ABC):
    """Strategy interface for AI text generation."""

    def generate(self, prompt: str, options: GenerationOptions | None = None) -> GenerationResponse:
        """Generate free text for *prompt*.

        Raises:
            ProviderError: any backend failure (unavailable, missing key, ...).
        """
        request = GenerationRequest(prompt=prompt, options=options or default_options())
        return self.complete(request)

    def generate_structured(self, prompt: str, schema: Any = None,
                            options: GenerationOptions | None = None) -> dict:
        """Generate a JSON object for *prompt*.

        *schema* is an optional JSON-schema-like hint appended to the prompt.
        """
        request = GenerationRequest(prompt=prompt, options=options or default_options())
        return self.complete_structured(request, schema)

    @abstractmethod
    def complete(self, request: GenerationRequest) -> GenerationResponse:
        ...

    def complete_structured(self, request: GenerationRequest, schema: Any = None) -> dict:
        raise ProviderNotImplemented(f"{self.name()} does not support structured generation")

    def _complete_json(self, request: GenerationRequest, schema: Any = None) -> dict:
        """Structured generation over free text: ask for JSON, extract the object."""
        prompt = f"{request.prompt}\n\n{STRUCTURED_INSTRUCTION}"
        if schema is not None:
            prompt += f"\nThe object must match this schema:\n{json.dumps(schema, default=str)}"
        response = self.complete(GenerationRequest(prompt=prompt, options=request.options))
        obj = extract_json(response.content)
        if obj is None:
            raise ProviderError(f"{self.name()} returned no parsable JSON object")
        return obj

    @abstractmethod
    def name(self) -> str:
        ...


# --- Mock ---

_MOCK_RESTART = """To restart pods, I recommend using a rolling restart approach:

1. kubectl rollout restart deployment <deployment-name> -n <namespace>

This will gracefully restart all pods in the deployment without downtime.

Alternative: Delete specific pods to trigger recreation:
kubectl delete pod <pod-name> -n <namespace>

The scheduler will automatically create new pods to replace them."""

_MOCK_DIAGNOSE = """Based on the diagnostics:

Issue: CrashLoopBackOff detected
Root Cause: Application is likely failing at startup due to:
  - Missing environment variables
  - Database connection failure
  - Invalid configuration

Recommended Actions:
1. Check logs: kubectl logs <pod-name> -n <namespace>
2. Describe pod: kubectl describe pod <pod-name> -n <namespace>
3. Verify configmaps and secrets are mounted correctly
4. Check resource limits - pod may be OOMKilled"""

_MOCK_SCALE = """To scale the deployment:

kubectl scale deployment <deployment-name> --replicas=<count> -n <namespace>

This will adjust the number of pod replicas to the specified count.
Use 'kubectl get deployment' to verify the scaling operation."""


class MockProvider(AIProvider):
    """Deterministic backend for offline use and tests."""

    MODEL = "mock-v1"

    def complete(self, request: GenerationRequest) -> GenerationResponse:
        content = self._canned_response(request.prompt)
        return GenerationResponse(
            content=content,
            model=self.MODEL,
            tokens_used=len(content) // 4,
            finish_reason="stop",
        )

    def complete_structured(self, request: GenerationRequest, schema: Any = None) -> dict:
        prompt_lower = request.prompt.lower()
        if "kubectl" in prompt_lower or "plan" in prompt_lower:
            return self._canned_plan(prompt_lower)
        return {"message": "Mock structured response", "status": "success"}

    def name(self) -> str:
        return "mock"

    @staticmethod
    def _canned_response(prompt):
        prompt_lower = prompt.lower()
        if "restart" in prompt_lower and "pod" in prompt_lower:
            return _MOCK_RESTART
        if "diagnose" in prompt_lower or "crashloop" in prompt_lower:
            return _MOCK_DIAGNOSE
        if "scale" in prompt_lower:
            return _MOCK_SCALE
        return f"Mock AI response for prompt: {prompt}"

    @staticmethod
    def _canned_plan(prompt_lower):
        if "restart" in prompt_lower:
            command = {
                "command": "kubectl rollout restart deployment myapp -n default",
                "description": "Restart deployment pods with rolling update",
                "safe": True,
                "dry_run": True,
            }
        elif "scale" in prompt_lower:
            command = {
                "command": "kubectl scale deployment myapp --replicas=5 -n default",
                "description": "Scale deployment to 5 replicas",
                "safe": True,
                "dry_run": True,
            }
        else:
            command = {
                "command": "kubectl get pods -n default",
                "description": "List pods in default namespace",
                "safe": True,
                "dry_run": False,
            }
        return {
            "summary": "Generated execution plan",
            "commands": [command],
            "warnings": [],
            "requires_confirmation": True,
        }


# --- OpenAI ---

class OpenAIProvider(AIProvider):
    """OpenAI chat completions backend."""

    DEFAULT_MODEL = "gpt-4"

    def __init__(self, api_key, model=None, base_url=None, timeout=None, client=None):
        if not api_key and client is None:
            raise MissingCredential("OpenAI API key is required")
        self.model = model or self.DEFAULT_MODEL
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            timeout=timeout or DEFAULT_TIMEOUT,
        )

    @staticmethod
    def _first_choice(r):
        choices = getattr(r, "choices", None)
        if not choices:
            raise ProviderUnavailable("openai returned no choices")
        return choices[0]

    def _messages(self, request):
        messages = []
        if request.options.system_prompt:
            messages.append({"role": "system", "content": request.options.system_prompt})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def complete(self, request: GenerationRequest) -> GenerationResponse:
        model = request.options.model or self.model
        kwargs = {
            "model": model,
            "messages": self._messages(request),
            "temperature": request.options.temperature,
            "max_tokens": request.options.max_tokens,
        }
        if request.options.stop_sequences:
            kwargs["stop"] = list(request.options.stop_sequences)
        try:
            r = self.client.chat.completions.create(**kwargs)
        except Exception as e:
            raise ProviderUnavailable(f"openai request failed: {e}") from e

        choice = self._first_choice(r)
        usage = getattr(r, "usage", None)
        return GenerationResponse(
            content=(choice.message.content or "").strip(),
            model=getattr(r, "model", None) or model,
            tokens_used=getattr(usage, "total_tokens", 0) or 0,
            finish_reason=choice.finish_reason or "stop",
        )

    def complete_structured(self, request: GenerationRequest, schema: Any = None) -> dict:
        model = request.options.model or self.model
        prompt = request.prompt
        if schema is not None:
            prompt += f"\n\nThe JSON object must match this schema:\n{json.dumps(schema, default=str)}"
        messages = [{"role": "system", "content": STRUCTURED_INSTRUCTION}]
        messages.append({"role": "user", "content": prompt})
        try:
            r = self.client.chat.completions.create(
                model=model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=request.options.temperature,
            )
        except Exception as e:
            raise ProviderUnavailable(f"openai request failed: {e}") from e
        obj = extract_json(self._first_choice(r).message.content or "")
        if obj is None:
            raise ProviderError("openai returned no parsable JSON object")
        return obj

    def name(self) -> str:
        return "openai"


# --- Anthropic ---

class AnthropicProvider(AIProvider):
    """Anthropic Messages API backend."""

    DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

    def __init__(self, api_key, model=None, base_url=None, timeout=None):
        if not api_key:
            raise MissingCredential("Anthropic API key is required")
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.url = base_url or ANTHROPIC_URL
        self.timeout = timeout or DEFAULT_TIMEOUT

    def complete(self, request: GenerationRequest) -> GenerationResponse:
        model = request.options.model or self.model
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        body = {
            "model": model,
            "max_tokens": request.options.max_tokens,
            "temperature": request.options.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.options.system_prompt:
            body["system"] = request.options.system_prompt
        if request.options.stop_sequences:
            body["stop_sequences"] = list(request.options.stop_sequences)

        try:
            r = requests.post(self.url, headers=headers, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderUnavailable(f"anthropic request failed: {e}") from e

        if r.status_code == 401:
            raise MissingCredential("anthropic rejected the API key")
        if r.status_code >= 400:
            raise ProviderUnavailable(f"anthropic error {r.status_code}: {r.text[:200]}")

        try:
            data = r.json()
        except ValueError as e:
            raise ProviderUnavailable(f"anthropic returned invalid JSON: {e}") from e

        # content is a list of blocks; concatenate text blocks
        text = "".join(
            block.get("text", "")
            for block in (data.get("content") or [])
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        return GenerationResponse(
            content=text.strip(),
            model=data.get("model", model),
            tokens_used=int(usage.get("input_tokens", 0)) + int(usage.get("output_tokens", 0)),
            finish_reason=data.get("stop_reason") or "stop",
        )

    def complete_structured(self, request: GenerationRequest, schema: Any = None) -> dict:
        return self._complete_json(request, schema)

    def name(self) -> str:
        return "anthropic"


# --- Ollama ---

class OllamaProvider(AIProvider):
    """Local Ollama backend (/api/generate, stream disabled)."""

    DEFAULT_MODEL = "llama3"

    def __init__(self, model=None, base_url=None, timeout=None):
        self.model = model or self.DEFAULT_MODEL
        self.base_url = (base_url or DEFAULT_OLLAMA_URL).rstrip("/")
        self.timeout = timeout or DEFAULT_TIMEOUT

    def complete(self, request: GenerationRequest) -> GenerationResponse:
        model = request.options.model or self.model
        body = {
            "model": model,
            "prompt": request.prompt,
            "stream": False,
            "options": {
                "temperature": request.options.temperature,
                "num_predict": request.options.max_tokens,
            },
        }
        if request.options.system_prompt:
            body["system"] = request.options.system_prompt
        if request.options.stop_sequences:
            body["options"]["stop"] = list(request.options.stop_sequences)

        try:
            r = requests.post(f"{self.base_url}/api/generate", json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderUnavailable(f"ollama server unreachable at {self.base_url}: {e}") from e

        if not r.ok:
            raise ProviderUnavailable(f"ollama error {r.status_code}: {r.text[:200]}")

        try:
            data = r.json()
        except ValueError as e:
            raise ProviderUnavailable(f"ollama returned invalid JSON: {e}") from e

        return GenerationResponse(
            content=(data.get("response") or "").strip(),
            model=data.get("model", model),
            tokens_used=int(data.get("prompt_eval_count", 0)) + int(data.get("eval_count", 0)),
            finish_reason=data.get("done_reason") or "stop",
        )

    def complete_structured(self, request: GenerationRequest, schema: Any = None) -> dict:
        return self._complete_json(request, schema)

    def name(self) -> str:
        return "ollama"


# --- Factory ---

def new_provider(provider, api_key="", model="", base_url="", timeout=None) -> AIProvider:
    """Create a provider by identifier.

    Raises:
        UnsupportedProvider: unknown identifier.
        MissingCredential: openai/anthropic selected without an API key.
    """
    kind = (provider or "").strip().lower()
    if kind == "openai":
        return OpenAIProvider(api_key, model=model, base_url=base_url, timeout=timeout)
    if kind == "anthropic":
        return AnthropicProvider(api_key, model=model, base_url=base_url, timeout=timeout)
    if kind == "ollama":
        return OllamaProvider(model=model, base_url=base_url, timeout=timeout)
    if kind == "mock":
        return MockProvider()
    raise UnsupportedProvider(f"unsupported provider: {provider}")
