"""Provider gateway tests: mock backend, factory, and HTTP/SDK backends with patched transports."""

import pytest
import requests
from unittest.mock import MagicMock, patch

from kubepilot.errors import (
    MissingCredential,
    ProviderError,
    ProviderNotImplemented,
    ProviderUnavailable,
    UnsupportedProvider,
)
from kubepilot.models import GenerationOptions, GenerationResponse
from kubepilot.providers import (
    AIProvider,
    AnthropicProvider,
    MockProvider,
    OllamaProvider,
    OpenAIProvider,
    default_options,
    extract_json,
    new_provider,
)


def _http_response(status=200, payload=None, text=""):
    r = MagicMock()
    r.status_code = status
    r.ok = status < 400
    r.text = text
    r.json.return_value = payload if payload is not None else {}
    return r


class TestDefaults:
    def test_default_options(self):
        opts = default_options()
        assert opts.temperature == 0.7
        assert opts.max_tokens == 2000
        assert opts.model == ""

    def test_extract_json_largest_block(self):
        assert extract_json('noise {"a": {"b": 1}} trailing') == {"a": {"b": 1}}

    def test_extract_json_none(self):
        assert extract_json("no braces here") is None
        assert extract_json("{not json}") is None
        assert extract_json("") is None


class TextOnlyProvider(AIProvider):
    def complete(self, request):
        return GenerationResponse(content="plain", model="text-only")

    def name(self):
        return "text-only"


class TestBaseProvider:
    def test_structured_not_implemented(self):
        with pytest.raises(ProviderNotImplemented):
            TextOnlyProvider().generate_structured("q")

    def test_not_implemented_is_recoverable_provider_error(self):
        with pytest.raises(ProviderError):
            TextOnlyProvider().generate_structured("q")

    def test_generate_uses_default_options(self):
        assert TextOnlyProvider().generate("q").content == "plain"


class TestMockProvider:
    """The mock backend is deterministic and keyword-triggered."""

    def test_restart_answer(self):
        r = MockProvider().generate("please restart the broken pod")
        assert "rollout restart" in r.content
        assert r.model == "mock-v1"
        assert r.finish_reason == "stop"

    def test_diagnose_answer(self):
        r = MockProvider().generate("diagnose my app")
        assert "CrashLoopBackOff" in r.content

    def test_crashloop_answer(self):
        r = MockProvider().generate("why CrashLoop?")
        assert "CrashLoopBackOff" in r.content

    def test_scale_answer(self):
        r = MockProvider().generate("scale the web tier")
        assert "kubectl scale deployment" in r.content

    def test_generic_answer_echoes_prompt(self):
        r = MockProvider().generate("hello there")
        assert r.content == "Mock AI response for prompt: hello there"

    def test_restart_requires_pod(self):
        r = MockProvider().generate("restart the node")
        assert "rollout restart" not in r.content

    def test_token_estimate(self):
        r = MockProvider().generate("hello")
        assert r.tokens_used == len(r.content) // 4

    def test_deterministic(self):
        p = MockProvider()
        assert p.generate("scale it").content == p.generate("scale it").content

    def test_structured_plan(self):
        obj = MockProvider().generate_structured("make a plan to scale")
        assert obj["commands"][0]["command"].startswith("kubectl scale")
        assert obj["requires_confirmation"] is True

    def test_structured_generic(self):
        obj = MockProvider().generate_structured("hello")
        assert obj == {"message": "Mock structured response", "status": "success"}

    def test_name(self):
        assert MockProvider().name() == "mock"


class TestNewProvider:
    """Factory selection and credential checks."""

    def test_mock(self):
        assert isinstance(new_provider("mock"), MockProvider)

    def test_case_insensitive(self):
        assert isinstance(new_provider("  MOCK "), MockProvider)

    def test_ollama_needs_no_key(self):
        p = new_provider("ollama", base_url="http://gpu-box:11434/")
        assert isinstance(p, OllamaProvider)
        assert p.base_url == "http://gpu-box:11434"
        assert p.model == "llama3"

    def test_openai_missing_key(self):
        with pytest.raises(MissingCredential):
            new_provider("openai")

    def test_anthropic_missing_key(self):
        with pytest.raises(MissingCredential):
            new_provider("anthropic", api_key="")

    def test_anthropic_with_key(self):
        p = new_provider("anthropic", api_key="sk-ant-test", model="claude-x")
        assert isinstance(p, AnthropicProvider)
        assert p.model == "claude-x"

    def test_unknown(self):
        with pytest.raises(UnsupportedProvider):
            new_provider("gemini")

    def test_missing_credential_is_provider_error(self):
        with pytest.raises(ProviderError):
            new_provider("openai", api_key="")


class TestOpenAIProvider:
    """OpenAI backend with an injected client."""

    def _client(self, content="hi", finish_reason="stop", total_tokens=12):
        client = MagicMock()
        choice = MagicMock()
        choice.message.content = content
        choice.finish_reason = finish_reason
        resp = MagicMock()
        resp.choices = [choice]
        resp.model = "gpt-4"
        resp.usage.total_tokens = total_tokens
        client.chat.completions.create.return_value = resp
        return client

    def test_complete(self):
        client = self._client(content="  kubectl get pods  ")
        p = OpenAIProvider(api_key="", client=client)
        r = p.generate("list pods")
        assert r.content == "kubectl get pods"
        assert r.tokens_used == 12
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4"
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 2000
        assert kwargs["messages"][-1] == {"role": "user", "content": "list pods"}

    def test_options_forwarded(self):
        client = self._client()
        p = OpenAIProvider(api_key="sk-x", client=client)
        opts = GenerationOptions(
            temperature=0.1, max_tokens=50, model="gpt-4o",
            system_prompt="be brief", stop_sequences=("END",),
        )
        p.generate("q", opts)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["stop"] == ["END"]
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}

    def test_sdk_error_becomes_unavailable(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("connection reset")
        p = OpenAIProvider(api_key="sk-x", client=client)
        with pytest.raises(ProviderUnavailable):
            p.generate("q")

    def test_empty_choices_becomes_unavailable(self):
        client = self._client()
        client.chat.completions.create.return_value.choices = []
        p = OpenAIProvider(api_key="sk-x", client=client)
        with pytest.raises(ProviderUnavailable):
            p.generate("q")
        with pytest.raises(ProviderUnavailable):
            p.generate_structured("q")

    def test_structured(self):
        client = self._client(content='{"status": "ok"}')
        p = OpenAIProvider(api_key="sk-x", client=client)
        assert p.generate_structured("q") == {"status": "ok"}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_structured_unparsable(self):
        client = self._client(content="not json")
        p = OpenAIProvider(api_key="sk-x", client=client)
        with pytest.raises(ProviderError):
            p.generate_structured("q")


class TestAnthropicProvider:
    """Anthropic backend with requests patched."""

    @patch("kubepilot.providers.requests.post")
    def test_complete(self, mock_post):
        mock_post.return_value = _http_response(payload={
            "model": "claude-x",
            "content": [{"type": "text", "text": "Hello "}, {"type": "text", "text": "world"}],
            "usage": {"input_tokens": 3, "output_tokens": 4},
            "stop_reason": "end_turn",
        })
        p = AnthropicProvider(api_key="sk-ant-test")
        r = p.generate("hi")
        assert r.content == "Hello world"
        assert r.tokens_used == 7
        assert r.finish_reason == "end_turn"
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["x-api-key"] == "sk-ant-test"
        assert headers["anthropic-version"] == "2023-06-01"

    @patch("kubepilot.providers.requests.post")
    def test_unauthorized(self, mock_post):
        mock_post.return_value = _http_response(status=401, text="invalid x-api-key")
        with pytest.raises(MissingCredential):
            AnthropicProvider(api_key="bad").generate("hi")

    @patch("kubepilot.providers.requests.post")
    def test_server_error(self, mock_post):
        mock_post.return_value = _http_response(status=529, text="overloaded")
        with pytest.raises(ProviderUnavailable):
            AnthropicProvider(api_key="k").generate("hi")

    @patch("kubepilot.providers.requests.post")
    def test_network_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ProviderUnavailable):
            AnthropicProvider(api_key="k").generate("hi")

    @patch("kubepilot.providers.requests.post")
    def test_structured_extracts_json(self, mock_post):
        mock_post.return_value = _http_response(payload={
            "content": [{"type": "text", "text": 'Sure: {"answer": 42}'}],
        })
        obj = AnthropicProvider(api_key="k").generate_structured("q", schema={"answer": "int"})
        assert obj == {"answer": 42}
        sent = mock_post.call_args.kwargs["json"]["messages"][0]["content"]
        assert "JSON object" in sent
        assert "schema" in sent


class TestOllamaProvider:
    """Ollama backend with requests patched."""

    @patch("kubepilot.providers.requests.post")
    def test_complete(self, mock_post):
        mock_post.return_value = _http_response(payload={
            "model": "llama3",
            "response": "pods are fine",
            "prompt_eval_count": 10,
            "eval_count": 5,
            "done_reason": "stop",
        })
        r = OllamaProvider().generate("status?")
        assert r.content == "pods are fine"
        assert r.tokens_used == 15
        url = mock_post.call_args.args[0]
        assert url == "http://localhost:11434/api/generate"
        assert mock_post.call_args.kwargs["json"]["stream"] is False

    @patch("kubepilot.providers.requests.post")
    def test_unreachable(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(ProviderUnavailable) as exc_info:
            OllamaProvider().generate("status?")
        assert "localhost:11434" in str(exc_info.value)

    @patch("kubepilot.providers.requests.post")
    def test_http_error(self, mock_post):
        mock_post.return_value = _http_response(status=404, text="model not found")
        with pytest.raises(ProviderUnavailable):
            OllamaProvider(model="missing").generate("status?")
