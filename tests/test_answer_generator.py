from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, APITimeoutError

from app.config import Settings
from app.core.errors import ConfigurationError, UpstreamError
from app.services.answer_generator import AnswerGenerator
from tests.conftest import FakeCompletions, FakeOpenAI, completion

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def make_generator(completions: FakeCompletions, **kwargs) -> AnswerGenerator:
    return AnswerGenerator(api_key="sk-test", client=FakeOpenAI(completions), **kwargs)


@pytest.mark.parametrize("api_key", [None, "", "   "])
def test_missing_api_key_is_configuration_error(api_key):
    with pytest.raises(ConfigurationError):
        AnswerGenerator(api_key=api_key)


def test_from_settings_without_key_fails_fast(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        AnswerGenerator.from_settings(Settings())


def test_generate_sends_system_history_then_query(generator, completions):
    history = [
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello! How can I help?"},
    ]

    answer = generator.generate("SYSTEM", history, "What time is check-in?")

    assert answer == "Check-in is at 3pm."
    call = completions.calls[0]
    assert call["messages"] == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello! How can I help?"},
        {"role": "user", "content": "What time is check-in?"},
    ]


def test_sampling_controls_are_fixed_per_call():
    completions = FakeCompletions()
    generator = make_generator(completions, model="gpt-test", temperature=0.7, max_tokens=500, timeout=12)

    generator.generate("SYSTEM", [], "first")
    generator.generate("SYSTEM", [], "second")

    for call in completions.calls:
        assert call["model"] == "gpt-test"
        assert call["temperature"] == 0.7
        assert call["max_tokens"] == 500
        assert call["timeout"] == 12
        assert "stream" not in call


@pytest.mark.parametrize(
    "error",
    [
        APIStatusError(
            "Service unavailable",
            response=httpx.Response(503, request=REQUEST),
            body={"error": {"message": "overloaded"}},
        ),
        APITimeoutError(request=REQUEST),
        APIConnectionError(request=REQUEST),
    ],
)
def test_api_failures_become_upstream_errors(error):
    completions = FakeCompletions(error=error)
    generator = make_generator(completions)

    with pytest.raises(UpstreamError):
        generator.generate("SYSTEM", [], "hello")

    assert len(completions.calls) == 1


@pytest.mark.parametrize(
    "response",
    [
        SimpleNamespace(choices=[]),
        SimpleNamespace(choices=None),
        SimpleNamespace(),
        SimpleNamespace(choices=[SimpleNamespace(message=None)]),
        completion(None),
    ],
)
def test_malformed_payload_is_upstream_error(response):
    generator = make_generator(FakeCompletions(response=response))

    with pytest.raises(UpstreamError):
        generator.generate("SYSTEM", [], "hello")
