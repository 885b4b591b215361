# ABOUTME: Tests the content generator backends with mocked OpenAI and Anthropic clients.
# ABOUTME: Verifies config from the environment, provider errors, and prompt sanitization.

from unittest.mock import AsyncMock, Mock, patch

import openai
import pytest

from src.common.errors import GeneratorError
from src.content.generator import (
    AnthropicGenerator,
    GeneratorConfig,
    OpenAIGenerator,
    StaticGenerator,
    build_generator,
    sanitize_for_prompt,
)


def test_sanitize_for_prompt():
    assert sanitize_for_prompt("line1\nline2\r\n  ignore") == "line1 line2 ignore"
    assert sanitize_for_prompt("x" * 300, max_length=10) == "x" * 10
    assert sanitize_for_prompt(42) == "42"


@patch("src.content.generator.openai.AsyncOpenAI")
def test_openai_generator(mock_openai_class):
    mock_client = Mock()
    mock_openai_class.return_value = mock_client

    mock_response = Mock()
    mock_response.choices = [Mock()]
    mock_response.choices[0].message.content = '{"question": "q"}'

    mock_completion = AsyncMock(return_value=mock_response)
    mock_client.chat.completions.create = mock_completion

    generator = OpenAIGenerator(api_key="test_key", model="gpt-test")
    assert generator.generate("prompt") == '{"question": "q"}'

    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
    mock_openai_class.assert_called_once_with(api_key="test_key")


@patch("src.content.generator.anthropic.AsyncAnthropic")
def test_anthropic_generator(mock_anthropic_class):
    mock_client = Mock()
    mock_anthropic_class.return_value = mock_client

    mock_response = Mock()
    mock_response.content = [Mock()]
    mock_response.content[0].text = '{"question": "claude"}'

    mock_completion = AsyncMock(return_value=mock_response)
    mock_client.messages.create = mock_completion

    generator = AnthropicGenerator(api_key="test_key")
    assert generator.generate("prompt") == '{"question": "claude"}'
    assert mock_completion.called


def test_missing_key_raises(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    with pytest.raises(GeneratorError, match="OPENAI_API_KEY"):
        OpenAIGenerator().generate("prompt")
    with pytest.raises(GeneratorError, match="ANTHROPIC_API_KEY"):
        AnthropicGenerator().generate("prompt")


@patch("src.content.generator.openai.AsyncOpenAI")
def test_provider_error_becomes_generator_error(mock_openai_class):
    mock_client = Mock()
    mock_openai_class.return_value = mock_client
    mock_client.chat.completions.create = AsyncMock(side_effect=openai.OpenAIError("rate limited"))

    with pytest.raises(GeneratorError, match="rate limited"):
        OpenAIGenerator(api_key="test_key").generate("prompt")


@patch("src.content.generator.openai.AsyncOpenAI")
def test_empty_response_raises(mock_openai_class):
    mock_client = Mock()
    mock_openai_class.return_value = mock_client
    mock_response = Mock()
    mock_response.choices = [Mock()]
    mock_response.choices[0].message.content = ""
    mock_client.chat.completions.create = AsyncMock(return_value=mock_response)

    with pytest.raises(GeneratorError, match="empty"):
        OpenAIGenerator(api_key="test_key").generate("prompt")


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "Anthropic")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
    monkeypatch.delenv("LLM_MODEL", raising=False)

    config = GeneratorConfig.from_env()

    assert config.provider == "anthropic"
    assert config.api_key == "sk-ant"
    assert config.resolved_model == "claude-3-haiku-20240307"


def test_build_generator_selects_backend():
    anthropic_gen = build_generator(GeneratorConfig(provider="anthropic", api_key="k", model="m"))
    assert isinstance(anthropic_gen, AnthropicGenerator)
    assert anthropic_gen.model == "m"

    openai_gen = build_generator(GeneratorConfig(provider="openai", api_key="k"))
    assert isinstance(openai_gen, OpenAIGenerator)
    assert openai_gen.model == "gpt-4o-mini"

    with pytest.raises(ValueError, match="Unknown LLM provider"):
        build_generator(GeneratorConfig(provider="gemini"))


def test_static_generator_cycles_and_records():
    generator = StaticGenerator(["a", "b"])

    assert [generator.generate(p) for p in ("p1", "p2", "p3")] == ["a", "b", "a"]
    assert generator.prompts == ["p1", "p2", "p3"]
    with pytest.raises(ValueError):
        StaticGenerator([])
