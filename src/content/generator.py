# ABOUTME: Wraps the generative-AI provider behind a generate(prompt) -> text interface.
# ABOUTME: Ships OpenAI and Anthropic backends plus a static generator for dry runs and tests.

from __future__ import annotations

import asyncio
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence

import anthropic
import openai
from loguru import logger

from src.common.errors import GeneratorError

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
}


def sanitize_for_prompt(text: str, max_length: int = 100) -> str:
    """
    Sanitize user-provided text for safe inclusion in LLM prompts.

    Removes newlines, non-printable characters, and truncates to prevent
    prompt injection attacks.

    Args:
        text: Input text to sanitize
        max_length: Maximum allowed length (default 100)

    Returns:
        Sanitized text safe for prompt inclusion
    """
    if not isinstance(text, str):
        text = str(text)

    text = text.replace("\n", " ").replace("\r", " ")
    text = "".join(char for char in text if char.isprintable() or char == " ")
    text = re.sub(r"\s+", " ", text)
    return text[:max_length].strip()


class ContentGenerator(Protocol):
    def generate(self, prompt: str) -> str: ...


@dataclass
class GeneratorConfig:
    provider: str = "openai"
    model: Optional[str] = None
    api_key: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2048

    @classmethod
    def from_env(cls) -> "GeneratorConfig":
        """Read LLM_PROVIDER / LLM_MODEL and the matching provider key from the environment."""
        provider = os.environ.get("LLM_PROVIDER", "openai").lower()
        key_var = "ANTHROPIC_API_KEY" if provider == "anthropic" else "OPENAI_API_KEY"
        return cls(
            provider=provider,
            model=os.environ.get("LLM_MODEL") or None,
            api_key=os.environ.get(key_var) or None,
        )

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODELS.get(self.provider, DEFAULT_MODELS["openai"])


class OpenAIGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODELS["openai"],
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def agenerate(self, prompt: str) -> str:
        if not self.api_key:
            raise GeneratorError("OPENAI_API_KEY not set")
        client = openai.AsyncOpenAI(api_key=self.api_key)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as exc:
            raise GeneratorError(f"OpenAI request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GeneratorError("OpenAI returned an empty response")
        return content

    def generate(self, prompt: str) -> str:
        """Synchronous wrapper for agenerate."""
        return asyncio.run(self.agenerate(prompt))


class AnthropicGenerator:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODELS["anthropic"],
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ):
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def agenerate(self, prompt: str) -> str:
        if not self.api_key:
            raise GeneratorError("ANTHROPIC_API_KEY not set")
        client = anthropic.AsyncAnthropic(api_key=self.api_key)
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.AnthropicError as exc:
            raise GeneratorError(f"Anthropic request failed: {exc}") from exc

        parts = [getattr(block, "text", "") for block in (response.content or [])]
        content = "".join(parts)
        if not content:
            raise GeneratorError("Anthropic returned an empty response")
        return content

    def generate(self, prompt: str) -> str:
        """Synchronous wrapper for agenerate."""
        return asyncio.run(self.agenerate(prompt))


class StaticGenerator:
    """Replays canned responses in order, cycling; records every prompt it receives."""

    def __init__(self, responses: Sequence[str]):
        if not responses:
            raise ValueError("StaticGenerator needs at least one response")
        self.responses = list(responses)
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        response = self.responses[len(self.prompts) % len(self.responses)]
        self.prompts.append(prompt)
        return response


def build_generator(config: Optional[GeneratorConfig] = None) -> ContentGenerator:
    config = config or GeneratorConfig.from_env()
    logger.debug("Building {} generator with model {}", config.provider, config.resolved_model)
    if config.provider == "anthropic":
        return AnthropicGenerator(
            api_key=config.api_key,
            model=config.resolved_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
    if config.provider == "openai":
        return OpenAIGenerator(
            api_key=config.api_key,
            model=config.resolved_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
    raise ValueError(f"Unknown LLM provider: {config.provider}")
