"""External generation service.

Thin wrapper over an OpenAI-compatible chat endpoint (LM Studio locally,
OpenAI in the cloud). The remote content tier calls ``generate`` once per
request: no retries, a bounded timeout, and every failure raised as a
``GenerationError`` subclass.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from openai import APIConnectionError, APITimeoutError, OpenAI

from schooltutor.utils.text_utils import strip_think

logger = structlog.get_logger(__name__)

Provider = Literal["lmstudio", "openai"]

DEFAULT_CONFIG_PATH = Path("configs/models.yaml")

PROVIDER_DEFAULTS: dict[Provider, dict[str, Any]] = {
    "lmstudio": {
        "base_url": "http://localhost:1234/v1",
        "api_key": "lm-studio",  # ignored by LM Studio
    },
    "openai": {
        "base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
    },
}


def default_api_key(provider: str) -> str | None:
    """API key for a provider: its env var, else its fixed placeholder."""
    defaults = PROVIDER_DEFAULTS.get(provider, {})
    if "api_key_env" in defaults:
        return os.environ.get(defaults["api_key_env"])
    return defaults.get("api_key")


class GenerationError(Exception):
    """The generation service could not produce text."""


class GenerationTimeoutError(GenerationError):
    """No answer within the timeout."""


class GenerationConnectionError(GenerationError):
    """The service could not be reached."""


class GenerationResponseError(GenerationError):
    """The service answered, but with nothing usable."""


@dataclass
class LLMConfig:
    """Connection and sampling settings for the generation service."""

    provider: Provider = "lmstudio"
    base_url: str = "http://localhost:1234/v1"
    model: str = "default"
    temperature: float = 0.7
    max_tokens: int = 1500
    timeout: float = 20.0
    api_key: str | None = None

    @classmethod
    def for_provider(
        cls,
        provider: str,
        model: str,
        base_url: str = "",
        api_key: str | None = None,
    ) -> LLMConfig:
        """Settings for a named provider, filling gaps from its defaults."""
        defaults = PROVIDER_DEFAULTS.get(provider, {})
        return cls(
            provider=provider,
            base_url=base_url or defaults.get("base_url", cls.base_url),
            model=model,
            api_key=api_key or default_api_key(provider),
        )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> LLMConfig:
        """Read the ``llm:`` section of a models.yaml file."""
        path = config_path or DEFAULT_CONFIG_PATH
        if not path.exists():
            logger.warning("config_not_found", path=str(path))
            return cls()

        with open(path) as f:
            section = (yaml.safe_load(f) or {}).get("llm") or {}

        config = cls.for_provider(
            section.get("provider", "lmstudio"),
            section.get("model", "default"),
            base_url=section.get("base_url", ""),
        )
        config.temperature = section.get("temperature", config.temperature)
        config.max_tokens = section.get("max_tokens", config.max_tokens)
        config.timeout = section.get("timeout", config.timeout)
        return config


@dataclass
class Message:
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Raw completion plus accounting."""

    content: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: int = 0

    @property
    def total_tokens(self) -> int:
        return self.usage.get("total_tokens", 0)


def _usage(response: Any) -> dict[str, int]:
    if not response.usage:
        return {}
    return {
        "prompt_tokens": response.usage.prompt_tokens,
        "completion_tokens": response.usage.completion_tokens,
        "total_tokens": response.usage.total_tokens,
    }


class LLMClient:
    """Client for the external generation service."""

    def __init__(self, config: LLMConfig | None = None, timeout: float | None = None):
        """
        Args:
            config: Connection settings (configs/models.yaml when omitted)
            timeout: Per-request timeout in seconds, overriding the config
        """
        self.config = config or LLMConfig.from_yaml()
        if timeout is not None:
            self.config.timeout = timeout

        self._openai = OpenAI(
            base_url=self.config.base_url,
            api_key=self.config.api_key or "not-needed",
            timeout=self.config.timeout,
            max_retries=0,
        )
        logger.debug(
            "llm_client_initialized",
            provider=self.config.provider,
            model=self.config.model,
            timeout=self.config.timeout,
        )

    def _complete(self, messages: list[Message], temperature: float, max_tokens: int) -> Any:
        try:
            return self._openai.chat.completions.create(
                model=self.config.model,
                messages=[m.to_dict() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except APITimeoutError as e:
            raise GenerationTimeoutError(
                f"{self.config.provider} gave no answer within {self.config.timeout}s"
            ) from e
        except APIConnectionError as e:
            raise GenerationConnectionError(
                f"{self.config.provider} unreachable at {self.config.base_url}"
            ) from e
        except Exception as e:
            raise GenerationError(f"Generation request failed: {e}") from e

    def chat(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """Run one chat completion.

        Raises:
            GenerationTimeoutError: The request exceeded the timeout
            GenerationConnectionError: The server could not be reached
            GenerationResponseError: The answer had no choices
            GenerationError: Any other failure
        """
        started = time.monotonic()
        response = self._complete(
            messages,
            self.config.temperature if temperature is None else temperature,
            self.config.max_tokens if max_tokens is None else max_tokens,
        )
        if not response.choices:
            raise GenerationResponseError("Completion has no choices")

        result = LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            usage=_usage(response),
            latency_ms=int((time.monotonic() - started) * 1000),
        )
        logger.debug(
            "llm_response",
            model=result.model,
            tokens=result.total_tokens,
            latency_ms=result.latency_ms,
        )
        return result

    def generate(self, prompt: str, system_context: str) -> str:
        """Text for ``prompt`` under ``system_context``, reasoning blocks removed.

        Raises:
            GenerationError: On timeout, connection failure or blank output
        """
        response = self.chat(
            [Message(role="system", content=system_context), Message(role="user", content=prompt)]
        )
        text = strip_think(response.content)
        if not text:
            raise GenerationResponseError("Generation service returned blank text")
        return text
