"""LLM client using the OpenAI SDK for Splitbench."""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# OpenAI-compatible endpoints; None means the SDK default
PROVIDER_BASE_URLS = {
    "openai": None,
    "openrouter": "https://openrouter.ai/api/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "claude": "https://api.anthropic.com/v1/",
}


@dataclass
class CompletionRequest:
    """One chat completion call: a new user message on top of prior turns."""

    message: str
    model: str
    system_prompt: str = ""
    prior_turns: list[dict] = field(default_factory=list)
    temperature: float = 0.7
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stop: Optional[list[str]] = None

    def to_messages(self) -> list[dict]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.extend(
            {"role": turn["role"], "content": turn["content"]}
            for turn in self.prior_turns
            if turn.get("role") in ("user", "assistant")
        )
        messages.append({"role": "user", "content": self.message})
        return messages


@dataclass
class LLMResponse:
    """Response from an LLM completion."""

    text: str
    tokens_used: int
    latency_ms: int
    model: str


class CompletionProvider(Protocol):
    """Anything that can answer a CompletionRequest."""

    async def complete_chat(self, request: CompletionRequest) -> LLMResponse: ...


class LLMError(Exception):
    """Exception raised for LLM errors."""

    def __init__(self, message: str, kind: str = "api_error", latency_ms: int = 0):
        super().__init__(message)
        self.kind = kind
        self.latency_ms = latency_ms


class LLMClient:
    """Async chat client for one OpenAI-compatible provider."""

    def __init__(
        self,
        provider: str,
        api_key: str,
        default_model: str,
        default_temperature: float = 0.7,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
    ):
        """Initialize LLM client with provider configuration."""
        self.provider = provider
        self.api_key = api_key
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.base_url = base_url or PROVIDER_BASE_URLS.get(provider)

        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=timeout,
        )

    async def complete_chat(self, request: CompletionRequest) -> LLMResponse:
        """
        Execute a chat completion request.

        Returns LLMResponse with text, tokens, latency. Raises LLMError.
        """
        model = request.model or self.default_model
        params = {
            "model": model,
            "messages": request.to_messages(),
            "temperature": request.temperature,
        }
        if request.frequency_penalty is not None:
            params["frequency_penalty"] = request.frequency_penalty
        if request.presence_penalty is not None:
            params["presence_penalty"] = request.presence_penalty
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.top_p is not None:
            params["top_p"] = request.top_p
        if request.stop:
            params["stop"] = request.stop

        start_time = time.time()

        try:
            response = await self.client.chat.completions.create(**params)
        except openai.APITimeoutError as e:
            raise LLMError(
                f"{self.provider} request timed out: {e}",
                kind="timeout",
                latency_ms=_elapsed_ms(start_time),
            ) from e
        except openai.APIConnectionError as e:
            raise LLMError(
                f"Could not reach {self.provider}: {e}",
                kind="connection",
                latency_ms=_elapsed_ms(start_time),
            ) from e
        except openai.APIStatusError as e:
            raise LLMError(
                f"{self.provider} returned HTTP {e.status_code}: {e.message}",
                kind="status",
                latency_ms=_elapsed_ms(start_time),
            ) from e

        latency_ms = _elapsed_ms(start_time)
        if not response.choices:
            raise LLMError(f"{self.provider} returned no choices", kind="empty_response", latency_ms=latency_ms)

        text = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else 0
        logger.debug("%s/%s answered in %d ms (%d tokens)", self.provider, model, latency_ms, tokens_used)

        return LLMResponse(
            text=text,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
            model=model,
        )


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)
