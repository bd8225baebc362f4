"""Model catalog and provider routing for Splitbench."""

from dataclasses import dataclass, replace
from typing import Optional

from .client import CompletionRequest, LLMClient, LLMError, LLMResponse
from .config import LLMConfig


@dataclass(frozen=True)
class ModelInfo:
    value: str
    label: str
    provider: str


MODEL_CATALOG = (
    ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo", "openai"),
    ModelInfo("gpt-4o", "GPT-4o", "openai"),
    ModelInfo("gpt-4o-mini", "GPT-4o Mini", "openai"),
    ModelInfo("deepseek-chat", "Deepseek Chat", "deepseek"),
    ModelInfo("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", "claude"),
)

_MODELS_BY_VALUE = {m.value: m for m in MODEL_CATALOG}


def provider_for_model(model: str) -> str:
    """Look up which provider serves a model id."""
    info = _MODELS_BY_VALUE.get(model)
    if info is not None:
        return info.provider
    # OpenRouter ids are namespaced, e.g. "meta-llama/llama-3-70b-instruct"
    if "/" in model:
        return "openrouter"
    raise LLMError(f"Unknown model '{model}'", kind="unknown_model")


class ProviderRouter:
    """
    Completion provider that dispatches each request to the client of the
    provider serving the requested model.
    """

    def __init__(self, config: LLMConfig):
        self.config = config
        self._clients: dict[str, LLMClient] = {}

    def client_for(self, model: str) -> LLMClient:
        provider = provider_for_model(model)
        client = self._clients.get(provider)
        if client is None:
            api_key = self.config.api_key_for(provider)
            if not api_key:
                raise LLMError(f"No API key configured for {provider}", kind="missing_credential")
            client = LLMClient(
                provider=provider,
                api_key=api_key,
                default_model=model,
                default_temperature=self.config.default_temperature,
                base_url=self.config.base_urls.get(provider),
                timeout=self.config.timeout_seconds,
            )
            self._clients[provider] = client
        return client

    async def complete_chat(self, request: CompletionRequest) -> LLMResponse:
        if not request.model:
            request = replace(request, model=self.config.default_model)
        return await self.client_for(request.model).complete_chat(request)

    def available_models(self) -> list[ModelInfo]:
        """Catalog entries whose provider has a credential."""
        return [m for m in MODEL_CATALOG if self.config.api_key_for(m.provider)]


def get_model_label(model: str) -> Optional[str]:
    info = _MODELS_BY_VALUE.get(model)
    return info.label if info else None
