# LLM client layer
from .client import CompletionProvider, CompletionRequest, LLMClient, LLMError, LLMResponse
from .config import LLMConfig
from .parsing import parse_json_reply, strip_code_fences
from .providers import MODEL_CATALOG, ModelInfo, ProviderRouter, provider_for_model

__all__ = [
    "CompletionProvider",
    "CompletionRequest",
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "LLMConfig",
    "parse_json_reply",
    "strip_code_fences",
    "MODEL_CATALOG",
    "ModelInfo",
    "ProviderRouter",
    "provider_for_model",
]
