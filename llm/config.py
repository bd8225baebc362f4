"""LLM configuration for Splitbench."""

import os
from dataclasses import dataclass, field
from typing import Optional

PROVIDER_KEY_VARS = {
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
    "claude": "ANTHROPIC_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


@dataclass
class LLMConfig:
    """Credentials and model defaults for every configured provider."""

    api_keys: dict[str, str] = field(default_factory=dict)
    default_model: str = "gpt-4o"
    default_temperature: float = 0.7
    memory_model: str = "gpt-3.5-turbo"
    analysis_model: str = "gpt-4o-mini"
    timeout_seconds: float = 60.0
    base_urls: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Create config from environment variables."""
        api_keys = {
            provider: os.getenv(var, "")
            for provider, var in PROVIDER_KEY_VARS.items()
            if os.getenv(var)
        }

        # Per-provider endpoint overrides, e.g. DEEPSEEK_BASE_URL
        base_urls = {
            provider: os.environ[f"{provider.upper()}_BASE_URL"]
            for provider in PROVIDER_KEY_VARS
            if os.getenv(f"{provider.upper()}_BASE_URL")
        }

        return cls(
            api_keys=api_keys,
            default_model=os.getenv("DEFAULT_MODEL", "gpt-4o"),
            default_temperature=float(os.getenv("DEFAULT_TEMPERATURE", "0.7")),
            memory_model=os.getenv("MEMORY_MODEL", "gpt-3.5-turbo"),
            analysis_model=os.getenv("ANALYSIS_MODEL", "gpt-4o-mini"),
            timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
            base_urls=base_urls,
        )

    def api_key_for(self, provider: str) -> Optional[str]:
        """Get the credential for a provider, or None when not configured."""
        return self.api_keys.get(provider) or None

    def with_api_key(self, provider: str, api_key: str) -> "LLMConfig":
        """Return a copy with one provider credential replaced."""
        keys = dict(self.api_keys)
        if api_key:
            keys[provider] = api_key
        else:
            keys.pop(provider, None)
        return LLMConfig(
            api_keys=keys,
            default_model=self.default_model,
            default_temperature=self.default_temperature,
            memory_model=self.memory_model,
            analysis_model=self.analysis_model,
            timeout_seconds=self.timeout_seconds,
            base_urls=dict(self.base_urls),
        )
