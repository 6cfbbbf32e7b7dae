"""
Provider factory.
"""

from vibescope.errors import ConfigurationError
from vibescope.llm.gemini import GeminiProvider


def get_provider(provider_name: str = "gemini", **kwargs) -> GeminiProvider:
    """Factory — returns the configured embedding + narration provider."""
    if provider_name == "gemini":
        return GeminiProvider(**kwargs)
    raise ConfigurationError(f"Unknown provider: {provider_name}")
