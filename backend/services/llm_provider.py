"""Select the generation backend from configuration."""
import logging
from typing import Optional

from config import LLM_PROVIDER
from services.llm_client import GenerationConfig, LLMClient, TextGenerator

logger = logging.getLogger(__name__)


def create_llm_client(
    provider: str = LLM_PROVIDER,
    api_key: Optional[str] = None,
    generation_config: Optional[GenerationConfig] = None,
) -> TextGenerator:
    """
    Build the generation client for ``provider``.

    Args:
        provider: "groq" or "gemini"
        api_key: Overrides the provider's key from the environment
        generation_config: Sampling and safety configuration

    Raises:
        ValueError: Unknown provider or missing API key
    """
    provider = provider.strip().lower()
    logger.info(f"Creating LLM client for provider: {provider}")

    if provider == "groq":
        return LLMClient(api_key=api_key, generation_config=generation_config)
    if provider == "gemini":
        # google-generativeai is only imported when selected
        from services.gemini_client import GeminiClient
        return GeminiClient(api_key=api_key, generation_config=generation_config)

    raise ValueError(f"Unknown LLM provider: {provider!r} (expected 'groq' or 'gemini')")
