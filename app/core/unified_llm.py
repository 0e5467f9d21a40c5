"""Unified LLM client factory and manager.

Gives the completion service one interface over Gemini and OpenRouter, with
an optional Gemini fallback when OpenRouter is the primary provider.
"""

from enum import Enum
from typing import Optional, Union

from app.core.config import LLMSettings
from app.core.exceptions import APIClientError, ConfigurationError
from app.core.llm_client import GeminiClient, LLMResponse, OpenRouterClient
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class UnifiedLLMClient:
    """Provider-agnostic completion client."""

    def __init__(
        self,
        provider: Union[str, LLMProvider],
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: int = 120,
        max_retries: int = 3,
        fallback_to_gemini: bool = False,
        gemini_api_key: Optional[str] = None,
        gemini_model: Optional[str] = None,
    ):
        """Initialize unified LLM client.

        Args:
            provider: "gemini" or "openrouter"
            api_key: API key for the primary provider
            model: Model name for the primary provider
            base_url: Optional OpenRouter endpoint override
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts per provider
            fallback_to_gemini: Retry on Gemini when OpenRouter fails
            gemini_api_key: Gemini API key (required with fallback)
            gemini_model: Gemini model used for the fallback
        """
        self.provider = LLMProvider(provider)
        self.model = model
        self.fallback_client: Optional[GeminiClient] = None

        if self.provider == LLMProvider.GEMINI:
            self.client: Union[GeminiClient, OpenRouterClient] = GeminiClient(
                api_key=api_key, model=model, timeout=timeout, max_retries=max_retries
            )
            LOGGER.info(f"Initialized unified LLM with Gemini provider (model: {model})")
            return

        self.client = OpenRouterClient(
            api_key=api_key,
            model=model,
            base_url=base_url or "https://openrouter.ai/api/v1/chat/completions",
            timeout=timeout,
            max_retries=max_retries,
        )

        if fallback_to_gemini:
            if not gemini_api_key:
                raise ConfigurationError("gemini_api_key required when fallback_to_gemini=True")
            self.fallback_client = GeminiClient(
                api_key=gemini_api_key,
                model=gemini_model or "gemini-2.0-flash",
                timeout=timeout,
                max_retries=max_retries,
            )
            LOGGER.info(
                f"Initialized unified LLM with OpenRouter provider (model: {model}) "
                f"and Gemini fallback (model: {self.fallback_client.model})"
            )
        else:
            LOGGER.info(f"Initialized unified LLM with OpenRouter provider (model: {model})")

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a completion with the configured provider.

        Raises:
            APIClientError: If the primary (and fallback, when enabled) fail
        """
        try:
            return await self.client.generate_content(
                prompt,
                system_instruction=system_instruction,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
            )
        except APIClientError as e:
            if not self.fallback_client:
                raise

            LOGGER.warning(
                f"Primary provider ({self.provider.value}) failed, attempting Gemini fallback: {e}"
            )
            try:
                return await self.fallback_client.generate_content(
                    prompt,
                    system_instruction=system_instruction,
                    max_output_tokens=max_output_tokens,
                    temperature=temperature,
                )
            except APIClientError as fallback_error:
                LOGGER.error(f"Fallback to Gemini also failed: {fallback_error}")
                raise APIClientError(
                    f"Both primary ({self.provider.value}) and fallback (Gemini) failed",
                    original_error=fallback_error,
                ) from fallback_error


def create_llm_client_from_settings(llm_settings: LLMSettings) -> UnifiedLLMClient:
    """Build a client from ``LLMSettings``, selecting key and model by provider.

    Raises:
        ConfigurationError: If the selected provider has no API key
    """
    provider = LLMProvider(llm_settings.provider.lower())

    if provider == LLMProvider.GEMINI:
        api_key = llm_settings.gemini_api_key.strip()
        if not api_key:
            raise ConfigurationError(
                "gemini_api_key required when provider='gemini'. "
                "Please set GEMINI_API_KEY environment variable."
            )
        return UnifiedLLMClient(
            provider=provider,
            api_key=api_key,
            model=llm_settings.gemini_model,
            timeout=llm_settings.timeout_seconds,
            max_retries=llm_settings.max_retries,
        )

    api_key = llm_settings.openrouter_api_key.strip()
    if not api_key:
        raise ConfigurationError(
            "openrouter_api_key required when provider='openrouter'. "
            "Please set OPENROUTER_API_KEY environment variable."
        )
    fallback_key = llm_settings.gemini_api_key.strip() or None
    return UnifiedLLMClient(
        provider=provider,
        api_key=api_key,
        model=llm_settings.openrouter_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout_seconds,
        max_retries=llm_settings.max_retries,
        fallback_to_gemini=llm_settings.enable_fallback,
        gemini_api_key=fallback_key,
        gemini_model=llm_settings.gemini_model,
    )
