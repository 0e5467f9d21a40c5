"""Provider clients for LLM completions.

Both providers return an ``LLMResponse`` carrying the generated text and the
token usage reported by the provider, so the completion service can account
cost without estimating when real numbers are available.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from google import genai
from google.genai import types
from httpx import HTTPStatusError, TimeoutException

from app.core.exceptions import APIClientError, APITimeoutError
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass
class LLMResponse:
    """Text and usage returned by a provider call."""

    text: str
    model: str
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None


class BaseLLMClient:
    """HTTP transport for JSON LLM APIs with retries and exponential backoff."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 120,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded response.

        Raises:
            APIClientError: On non-retryable 4xx responses or exhausted retries
            APITimeoutError: When every attempt timed out
        """
        request_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            request_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {self.base_url}", extra={"timeout": self.timeout}
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(
                        self.base_url, headers=request_headers, json=payload
                    )
                    response.raise_for_status()
                    return response.json()
                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt)
                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt)
                except httpx.HTTPError as e:
                    await self._handle_transport_error(e, attempt)

        raise APIClientError(
            f"Failed to call API {self.base_url} after {self.max_retries} attempts"
        )

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int) -> None:
        status_code = error.response.status_code
        body = error.response.text

        self.logger.warning(
            f"API HTTP error (attempt {attempt + 1}/{self.max_retries})",
            extra={"status_code": status_code, "error_body": body[:500]},
        )

        # Rate limiting is the only client error worth retrying
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API client error {status_code}: {body}", original_error=error)

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(
                f"API HTTP error {status_code} after retries", original_error=error
            )

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int) -> None:
        self.logger.warning(f"API timeout (attempt {attempt + 1}/{self.max_retries})")

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(
                f"API timeout after {self.max_retries} attempts", original_error=error
            )

    async def _handle_transport_error(self, error: httpx.HTTPError, attempt: int) -> None:
        self.logger.warning(
            f"API transport error (attempt {attempt + 1}/{self.max_retries})",
            extra={"error": str(error)},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API error: {error}", original_error=error)

    async def _wait_before_retry(self, attempt: int) -> None:
        await asyncio.sleep(self.retry_delay * (2**attempt))


class GeminiClient:
    """Google Gemini client built on the google-genai async API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 120,
        max_retries: int = 3,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries

        try:
            self.client = genai.Client(api_key=self.api_key)
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}", exc_info=True)
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e)

        LOGGER.info(f"Initialized Gemini client with model {self.model}")

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a completion with Gemini.

        Raises:
            APIClientError: If every attempt failed
        """
        config = types.GenerateContentConfig(temperature=temperature)
        if max_output_tokens:
            config.max_output_tokens = max_output_tokens
        if system_instruction:
            config.system_instruction = system_instruction

        for attempt in range(self.max_retries):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model, contents=prompt, config=config
                )
            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                    continue
                LOGGER.error(f"Gemini generation failed after retries: {e}", exc_info=True)
                raise APIClientError(f"Gemini generation failed: {e}", original_error=e)

            usage = response.usage_metadata
            return LLMResponse(
                text=response.text or "",
                model=self.model,
                prompt_tokens=usage.prompt_token_count if usage else None,
                completion_tokens=usage.candidates_token_count if usage else None,
            )

        raise APIClientError("Gemini generation failed")


class OpenRouterClient:
    """OpenRouter chat completions client (Anthropic models by default)."""

    def __init__(
        self,
        api_key: str,
        model: str = "anthropic/claude-sonnet-4",
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: int = 120,
        max_retries: int = 3,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries

        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a completion through OpenRouter.

        Raises:
            APIClientError: If the call fails or the payload has no choices
        """
        messages = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": prompt})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_output_tokens:
            payload["max_tokens"] = max_output_tokens

        response = await self.client.call_api(payload=payload)

        choices = response.get("choices") or []
        if not choices:
            LOGGER.error(f"Unexpected OpenRouter response format: {response}")
            raise APIClientError("Invalid response format from OpenRouter")

        content = choices[0].get("message", {}).get("content") or ""
        usage = response.get("usage") or {}
        return LLMResponse(
            text=content,
            model=response.get("model", self.model),
            prompt_tokens=usage.get("prompt_tokens"),
            completion_tokens=usage.get("completion_tokens"),
        )
