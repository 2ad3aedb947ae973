"""Reasoning model client (OpenAI-compatible chat-completions API).

Sends the assembled prompt, bounds the call with a timeout that cancels the
in-flight request, and hands the message content to the validation layer.
Errors are mapped onto the engine taxonomy so callers can tell a timeout
from a transport failure from garbage output.
"""

import asyncio

import httpx

from cryptoedge.config import ReasoningSettings
from cryptoedge.exceptions import (
    InvalidReasoningOutput,
    ReasoningTimeout,
    ReasoningUnavailable,
    UpstreamFetchError,
)
from cryptoedge.logging import get_logger
from cryptoedge.models import MarketData
from cryptoedge.reasoning.prompt import build_messages
from cryptoedge.reasoning.validation import AnalysisResult, parse_response

logger = get_logger(__name__)


class ReasoningClient:
    """Calls the reasoning model and returns a validated AnalysisResult.

    Args:
        settings: API endpoint, credentials, model id and timeout.
        client: Optional shared httpx client (tests inject a MockTransport).
    """

    def __init__(
        self,
        settings: ReasoningSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None

    def is_available(self) -> bool:
        """True when an API key is configured and the feature flag is on."""
        if not self._settings.signal_enabled:
            return False
        return bool(self._settings.api_key.get_secret_value())

    @property
    def model_id(self) -> str:
        return self._settings.model_id

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            # Timeout is enforced by asyncio.wait_for in analyze(); httpx's own
            # timeout is a backstop slightly above it.
            self._client = httpx.AsyncClient(timeout=self._settings.timeout_seconds + 5)
            self._owns_client = True
        return self._client

    async def analyze(
        self,
        pair: str,
        market_data: MarketData,
        learning_context: str = "",
    ) -> AnalysisResult:
        """Ask the model for a recommendation on ``pair``.

        Raises:
            ReasoningUnavailable: no API key configured or feature disabled.
            ReasoningTimeout: the request exceeded ``timeout_seconds`` and was cancelled.
            UpstreamFetchError: transport failure or non-2xx response.
            InvalidReasoningOutput: the response carried no parseable JSON object.
        """
        if not self.is_available():
            raise ReasoningUnavailable("reasoning model not configured or disabled")

        messages = build_messages(
            pair,
            market_data,
            learning_context=learning_context,
            learning_max_chars=self._settings.learning_context_max_chars,
        )
        body = {
            "model": self._settings.model_id,
            "messages": messages,
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.api_key.get_secret_value()}",
        }

        client = self._get_client()
        timeout = self._settings.timeout_seconds
        try:
            response = await asyncio.wait_for(
                client.post(self._settings.api_url, json=body, headers=headers),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise ReasoningTimeout(f"request timeout after {timeout:g}s") from e
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"reasoning request failed: {e}") from e

        if not response.is_success:
            raise UpstreamFetchError(
                f"reasoning API {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidReasoningOutput("reasoning API returned non-JSON envelope") from e

        content = self._extract_content(data)
        result = parse_response(content)
        result.model_version = self._settings.model_id
        usage = data.get("usage") if isinstance(data, dict) else None
        if isinstance(usage, dict) and isinstance(usage.get("total_tokens"), int):
            result.token_usage = usage["total_tokens"]

        logger.debug(
            "reasoning_analysis_received",
            pair=pair,
            direction=result.direction.value,
            confidence=result.confidence,
            overridden=result.direction_overridden,
            token_usage=result.token_usage,
        )
        return result

    @staticmethod
    def _extract_content(data: object) -> str:
        """Pull ``choices[0].message.content`` out of the response envelope."""
        try:
            content = data["choices"][0]["message"]["content"]  # type: ignore[index]
        except (KeyError, IndexError, TypeError) as e:
            raise InvalidReasoningOutput("empty response from reasoning model") from e
        if not isinstance(content, str) or not content.strip():
            raise InvalidReasoningOutput("empty response from reasoning model")
        return content

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
