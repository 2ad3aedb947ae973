"""Tests for ReasoningClient against a mocked chat-completions endpoint."""

import asyncio
import json

import httpx
import pytest

from cryptoedge.config import ReasoningSettings
from cryptoedge.exceptions import (
    InvalidReasoningOutput,
    ReasoningTimeout,
    ReasoningUnavailable,
    UpstreamFetchError,
)
from cryptoedge.indicators import compute_all_indicators
from cryptoedge.models import Direction, MarketData
from cryptoedge.reasoning.client import ReasoningClient


def _completion(content: str, total_tokens: int = 640) -> dict:
    return {
        "id": "cmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 500, "completion_tokens": 140, "total_tokens": total_tokens},
    }


def _client(settings: ReasoningSettings, handler) -> ReasoningClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ReasoningClient(settings, client=http)


@pytest.fixture
def market_data(uptrend_candles) -> MarketData:
    return MarketData(indicators=compute_all_indicators(uptrend_candles))


class TestAvailability:
    """Tests for is_available()."""

    def test_available_with_key(self, mock_settings) -> None:
        assert ReasoningClient(mock_settings.reasoning).is_available() is True

    def test_unavailable_without_key(self) -> None:
        assert ReasoningClient(ReasoningSettings(api_key="")).is_available() is False  # type: ignore[arg-type]

    def test_unavailable_when_disabled(self) -> None:
        settings = ReasoningSettings(api_key="k", signal_enabled=False)  # type: ignore[arg-type]
        assert ReasoningClient(settings).is_available() is False

    @pytest.mark.asyncio
    async def test_analyze_raises_when_unavailable(self, market_data) -> None:
        client = ReasoningClient(ReasoningSettings(api_key=""))  # type: ignore[arg-type]
        with pytest.raises(ReasoningUnavailable):
            await client.analyze("BTC/EUR", market_data)


class TestAnalyze:
    """Tests for the request/response round trip."""

    @pytest.mark.asyncio
    async def test_successful_analysis(self, mock_settings, market_data) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            content = json.dumps(
                {"direction": "long", "confidence": 72, "long_score": 70, "short_score": 20}
            )
            return httpx.Response(200, json=_completion(content))

        client = _client(mock_settings.reasoning, handler)
        result = await client.analyze("BTC/EUR", market_data, learning_context="# memory")

        assert result.direction == Direction.LONG
        assert result.confidence == 72.0
        assert result.model_version == "test-model"
        assert result.token_usage == 640

        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer test-llm-key"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert seen["body"]["temperature"] == 0.6
        assert [m["role"] for m in seen["body"]["messages"]] == [
            "system",
            "user",
            "assistant",
            "user",
        ]
        await client.close()

    @pytest.mark.asyncio
    async def test_score_override_applied(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            content = json.dumps(
                {"direction": "long", "confidence": 66, "long_score": 15, "short_score": 75}
            )
            return httpx.Response(200, json=_completion(content))

        client = _client(mock_settings.reasoning, handler)
        result = await client.analyze("ETH/EUR", market_data)
        assert result.direction == Direction.SHORT
        assert result.direction_overridden is True

    @pytest.mark.asyncio
    async def test_transport_timeout(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        client = _client(mock_settings.reasoning, handler)
        with pytest.raises(ReasoningTimeout):
            await client.analyze("BTC/EUR", market_data)

    @pytest.mark.asyncio
    async def test_slow_response_cancelled(self, mock_settings, market_data) -> None:
        """The in-flight request is cancelled once timeout_seconds elapses."""
        cancelled = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return httpx.Response(200, json=_completion("{}"))

        settings = mock_settings.reasoning.model_copy(update={"timeout_seconds": 0.05})
        client = _client(settings, handler)
        with pytest.raises(ReasoningTimeout):
            await client.analyze("BTC/EUR", market_data)
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_network_error(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(mock_settings.reasoning, handler)
        with pytest.raises(UpstreamFetchError):
            await client.analyze("BTC/EUR", market_data)

    @pytest.mark.asyncio
    async def test_non_2xx(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"error": {"message": "invalid key"}})

        client = _client(mock_settings.reasoning, handler)
        with pytest.raises(UpstreamFetchError):
            await client.analyze("BTC/EUR", market_data)

    @pytest.mark.asyncio
    async def test_invalid_json_content(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_completion("I think you should buy."))

        client = _client(mock_settings.reasoning, handler)
        with pytest.raises(InvalidReasoningOutput):
            await client.analyze("BTC/EUR", market_data)

    @pytest.mark.asyncio
    async def test_empty_choices(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"choices": []})

        client = _client(mock_settings.reasoning, handler)
        with pytest.raises(InvalidReasoningOutput):
            await client.analyze("BTC/EUR", market_data)

    @pytest.mark.asyncio
    async def test_non_json_envelope(self, mock_settings, market_data) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        client = _client(mock_settings.reasoning, handler)
        with pytest.raises(InvalidReasoningOutput):
            await client.analyze("BTC/EUR", market_data)
