"""Global liquidity context service.

Fetches macro liquidity metrics from the CoinGecko free ``/global`` endpoint
(no API key required) and condenses them into a single score:

  - Total crypto market cap 24h change (net capital flow, strongest factor)
  - BTC dominance (capital fleeing to BTC = contracting, broadening = expanding)
  - 24h volume relative to market cap (active vs idle liquidity)

Results are cached in memory with a TTL (default 5 minutes) because the free
tier is rate limited. The service never raises: on any failure it logs the
cause and serves the last good snapshot, or None on a cold cache.
"""

import asyncio
import time
from collections.abc import Callable

import httpx

from cryptoedge.config import LiquiditySettings
from cryptoedge.logging import get_logger
from cryptoedge.models import LiquidityContext, LiquidityTrend

logger = get_logger(__name__)

#: Score above which liquidity is "expanding" (below the negative, "contracting").
TREND_THRESHOLD = 15

_WEIGHT_MOMENTUM = 0.6
_WEIGHT_DOMINANCE = 0.2
_WEIGHT_VOLUME = 0.2


def _clamp(value: float, low: float = -100.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def compute_liquidity_score(
    market_cap_change_24h_pct: float,
    btc_dominance_pct: float,
    total_market_cap_usd: float,
    volume_24h_usd: float,
) -> int:
    """Compute a composite liquidity score from -100 to +100.

    Factors (each clamped to ±100 before weighting):
      1. Market cap momentum: 24h change % x 10 (weight 60%).
      2. BTC dominance: (50 - dominance) x 4 (weight 20%).
      3. Volume/market-cap ratio: (ratio% - 5) x 33 (weight 20%). A ratio of
         5% is neutral; a zero market cap counts as neutral.

    Returns:
        Weighted composite, clamped to [-100, 100] and rounded to int.
    """
    momentum = _clamp(market_cap_change_24h_pct * 10)
    dominance = _clamp((50 - btc_dominance_pct) * 4)

    if total_market_cap_usd > 0:
        volume_ratio_pct = volume_24h_usd / total_market_cap_usd * 100
    else:
        volume_ratio_pct = 5.0
    volume = _clamp((volume_ratio_pct - 5) * 33)

    composite = (
        momentum * _WEIGHT_MOMENTUM
        + dominance * _WEIGHT_DOMINANCE
        + volume * _WEIGHT_VOLUME
    )
    return round(_clamp(composite))


def classify_liquidity_trend(score: float) -> LiquidityTrend:
    """Map a liquidity score onto expanding / neutral / contracting (±15)."""
    if score > TREND_THRESHOLD:
        return LiquidityTrend.EXPANDING
    if score < -TREND_THRESHOLD:
        return LiquidityTrend.CONTRACTING
    return LiquidityTrend.NEUTRAL


def parse_global_payload(payload: dict) -> LiquidityContext:
    """Build a LiquidityContext from a CoinGecko ``/global`` response body.

    Raises:
        ValueError: the payload has no ``data`` object or non-numeric fields.
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise ValueError("no data object in liquidity payload")

    total_market_cap = float((data.get("total_market_cap") or {}).get("usd") or 0)
    volume_24h = float((data.get("total_volume") or {}).get("usd") or 0)
    change_24h = float(data.get("market_cap_change_percentage_24h_usd") or 0)
    btc_dominance = float((data.get("market_cap_percentage") or {}).get("btc") or 0)

    score = compute_liquidity_score(
        market_cap_change_24h_pct=change_24h,
        btc_dominance_pct=btc_dominance,
        total_market_cap_usd=total_market_cap,
        volume_24h_usd=volume_24h,
    )

    return LiquidityContext(
        total_market_cap_usd=total_market_cap,
        volume_24h_usd=volume_24h,
        market_cap_change_24h_pct=change_24h,
        btc_dominance_pct=btc_dominance,
        liquidity_score=score,
        trend=classify_liquidity_trend(score),
        fetched_at_ms=int(time.time() * 1000),
    )


class LiquidityService:
    """Fetches and caches the macro liquidity context.

    Args:
        settings: Endpoint, timeout and cache TTL.
        client: Optional shared httpx client (tests inject a MockTransport).
        clock: Monotonic clock used for cache expiry.
    """

    def __init__(
        self,
        settings: LiquiditySettings,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._client = client
        self._owns_client = client is None
        self._clock = clock
        self._cache: LiquidityContext | None = None
        self._cache_time: float = 0.0
        self._refresh_lock = asyncio.Lock()

    def _is_cache_valid(self) -> bool:
        return (
            self._cache is not None
            and self._clock() - self._cache_time < self._settings.cache_ttl_seconds
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json", "User-Agent": "CryptoEdge/1.0"},
                timeout=self._settings.timeout_seconds,
            )
            self._owns_client = True
        return self._client

    @property
    def cached(self) -> LiquidityContext | None:
        """Last good snapshot regardless of age."""
        return self._cache

    async def fetch_liquidity_context(self) -> LiquidityContext | None:
        """Return the current liquidity context, refreshing when the cache expired.

        Only one refresh runs at a time; concurrent callers wait for it and
        then read the fresh snapshot.
        """
        if self._is_cache_valid():
            return self._cache

        async with self._refresh_lock:
            if self._is_cache_valid():
                return self._cache

            context = await self._fetch()
            if context is not None:
                self._cache = context
                self._cache_time = self._clock()
                logger.info(
                    "liquidity_context_refreshed",
                    score=context.liquidity_score,
                    trend=context.trend.value,
                )
            return self._cache

    async def _fetch(self) -> LiquidityContext | None:
        """One HTTP round trip. Returns None (after logging) on any failure."""
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.get(self._settings.url),
                timeout=self._settings.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                "liquidity_fetch_failed",
                category="timeout",
                timeout=self._settings.timeout_seconds,
                stale_available=self._cache is not None,
            )
            return None
        except httpx.HTTPError as e:
            logger.warning(
                "liquidity_fetch_failed",
                category="network",
                error=str(e),
                stale_available=self._cache is not None,
            )
            return None

        if not response.is_success:
            logger.warning(
                "liquidity_fetch_failed",
                category="http_status",
                status=response.status_code,
                stale_available=self._cache is not None,
            )
            return None

        try:
            return parse_global_payload(response.json())
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(
                "liquidity_fetch_failed",
                category="malformed_payload",
                error=str(e),
                stale_available=self._cache is not None,
            )
            return None

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
