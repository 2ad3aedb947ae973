"""Exchange client layer -- public market data via ccxt."""

from cryptoedge.exchange.ccxt_client import CcxtMarketDataClient, timeframe_for
from cryptoedge.exchange.client import MarketDataClient

__all__ = ["CcxtMarketDataClient", "MarketDataClient", "timeframe_for"]
