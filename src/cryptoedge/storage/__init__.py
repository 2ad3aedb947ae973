"""Signal persistence layer.

Provides SQLite database management, the typed signal store and the
read-only closed-trade feed used by the learning memory.
"""

from cryptoedge.storage.database import SignalDatabase
from cryptoedge.storage.store import SignalStore
from cryptoedge.storage.trades import SqliteTradeFeed, TradeFeed

__all__ = [
    "SignalDatabase",
    "SignalStore",
    "SqliteTradeFeed",
    "TradeFeed",
]
