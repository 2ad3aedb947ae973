"""CryptoEdge signal engine: indicators + liquidity + reasoning model -> trading signals."""

__version__ = "0.1.0"
