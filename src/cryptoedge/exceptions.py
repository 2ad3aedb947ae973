"""Custom exceptions for the signal engine.

Every failure category in the generation pipeline lives here to avoid
circular imports between modules. Each class carries a ``public_message``:
the only text that may ever reach API callers or WebSocket subscribers.
Internal detail (the exception message itself) is for logs only.
"""


class SignalEngineError(Exception):
    """Base exception for all signal engine errors."""

    category = "internal"
    public_message = "Signal generation failed. Please try again later."


class InsufficientHistory(SignalEngineError):
    """Raised when fewer candles are available than the indicators need."""

    category = "insufficient_history"
    public_message = "Not enough market history to analyse this pair yet."


class UpstreamFetchError(SignalEngineError):
    """Raised when the exchange, liquidity API or model endpoint is unreachable."""

    category = "upstream_fetch"
    public_message = "Market data is temporarily unavailable."


class ReasoningUnavailable(SignalEngineError):
    """Raised when the reasoning model is not configured or disabled."""

    category = "reasoning_unavailable"
    public_message = "AI analysis is currently unavailable."


class ReasoningTimeout(SignalEngineError):
    """Raised when the reasoning model call exceeds its time budget."""

    category = "reasoning_timeout"
    public_message = "AI analysis is currently unavailable."


class InvalidReasoningOutput(SignalEngineError):
    """Raised when the reasoning model returns unparseable or empty content."""

    category = "invalid_reasoning_output"
    public_message = "AI analysis is currently unavailable."


class GenerationInProgress(SignalEngineError):
    """Raised when a manual refresh is requested while a cycle is running."""

    category = "generation_in_progress"
    public_message = "Signal generation already in progress."


class StorageError(SignalEngineError):
    """Raised when a signal cannot be persisted."""

    category = "storage"
    public_message = "Signal generation failed. Please try again later."
