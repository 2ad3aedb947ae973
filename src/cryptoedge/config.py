"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExchangeSettings(BaseSettings):
    """Market data exchange settings (public endpoints only)."""

    model_config = SettingsConfigDict(env_prefix="EXCHANGE_")

    name: str = "kraken"
    timeout_seconds: float = 10.0
    candle_interval_minutes: int = 60  # 1h candles
    order_book_depth: int = 10


class ReasoningSettings(BaseSettings):
    """Reasoning model (chat-completions API) settings.

    The model is considered unavailable when no API key is configured or
    when LLM_SIGNAL_ENABLED=false.
    """

    model_config = SettingsConfigDict(env_prefix="LLM_")

    api_key: SecretStr = SecretStr("")
    signal_enabled: bool = True
    api_url: str = "https://api.moonshot.ai/v1/chat/completions"
    model_id: str = "kimi-k2.5-preview"
    timeout_seconds: float = 15.0
    temperature: float = 0.6
    max_tokens: int = 800
    learning_context_max_chars: int = 4000


class LiquiditySettings(BaseSettings):
    """Macro liquidity aggregator settings (CoinGecko /global)."""

    model_config = SettingsConfigDict(env_prefix="LIQUIDITY_")

    url: str = "https://api.coingecko.com/api/v3/global"
    timeout_seconds: float = 10.0
    cache_ttl_seconds: float = 300.0  # free tier is rate limited


class SignalSettings(BaseSettings):
    """Signal generation cycle configuration.

    Controls which pairs are analysed, how often the recurring cycle fires,
    and the deadline budget each pair gets within a cycle.
    All fields configurable via SIGNAL_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    pairs: list[str] = ["BTC/EUR", "ETH/EUR"]
    interval_seconds: int = 60
    cycle_deadline_seconds: float = 45.0  # per-pair budget inside one cycle
    rebuild_learning_each_cycle: bool = True
    history_default_limit: int = 24


class StorageSettings(BaseSettings):
    """Durable storage locations."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/cryptoedge.db"
    learning_path: str = "data/agent-learning.md"


class ServerSettings(BaseSettings):
    """HTTP/WebSocket server configuration."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = "0.0.0.0"
    port: int = 3000
    enabled: bool = True
    broadcast_send_timeout: float = 5.0  # seconds per subscriber send


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_dir: str = "data"
    exchange: ExchangeSettings = ExchangeSettings()
    reasoning: ReasoningSettings = ReasoningSettings()
    liquidity: LiquiditySettings = LiquiditySettings()
    signal: SignalSettings = SignalSettings()
    storage: StorageSettings = StorageSettings()
    server: ServerSettings = ServerSettings()
