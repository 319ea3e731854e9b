"""
Configuration Management Module

This module handles loading, validating, and providing access to connector
configuration from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Keeps API credentials as SecretStr so they never show up in logs or reprs
- Provides defaults for every CoinDCX endpoint
- Holds the reconnection and backpressure tuning knobs

Usage:
    from core.config import settings

    print(settings.coindcx_rest_url)
    print(settings.ws_reconnect_delay)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, SecretStr


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        coindcx_rest_url: Base URL for the CoinDCX REST API
        coindcx_public_stream_url: Socket.IO endpoint for public market data
        coindcx_private_stream_url: WebSocket endpoint for private account updates
        coindcx_private_namespace: Channel namespace for private subscriptions
        coindcx_api_key: API key (only needed for the private connector)
        coindcx_api_secret: API secret (only needed for the private connector)
        connector_type: Default connector-type tag stamped on canonical events
        log_level: Logging level
        request_timeout: Timeout for HTTP requests in seconds
        ws_reconnect_delay: Base delay before the first reconnection attempt
        ws_max_reconnect_delay: Upper bound for the exponential backoff
        ws_max_reconnect_attempts: Give up after this many attempts (0 = never)
        ws_heartbeat: Ping interval for the private WebSocket
        orderbook_depth: Depth level of the order-book channel
        candle_interval: Candle channel interval
        event_queue_size: Capacity of the per-connector event channel
    """

    # ============================================
    # CoinDCX Endpoints
    # ============================================

    coindcx_rest_url: str = Field(
        default="https://api.coindcx.com",
        description="CoinDCX REST API base URL"
    )

    coindcx_public_stream_url: str = Field(
        default="wss://stream.coindcx.com",
        description="CoinDCX Socket.IO market data endpoint"
    )

    coindcx_private_stream_url: str = Field(
        default="wss://stream.coindcx.com/ws",
        description="CoinDCX private WebSocket endpoint"
    )

    coindcx_private_namespace: str = Field(
        default="coindcx",
        description="Namespace prefix for private channel subscriptions"
    )

    # ============================================
    # Credentials
    # ============================================

    coindcx_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="CoinDCX API key (private connector only)"
    )

    coindcx_api_secret: SecretStr = Field(
        default=SecretStr(""),
        description="CoinDCX API secret (private connector only)"
    )

    connector_type: str = Field(
        default="coindcx",
        description="Connector type tag stamped on every canonical event"
    )

    # ============================================
    # Application Configuration
    # ============================================

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    request_timeout: int = Field(
        default=10,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Streaming & Reconnection
    # ============================================

    ws_reconnect_delay: float = Field(
        default=1.0,
        description="Base delay before reconnecting after an unexpected close (seconds)"
    )

    ws_max_reconnect_delay: float = Field(
        default=30.0,
        description="Maximum delay between reconnection attempts (seconds)"
    )

    ws_max_reconnect_attempts: int = Field(
        default=10,
        description="Maximum consecutive reconnection attempts (0 = unlimited)"
    )

    ws_heartbeat: float = Field(
        default=30.0,
        description="Ping interval for the private WebSocket (seconds)"
    )

    orderbook_depth: int = Field(
        default=20,
        description="Depth level of the public order-book channel"
    )

    candle_interval: str = Field(
        default="1m",
        description="Interval of the public candlestick channel"
    )

    event_queue_size: int = Field(
        default=1000,
        description="Capacity of the bounded event channel per connector"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def has_credentials(self) -> bool:
        """True if both API key and secret are configured."""
        return bool(
            self.coindcx_api_key.get_secret_value()
            and self.coindcx_api_secret.get_secret_value()
        )


# Single settings instance shared by the whole application
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate connector settings on startup.

    Args:
        config: Settings to validate (defaults to the global instance)

    Raises:
        ValueError: If a setting is missing or out of range
    """
    # Import here to avoid circular import (logging.py imports config.py)
    from core.logging import logger

    config = config or settings

    for name in ("coindcx_rest_url", "coindcx_public_stream_url", "coindcx_private_stream_url"):
        url = getattr(config, name)
        if not url.startswith(("http://", "https://", "ws://", "wss://")):
            raise ValueError(f"Invalid {name.upper()}: '{url}'")

    if config.ws_reconnect_delay <= 0:
        raise ValueError("WS_RECONNECT_DELAY must be greater than 0")

    if config.ws_max_reconnect_delay < config.ws_reconnect_delay:
        raise ValueError("WS_MAX_RECONNECT_DELAY must be >= WS_RECONNECT_DELAY")

    if config.ws_max_reconnect_attempts < 0:
        raise ValueError("WS_MAX_RECONNECT_ATTEMPTS cannot be negative")

    if config.event_queue_size < 1:
        raise ValueError("EVENT_QUEUE_SIZE must be at least 1")

    if config.request_timeout < 1:
        raise ValueError("REQUEST_TIMEOUT must be at least 1 second")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"CoinDCX REST API: {config.coindcx_rest_url}")
    logger.info(f"Public stream: {config.coindcx_public_stream_url}")
    logger.info(f"Private stream: {config.coindcx_private_stream_url}")
    logger.info(f"Credentials: {'configured' if config.has_credentials else 'not configured'}")
    logger.info(f"Log level: {config.log_level.upper()}")
