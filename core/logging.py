"""
Unified Logging Configuration

This module sets up a centralized logging system for the connectors.
Every module gets its logger from here instead of printing to the console.

The connectors only depend on the standard ``logging.Logger`` interface
(debug / info / warning / error), so callers can inject any logger they
like; when nothing is injected the namespaced logger from ``get_logger``
is used.

Usage:
    from core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Connected to CoinDCX")

Configuration:
    Applications call ``setup_logging(settings.log_level)`` once at startup
    (LOG_LEVEL in .env). Importing the connectors configures nothing.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "coindcx"


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include module name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Connector started")
        2024-01-01 12:00:00 [INFO] coindcx: Connector started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Package Logger
# ============================================

# Handlers are left to the application (setup_logging), importing the
# package never touches the root logger
logger = logging.getLogger(ROOT_LOGGER_NAME)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger instance for the specified name

    Example:
        # In connectors/coindcx/api_client.py:
        logger = get_logger(__name__)  # "coindcx.connectors.coindcx.api_client"
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: str) -> None:
    """
    Change the log level at runtime.

    Args:
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(
    exchange: str,
    endpoint: str,
    params: dict = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log an API request with consistent formatting.

    Args:
        exchange: Exchange name (e.g., "coindcx")
        endpoint: API endpoint being called
        params: Request body or parameters (optional, must not contain secrets)
        log: Logger to write to (defaults to the application logger)

    Example:
        >>> log_api_request("coindcx", "/exchange/v1/users/balances", {"timestamp": 1700000000000})
        [DEBUG] API Request: coindcx /exchange/v1/users/balances | Params: {'timestamp': 1700000000000}
    """
    log = log or logger
    if params:
        log.debug(f"API Request: {exchange} {endpoint} | Params: {params}")
    else:
        log.debug(f"API Request: {exchange} {endpoint}")


def log_api_response(
    exchange: str,
    endpoint: str,
    status: int,
    response_time: float = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log an API response with status and timing information.

    Args:
        exchange: Exchange name
        endpoint: API endpoint
        status: HTTP status code
        response_time: Response time in seconds (optional)
        log: Logger to write to (defaults to the application logger)

    Example:
        >>> log_api_response("coindcx", "/exchange/v1/orders/create", 200, 0.342)
        [DEBUG] API Response: coindcx /exchange/v1/orders/create | Status: 200 | Time: 0.342s
    """
    log = log or logger
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    log.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")


def log_websocket_event(
    exchange: str,
    event: str,
    symbol: str = None,
    details: str = None,
    log: Optional[logging.Logger] = None
) -> None:
    """
    Log a WebSocket event with consistent formatting.

    Args:
        exchange: Exchange name
        event: Event type (e.g., "connected", "disconnected", "error")
        symbol: Trading symbol (optional)
        details: Additional details (optional)
        log: Logger to write to (defaults to the application logger)

    Example:
        >>> log_websocket_event("coindcx", "connected", "BTCUSDT")
        [INFO] WebSocket: coindcx connected | Symbol: BTCUSDT
    """
    log = log or logger
    symbol_str = f" | Symbol: {symbol}" if symbol else ""
    details_str = f" | {details}" if details else ""

    level = logging.ERROR if event == "error" else logging.INFO
    log.log(level, f"WebSocket: {exchange} {event}{symbol_str}{details_str}")


logger.debug("Logging system initialized")
