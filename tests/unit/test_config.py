"""
Unit Tests for Configuration Module

These tests verify that the configuration system works correctly:
- Default values are applied when needed
- Credentials stay masked
- Validation catches invalid configurations

Run with:
    pytest tests/unit/test_config.py -v
"""

import pytest
from pydantic import SecretStr

from core.config import Settings, settings, validate_configuration


class TestConfigurationLoading:
    """Test that configuration loads with sensible defaults"""

    def test_rest_url_loaded(self):
        """Verify CoinDCX REST URL is set"""
        assert settings.coindcx_rest_url.startswith("http")
        assert "coindcx" in settings.coindcx_rest_url.lower()

    def test_stream_urls_are_websocket_urls(self):
        """Verify stream URLs use the ws/wss scheme"""
        assert settings.coindcx_public_stream_url.startswith(("ws://", "wss://"))
        assert settings.coindcx_private_stream_url.startswith(("ws://", "wss://"))

    def test_channel_defaults(self):
        """Verify the order-book depth and candle interval defaults"""
        defaults = Settings(_env_file=None)
        assert defaults.orderbook_depth == 20
        assert defaults.candle_interval == "1m"
        assert defaults.coindcx_private_namespace == "coindcx"

    def test_log_level_is_set(self):
        """Verify log level is configured"""
        assert isinstance(settings.log_level, str)
        assert len(settings.log_level) > 0


class TestCredentials:
    """Credentials are optional and never printable"""

    def test_credentials_are_secret(self):
        """Verify API credentials are SecretStr"""
        assert isinstance(settings.coindcx_api_key, SecretStr)
        assert isinstance(settings.coindcx_api_secret, SecretStr)

    def test_has_credentials_false_when_empty(self):
        config = Settings(_env_file=None, coindcx_api_key="", coindcx_api_secret="")
        assert config.has_credentials is False

    def test_has_credentials_true_when_set(self):
        config = Settings(_env_file=None, coindcx_api_key="key", coindcx_api_secret="secret")
        assert config.has_credentials is True

    def test_secret_not_in_repr(self):
        config = Settings(_env_file=None, coindcx_api_key="key", coindcx_api_secret="topsecret")
        assert "topsecret" not in repr(config)


class TestConfigurationValidation:
    """Test validate_configuration()"""

    def test_defaults_are_valid(self):
        """Verify default configuration passes validation"""
        validate_configuration(Settings(_env_file=None))

    def test_invalid_stream_url(self):
        config = Settings(_env_file=None, coindcx_public_stream_url="stream.coindcx.com")
        with pytest.raises(ValueError, match="COINDCX_PUBLIC_STREAM_URL"):
            validate_configuration(config)

    def test_reconnect_delay_must_be_positive(self):
        config = Settings(_env_file=None, ws_reconnect_delay=0)
        with pytest.raises(ValueError, match="WS_RECONNECT_DELAY"):
            validate_configuration(config)

    def test_max_delay_below_base_delay(self):
        config = Settings(_env_file=None, ws_reconnect_delay=10, ws_max_reconnect_delay=5)
        with pytest.raises(ValueError, match="WS_MAX_RECONNECT_DELAY"):
            validate_configuration(config)

    def test_negative_attempts(self):
        config = Settings(_env_file=None, ws_max_reconnect_attempts=-1)
        with pytest.raises(ValueError, match="WS_MAX_RECONNECT_ATTEMPTS"):
            validate_configuration(config)

    def test_queue_size_must_be_positive(self):
        config = Settings(_env_file=None, event_queue_size=0)
        with pytest.raises(ValueError, match="EVENT_QUEUE_SIZE"):
            validate_configuration(config)

    def test_invalid_log_level(self):
        config = Settings(_env_file=None, log_level="VERBOSE")
        with pytest.raises(ValueError, match="Invalid LOG_LEVEL"):
            validate_configuration(config)

    def test_log_level_case_insensitive(self):
        validate_configuration(Settings(_env_file=None, log_level="debug"))
