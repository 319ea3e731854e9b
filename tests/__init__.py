"""
Test Suite

Contains unit tests for the CoinDCX connectors.

Structure:
- tests/unit/: Tests for individual components (schemas, normalization,
  signing, reconnection, connectors with faked transports)

Uses pytest with pytest-asyncio for testing async functionality.
"""
