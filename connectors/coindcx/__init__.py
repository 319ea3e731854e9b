"""
CoinDCX Exchange Connector

Implements the public and private connector contracts for CoinDCX spot
markets.

API Documentation:
    https://docs.coindcx.com/

Endpoints Used:
    REST (all POST, HMAC-SHA256 signed):
        - /exchange/v1/orders/create
        - /exchange/v1/orders/cancel_all
        - /exchange/v1/users/balances
        - /exchange/v1/orders/active_orders

    Streaming:
        - wss://stream.coindcx.com (Socket.IO) - public market data
        - wss://stream.coindcx.com/ws - private balance and order updates
"""

from .api_client import CoinDCXAPIClient
from .normalizer import CoinDCXNormalizer
from .private_connector import CoinDCXPrivateConnector
from .public_connector import CoinDCXPublicConnector

__all__ = [
    "CoinDCXAPIClient",
    "CoinDCXNormalizer",
    "CoinDCXPrivateConnector",
    "CoinDCXPublicConnector",
]
