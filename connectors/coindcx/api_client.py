"""
CoinDCX REST API Client

This module provides an async HTTP client for the authenticated CoinDCX
REST API. It handles:
- Request signing (HMAC-SHA256 over the exact body bytes sent)
- Retry logic for read-only endpoints (429, 503, timeouts)
- Error handling and logging
- Data normalization to our schemas

API Documentation:
    https://docs.coindcx.com/

Endpoints Used (all POST, JSON body):
    - /exchange/v1/orders/create        Place one order
    - /exchange/v1/orders/cancel_all    Cancel all open orders of a market
    - /exchange/v1/users/balances       Account balances
    - /exchange/v1/orders/active_orders Open orders of a market

Retry Policy:
    - Balances and active orders: up to 3 attempts, fresh timestamp and
      signature per attempt
    - Order creation and cancellation: never retried, a duplicate order is
      worse than a failed one

Usage:
    async with CoinDCXAPIClient(credential, normalizer) as client:
        balances = await client.get_balances()
        orders = await client.get_active_orders("BTCUSDT")
"""

import aiohttp
import asyncio
import json
import logging
import time
from typing import Any, Dict, List, Optional

from core.config import settings
from core.exceptions import AuthenticationFailure, MalformedMessage, RequestRejected, TransportError
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import BalanceResponse, Credential, OrderRequest, OrderStatusUpdate, PlaceOrderResult, Side
from core.signing import Signer
from core.utils.time import current_utc_timestamp
from connectors.coindcx.normalizer import CoinDCXNormalizer, frame_items

RETRYABLE_STATUSES = (429, 503)
AUTH_STATUSES = (401, 403)
MAX_ATTEMPTS = 3


def normalize_order_type(order_type: str) -> str:
    """
    Map an order type to CoinDCX's vocabulary.

    Example:
        >>> normalize_order_type("limit")
        'limit_order'
        >>> normalize_order_type("market_order")
        'market_order'
    """
    order_type = order_type.strip().lower()
    if order_type.endswith("_order"):
        return order_type
    return f"{order_type}_order"


class CoinDCXAPIClient:
    """
    Async HTTP client for the CoinDCX private REST API.

    Every call builds and signs its own body; calls share nothing mutable
    except the aiohttp session, so they may be awaited concurrently.

    Attributes:
        BASE_URL: Default CoinDCX REST base URL
        signer: Signer bound to the account credential
        normalizer: Normalizer used to build canonical responses
        session: aiohttp ClientSession (created lazily if not entered)

    Raises:
        SigningPrecondition: At construction if the credential is empty
    """

    BASE_URL = "https://api.coindcx.com"

    CREATE_ORDER_PATH = "/exchange/v1/orders/create"
    CANCEL_ALL_PATH = "/exchange/v1/orders/cancel_all"
    BALANCES_PATH = "/exchange/v1/users/balances"
    ACTIVE_ORDERS_PATH = "/exchange/v1/orders/active_orders"

    def __init__(
        self,
        credential: Credential,
        normalizer: CoinDCXNormalizer,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.signer = Signer(credential)
        self.normalizer = normalizer
        self.base_url = (base_url or settings.coindcx_rest_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout or settings.request_timeout
        self.logger = logger or get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self) -> None:
        """Create the HTTP session if needed."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
            self.logger.debug("CoinDCXAPIClient session created")

    async def close(self) -> None:
        """Close the HTTP session. Safe to call multiple times."""
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug("CoinDCXAPIClient session closed")
        self.session = None

    # ============================================
    # Signed POST with Retry Logic
    # ============================================

    async def _post(self, path: str, body: Dict[str, Any], retry: bool = False) -> Any:
        """
        Sign and POST a JSON body.

        Args:
            path: API endpoint path
            body: Request body (``timestamp`` is refreshed on every attempt)
            retry: Retry transient failures (read-only endpoints only)

        Returns:
            Decoded JSON response (or raw text if the body is not JSON)

        Raises:
            AuthenticationFailure: HTTP 401/403
            RequestRejected: Any other non-2xx answer
            TransportError: Timeouts and connection errors after all attempts
        """
        await self.open()

        url = f"{self.base_url}{path}"
        attempts = MAX_ATTEMPTS if retry else 1
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            if attempt and "timestamp" in body:
                body = {**body, "timestamp": current_utc_timestamp(milliseconds=True)}

            payload, signature = self.signer.sign_body(body)
            headers = self.signer.auth_headers(signature)

            try:
                log_api_request("coindcx", path, body, log=self.logger)
                started = time.monotonic()

                async with self.session.post(
                    url,
                    data=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as resp:
                    log_api_response("coindcx", path, resp.status, time.monotonic() - started, log=self.logger)
                    data = await self._read_body(resp)

                    if 200 <= resp.status < 300:
                        return data

                    if resp.status in AUTH_STATUSES:
                        raise AuthenticationFailure(f"POST {path} unauthorized (HTTP {resp.status}): {data}")

                    if retry and resp.status in RETRYABLE_STATUSES and attempt < attempts - 1:
                        delay = 1.5 * (attempt + 1)
                        self.logger.warning(
                            f"Rate limited (HTTP {resp.status}) on {path}. "
                            f"Retrying in {delay:.1f}s... (attempt {attempt + 1}/{attempts})"
                        )
                        await asyncio.sleep(delay)
                        continue

                    raise RequestRejected(f"POST {path} rejected", status=resp.status, payload=data)

            except asyncio.TimeoutError as e:
                last_error = e
                self.logger.error(f"Timeout on {path} (attempt {attempt + 1}/{attempts})")

            except aiohttp.ClientError as e:
                last_error = e
                self.logger.error(f"Request failed on {path}: {e} (attempt {attempt + 1}/{attempts})")

            if attempt < attempts - 1:
                await asyncio.sleep(1.0 * (attempt + 1))

        raise TransportError(f"POST {url} failed after {attempts} attempt(s): {last_error}")

    @staticmethod
    async def _read_body(resp: aiohttp.ClientResponse) -> Any:
        text = await resp.text()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    # ============================================
    # API Methods
    # ============================================

    async def create_order(
        self,
        order: OrderRequest,
        market: str,
        client_order_id: Optional[str] = None
    ) -> PlaceOrderResult:
        """
        Place one order.

        Args:
            order: Order intent (side, type, price and size are sent as given)
            market: Market symbol (e.g., "BTCUSDT")
            client_order_id: Id to attach (defaults to ``order_<timestamp>``)

        Returns:
            PlaceOrderResult with ``accepted=False`` and the exchange error
            payload when CoinDCX rejects the order

        Raises:
            AuthenticationFailure / TransportError: The order never got a verdict

        CoinDCX Endpoint:
            POST /exchange/v1/orders/create

        Request Body:
            {
              "side": "buy",
              "order_type": "limit_order",
              "market": "BTCUSDT",
              "price_per_unit": 20000.0,
              "total_quantity": 0.1,
              "timestamp": 1700000000000,
              "client_order_id": "order_1700000000000"
            }
        """
        timestamp = current_utc_timestamp(milliseconds=True)
        order_type = normalize_order_type(order.type)
        client_order_id = client_order_id or order.client_order_id or f"order_{timestamp}"

        body = {
            "side": order.side.value.lower(),
            "order_type": order_type,
            "market": market,
            "total_quantity": order.size,
            "timestamp": timestamp,
            "client_order_id": client_order_id,
        }
        if order_type != "market_order":
            body["price_per_unit"] = order.price

        self.logger.info(
            f"Placing {order.side.value} {order_type} on {market}: {order.size} @ {order.price}"
        )

        try:
            data = await self._post(self.CREATE_ORDER_PATH, body)
        except RequestRejected as e:
            self.logger.error(f"Order {client_order_id} rejected: {e}")
            return PlaceOrderResult(accepted=False, client_order_id=client_order_id, error=e.payload)

        self.logger.info(f"Order {client_order_id} placed successfully")
        self.logger.debug(f"Response: {data}")

        return PlaceOrderResult(
            accepted=True,
            client_order_id=client_order_id,
            order_id=self._extract_order_id(data),
            response=data,
        )

    async def cancel_all(self, market: str, side: Optional[Side] = None) -> Any:
        """
        Cancel all open orders of a market, optionally one side only.

        Raises:
            RequestRejected / AuthenticationFailure / TransportError

        CoinDCX Endpoint:
            POST /exchange/v1/orders/cancel_all
        """
        body: Dict[str, Any] = {
            "market": market,
            "timestamp": current_utc_timestamp(milliseconds=True),
        }
        if side is not None:
            body["side"] = side.value.lower()

        self.logger.info(f"Cancelling all {side.value + ' ' if side else ''}orders on {market}")

        data = await self._post(self.CANCEL_ALL_PATH, body)

        self.logger.info(f"Orders on {market} cancelled successfully")
        self.logger.debug(f"Response: {data}")
        return data

    async def get_balances(self) -> BalanceResponse:
        """
        Fetch account balances.

        CoinDCX Endpoint:
            POST /exchange/v1/users/balances

        Response Format:
            [
              {"currency": "USDT", "balance": "100.0", "locked_balance": "5.0"}
            ]
        """
        timestamp = current_utc_timestamp(milliseconds=True)
        data = await self._post(self.BALANCES_PATH, {"timestamp": timestamp}, retry=True)

        balances = self.normalizer.balance_response(data or [], timestamp=timestamp)
        self.logger.info(f"Fetched balances for {len(balances.balances)} assets")
        return balances

    async def get_active_orders(self, market: str) -> List[OrderStatusUpdate]:
        """
        Fetch open orders of a market.

        Orders that fail validation are logged and skipped.

        CoinDCX Endpoint:
            POST /exchange/v1/orders/active_orders

        Response Format:
            {
              "orders": [
                {
                  "id": "ead19992-43fd-11e8-b027-bb815bcb14ed",
                  "client_order_id": "order_1700000000000",
                  "market": "BTCUSDT",
                  "order_type": "limit_order",
                  "side": "buy",
                  "status": "open",
                  "fee_amount": "0.0",
                  "fee": "0.1",
                  "total_quantity": "1.0",
                  "remaining_quantity": "0.4",
                  "avg_price": "0.0",
                  "price_per_unit": "20000.0",
                  "created_at": "2024-01-01T12:00:00.000Z",
                  "updated_at": "2024-01-01T12:00:00.000Z"
                }
              ]
            }
        """
        body = {
            "market": market,
            "timestamp": current_utc_timestamp(milliseconds=True),
        }
        data = await self._post(self.ACTIVE_ORDERS_PATH, body, retry=True)

        orders = []
        for item in frame_items(data or []):
            try:
                orders.append(self.normalizer.active_order(item))
            except MalformedMessage as e:
                self.logger.warning(f"Skipping malformed active order: {e}")

        self.logger.info(f"Fetched {len(orders)} active orders for {market}")
        return orders

    @staticmethod
    def _extract_order_id(data: Any) -> Optional[str]:
        if isinstance(data, dict):
            orders = data.get("orders")
            if isinstance(orders, list) and orders and isinstance(orders[0], dict):
                order_id = orders[0].get("id")
                return None if order_id is None else str(order_id)
            if data.get("id") is not None:
                return str(data["id"])
        return None
