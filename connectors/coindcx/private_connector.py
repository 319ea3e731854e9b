"""
CoinDCX Private Trading Connector

This module implements the authenticated CoinDCX surface for one trading
pair. It handles:
- The private WebSocket stream (auth frame, balance and order channels)
- Normalization of pushed frames to BalanceResponse / OrderStatusUpdate
- Reconnection with exponential backoff, except after an auth failure
- Signed REST operations (place, cancel-all, balances, active orders),
  delegated to CoinDCXAPIClient

Stream Protocol:
    1. Connect to wss://stream.coindcx.com/ws
    2. Send {"method": "auth", "api_key", "timestamp", "signature"}
       where signature = HMAC-SHA256(secret, api_key + timestamp)
    3. Send {"method": "SUBSCRIBE", "params": ["coindcx@balance-update"]}
       and {"method": "SUBSCRIBE", "params": ["coindcx@order-update"]}

REST operations do not need the stream and can be awaited concurrently.

Usage:
    connector = CoinDCXPrivateConnector(ConnectorGroup(name="BTC"),
                                        ConnectorConfiguration(quoteAsset="USDT"),
                                        Credential(key="...", secret="..."))
    balances = await connector.get_balance(BalanceRequest())
    await connector.connect(on_message)
"""

import aiohttp
import asyncio
import json
import logging
from typing import Any, List, Optional

from core.config import settings
from core.connector_interface import ConnectionState, PrivateExchangeConnector
from core.exceptions import AuthenticationFailure, MalformedMessage, TransportError
from core.logging import log_websocket_event
from core.reconnect import ReconnectionController
from core.schemas import (
    BalanceRequest,
    BalanceResponse,
    BaseEvent,
    BatchOrdersRequest,
    CancelOrdersRequest,
    ConnectorConfiguration,
    ConnectorGroup,
    Credential,
    OpenOrdersRequest,
    OrderStatusUpdate,
    PlaceOrderResult,
)
from core.signing import Signer
from core.utils.time import current_utc_timestamp
from connectors.coindcx.api_client import CoinDCXAPIClient
from connectors.coindcx.normalizer import (
    BALANCE_UPDATE,
    ORDER_UPDATE,
    CoinDCXNormalizer,
    frame_items,
    private_frame_kind,
)

AUTH_TAGS = ("auth", "authentication")
AUTH_ERROR_STATUSES = ("error", "failed", "failure", "unauthorized")
AUTH_HANDSHAKE_STATUSES = (401, 403)


def is_auth_failure(message: Any) -> bool:
    """
    True if a private frame reports a rejected authentication.

    Example:
        >>> is_auth_failure({"method": "auth", "status": "error", "message": "Invalid signature"})
        True
        >>> is_auth_failure({"method": "auth", "status": "success"})
        False
    """
    if not isinstance(message, dict):
        return False

    tag = str(message.get("method") or message.get("event") or message.get("type") or "").lower()
    if tag in ("unauthorized", "auth_error", "auth-error"):
        return True
    if tag not in AUTH_TAGS:
        return False

    status = str(message.get("status") or "").lower()
    return bool(message.get("error")) or status in AUTH_ERROR_STATUSES


class CoinDCXPrivateConnector(PrivateExchangeConnector):
    """
    Authenticated CoinDCX connector for one trading pair.

    The credential is checked at construction: an empty key or secret
    raises SigningPrecondition before any network activity.

    Attributes:
        STREAM_URL: Default private stream URL
        url: Stream URL in use
        namespace: Channel namespace (``<namespace>@balance-update``)
        heartbeat: WebSocket ping interval in seconds
        normalizer: Wire → canonical mapping for this pair
        api_client: Signed REST client
    """

    name = "coindcx"

    STREAM_URL = "wss://stream.coindcx.com/ws"

    def __init__(
        self,
        group: ConnectorGroup,
        config: ConnectorConfiguration,
        credential: Credential,
        logger: Optional[logging.Logger] = None,
        reconnector: Optional[ReconnectionController] = None,
        max_queue_size: Optional[int] = None,
        url: Optional[str] = None,
        namespace: Optional[str] = None,
        api_client: Optional[CoinDCXAPIClient] = None
    ):
        super().__init__(group, config, logger=logger, reconnector=reconnector, max_queue_size=max_queue_size)

        self.signer = Signer(credential)
        self.url = url or settings.coindcx_private_stream_url or self.STREAM_URL
        self.namespace = namespace or settings.coindcx_private_namespace
        self.heartbeat = settings.ws_heartbeat
        self.normalizer = CoinDCXNormalizer(self.symbol, config.connector_type)
        self.api_client = api_client or CoinDCXAPIClient(
            credential,
            self.normalizer,
            base_url=config.base_url,
            logger=self.logger
        )

        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def channels(self) -> List[str]:
        return [f"{self.namespace}@{BALANCE_UPDATE}", f"{self.namespace}@{ORDER_UPDATE}"]

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Stop streaming and release the REST session."""
        await self.stop()
        await self.api_client.close()

    # ============================================
    # Stream Connection Management
    # ============================================

    async def _open(self) -> None:
        """
        Connect, authenticate and subscribe; failures go to the reconnector.

        Raises:
            AuthenticationFailure: If the handshake was rejected with 401/403
        """
        self.state = ConnectionState.CONNECTING

        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

        self.logger.info(f"Connecting to {self.url}")

        try:
            ws = await self.session.ws_connect(self.url, heartbeat=self.heartbeat)
        except aiohttp.WSServerHandshakeError as e:
            if e.status in AUTH_HANDSHAKE_STATUSES:
                error = await self._authentication_failed(f"handshake rejected (HTTP {e.status})")
                raise error from e
            self.logger.error(f"Private stream handshake failed: {e}")
            self._transport_closed(str(e))
            return
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Failed to connect to private stream: {e}")
            self._transport_closed(str(e))
            return

        self.ws = ws
        self.state = ConnectionState.AUTHENTICATING
        log_websocket_event("coindcx", "connected", self.symbol, "private stream", log=self.logger)

        try:
            await self._authenticate(ws)
            await self._subscribe(ws)
        except (aiohttp.ClientError, ConnectionError) as e:
            self.logger.error(f"Private stream closed during authentication: {e}")
            self.ws = None
            self._transport_closed(str(e))
            return

        self.state = ConnectionState.SUBSCRIBED
        self.reconnector.reset()
        self._reader = asyncio.create_task(self._read_loop(ws))

    async def _authenticate(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        timestamp = current_utc_timestamp(milliseconds=True)
        await ws.send_json({
            "method": "auth",
            "api_key": self.signer.api_key,
            "timestamp": timestamp,
            "signature": self.signer.sign_auth(timestamp),
        })
        self.logger.info(f"Sent authentication frame for {self.symbol}")

    async def _subscribe(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        for channel in self.channels:
            await ws.send_json({"method": "SUBSCRIBE", "params": [channel]})
            self.logger.info(f"Subscribed to {channel}")

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Read frames until the socket closes, then hand over to the reconnector."""
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.logger.error(f"Private stream error: {ws.exception()}")
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break
        except AuthenticationFailure as e:
            await self._authentication_failed(str(e))
            return

        if ws is self.ws:
            self.ws = None
            self._reader = None
            self._transport_closed(f"close code {ws.close_code}")

    async def _authentication_failed(self, reason: str) -> AuthenticationFailure:
        """Stop streaming for good and surface the failure to events() consumers."""
        self.logger.error(f"CoinDCX authentication failed: {reason}. Not reconnecting.")
        self._stopped = True
        self.reconnector.cancel()

        ws, self.ws = self.ws, None
        self._reader = None
        if ws is not None and not ws.closed:
            await ws.close()

        self.state = ConnectionState.DISCONNECTED
        error = AuthenticationFailure(reason)
        self._channel.close(error)
        return error

    async def _close_transport(self) -> None:
        reader, self._reader = self._reader, None
        ws, self.ws = self.ws, None

        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        if ws is not None and not ws.closed:
            await ws.close()

        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None

    # ============================================
    # Message Handling
    # ============================================

    async def _handle_message(self, raw: str) -> None:
        self.logger.debug(f"Private frame: {raw}")

        try:
            message = json.loads(raw)
        except json.JSONDecodeError as e:
            self.logger.warning(f"Dropping non-JSON private frame: {e}")
            return

        if is_auth_failure(message):
            raise AuthenticationFailure(str(message.get("message") or message.get("error") or message))

        kind = private_frame_kind(message)
        if kind is None:
            self.logger.debug("Ignoring private frame without a known channel")
            return

        for event in self._normalize(kind, message):
            await self._emit(event)

    def _normalize(self, kind: str, message: Any) -> List[BaseEvent]:
        if kind == BALANCE_UPDATE:
            try:
                return [self.normalizer.balance_response(message)]
            except MalformedMessage as e:
                self.logger.warning(f"Dropping malformed balance update: {e}")
                return []

        try:
            items = frame_items(message)
        except MalformedMessage as e:
            self.logger.warning(f"Dropping malformed order update: {e}")
            return []

        events = []
        for item in items:
            try:
                events.append(self.normalizer.order_status_update(item))
            except MalformedMessage as e:
                self.logger.warning(f"Dropping malformed order update: {e}")
        return events

    # ============================================
    # REST Operations
    # ============================================

    async def place_orders(self, request: BatchOrdersRequest) -> List[PlaceOrderResult]:
        """
        Submit every order of the batch, one create-order call each, in order.

        Orders without a client order id get ``order_<timestamp>`` (suffixed
        with the batch index when the batch holds several orders).

        Raises:
            TransportError: With ``results`` set to the results of the
                orders submitted before the failure
        """
        timestamp = current_utc_timestamp(milliseconds=True)
        batch = len(request.orders) > 1

        results = []
        for index, order in enumerate(request.orders):
            client_order_id = order.client_order_id or (
                f"order_{timestamp}_{index}" if batch else f"order_{timestamp}"
            )
            try:
                result = await self.api_client.create_order(order, order.symbol or self.symbol, client_order_id)
            except TransportError as e:
                self.logger.error(
                    f"Order batch on {self.symbol} interrupted after {len(results)}/{len(request.orders)} orders: {e}"
                )
                e.results = results
                raise
            results.append(result)

        accepted = sum(1 for r in results if r.accepted)
        self.logger.info(f"Placed {accepted}/{len(results)} orders on {self.symbol}")
        return results

    async def delete_all_orders(self, request: CancelOrdersRequest) -> dict:
        return await self.api_client.cancel_all(request.symbol, request.side)

    async def get_balance(self, request: BalanceRequest) -> BalanceResponse:
        return await self.api_client.get_balances()

    async def get_current_active_orders(self, request: OpenOrdersRequest) -> List[OrderStatusUpdate]:
        return await self.api_client.get_active_orders(request.symbol)
