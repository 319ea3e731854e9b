"""
CoinDCX Public Streaming Connector

This module streams CoinDCX market data for one trading pair over
Socket.IO. It handles:
- Socket.IO connection to the CoinDCX stream
- Joining / leaving the four market-data channels of the pair
- Normalization of every inbound frame to canonical events
- Reconnection with exponential backoff (ReconnectionController)
- Automatic resubscription after a reconnect

Channels (joined with ``{"channelName": ...}`` on the ``join`` event):
    - Price:       B-{symbol}@prices
    - Order book:  B-{symbol}@orderbook@{depth}
    - Trades:      B-{symbol}@trades
    - Candles:     B-{symbol}_{interval}

Inbound events (payload is ``{"data": "<json string>"}``):
    price-change, depth-update, trade-update, candlestick

Socket.IO Documentation:
    https://docs.coindcx.com/#spot-websocket

Usage:
    connector = CoinDCXPublicConnector(ConnectorGroup(name="BTC"),
                                       ConnectorConfiguration(quoteAsset="USDT"))
    await connector.connect()
    async for batch in connector.events():
        print(batch[0])
"""

import logging
from typing import Any, Callable, List, Optional, Set

import socketio
from socketio import exceptions as socketio_exceptions

from core.config import settings
from core.connector_interface import ConnectionState, PublicExchangeConnector
from core.exceptions import MalformedMessage
from core.logging import log_websocket_event
from core.reconnect import ReconnectionController
from core.schemas import ConnectorConfiguration, ConnectorGroup
from connectors.coindcx.normalizer import CoinDCXNormalizer

JOIN_EVENT = "join"
LEAVE_EVENT = "leave"


class CoinDCXPublicConnector(PublicExchangeConnector):
    """
    Market-data connector for one CoinDCX trading pair.

    A fresh Socket.IO client is created for every connection attempt;
    Socket.IO's own reconnection is disabled so that reconnects go through
    the ReconnectionController and always resubscribe.

    Attributes:
        BASE_URL: CoinDCX Socket.IO endpoint
        url: Stream URL in use
        depth: Order-book depth level of the depth channel
        candle_interval: Candle interval of the candle channel
        normalizer: Wire → canonical mapping for this pair

    Example:
        >>> connector = CoinDCXPublicConnector(ConnectorGroup(name="BTC"),
        ...                                    ConnectorConfiguration(quoteAsset="USDT"))
        >>> connector.channels[0]
        'B-BTCUSDT@prices'
    """

    name = "coindcx"

    BASE_URL = "wss://stream.coindcx.com"

    def __init__(
        self,
        group: ConnectorGroup,
        config: ConnectorConfiguration,
        logger: Optional[logging.Logger] = None,
        reconnector: Optional[ReconnectionController] = None,
        max_queue_size: Optional[int] = None,
        url: Optional[str] = None,
        depth: Optional[int] = None,
        candle_interval: Optional[str] = None,
        client_factory: Optional[Callable[[], Any]] = None
    ):
        """
        Initialize the connector.

        Args:
            group: Base asset group (e.g., BTC)
            config: Connector configuration (quote asset, connector type)
            logger: Logger to use (defaults to the module logger)
            reconnector: Reconnection policy (defaults from settings)
            max_queue_size: Size of the event channel (defaults from settings)
            url: Stream URL override
            depth: Order-book depth level (default: 20)
            candle_interval: Candle interval (default: "1m")
            client_factory: Callable returning a Socket.IO client
        """
        super().__init__(group, config, logger=logger, reconnector=reconnector, max_queue_size=max_queue_size)

        self.url = url or settings.coindcx_public_stream_url or self.BASE_URL
        self.depth = depth or settings.orderbook_depth
        self.candle_interval = candle_interval or settings.candle_interval
        self.normalizer = CoinDCXNormalizer(self.symbol, config.connector_type)

        self._client_factory = client_factory or self._create_client
        self._client: Optional[Any] = None
        self._subscribed: Set[str] = set()

    @property
    def channels(self) -> List[str]:
        """Market-data channels of the pair, in subscription order."""
        return [
            f"B-{self.symbol}@prices",
            f"B-{self.symbol}@orderbook@{self.depth}",
            f"B-{self.symbol}@trades",
            f"B-{self.symbol}_{self.candle_interval}",
        ]

    @property
    def subscriptions(self) -> Set[str]:
        return set(self._subscribed)

    # ============================================
    # Transport
    # ============================================

    @staticmethod
    def _create_client() -> socketio.AsyncClient:
        return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)

    def _register_handlers(self, client: Any) -> None:
        """Bind Socket.IO handlers that only act while ``client`` is current."""

        async def on_connect():
            if client is not self._client:
                return
            log_websocket_event("coindcx", "connected", self.symbol, log=self.logger)
            self.state = ConnectionState.CONNECTED
            await self.subscribe_to_all_channels()

        async def on_disconnect(*args):
            if client is not self._client:
                return
            self._client = None
            self._subscribed.clear()
            self._transport_closed(f"disconnected {args[0]}" if args else "disconnected")

        async def on_connect_error(data=None):
            if client is self._client:
                self.logger.error(f"CoinDCX stream connection error for {self.symbol}: {data}")

        async def on_any(event, data=None):
            if client is self._client:
                await self._handle_event(event, data)

        client.on("connect", on_connect)
        client.on("disconnect", on_disconnect)
        client.on("connect_error", on_connect_error)
        client.on("*", on_any)

    async def _open(self) -> None:
        """Connect a fresh client; failures are handed to the reconnector."""
        self.state = ConnectionState.CONNECTING
        self._subscribed.clear()

        client = self._client_factory()
        self._client = client
        self._register_handlers(client)

        self.logger.info(f"Connecting to {self.url} for {self.symbol}")

        try:
            await client.connect(self.url, transports=["websocket"])
        except (socketio_exceptions.ConnectionError, OSError) as e:
            if client is not self._client:
                return
            self.logger.error(f"Failed to connect to CoinDCX stream: {e}")
            self._client = None
            self._transport_closed(str(e))
            return

        # Some clients return before the connect handler has run
        if client is self._client and self.state == ConnectionState.CONNECTING:
            self.state = ConnectionState.CONNECTED
            await self.subscribe_to_all_channels()

    async def _close_transport(self) -> None:
        client = self._client
        if client is None:
            return

        if self._subscribed:
            try:
                await self.unsubscribe_from_all_channels()
            except Exception as e:
                self.logger.warning(f"Could not leave channels before disconnecting: {e}")

        self._client = None
        self._subscribed.clear()
        try:
            await client.disconnect()
        except Exception as e:
            self.logger.warning(f"Error while disconnecting from CoinDCX stream: {e}")

    # ============================================
    # Subscriptions
    # ============================================

    async def subscribe_to_all_channels(self) -> None:
        """Join every channel not joined yet; a completed join resets the backoff."""
        if self._client is None or not self.is_connected:
            self.logger.debug("subscribe_to_all_channels() ignored, not connected")
            return

        for channel in self.channels:
            if channel in self._subscribed:
                continue
            await self._client.emit(JOIN_EVENT, {"channelName": channel})
            self._subscribed.add(channel)
            self.logger.info(f"Subscribed to {channel}")

        self.state = ConnectionState.SUBSCRIBED
        self.reconnector.reset()

    async def unsubscribe_from_all_channels(self) -> None:
        """Leave every joined channel."""
        if self._client is None or not self.is_connected:
            self.logger.debug("unsubscribe_from_all_channels() ignored, not connected")
            return

        for channel in list(self._subscribed):
            await self._client.emit(LEAVE_EVENT, {"channelName": channel})
            self._subscribed.discard(channel)
            self.logger.info(f"Unsubscribed from {channel}")

        self.state = ConnectionState.CONNECTED

    # ============================================
    # Message Handling
    # ============================================

    async def _handle_event(self, event: str, data: Any) -> None:
        try:
            canonical = self.normalizer.normalize(event, data)
        except MalformedMessage as e:
            self.logger.warning(f"Dropping malformed {event} frame: {e}")
            return

        if canonical is None:
            self.logger.debug(f"Ignoring unrecognized event: {event}")
            return

        await self._emit(canonical)
