"""
Connector Interface: Abstract Contract for Exchange Connectors

This module defines the abstract base classes every exchange connector
implements. The trading engine works against these classes only, never
against a concrete exchange.

Two surfaces:
    - PublicExchangeConnector: market-data stream for one trading pair
    - PrivateExchangeConnector: account stream plus signed REST operations

Both share StreamingConnector, which owns:
    - the connection state machine
    - delivery of canonical events (callback or bounded EventChannel)
    - the ReconnectionController used after unexpected closures

Delivery contract:
    Every canonical event is delivered on its own as a single-element list.
    With a callback, ``on_message([event])`` is called (sync or async
    callables both work). Without one, batches are published to the
    connector's EventChannel and consumed with ``async for batch in
    connector.events()``. After ``stop()`` nothing is delivered until
    ``connect()`` is called again.

Example:
    connector = CoinDCXPublicConnector(ConnectorGroup(name="BTC"),
                                       ConnectorConfiguration(quoteAsset="USDT"))
    await connector.connect(lambda batch: print(batch[0]))
    ...
    await connector.stop()
"""

import inspect
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from core.event_channel import EventChannel
from core.exceptions import TransportError
from core.logging import get_logger
from core.reconnect import ReconnectionController
from core.schemas import (
    BaseEvent,
    BalanceRequest,
    BalanceResponse,
    BatchOrdersRequest,
    CancelOrdersRequest,
    ConnectorConfiguration,
    ConnectorGroup,
    OpenOrdersRequest,
    OrderStatusUpdate,
    PlaceOrderResult,
    trading_pair,
)

MessageCallback = Callable[[List[BaseEvent]], Union[None, Awaitable[None]]]


class ConnectionState(str, Enum):
    """Streaming connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    SUBSCRIBED = "subscribed"


class StreamingConnector(ABC):
    """
    Shared lifecycle of a connector that owns one streaming transport.

    Subclasses implement ``_open`` (open the transport, handle their own
    failures) and ``_close_transport``, and call ``_transport_closed`` when
    the transport goes away on its own.

    Not safe to share across concurrent callers: subscribe, unsubscribe,
    stop and reconnect are expected to run on one flow of control.

    Attributes:
        name: Exchange identifier (lowercase)
        group: Trading-pair group
        config: Connector configuration
        symbol: Exchange trading pair (group name + quote asset)
        state: Current ConnectionState
    """

    name: str = "unknown"

    def __init__(
        self,
        group: ConnectorGroup,
        config: ConnectorConfiguration,
        logger: Optional[logging.Logger] = None,
        reconnector: Optional[ReconnectionController] = None,
        max_queue_size: Optional[int] = None
    ):
        self.group = group
        self.config = config
        self.symbol = trading_pair(group, config)
        self.state = ConnectionState.DISCONNECTED

        self.logger = logger or get_logger(self.__class__.__module__)
        self.reconnector = reconnector or ReconnectionController(logger=self.logger)

        self._max_queue_size = max_queue_size
        self._channel = EventChannel(max_queue_size)
        self._on_message: Optional[MessageCallback] = None
        self._stopped = False

    # ============================================
    # Lifecycle
    # ============================================

    @property
    def is_connected(self) -> bool:
        return self.state not in (ConnectionState.DISCONNECTED, ConnectionState.CONNECTING)

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def connect(self, on_message: Optional[MessageCallback] = None) -> None:
        """
        Open the streaming transport and start delivering events.

        Idempotent: does nothing while a connection is open or opening.
        Transport failures are retried in the background.

        Args:
            on_message: Callback receiving single-element batches. When
                omitted, events go to ``events()`` instead.

        Raises:
            AuthenticationFailure: If the exchange rejected the credentials
        """
        if self.state != ConnectionState.DISCONNECTED:
            self.logger.debug(f"connect() ignored, connector is {self.state.value}")
            return

        self._stopped = False
        if on_message is not None:
            self._on_message = on_message
        if self._channel.closed:
            self._channel = EventChannel(self._max_queue_size)

        self.reconnector.cancel()
        self.reconnector.reset()
        await self._open()

    async def stop(self) -> None:
        """
        Close the transport and suppress reconnection.

        After stop() no further events are delivered; call connect() to resume.
        """
        self._stopped = True
        self.reconnector.cancel()

        await self._close_transport()

        self.state = ConnectionState.DISCONNECTED
        self._channel.close()
        self.logger.info(f"Stopped {self.name} connector for {self.symbol}")

    def events(self) -> EventChannel:
        """Bounded channel used when connect() was called without a callback."""
        return self._channel

    async def _reconnect(self) -> None:
        if self._stopped or self.state != ConnectionState.DISCONNECTED:
            return
        self.logger.info(f"Reconnecting {self.name} connector for {self.symbol}")
        await self._open()

    def _transport_closed(self, reason: str = "") -> None:
        """Record an unexpected closure and schedule a reconnect unless stopped."""
        self.state = ConnectionState.DISCONNECTED
        if self._stopped:
            return
        self.logger.warning(f"{self.name} transport closed for {self.symbol}{': ' + reason if reason else ''}")
        if not self.reconnector.schedule(self._reconnect) and self.reconnector.exhausted:
            self._reconnection_exhausted()

    def _reconnection_exhausted(self) -> None:
        """Stop for good and surface the lost stream to events() consumers."""
        self._stopped = True
        error = TransportError(
            f"{self.name} stream for {self.symbol} lost after {self.reconnector.attempt} reconnection attempts"
        )
        self.logger.error(f"{error}, giving up. Call connect() to start again.")
        self._channel.close(error)

    # ============================================
    # Event Delivery
    # ============================================

    async def _emit(self, event: BaseEvent) -> None:
        """Deliver one canonical event as a single-element batch."""
        if self._stopped:
            return

        if self._on_message is None:
            await self._channel.publish(event)
            return

        try:
            result = self._on_message([event])
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.logger.error(f"Message callback raised on {event.event}: {e}", exc_info=True)

    # ============================================
    # Transport Hooks
    # ============================================

    @abstractmethod
    async def _open(self) -> None:
        """
        Open the transport.

        Transport errors go to ``_transport_closed``, never to the caller.
        A credential rejection is raised as AuthenticationFailure.
        """
        ...

    @abstractmethod
    async def _close_transport(self) -> None:
        """Close the transport. Safe to call when nothing is open."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(symbol='{self.symbol}', state='{self.state.value}')>"


class PublicExchangeConnector(StreamingConnector):
    """Market-data stream for one trading pair."""

    @abstractmethod
    async def subscribe_to_all_channels(self) -> None:
        """
        Join every market-data channel of the pair.

        Idempotent, and a no-op while disconnected.
        """
        ...

    @abstractmethod
    async def unsubscribe_from_all_channels(self) -> None:
        """
        Leave every joined channel.

        Idempotent, and a no-op while disconnected.
        """
        ...


class PrivateExchangeConnector(StreamingConnector):
    """
    Account stream plus signed REST operations.

    REST operations do not need the stream to be open and may be awaited
    concurrently; each builds and signs its own request.
    """

    @abstractmethod
    async def place_orders(self, request: BatchOrdersRequest) -> List[PlaceOrderResult]:
        """
        Submit every order of the batch.

        Returns:
            One PlaceOrderResult per order. Exchange rejections are returned
            with ``accepted=False``.

        Raises:
            TransportError: If the exchange could not be reached. Its
                ``results`` holds the results of the orders submitted
                before the failure.
        """
        ...

    @abstractmethod
    async def delete_all_orders(self, request: CancelOrdersRequest) -> dict:
        """
        Cancel every open order of a market (optionally one side only).

        Raises:
            RequestRejected: If the exchange refused the cancellation
            TransportError: If the exchange could not be reached
        """
        ...

    @abstractmethod
    async def get_balance(self, request: BalanceRequest) -> BalanceResponse:
        """
        Fetch account balances.

        Raises:
            RequestRejected / TransportError on failure
        """
        ...

    @abstractmethod
    async def get_current_active_orders(self, request: OpenOrdersRequest) -> List[OrderStatusUpdate]:
        """
        Fetch open orders of a market.

        Raises:
            RequestRejected / TransportError on failure
        """
        ...

    async def get_balance_percentage(self, request: BalanceRequest) -> BalanceResponse:
        """
        Balances for percentage-of-portfolio sizing.

        Currently returns the same data as get_balance.
        """
        return await self.get_balance(request)
