"""
CoinDCX Canonical Event Normalizer

Pure mapping from CoinDCX wire payloads to canonical events. The normalizer
holds nothing but the routing fields it stamps on every event (symbol and
connector type), so one instance can be shared freely.

Each call produces exactly one canonical event or raises MalformedMessage;
frames that carry several updates (private balance/order pushes) are split
by the caller with ``frame_items`` and normalized one item at a time.

Public channel → event:
    price-change  → PriceChange
    depth-update  → DepthUpdate
    trade-update  → TradeUpdate
    candlestick   → Candlestick

Usage:
    normalizer = CoinDCXNormalizer("BTCUSDT", "coindcx")
    event = normalizer.normalize("price-change", {"data": '{"p": "50000.5", "T": 1700000000000}'})
"""

import json
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.exceptions import MalformedMessage
from core.schemas import (
    Balance,
    BalanceResponse,
    BaseEvent,
    Candlestick,
    DepthLevel,
    DepthUpdate,
    OrderState,
    OrderStatusUpdate,
    PriceChange,
    Side,
    TradeUpdate,
    UNKNOWN_SIDE,
)
from core.utils.time import current_utc_timestamp, to_epoch_millis
from connectors.coindcx.wire import (
    BalanceFrame,
    CandleFrame,
    DepthFrame,
    OrderFrame,
    PriceChangeFrame,
    TradeFrame,
)

FrameT = TypeVar("FrameT", bound=BaseModel)

# Socket.IO event name -> normalizer method
PUBLIC_CHANNELS: Dict[str, str] = {
    "price-change": "price_change",
    "depth-update": "depth_update",
    "trade-update": "trade_update",
    "candlestick": "candlestick",
}

BALANCE_UPDATE = "balance-update"
ORDER_UPDATE = "order-update"

SIDE_MAP: Dict[str, str] = {
    "buy": Side.BUY.value,
    "sell": Side.SELL.value,
}

ORDER_STATE_MAP: Dict[str, str] = {
    "new": OrderState.PLACED.value,
    "init": OrderState.PLACED.value,
    "open": OrderState.PLACED.value,
    "filled": OrderState.FILLED.value,
    "canceled": OrderState.CANCELLED.value,
    "cancelled": OrderState.CANCELLED.value,
    "partially_filled": OrderState.PARTIALLY_FILLED.value,
    "partially_cancelled": OrderState.CANCELLED_PARTIALLY_FILLED.value,
}


# ============================================
# Vocabulary Mapping
# ============================================

def map_order_side(side: Optional[str]) -> str:
    """buy → Buy, sell → Sell, anything else → Unknown."""
    if not side:
        return UNKNOWN_SIDE
    return SIDE_MAP.get(side.lower(), UNKNOWN_SIDE)


def map_order_state(status: Optional[str]) -> str:
    """Exchange order status → OrderState value (Unknown when unrecognized)."""
    if not status:
        return OrderState.UNKNOWN.value
    return ORDER_STATE_MAP.get(status.lower(), OrderState.UNKNOWN.value)


# ============================================
# Payload Helpers
# ============================================

def unwrap_payload(payload: Any) -> Any:
    """
    Strip CoinDCX's envelope.

    Socket.IO events arrive as ``{"data": "<json string>"}``; private frames
    carry ``data`` as an object. Bare dicts, lists and JSON strings are
    accepted too.

    Raises:
        MalformedMessage: If an embedded JSON string cannot be decoded
    """
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]

    if isinstance(payload, (str, bytes)):
        try:
            return json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedMessage(f"Invalid JSON payload: {e}", payload) from e

    return payload


def frame_items(payload: Any) -> List[Any]:
    """
    Items of a multi-update frame (list, ``{"balances": [...]}``,
    ``{"orders": [...]}`` or a single object).
    """
    data = unwrap_payload(payload)
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("balances", "orders"):
            if isinstance(data.get(key), list):
                return data[key]
        return [data]
    raise MalformedMessage(f"Unexpected frame type: {type(data).__name__}", payload)


def private_frame_kind(message: Any) -> Optional[str]:
    """
    Channel of a private stream frame, or None for acks and unknown frames.

    Matches ``event`` / ``channel`` / ``stream`` / ``type`` values ending in
    ``balance-update`` or ``order-update`` (with or without a namespace).
    """
    if not isinstance(message, dict):
        return None
    for key in ("event", "channel", "stream", "type"):
        value = message.get(key)
        if not isinstance(value, str):
            continue
        if value.endswith(BALANCE_UPDATE):
            return BALANCE_UPDATE
        if value.endswith(ORDER_UPDATE):
            return ORDER_UPDATE
    return None


# ============================================
# Normalizer
# ============================================

class CoinDCXNormalizer:
    """
    Maps CoinDCX payloads to canonical events.

    Attributes:
        symbol: Trading pair stamped on every event (e.g., "BTCUSDT")
        connector_type: Connector-type tag stamped on every event
    """

    def __init__(self, symbol: str, connector_type: str):
        self.symbol = symbol
        self.connector_type = connector_type

    def normalize(self, channel: str, payload: Any) -> Optional[BaseEvent]:
        """
        Normalize a public frame by its Socket.IO event name.

        Returns:
            The canonical event, or None if the channel is not a market-data channel

        Raises:
            MalformedMessage: If the frame cannot be parsed
        """
        method = PUBLIC_CHANNELS.get(channel)
        if method is None:
            return None
        return getattr(self, method)(payload)

    # ============================================
    # Public Market Data
    # ============================================

    def price_change(self, payload: Any) -> PriceChange:
        frame = self._parse(PriceChangeFrame, payload)
        return self._build(PriceChange, price=frame.p, timestamp=frame.T)

    def depth_update(self, payload: Any) -> DepthUpdate:
        frame = self._parse(DepthFrame, payload)
        return self._build(
            DepthUpdate,
            asks=[DepthLevel(price=price, quantity=quantity) for price, quantity in frame.asks],
            bids=[DepthLevel(price=price, quantity=quantity) for price, quantity in frame.bids],
            timestamp=frame.ts,
        )

    def trade_update(self, payload: Any) -> TradeUpdate:
        frame = self._parse(TradeFrame, payload)
        return self._build(
            TradeUpdate,
            price=frame.p,
            quantity=frame.q,
            side=Side.BUY if frame.m else Side.SELL,
            timestamp=frame.T,
        )

    def candlestick(self, payload: Any) -> Candlestick:
        frame = self._parse(CandleFrame, payload)
        return self._build(
            Candlestick,
            open=frame.o,
            high=frame.h,
            low=frame.l,
            close=frame.c,
            volume=frame.v,
            timestamp=frame.t,
        )

    # ============================================
    # Account Data
    # ============================================

    def balance_response(self, payload: Any, timestamp: Optional[int] = None) -> BalanceResponse:
        """
        Normalize a balances payload (REST response or private push).

        ``total`` is taken from the payload when present, otherwise
        ``balance + locked_balance``.
        """
        balances = []
        for item in frame_items(payload):
            frame = self._parse(BalanceFrame, item)
            total = frame.total if frame.total is not None else frame.balance + frame.locked_balance
            balances.append(Balance(asset=frame.asset, available=frame.balance, total=total))

        return self._build(
            BalanceResponse,
            balances=balances,
            timestamp=timestamp if timestamp is not None else current_utc_timestamp(milliseconds=True),
        )

    def order_status_update(self, payload: Any) -> OrderStatusUpdate:
        """
        Normalize one order from the private order-update stream.

        State and side go through the vocabulary tables.
        """
        frame = self._parse(OrderFrame, payload)
        return self._order_event(
            frame,
            state=map_order_state(frame.status),
            side=map_order_side(frame.side),
            time_field=frame.updated_at or frame.created_at,
        )

    def active_order(self, payload: Any) -> OrderStatusUpdate:
        """
        Normalize one order from the active-orders REST snapshot.

        ``open`` becomes Placed, any other status is passed through; the
        side is title-cased.
        """
        frame = self._parse(OrderFrame, payload)
        state = OrderState.PLACED.value if frame.status == "open" else frame.status
        side = frame.side.capitalize() if frame.side else UNKNOWN_SIDE
        return self._order_event(frame, state=state, side=side, time_field=frame.created_at)

    def _order_event(self, frame: OrderFrame, state: str, side: str, time_field: Any) -> OrderStatusUpdate:
        price = frame.price_per_unit or 0.0
        size = frame.total_quantity

        if time_field is None:
            timestamp = current_utc_timestamp(milliseconds=True)
        else:
            try:
                timestamp = to_epoch_millis(time_field)
            except ValueError as e:
                raise MalformedMessage(f"Invalid order timestamp: {e}", time_field) from e

        return self._build(
            OrderStatusUpdate,
            symbol=frame.market or self.symbol,
            order_id=frame.id,
            client_order_id=frame.client_order_id,
            state=state,
            side=side,
            price=price,
            size=size,
            notional=price * size,
            filled_price=frame.avg_price or 0.0,
            filled_size=frame.total_quantity - frame.remaining_quantity,
            order_type=frame.order_type,
            fee=frame.fee,
            fee_amount=frame.fee_amount,
            total_quantity=frame.total_quantity,
            remaining_quantity=frame.remaining_quantity,
            avg_price=frame.avg_price,
            created_at=None if frame.created_at is None else str(frame.created_at),
            updated_at=None if frame.updated_at is None else str(frame.updated_at),
            timestamp=timestamp,
        )

    # ============================================
    # Helpers
    # ============================================

    def _parse(self, model: Type[FrameT], payload: Any) -> FrameT:
        data = unwrap_payload(payload)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise MalformedMessage(
                f"Invalid {model.__name__}: {e.error_count()} validation error(s)", payload
            ) from e

    def _build(self, event_cls: Type[BaseEvent], **fields) -> BaseEvent:
        fields.setdefault("symbol", self.symbol)
        try:
            return event_cls(connector_type=self.connector_type, **fields)
        except ValidationError as e:
            raise MalformedMessage(
                f"Invalid {event_cls.__name__}: {e.error_count()} validation error(s)", fields
            ) from e
