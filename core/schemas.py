"""
Canonical Data Schemas

This module defines the Pydantic models shared by every connector. They are
the only shapes a consuming trading engine ever sees: no CoinDCX field
names, channel names or REST payload layouts leak past the connectors.

Key Principle:
    Whatever the wire format looks like (numbers or numeric strings, arrays
    or maps), it gets normalized into these schemas. Numeric fields are
    always floats and every event carries ``symbol`` and ``connectorType``
    so the consumer can route it.

Models:
    - ConnectorGroup / ConnectorConfiguration / Credential: construction inputs
    - PriceChange, DepthUpdate, TradeUpdate, Candlestick: public market events
    - BalanceResponse, OrderStatusUpdate: private account events
    - OrderRequest, BatchOrdersRequest, CancelOrdersRequest,
      OpenOrdersRequest, BalanceRequest: private REST requests
    - PlaceOrderResult: outcome of a single order submission

Serialization:
    Fields use snake_case in Python and camelCase aliases on the wire
    (``connector_type`` <-> ``connectorType``). Use ``model_dump(by_alias=True)``
    to produce the canonical wire form.
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter, field_validator

from core.config import settings


# ============================================
# Vocabulary
# ============================================

class Side(str, Enum):
    """Order / trade side."""

    BUY = "Buy"
    SELL = "Sell"


class OrderState(str, Enum):
    """Lifecycle tag of an order."""

    PLACED = "Placed"
    FILLED = "Filled"
    PARTIALLY_FILLED = "PartiallyFilled"
    CANCELLED = "Cancelled"
    CANCELLED_PARTIALLY_FILLED = "CancelledPartiallyFilled"
    UNKNOWN = "Unknown"


UNKNOWN_SIDE = "Unknown"


# ============================================
# Connector Construction Inputs
# ============================================

class ConnectorGroup(BaseModel):
    """
    Base asset / trading-pair group.

    Example:
        >>> ConnectorGroup(name="BTC")
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Base asset, e.g. BTC")


class ConnectorConfiguration(BaseModel):
    """
    Per-connector configuration.

    Accepts both the Python field names and the camelCase names used by the
    trading engine (``quoteAsset``, ``baseURL``, ``connectorType``).

    Example:
        >>> ConnectorConfiguration(quoteAsset="USDT")
        ConnectorConfiguration(quote_asset='USDT', base_url='https://api.coindcx.com', connector_type='coindcx')
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    quote_asset: str = Field(..., alias="quoteAsset", min_length=1)

    base_url: str = Field(
        default_factory=lambda: settings.coindcx_rest_url,
        alias="baseURL",
        description="REST API base URL"
    )

    connector_type: str = Field(
        default_factory=lambda: settings.connector_type,
        alias="connectorType",
        description="Tag stamped on every event produced by this connector"
    )


class Credential(BaseModel):
    """
    API key + secret.

    The secret is a SecretStr: it is masked in repr(), str() and model_dump().
    """

    model_config = ConfigDict(frozen=True)

    key: str
    secret: SecretStr


def trading_pair(group: ConnectorGroup, config: ConnectorConfiguration) -> str:
    """
    Build the exchange trading-pair symbol.

    Example:
        >>> trading_pair(ConnectorGroup(name="BTC"), ConnectorConfiguration(quoteAsset="USDT"))
        'BTCUSDT'
    """
    return f"{group.name}{config.quote_asset}"


# ============================================
# Canonical Events
# ============================================

class BaseEvent(BaseModel):
    """
    Fields shared by every canonical event.

    Attributes:
        symbol: Trading pair the event belongs to (e.g., "BTCUSDT")
        connector_type: Connector-type tag from the configuration
        timestamp: Event time in epoch milliseconds
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    symbol: str
    connector_type: str = Field(..., alias="connectorType")
    timestamp: int = Field(..., ge=0, description="Event time in epoch milliseconds")


class PriceChange(BaseEvent):
    """Last traded price of the pair."""

    event: Literal["PriceChange"] = "PriceChange"
    price: float


class DepthLevel(BaseModel):
    """One order-book level."""

    model_config = ConfigDict(frozen=True)

    price: float
    quantity: float


class DepthUpdate(BaseEvent):
    """
    Order-book snapshot.

    Levels keep the exchange ordering; the connector never re-sorts them.
    """

    event: Literal["DepthUpdate"] = "DepthUpdate"
    asks: List[DepthLevel] = Field(default_factory=list)
    bids: List[DepthLevel] = Field(default_factory=list)


class TradeUpdate(BaseEvent):
    """Single public trade."""

    event: Literal["TradeUpdate"] = "TradeUpdate"
    price: float
    quantity: float
    side: Side


class Candlestick(BaseEvent):
    """One-minute candle."""

    event: Literal["Candlestick"] = "Candlestick"
    open: float
    high: float
    low: float
    close: float
    volume: float


class Balance(BaseModel):
    """Balance of one asset."""

    model_config = ConfigDict(frozen=True)

    asset: str
    available: float
    total: float


class BalanceResponse(BaseEvent):
    """Account balances, from REST or from the private stream."""

    event: Literal["BalanceResponse"] = "BalanceResponse"
    balances: List[Balance] = Field(default_factory=list)


class OrderStatusUpdate(BaseEvent):
    """
    State of one order.

    ``state`` and ``side`` are plain strings: they normally hold an
    OrderState / Side value but active-order snapshots pass unknown exchange
    statuses through untouched.
    """

    event: Literal["OrderStatusUpdate"] = "OrderStatusUpdate"
    order_id: str = Field(..., alias="orderId")
    client_order_id: Optional[str] = Field(None, alias="sklOrderId")
    state: str
    side: str
    price: float
    size: float
    notional: float
    filled_price: float = 0.0
    filled_size: float = 0.0
    order_type: Optional[str] = None
    fee: Optional[float] = None
    fee_amount: Optional[float] = None
    total_quantity: Optional[float] = None
    remaining_quantity: Optional[float] = None
    avg_price: Optional[float] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


CanonicalEvent = Annotated[
    Union[PriceChange, DepthUpdate, TradeUpdate, Candlestick, BalanceResponse, OrderStatusUpdate],
    Field(discriminator="event")
]

_canonical_event_adapter = TypeAdapter(CanonicalEvent)


def parse_canonical_event(data: Any) -> BaseEvent:
    """
    Validate a serialized canonical event back into its model.

    The ``event`` field selects the variant.

    Raises:
        pydantic.ValidationError: If the tag is unknown or fields are invalid
    """
    return _canonical_event_adapter.validate_python(data)


# ============================================
# Private REST Requests
# ============================================

class OrderRequest(BaseModel):
    """
    One order intent.

    Attributes:
        price: Limit price (ignored by the exchange for market orders)
        size: Quantity in base asset
        side: Buy or Sell
        type: Order type, e.g. "limit" / "limit_order" / "market_order"
        symbol: Market override (defaults to the connector's pair)
        client_order_id: Caller-chosen id (generated when omitted)
    """

    price: float = Field(..., ge=0)
    size: float = Field(..., gt=0)
    side: Side
    type: str = "limit_order"
    symbol: Optional[str] = None
    client_order_id: Optional[str] = None

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        """Accept "buy" / "BUY" as well as "Buy"."""
        if isinstance(v, str):
            return v.strip().capitalize()
        return v


class BatchOrdersRequest(BaseModel):
    """Orders submitted together."""

    orders: List[OrderRequest] = Field(..., min_length=1)


class CancelOrdersRequest(BaseModel):
    """Cancel every open order on a market, optionally only one side."""

    symbol: str
    side: Optional[Side] = None

    @field_validator("side", mode="before")
    @classmethod
    def normalize_side(cls, v):
        if isinstance(v, str):
            return v.strip().capitalize()
        return v


class OpenOrdersRequest(BaseModel):
    symbol: str


class BalanceRequest(BaseModel):
    symbol: Optional[str] = None


class PlaceOrderResult(BaseModel):
    """
    Outcome of one order submission.

    Attributes:
        accepted: True if the exchange acknowledged the order
        client_order_id: Id sent with the order
        order_id: Exchange order id (when acknowledged)
        response: Raw acknowledgement payload
        error: Exchange error payload (when rejected)
    """

    accepted: bool
    client_order_id: str
    order_id: Optional[str] = None
    response: Optional[Any] = None
    error: Optional[Any] = None
