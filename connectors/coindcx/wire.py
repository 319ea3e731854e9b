"""
CoinDCX Wire Frames

Pydantic models of the payloads CoinDCX actually sends, validated before any
canonical event is built. Numeric fields accept numbers and numeric strings
alike; a missing or unparseable field fails validation, which the
normalizer reports as MalformedMessage.

Public Socket.IO frames (after unwrapping the JSON ``data`` envelope):
    price-change:  {"p": "50000.5", "T": 1700000000000}
    depth-update:  {"ts": 1700000000000, "asks": [["50001", "0.1"]], "bids": ...}
                   (levels may also arrive as {"50001": "0.1"} maps)
    trade-update:  {"p": "50000.5", "q": "0.01", "m": true, "T": 1700000000000}
    candlestick:   {"o": "1", "h": "2", "l": "0.5", "c": "1.5", "v": "10", "t": 1700000000000}

REST / private stream payloads:
    balance item:  {"currency": "USDT", "balance": "100.0", "locked_balance": "5.0"}
    order:         {"id": "...", "client_order_id": "...", "market": "BTCUSDT",
                    "side": "buy", "status": "open", "price_per_unit": "20000",
                    "total_quantity": "1.0", "remaining_quantity": "0.4", ...}
"""

from typing import Any, List, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class WireFrame(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ============================================
# Public Market Data
# ============================================

class PriceChangeFrame(WireFrame):
    p: float
    T: int


def _levels(value: Any) -> Any:
    """Turn CoinDCX level layouts into [price, quantity] pairs, keeping order."""
    if isinstance(value, dict):
        return [[price, quantity] for price, quantity in value.items()]
    if isinstance(value, list):
        levels = []
        for level in value:
            if isinstance(level, dict):
                levels.append([level.get("price", level.get("p")), level.get("quantity", level.get("q"))])
            elif isinstance(level, (list, tuple)) and len(level) >= 2:
                levels.append([level[0], level[1]])
            else:
                levels.append(level)
        return levels
    return value


class DepthFrame(WireFrame):
    ts: int
    asks: List[Tuple[float, float]]
    bids: List[Tuple[float, float]]

    @field_validator("asks", "bids", mode="before")
    @classmethod
    def normalize_levels(cls, v):
        return _levels(v)


class TradeFrame(WireFrame):
    p: float
    q: float
    m: bool = False
    T: int


class CandleFrame(WireFrame):
    o: float
    h: float
    l: float  # noqa: E741
    c: float
    v: float
    t: int


# ============================================
# Account Data
# ============================================

class BalanceFrame(WireFrame):
    asset: str = Field(validation_alias=AliasChoices("currency_short_name", "currency", "asset"))
    balance: float = Field(validation_alias=AliasChoices("balance", "available"))
    locked_balance: float = 0.0
    total: Optional[float] = None


class OrderFrame(WireFrame):
    id: str
    client_order_id: Optional[str] = None
    market: Optional[str] = None
    order_type: Optional[str] = None
    side: Optional[str] = None
    status: str
    price_per_unit: Optional[float] = None
    total_quantity: float
    remaining_quantity: float = 0.0
    avg_price: Optional[float] = None
    fee: Optional[float] = None
    fee_amount: Optional[float] = None
    created_at: Optional[Union[str, int, float]] = None
    updated_at: Optional[Union[str, int, float]] = None

    @field_validator("id", "client_order_id", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)
