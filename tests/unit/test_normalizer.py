"""
Unit Tests for the CoinDCX Normalizer

These tests verify that CoinDCXNormalizer:
- Produces the right canonical event for each public channel
- Parses numeric strings and numbers to the same floats
- Accepts the JSON-string ``data`` envelope CoinDCX sends
- Maps order states and sides through the vocabulary tables
- Reports bad frames as MalformedMessage

Run with:
    pytest tests/unit/test_normalizer.py -v
"""

import json

import pytest

from core.exceptions import MalformedMessage
from core.schemas import (
    BalanceResponse,
    Candlestick,
    DepthUpdate,
    OrderStatusUpdate,
    PriceChange,
    Side,
    TradeUpdate,
)
from connectors.coindcx.normalizer import (
    CoinDCXNormalizer,
    frame_items,
    map_order_side,
    map_order_state,
    private_frame_kind,
    unwrap_payload,
)


@pytest.fixture
def normalizer():
    return CoinDCXNormalizer("BTCUSDT", "coindcx")


def envelope(payload: dict) -> dict:
    """Wrap a payload the way CoinDCX Socket.IO events arrive"""
    return {"data": json.dumps(payload)}


ORDER = {
    "id": "ead19992-43fd-11e8-b027-bb815bcb14ed",
    "client_order_id": "order_1700000000000",
    "market": "BTCUSDT",
    "order_type": "limit_order",
    "side": "buy",
    "status": "partially_filled",
    "fee_amount": "0.0001",
    "fee": "0.1",
    "total_quantity": "1.0",
    "remaining_quantity": "0.4",
    "avg_price": "19990.5",
    "price_per_unit": "20000",
    "created_at": "2024-01-01T12:00:00.000Z",
    "updated_at": "2024-01-01T12:00:05.000Z",
}


# ============================================
# Public Market Data
# ============================================

class TestPriceChange:

    def test_price_change_from_string_price(self, normalizer):
        event = normalizer.price_change({"p": "50000.5", "T": 1700000000000})

        assert isinstance(event, PriceChange)
        assert event.event == "PriceChange"
        assert event.symbol == "BTCUSDT"
        assert event.connector_type == "coindcx"
        assert event.price == 50000.5
        assert event.timestamp == 1700000000000

    def test_numeric_and_string_values_match(self, normalizer):
        from_string = normalizer.price_change({"p": "50000.5", "T": 1700000000000})
        from_number = normalizer.price_change({"p": 50000.5, "T": 1700000000000})
        assert from_string == from_number

    def test_json_envelope(self, normalizer):
        event = normalizer.normalize("price-change", envelope({"p": "42.1", "T": 1700000000000}))
        assert isinstance(event, PriceChange)
        assert event.price == 42.1

    def test_serialized_form(self, normalizer):
        event = normalizer.price_change({"p": "50000.5", "T": 1700000000000})
        assert event.model_dump(by_alias=True) == {
            "symbol": "BTCUSDT",
            "connectorType": "coindcx",
            "timestamp": 1700000000000,
            "event": "PriceChange",
            "price": 50000.5,
        }


class TestDepthUpdate:

    def test_array_levels_keep_order(self, normalizer):
        event = normalizer.depth_update({
            "ts": 1700000000000,
            "asks": [["50001", "0.5"], ["50000", "1.0"]],
            "bids": [["49999", "2"]],
        })

        assert isinstance(event, DepthUpdate)
        assert [(level.price, level.quantity) for level in event.asks] == [(50001.0, 0.5), (50000.0, 1.0)]
        assert [(level.price, level.quantity) for level in event.bids] == [(49999.0, 2.0)]

    def test_map_levels(self, normalizer):
        event = normalizer.normalize("depth-update", envelope({
            "ts": 1700000000000,
            "asks": {"50001": "0.5", "50002": "0.25"},
            "bids": {"49999": "2"},
        }))

        assert [level.price for level in event.asks] == [50001.0, 50002.0]
        assert event.bids[0].quantity == 2.0

    def test_empty_book(self, normalizer):
        event = normalizer.depth_update({"ts": 1, "asks": [], "bids": []})
        assert event.asks == []
        assert event.bids == []

    def test_bad_level_is_malformed(self, normalizer):
        with pytest.raises(MalformedMessage):
            normalizer.depth_update({"ts": 1, "asks": [["abc", "1"]], "bids": []})


class TestTradeUpdate:

    def test_maker_flag_true_is_buy(self, normalizer):
        event = normalizer.trade_update({"p": "100", "q": "0.5", "m": True, "T": 1700000000000})

        assert isinstance(event, TradeUpdate)
        assert event.side is Side.BUY
        assert event.price == 100.0
        assert event.quantity == 0.5

    def test_maker_flag_false_is_sell(self, normalizer):
        event = normalizer.trade_update({"p": "100", "q": "0.5", "m": False, "T": 1700000000000})
        assert event.side is Side.SELL


class TestCandlestick:

    def test_candlestick(self, normalizer):
        event = normalizer.normalize("candlestick", envelope({
            "o": "1", "h": "2", "l": "0.5", "c": "1.5", "v": "10", "t": 1700000000000
        }))

        assert isinstance(event, Candlestick)
        assert (event.open, event.high, event.low, event.close, event.volume) == (1.0, 2.0, 0.5, 1.5, 10.0)
        assert event.timestamp == 1700000000000


class TestDispatch:

    def test_unknown_channel_returns_none(self, normalizer):
        assert normalizer.normalize("new-listing", {"p": "1", "T": 1}) is None

    def test_missing_field_is_malformed(self, normalizer):
        with pytest.raises(MalformedMessage):
            normalizer.normalize("price-change", {"T": 1700000000000})

    def test_invalid_json_envelope_is_malformed(self, normalizer):
        with pytest.raises(MalformedMessage):
            normalizer.normalize("price-change", {"data": "{not json"})

    def test_malformed_message_keeps_payload(self, normalizer):
        payload = {"p": "not-a-number", "T": 1}
        with pytest.raises(MalformedMessage) as exc_info:
            normalizer.price_change(payload)
        assert exc_info.value.payload == payload


# ============================================
# Account Data
# ============================================

class TestBalances:

    def test_balance_total_from_locked(self, normalizer):
        response = normalizer.balance_response(
            [{"currency": "USDT", "balance": "100.0", "locked_balance": "5.0"}],
            timestamp=1700000000000,
        )

        assert isinstance(response, BalanceResponse)
        assert response.timestamp == 1700000000000
        assert response.balances[0].asset == "USDT"
        assert response.balances[0].available == 100.0
        assert response.balances[0].total == 105.0

    def test_balance_push_frame(self, normalizer):
        response = normalizer.balance_response({
            "event": "balance-update",
            "data": {"balances": [{"currency_short_name": "BTC", "balance": "1", "locked_balance": "0"}]},
        })
        assert [b.asset for b in response.balances] == ["BTC"]

    def test_balance_missing_amount_is_malformed(self, normalizer):
        with pytest.raises(MalformedMessage):
            normalizer.balance_response([{"currency": "USDT"}])


class TestOrderStatus:

    def test_partially_filled_order(self, normalizer):
        event = normalizer.order_status_update(ORDER)

        assert isinstance(event, OrderStatusUpdate)
        assert event.state == "PartiallyFilled"
        assert event.side == "Buy"
        assert event.price == 20000.0
        assert event.size == 1.0
        assert event.notional == pytest.approx(20000.0)
        assert event.filled_size == pytest.approx(0.6)
        assert event.filled_price == 19990.5
        assert event.order_id == ORDER["id"]
        assert event.client_order_id == "order_1700000000000"
        assert event.timestamp == 1704110405000

    def test_unknown_status(self, normalizer):
        event = normalizer.order_status_update({**ORDER, "status": "rejected"})
        assert event.state == "Unknown"

    def test_numeric_order_id_stringified(self, normalizer):
        event = normalizer.order_status_update({**ORDER, "id": 12345})
        assert event.order_id == "12345"

    def test_active_order_open_is_placed(self, normalizer):
        event = normalizer.active_order({**ORDER, "status": "open", "side": "sell"})
        assert event.state == "Placed"
        assert event.side == "Sell"
        assert event.timestamp == 1704110400000

    def test_active_order_other_status_passes_through(self, normalizer):
        event = normalizer.active_order({**ORDER, "status": "partially_filled"})
        assert event.state == "partially_filled"

    def test_order_without_id_is_malformed(self, normalizer):
        order = dict(ORDER)
        del order["id"]
        with pytest.raises(MalformedMessage):
            normalizer.order_status_update(order)


class TestVocabulary:

    @pytest.mark.parametrize("status,state", [
        ("new", "Placed"),
        ("open", "Placed"),
        ("filled", "Filled"),
        ("canceled", "Cancelled"),
        ("cancelled", "Cancelled"),
        ("partially_filled", "PartiallyFilled"),
        ("partially_cancelled", "CancelledPartiallyFilled"),
        ("something_else", "Unknown"),
        (None, "Unknown"),
    ])
    def test_map_order_state(self, status, state):
        assert map_order_state(status) == state

    @pytest.mark.parametrize("side,expected", [
        ("buy", "Buy"),
        ("SELL", "Sell"),
        ("hold", "Unknown"),
        (None, "Unknown"),
    ])
    def test_map_order_side(self, side, expected):
        assert map_order_side(side) == expected


class TestFrameHelpers:

    def test_unwrap_plain_dict(self):
        assert unwrap_payload({"p": 1}) == {"p": 1}

    def test_frame_items_orders_key(self):
        assert frame_items({"data": {"orders": [{"id": 1}, {"id": 2}]}}) == [{"id": 1}, {"id": 2}]

    def test_frame_items_single_object(self):
        assert frame_items({"data": {"id": 1}}) == [{"id": 1}]

    def test_frame_items_rejects_scalars(self):
        with pytest.raises(MalformedMessage):
            frame_items({"data": "42"})

    @pytest.mark.parametrize("message,kind", [
        ({"event": "balance-update", "data": []}, "balance-update"),
        ({"channel": "coindcx@order-update", "data": []}, "order-update"),
        ({"stream": "coindcx@balance-update"}, "balance-update"),
        ({"method": "auth", "status": "success"}, None),
        ("not a dict", None),
    ])
    def test_private_frame_kind(self, message, kind):
        assert private_frame_kind(message) == kind
