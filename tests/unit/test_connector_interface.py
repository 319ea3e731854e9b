"""
Unit Tests for the Connector Interface

These tests verify that:
- PublicExchangeConnector / PrivateExchangeConnector are abstract
- StreamingConnector delivers events through callbacks or the event channel
- connect() is idempotent and stop() suppresses delivery and reconnection

Run with:
    pytest tests/unit/test_connector_interface.py -v
"""

import pytest

from core.connector_interface import (
    ConnectionState,
    PrivateExchangeConnector,
    PublicExchangeConnector,
    StreamingConnector,
)
from core.exceptions import TransportError
from core.reconnect import ReconnectionController
from core.schemas import BalanceRequest, BalanceResponse, ConnectorConfiguration, ConnectorGroup, PriceChange


class DummyConnector(StreamingConnector):
    """Minimal connector with an in-memory transport"""

    name = "dummy"

    def __init__(self, **kwargs):
        super().__init__(ConnectorGroup(name="BTC"), ConnectorConfiguration(quoteAsset="USDT"), **kwargs)
        self.open_calls = 0
        self.close_calls = 0

    async def _open(self):
        self.open_calls += 1
        self.state = ConnectionState.SUBSCRIBED

    async def _close_transport(self):
        self.close_calls += 1


def price(value: float) -> PriceChange:
    return PriceChange(symbol="BTCUSDT", connector_type="coindcx", price=value, timestamp=1700000000000)


class TestAbstractInterfaces:

    def test_public_connector_is_abstract(self):
        with pytest.raises(TypeError):
            PublicExchangeConnector(ConnectorGroup(name="BTC"), ConnectorConfiguration(quoteAsset="USDT"))

    def test_private_connector_is_abstract(self):
        with pytest.raises(TypeError):
            PrivateExchangeConnector(ConnectorGroup(name="BTC"), ConnectorConfiguration(quoteAsset="USDT"))

    @pytest.mark.asyncio
    async def test_balance_percentage_delegates_to_balance(self):
        response = BalanceResponse(symbol="BTCUSDT", connector_type="coindcx", balances=[], timestamp=1)

        class Private(PrivateExchangeConnector):
            async def _open(self): ...
            async def _close_transport(self): ...
            async def place_orders(self, request): ...
            async def delete_all_orders(self, request): ...
            async def get_current_active_orders(self, request): ...

            async def get_balance(self, request):
                return response

        connector = Private(ConnectorGroup(name="BTC"), ConnectorConfiguration(quoteAsset="USDT"))
        assert await connector.get_balance_percentage(BalanceRequest()) is response


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self):
        connector = DummyConnector()
        await connector.connect()
        await connector.connect()

        assert connector.open_calls == 1
        assert connector.is_connected is True

    @pytest.mark.asyncio
    async def test_stop_closes_transport(self):
        connector = DummyConnector()
        await connector.connect()
        await connector.stop()

        assert connector.close_calls == 1
        assert connector.state == ConnectionState.DISCONNECTED
        assert connector.stopped is True

    @pytest.mark.asyncio
    async def test_connect_after_stop_resumes(self):
        connector = DummyConnector()
        await connector.connect()
        await connector.stop()
        await connector.connect()

        assert connector.open_calls == 2
        assert connector.stopped is False
        assert connector.events().closed is False

    @pytest.mark.asyncio
    async def test_transport_closed_schedules_reconnect(self):
        reconnector = ReconnectionController(base_delay=10, max_delay=10, max_attempts=3, jitter=0)
        connector = DummyConnector(reconnector=reconnector)
        await connector.connect()

        connector._transport_closed("reset by peer")

        assert connector.state == ConnectionState.DISCONNECTED
        assert reconnector.pending is True
        await connector.stop()
        assert reconnector.pending is False

    @pytest.mark.asyncio
    async def test_transport_closed_after_stop_does_not_reconnect(self):
        reconnector = ReconnectionController(base_delay=10, max_delay=10, max_attempts=3, jitter=0)
        connector = DummyConnector(reconnector=reconnector)
        await connector.connect()
        await connector.stop()

        connector._transport_closed()
        assert reconnector.pending is False

    @pytest.mark.asyncio
    async def test_exhausted_reconnector_closes_channel_with_error(self):
        reconnector = ReconnectionController(base_delay=10, max_delay=10, max_attempts=2, jitter=0)
        connector = DummyConnector(reconnector=reconnector)
        await connector.connect()
        reconnector.attempt = 2

        connector._transport_closed("reset by peer")

        assert connector.stopped is True
        assert reconnector.pending is False
        with pytest.raises(TransportError, match="2 reconnection attempts"):
            await connector.events().get()

        await connector.connect()
        assert connector.stopped is False
        assert connector.events().closed is False
        assert reconnector.attempt == 0

    def test_symbol_built_from_group_and_quote(self):
        assert DummyConnector().symbol == "BTCUSDT"


class TestDelivery:

    @pytest.mark.asyncio
    async def test_sync_callback_receives_single_element_batch(self):
        received = []
        connector = DummyConnector()
        await connector.connect(received.append)

        await connector._emit(price(1.0))

        assert received == [[price(1.0)]]

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self):
        received = []

        async def on_message(batch):
            received.append(batch)

        connector = DummyConnector()
        await connector.connect(on_message)
        await connector._emit(price(1.0))

        assert received == [[price(1.0)]]

    @pytest.mark.asyncio
    async def test_callback_error_does_not_propagate(self):
        def on_message(batch):
            raise RuntimeError("consumer bug")

        connector = DummyConnector()
        await connector.connect(on_message)
        await connector._emit(price(1.0))

    @pytest.mark.asyncio
    async def test_events_channel_without_callback(self):
        connector = DummyConnector(max_queue_size=10)
        await connector.connect()
        await connector._emit(price(1.0))

        assert await connector.events().get() == [price(1.0)]

    @pytest.mark.asyncio
    async def test_no_delivery_after_stop(self):
        received = []
        connector = DummyConnector()
        await connector.connect(received.append)
        await connector.stop()

        await connector._emit(price(1.0))

        assert received == []
