"""Tests for ExchangeClient cancel handling."""

from unittest.mock import MagicMock, patch

import pytest

from tradingsession.clients import ExchangeClient, TradingAccount
from tradingsession.clients.exchange_client import is_closed_order_reason
from tradingsession.types import ApiCredentials


@pytest.fixture
def client():
    client = ExchangeClient(max_workers=1)
    yield client
    client.close()


@pytest.fixture
def account():
    return TradingAccount(
        private_key="0x" + "11" * 32,
        proxy_address="0x" + "ab" * 20,
        credentials=ApiCredentials(key="k", secret="s", passphrase="p"),
    )


def _trading_client(response=None, error=None) -> MagicMock:
    trading = MagicMock()
    if error is not None:
        trading.cancel.side_effect = error
    else:
        trading.cancel.return_value = response
    return trading


class TestClosedOrderReason:
    """Tests for is_closed_order_reason."""

    @pytest.mark.parametrize("reason", [
        "order not found",
        "Order already canceled",
        "order already cancelled",
        "order already filled",
        "order was matched",
    ])
    def test_closed(self, reason):
        """Reasons that mean the order no longer rests are recognized."""
        assert is_closed_order_reason(reason) is True

    @pytest.mark.parametrize("reason", [
        "order cannot be canceled: market is paused",
        "cancel rejected: unfilled order is locked",
        "rate limited",
    ])
    def test_refusals(self, reason):
        """Genuine refusals are not treated as closed orders."""
        assert is_closed_order_reason(reason) is False


class TestCancelOrder:
    """Tests for cancel_order response handling."""

    @pytest.mark.asyncio
    async def test_canceled(self, client, account):
        """An order in the canceled list is a plain success."""
        trading = _trading_client({"canceled": ["abc"], "not_canceled": {}})
        with patch.object(client, "_get_trading_client", return_value=trading):
            result = await client.cancel_order(account, "abc")

        assert result.success is True
        assert result.not_found is False
        trading.cancel.assert_called_once_with("abc")

    @pytest.mark.asyncio
    async def test_already_filled_is_noop(self, client, account):
        """An already-filled order reports success with not_found set."""
        trading = _trading_client({"canceled": [], "not_canceled": {"abc": "order already filled"}})
        with patch.object(client, "_get_trading_client", return_value=trading):
            result = await client.cancel_order(account, "abc")

        assert result.success is True
        assert result.not_found is True

    @pytest.mark.asyncio
    async def test_refusal_is_failure(self, client, account):
        """A refusal that merely mentions cancelling is a real failure."""
        reason = "order cannot be canceled: market is paused"
        trading = _trading_client({"canceled": [], "not_canceled": {"abc": reason}})
        with patch.object(client, "_get_trading_client", return_value=trading):
            result = await client.cancel_order(account, "abc")

        assert result.success is False
        assert result.not_found is False
        assert result.error_msg == reason

    @pytest.mark.asyncio
    async def test_not_found_exception_is_noop(self, client, account):
        """A not-found exception from the library is a no-op success."""
        trading = _trading_client(error=Exception("Order not found"))
        with patch.object(client, "_get_trading_client", return_value=trading):
            result = await client.cancel_order(account, "abc")

        assert result.success is True
        assert result.not_found is True

    @pytest.mark.asyncio
    async def test_other_exception_is_failure(self, client, account):
        """Other library exceptions are reported verbatim."""
        trading = _trading_client(error=Exception("cancel not allowed while market is paused"))
        with patch.object(client, "_get_trading_client", return_value=trading):
            result = await client.cancel_order(account, "abc")

        assert result.success is False
        assert "paused" in result.error_msg
