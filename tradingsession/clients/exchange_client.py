"""
Exchange REST client.

Uses py-clob-client for order-book reads, API-key create/derive and order
signing. The library is synchronous, so every call runs on a thread pool.
"""

import asyncio
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..types.core import OrderType, Side
from ..types.market_data import BookLevel
from ..types.orders import CancelResult, OrderResult
from ..types.session import ApiCredentials

logger = logging.getLogger(__name__)

# Signature type for orders funded by a Gnosis Safe proxy
SIGNATURE_TYPE_SAFE = 2

# Cancel refusals meaning the order is already closed
_CLOSED_ORDER_RE = re.compile(
    r"\bnot found\b|\balready (?:canceled|cancelled|filled|matched)\b|\b(?:matched|filled)\b"
)


@dataclass(slots=True, frozen=True)
class TradingAccount:
    """Everything needed to sign and authenticate orders for one session."""
    private_key: str
    proxy_address: str
    credentials: ApiCredentials


def is_closed_order_reason(reason: str) -> bool:
    """True when a cancel refusal means the order is already filled or cancelled."""
    return bool(_CLOSED_ORDER_RE.search(reason.lower()))


def _levels(raw_levels: Any) -> list[BookLevel]:
    levels = []
    for lvl in raw_levels or []:
        price = getattr(lvl, "price", None)
        size = getattr(lvl, "size", None)
        if price is None and isinstance(lvl, dict):
            price, size = lvl.get("price"), lvl.get("size")
        try:
            levels.append(BookLevel(price=float(price), size=float(size)))
        except (TypeError, ValueError):
            continue
    return levels


class ExchangeClient:
    """
    Async facade over py-clob-client.

    Trading clients are cached per (proxy, api key) so repeated orders do
    not rebuild signing state.
    """

    def __init__(
        self,
        host: str = "https://clob.polymarket.com",
        chain_id: int = 137,
        max_workers: int = 4,
    ):
        """
        Initialize the client.

        Args:
            host: CLOB API host URL
            chain_id: Polygon chain ID (137 for mainnet)
            max_workers: Thread pool size for blocking library calls
        """
        self._host = host
        self._chain_id = chain_id
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._public_client = None
        self._trading_clients: dict[tuple[str, str], Any] = {}

    async def _run(self, fn: Callable, *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _get_public_client(self):
        if self._public_client is None:
            from py_clob_client.client import ClobClient

            self._public_client = ClobClient(host=self._host, chain_id=self._chain_id)
        return self._public_client

    def _get_trading_client(self, account: TradingAccount):
        cache_key = (account.proxy_address.lower(), account.credentials.key)
        client = self._trading_clients.get(cache_key)
        if client is None:
            from py_clob_client.client import ClobClient
            from py_clob_client.clob_types import ApiCreds

            client = ClobClient(
                host=self._host,
                chain_id=self._chain_id,
                key=account.private_key,
                creds=ApiCreds(
                    api_key=account.credentials.key,
                    api_secret=account.credentials.secret,
                    api_passphrase=account.credentials.passphrase,
                ),
                signature_type=SIGNATURE_TYPE_SAFE,
                funder=account.proxy_address,
            )
            self._trading_clients[cache_key] = client
        return client

    # --- Market data -------------------------------------------------------

    async def get_order_book(self, token_id: str) -> tuple[list[BookLevel], list[BookLevel]]:
        """
        Fetch the raw book for one token.

        Returns:
            Tuple of (bids, asks), unsorted
        """
        def _fetch():
            return self._get_public_client().get_order_book(token_id)

        book = await self._run(_fetch)
        return _levels(getattr(book, "bids", None)), _levels(getattr(book, "asks", None))

    # --- Credentials -------------------------------------------------------

    def _owner_client(self, private_key: str):
        from py_clob_client.client import ClobClient

        return ClobClient(host=self._host, chain_id=self._chain_id, key=private_key)

    async def create_api_key(self, private_key: str) -> ApiCredentials:
        """Create new API credentials signed by the owner key."""
        def _create():
            creds = self._owner_client(private_key).create_api_key()
            if creds is None or not getattr(creds, "api_key", None):
                raise ValueError("create_api_key returned no credentials")
            return creds

        creds = await self._run(_create)
        return ApiCredentials(creds.api_key, creds.api_secret, creds.api_passphrase)

    async def derive_api_key(self, private_key: str) -> ApiCredentials:
        """Derive the existing API credentials for the owner key."""
        def _derive():
            creds = self._owner_client(private_key).derive_api_key()
            if creds is None or not getattr(creds, "api_key", None):
                raise ValueError("derive_api_key returned no credentials")
            return creds

        creds = await self._run(_derive)
        return ApiCredentials(creds.api_key, creds.api_secret, creds.api_passphrase)

    # --- Orders ------------------------------------------------------------

    @staticmethod
    def _parse_post_response(response: Any) -> OrderResult:
        if response and response.get("success"):
            order_id = response.get("orderID") or response.get("order_id", "")
            return OrderResult(success=True, order_id=order_id)
        if response:
            error_msg = response.get("errorMsg") or response.get("error") or "Unknown error"
        else:
            error_msg = "No response"
        return OrderResult(success=False, error_msg=str(error_msg))

    async def place_market_order(
        self,
        account: TradingAccount,
        token_id: str,
        side: Side,
        amount: float,
        price: float,
        tick_size: str = "0.01",
        neg_risk: bool = False,
    ) -> OrderResult:
        """
        Place a fill-or-kill market order.

        Args:
            amount: Collateral to spend for BUY, shares to sell for SELL
            price: Worst acceptable price (already buffered)
        """
        def _place():
            from py_clob_client.clob_types import MarketOrderArgs, PartialCreateOrderOptions
            from py_clob_client.clob_types import OrderType as ClobOrderType
            from py_clob_client.order_builder.constants import BUY, SELL

            client = self._get_trading_client(account)
            order = client.create_market_order(
                MarketOrderArgs(
                    token_id=token_id,
                    amount=amount,
                    side=BUY if side == Side.BUY else SELL,
                    price=price,
                ),
                PartialCreateOrderOptions(tick_size=tick_size, neg_risk=neg_risk),
            )
            return client.post_order(order, ClobOrderType.FOK)

        try:
            response = await self._run(_place)
        except Exception as e:
            logger.warning(f"Market order placement failed: {e}")
            return OrderResult(success=False, error_msg=str(e))
        return self._parse_post_response(response)

    async def place_limit_order(
        self,
        account: TradingAccount,
        token_id: str,
        side: Side,
        price: float,
        size: float,
        tick_size: str = "0.01",
        neg_risk: bool = False,
        order_type: OrderType = OrderType.GTC,
    ) -> OrderResult:
        """Place a good-till-cancelled limit order for `size` shares at `price`."""
        def _place():
            from py_clob_client.clob_types import OrderArgs, PartialCreateOrderOptions
            from py_clob_client.clob_types import OrderType as ClobOrderType
            from py_clob_client.order_builder.constants import BUY, SELL

            client = self._get_trading_client(account)
            order = client.create_order(
                OrderArgs(
                    token_id=token_id,
                    price=price,
                    size=float(size),
                    side=BUY if side == Side.BUY else SELL,
                ),
                PartialCreateOrderOptions(tick_size=tick_size, neg_risk=neg_risk),
            )
            return client.post_order(order, getattr(ClobOrderType, order_type.value))

        try:
            response = await self._run(_place)
        except Exception as e:
            logger.warning(f"Limit order placement failed: {e}")
            return OrderResult(success=False, error_msg=str(e))
        return self._parse_post_response(response)

    async def cancel_order(self, account: TradingAccount, order_id: str) -> CancelResult:
        """
        Cancel a single order.

        Orders the exchange no longer knows (filled, cancelled, expired)
        report success with not_found set.
        """
        def _cancel():
            return self._get_trading_client(account).cancel(order_id)

        try:
            response = await self._run(_cancel)
        except Exception as e:
            error_msg = str(e)
            if is_closed_order_reason(error_msg):
                return CancelResult(success=True, not_found=True)
            logger.warning(f"Order cancel failed: {error_msg}")
            return CancelResult(success=False, error_msg=error_msg)

        # Response format: {"canceled": ["order_id", ...], "not_canceled": {...}}
        if not response:
            return CancelResult(success=False, error_msg="No response")

        canceled = response.get("canceled", []) or []
        not_canceled = response.get("not_canceled", {}) or {}

        if order_id in canceled:
            return CancelResult(success=True)
        if order_id in not_canceled:
            reason = str(not_canceled.get(order_id, "Not canceled"))
            if is_closed_order_reason(reason):
                return CancelResult(success=True, not_found=True, error_msg=reason)
            return CancelResult(success=False, error_msg=reason)
        if canceled:
            return CancelResult(success=True)
        return CancelResult(success=False, error_msg="Unknown response format")
