"""
Order execution.

Validates an OrderIntent, locks a fresh price, submits it with the right
time-in-force and reports a single OrderResult. Order errors never touch
the session.
"""

import logging
from typing import Optional

from ..clients.exchange_client import TradingAccount
from ..errors import (
    BelowMinimumOrder,
    ErrorKind,
    InsufficientBalance,
    InvalidOrder,
    NotConnected,
    TradingSessionError,
    classify_error,
    severity,
    user_message,
)
from ..types.core import Side
from ..types.orders import CancelResult, OrderIntent, OrderResult
from ..types.session import Session
from .invalidation import ACTIVE_ORDERS, POSITIONS, CacheInvalidator
from .pricer import OrderBookPricer, simulate_fill

logger = logging.getLogger(__name__)

# Tolerance for float comparisons on collateral amounts
_EPSILON = 1e-9


class OrderExecutionEngine:
    """
    Submits and cancels orders for a completed trading session.

    Market orders are fill-or-kill; limit orders are good-till-cancelled.
    Submission and cancellation are single-shot: nothing is retried here.
    """

    def __init__(
        self,
        exchange,
        pricer: OrderBookPricer,
        invalidator: Optional[CacheInvalidator] = None,
        transfers=None,
        default_min_order_size: float = 5.0,
        skip_balance_check: bool = False,
        fee_bps: int = 0,
        fee_address: str = "",
    ):
        """
        Initialize the engine.

        Args:
            exchange: ExchangeClient (or compatible)
            pricer: Pricer used to lock the execution price
            invalidator: Receives active-orders/positions invalidations
            transfers: ProxyTransfers used for fee collection
            default_min_order_size: Minimum shares when the intent has none
            skip_balance_check: Bypass the available-balance check
            fee_bps: Integrator fee in basis points (0 disables)
            fee_address: Fee recipient
        """
        self._exchange = exchange
        self._pricer = pricer
        self._invalidator = invalidator or CacheInvalidator()
        self._transfers = transfers
        self.default_min_order_size = default_min_order_size
        self.skip_balance_check = skip_balance_check
        self.fee_bps = fee_bps
        self.fee_address = fee_address

    @property
    def fees_enabled(self) -> bool:
        return self.fee_bps > 0 and bool(self.fee_address) and self._transfers is not None

    @staticmethod
    def _failure(error: TradingSessionError, **fields) -> OrderResult:
        return OrderResult(
            success=False,
            error_kind=error.kind,
            error_msg=user_message(error.kind, str(error)),
            severity=severity(error.kind),
            **fields,
        )

    def _account(self, session: Optional[Session], signer) -> TradingAccount:
        if signer is None:
            raise NotConnected("Wallet not connected")
        if session is None or not session.is_complete:
            raise NotConnected("Trading session is not active")
        if signer.address.lower() != session.owner_address.lower():
            raise NotConnected("Connected wallet does not own this session")
        return TradingAccount(
            private_key=signer.private_key,
            proxy_address=session.proxy_address,
            credentials=session.credentials,
        )

    @staticmethod
    def validate_shape(intent: OrderIntent) -> None:
        """
        Reject malformed intents.

        Raises:
            InvalidOrder: non-positive stake or size, or a limit order without a price
        """
        if intent.denominates_collateral:
            if intent.stake <= 0:
                raise InvalidOrder("Stake must be greater than zero")
        elif intent.share_size is None or intent.share_size <= 0:
            raise InvalidOrder("Share size must be greater than zero")

        if not intent.is_market_order:
            price = intent.execution_price
            if price is None:
                raise InvalidOrder("Limit orders require a price")
            if not 0 < price < 1:
                raise InvalidOrder(f"Limit price {price} must be between 0 and 1")

    def validate_size(
        self,
        intent: OrderIntent,
        price: float,
        available_balance: Optional[float] = None,
    ) -> None:
        """
        Minimum-order and balance checks against the locked price.

        Raises:
            BelowMinimumOrder: stake (or size) under the instrument minimum
            InsufficientBalance: cost exceeds the known available balance
        """
        min_size = intent.min_order_size
        if min_size is None:
            min_size = self.default_min_order_size

        if intent.denominates_collateral:
            min_stake = round(min_size * price, 6)
            if intent.stake + _EPSILON < min_stake:
                raise BelowMinimumOrder(
                    f"Minimum order is {min_size:g} shares (${min_stake:.2f} at {price:.2f})"
                )
            cost = intent.stake
        else:
            if intent.share_size + _EPSILON < min_size:
                raise BelowMinimumOrder(f"Minimum order is {min_size:g} shares")
            cost = intent.share_size * price if intent.side == Side.BUY else 0.0

        if self.skip_balance_check or available_balance is None:
            return
        if cost > available_balance + _EPSILON:
            raise InsufficientBalance(
                f"Order cost ${cost:.2f} exceeds available ${available_balance:.2f}"
            )

    async def _lock_price(self, intent: OrderIntent) -> float:
        """Fresh market price; the pricer refreshes stale books first."""
        if not intent.is_market_order:
            return intent.execution_price
        return await self._pricer.get_execution_price(
            intent.instrument_id,
            direction=intent.direction,
            side=intent.side,
            base_instrument_id=intent.base_instrument_id,
            reference_price=intent.reference_price,
            odds=intent.odds,
        )

    async def submit(
        self,
        intent: OrderIntent,
        session: Optional[Session],
        signer,
        available_balance: Optional[float] = None,
    ) -> OrderResult:
        """
        Validate, price and submit one order.

        Args:
            intent: What to trade
            session: Completed trading session (proxy + credentials)
            signer: Owner signer
            available_balance: Caller's known collateral balance, if any

        Returns:
            OrderResult; validation failures carry severity "warning"
        """
        try:
            account = self._account(session, signer)
            self.validate_shape(intent)
            price = await self._lock_price(intent)
            self.validate_size(intent, price, available_balance)
        except TradingSessionError as e:
            logger.info(f"Order rejected before submit ({e.kind.value}): {e}")
            return self._failure(e)

        intent.execution_price = price
        fill = None
        fee_amount = 0.0

        if intent.denominates_collateral:
            amount = intent.stake
            if self.fees_enabled:
                fee_amount = round(intent.stake * self.fee_bps / 10_000, 6)
                amount = round(intent.stake - fee_amount, 6)
            share_size = amount / price
            snapshot = self._pricer.get_snapshot(intent.base_instrument_id or intent.instrument_id)
            if snapshot is not None and intent.base_instrument_id is None:
                fill = simulate_fill(amount, snapshot.asks, snapshot.best_ask)
            result = await self._place(
                self._exchange.place_market_order,
                account, intent.instrument_id, intent.side, amount, price,
                tick_size=intent.tick_size, neg_risk=intent.neg_risk,
            )
        elif intent.is_market_order:
            amount = share_size = intent.share_size
            result = await self._place(
                self._exchange.place_market_order,
                account, intent.instrument_id, intent.side, amount, price,
                tick_size=intent.tick_size, neg_risk=intent.neg_risk,
            )
        else:
            share_size = intent.share_size
            amount = share_size
            result = await self._place(
                self._exchange.place_limit_order,
                account, intent.instrument_id, intent.side, price, share_size,
                tick_size=intent.tick_size, neg_risk=intent.neg_risk,
                order_type=intent.order_type,
            )

        result.execution_price = price
        result.share_size = share_size
        result.amount = amount
        result.fill_simulation = fill

        if not result.success:
            kind = classify_error(result.error_msg)
            if kind == ErrorKind.SIGNER_NOT_READY:
                result.error_msg = user_message(kind, result.error_msg)
            result.error_kind = kind
            result.severity = severity(kind)
            logger.warning(f"Order on {intent.instrument_id} failed ({kind.value}): {result.error_msg}")
            return result

        logger.info(
            f"Order {result.order_id} placed: {intent.side.name} {intent.instrument_id} "
            f"{intent.order_type.value} amount={amount} price={price}"
        )
        await self._invalidator.invalidate(ACTIVE_ORDERS, POSITIONS)

        if intent.side == Side.BUY and self.fees_enabled and fee_amount > 0:
            await self._collect_fee(session, signer, intent.stake, result)
        return result

    @staticmethod
    async def _place(place, *args, **kwargs) -> OrderResult:
        try:
            return await place(*args, **kwargs)
        except Exception as e:
            return OrderResult(success=False, error_msg=str(e) or e.__class__.__name__)

    async def _collect_fee(self, session: Session, signer, order_value: float, result: OrderResult) -> None:
        try:
            transfer = await self._transfers.collect_fee(
                signer, session, order_value, self.fee_bps, self.fee_address
            )
        except Exception as e:
            logger.error(f"Fee collection for order {result.order_id} failed: {e}")
            return
        if transfer.success and not transfer.skipped:
            result.fee_amount = transfer.amount
            result.fee_tx_id = transfer.tx_hash
        elif not transfer.success:
            logger.error(f"Fee collection for order {result.order_id} failed: {transfer.error_msg}")

    async def cancel(self, order_id: str, session: Optional[Session], signer) -> CancelResult:
        """
        Cancel an order. Already filled or cancelled orders are a no-op success.
        """
        try:
            account = self._account(session, signer)
        except TradingSessionError as e:
            return CancelResult(success=False, error_msg=str(e))

        result = await self._exchange.cancel_order(account, order_id)
        if result.success:
            if result.not_found:
                logger.info(f"Order {order_id} already closed; cancel is a no-op")
            else:
                logger.info(f"Order {order_id} cancelled")
            await self._invalidator.invalidate(ACTIVE_ORDERS)
        else:
            logger.warning(f"Cancel {order_id} failed: {result.error_msg}")
        return result
