"""
Collateral transfers out of the proxy wallet via the relayer.

Used for user withdrawals and for collecting the integrator fee after a
filled BUY.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import InvalidAddress, InvalidOrder, RelayerError
from ..types.chain import SafeTransaction
from ..types.core import TERMINAL_TX_STATES
from ..types.session import Session
from ..utils import from_base_units, to_base_units
from ..wallet.address import is_address, normalize_address
from ..wallet.contracts import USDC_ADDRESS, USDC_DECIMALS, erc20_transfer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransferResult:
    """Result of a relayer-executed transfer."""
    success: bool
    amount_raw: int = 0
    tx_hash: Optional[str] = None
    error_msg: Optional[str] = None
    skipped: bool = False

    @property
    def amount(self) -> float:
        return from_base_units(self.amount_raw, USDC_DECIMALS)


class ProxyTransfers:
    """Relayer-executed USDC transfers from a session's proxy wallet."""

    def __init__(
        self,
        relayer,
        poll_interval_s: float = 3.0,
        timeout_s: float = 60.0,
    ):
        self._relayer = relayer
        self.poll_interval_s = poll_interval_s
        self.timeout_s = timeout_s

    async def _transfer(
        self,
        signer,
        proxy_address: str,
        to_address: str,
        amount_raw: int,
        metadata: str,
    ) -> TransferResult:
        tx = SafeTransaction(to=USDC_ADDRESS, data=erc20_transfer(to_address, amount_raw))
        try:
            submitted = await self._relayer.submit_safe_transactions(
                signer, proxy_address, [tx], metadata=metadata
            )
            result = await self._relayer.poll_until_state(
                submitted.transaction_id,
                TERMINAL_TX_STATES,
                interval_s=self.poll_interval_s,
                timeout_s=self.timeout_s,
            )
        except RelayerError as e:
            return TransferResult(success=False, amount_raw=amount_raw, error_msg=str(e))

        if result is None:
            return TransferResult(
                success=False,
                amount_raw=amount_raw,
                error_msg=f"Transfer {submitted.transaction_id} not confirmed within {self.timeout_s}s",
            )
        if result.state.is_failure:
            return TransferResult(
                success=False,
                amount_raw=amount_raw,
                error_msg=result.error_msg or f"Transfer ended in {result.state.value}",
            )
        return TransferResult(success=True, amount_raw=amount_raw, tx_hash=result.tx_hash)

    async def withdraw(
        self,
        signer,
        session: Session,
        amount: float,
        to_address: str,
    ) -> TransferResult:
        """
        Send `amount` USDC from the proxy to `to_address`.

        Raises:
            InvalidAddress: destination is not an address
            InvalidOrder: amount is not positive
        """
        if not is_address(to_address):
            raise InvalidAddress(f"Invalid withdrawal address: {to_address!r}")
        if amount <= 0:
            raise InvalidOrder("Withdrawal amount must be positive")

        to_address = normalize_address(to_address)
        amount_raw = to_base_units(amount, USDC_DECIMALS)
        result = await self._transfer(
            signer,
            session.proxy_address,
            to_address,
            amount_raw,
            metadata=f"Withdraw {amount:.2f} USDC",
        )
        if result.success:
            logger.info(f"Withdrew {amount:.6f} USDC from {session.proxy_address} to {to_address}")
        else:
            logger.warning(f"Withdrawal from {session.proxy_address} failed: {result.error_msg}")
        return result

    async def collect_fee(
        self,
        signer,
        session: Session,
        order_value: float,
        fee_bps: int,
        fee_address: str,
    ) -> TransferResult:
        """
        Transfer the integrator fee for a filled order.

        Disabled config or a zero fee is a skipped success.
        """
        if fee_bps <= 0 or not fee_address or order_value <= 0:
            return TransferResult(success=True, skipped=True)

        fee_raw = to_base_units(order_value * fee_bps / 10_000, USDC_DECIMALS)
        if fee_raw <= 0:
            return TransferResult(success=True, skipped=True)

        result = await self._transfer(
            signer,
            session.proxy_address,
            normalize_address(fee_address),
            fee_raw,
            metadata=f"Collect integrator fee: {from_base_units(fee_raw, USDC_DECIMALS):.2f} USDC",
        )
        if result.success:
            logger.info(f"Collected fee {result.amount:.6f} USDC from {session.proxy_address}")
        return result
