"""
Legacy proxy-wallet recovery.

Funds may sit in a proxy derived under the superseded factory. Recovery is
user-triggered only: check the legacy proxy, deploy it if it holds funds
but has no code, then move the collateral to the current proxy. Each step
records its own result, so a failed transfer keeps the completed deployment.
"""

import logging
from typing import Optional

from ..errors import TradingSessionError
from ..types.chain import RecoveryState, SafeTransaction
from ..utils import from_base_units, to_base_units
from ..wallet.address import derive_legacy_proxy_address, derive_proxy_address, normalize_address
from ..wallet.contracts import (
    LEGACY_SAFE_FACTORY,
    USDC_ADDRESS,
    USDC_DECIMALS,
    create_proxy_with_nonce,
    erc20_transfer,
    exec_transaction_prevalidated,
)

logger = logging.getLogger(__name__)


class LegacyWalletRecovery:
    """Guarded migration from a legacy proxy to the current proxy."""

    def __init__(self, chain_reader, chain_writer):
        self._chain = chain_reader
        self._writer = chain_writer
        self._states: dict[str, RecoveryState] = {}

    def state(self, owner_address: str) -> RecoveryState:
        owner = normalize_address(owner_address)
        key = owner.lower()
        state = self._states.get(key)
        if state is None:
            state = RecoveryState(
                owner_address=owner,
                legacy_address=derive_legacy_proxy_address(owner),
                current_address=derive_proxy_address(owner),
            )
            self._states[key] = state
        return state

    async def check(self, owner_address: str) -> RecoveryState:
        """Read legacy deployment status and collateral balance."""
        state = self.state(owner_address)
        state.error = None
        try:
            state.is_deployed = await self._chain.has_code(state.legacy_address)
            state.balance_raw = await self._chain.erc20_balance(USDC_ADDRESS, state.legacy_address)
            state.balance = from_base_units(state.balance_raw, USDC_DECIMALS)
            state.checked = True
            logger.info(
                f"Legacy proxy {state.legacy_address}: deployed={state.is_deployed} "
                f"balance={state.balance:.6f} USDC"
            )
        except TradingSessionError as e:
            state.error = f"Failed to check legacy proxy: {e}"
            logger.warning(state.error)
        return state

    async def deploy(self, signer) -> RecoveryState:
        """Deploy the legacy proxy from the owner EOA (owner pays gas)."""
        state = self.state(signer.address)
        if state.is_deployed:
            return state

        state.error = None
        try:
            state.deploy_tx_hash = await self._writer.send_transaction(
                signer,
                LEGACY_SAFE_FACTORY,
                create_proxy_with_nonce(state.owner_address),
                gas=500_000,
            )
        except TradingSessionError as e:
            state.error = f"Failed to deploy legacy proxy: {e}"
            logger.warning(state.error)
            return state

        # A mined receipt alone does not prove the factory created this address
        try:
            has_code = await self._chain.has_code(state.legacy_address)
        except TradingSessionError as e:
            state.error = f"Failed to confirm legacy proxy deployment: {e}"
            logger.warning(state.error)
            return state
        if not has_code:
            state.error = (
                f"Deployment tx {state.deploy_tx_hash} mined but no code at {state.legacy_address}"
            )
            logger.error(state.error)
            return state

        state.is_deployed = True
        logger.info(f"Legacy proxy {state.legacy_address} deployed (tx={state.deploy_tx_hash})")
        return state

    async def transfer(self, signer, amount: Optional[float] = None) -> RecoveryState:
        """
        Move collateral from the legacy proxy to the current proxy.

        Args:
            signer: Owner signer
            amount: USDC to move (defaults to the full checked balance)
        """
        state = self.state(signer.address)
        state.error = None

        if not state.is_deployed:
            state.error = "Legacy proxy must be deployed before transferring"
            return state

        amount_raw = state.balance_raw if amount is None else to_base_units(amount, USDC_DECIMALS)
        if amount_raw <= 0:
            state.error = "Nothing to transfer"
            return state

        tx = SafeTransaction(
            to=USDC_ADDRESS,
            data=erc20_transfer(state.current_address, amount_raw),
        )
        try:
            state.transfer_tx_hash = await self._writer.send_transaction(
                signer,
                state.legacy_address,
                exec_transaction_prevalidated(tx, state.owner_address),
                gas=200_000,
            )
            logger.info(
                f"Moved {from_base_units(amount_raw, USDC_DECIMALS):.6f} USDC "
                f"{state.legacy_address} -> {state.current_address} (tx={state.transfer_tx_hash})"
            )
        except TradingSessionError as e:
            state.error = f"Failed to transfer USDC: {e}"
            logger.warning(state.error)
            return state

        balance_before = state.balance_raw
        try:
            state.balance_raw = await self._chain.erc20_balance(USDC_ADDRESS, state.legacy_address)
            state.balance = from_base_units(state.balance_raw, USDC_DECIMALS)
        except TradingSessionError as e:
            state.error = f"Failed to confirm USDC transfer: {e}"
            logger.warning(state.error)
            return state

        if state.checked and state.balance_raw >= balance_before:
            state.error = (
                f"Transfer tx {state.transfer_tx_hash} mined but legacy balance did not decrease"
            )
            logger.error(state.error)
        return state

    async def recover(self, signer) -> RecoveryState:
        """
        Run check -> deploy (if needed) -> transfer, stopping at the first error.

        Failures are reported on the returned state, not raised.
        """
        state = await self.check(signer.address)
        if state.error or not state.needs_recovery:
            return state

        if not state.is_deployed:
            state = await self.deploy(signer)
            if state.error:
                return state

        return await self.transfer(signer)
