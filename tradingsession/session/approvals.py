"""
Token approvals required to trade from the proxy wallet.

The approval set is fixed: USDC allowance for four spenders and CTF
approval-for-all for three operators. It is always submitted as a single
batched Safe transaction.
"""

import asyncio
import logging

from ..errors import ApprovalError, RelayerError
from ..types.chain import ApprovalCheck, ApprovalStatus, ApprovalTarget, SafeTransaction
from ..types.core import TERMINAL_TX_STATES
from ..wallet.contracts import ALLOWANCE_THRESHOLD, APPROVAL_TARGETS, approval_transactions

logger = logging.getLogger(__name__)

APPROVAL_METADATA = "Set all token approvals for trading"


class ApprovalBatcher:
    """Checks and sets the fixed approval set for a proxy wallet."""

    def __init__(
        self,
        chain_reader,
        relayer,
        poll_interval_s: float = 3.0,
        timeout_s: float = 60.0,
        allowance_threshold: int = ALLOWANCE_THRESHOLD,
    ):
        self._chain = chain_reader
        self._relayer = relayer
        self.poll_interval_s = poll_interval_s
        self.timeout_s = timeout_s
        self.allowance_threshold = allowance_threshold

    async def _check_one(self, proxy_address: str, target: ApprovalTarget) -> ApprovalStatus:
        try:
            if target.is_erc1155:
                approved = await self._chain.erc1155_is_approved_for_all(
                    target.token, proxy_address, target.spender
                )
            else:
                allowance = await self._chain.erc20_allowance(
                    target.token, proxy_address, target.spender
                )
                approved = allowance >= self.allowance_threshold
            return ApprovalStatus(target=target, approved=approved)
        except Exception as e:
            logger.warning(f"Approval check {target.name} failed for {proxy_address}: {e}")
            return ApprovalStatus(target=target, approved=False, error=str(e))

    async def check_all(self, proxy_address: str) -> ApprovalCheck:
        """
        Check every approval concurrently.

        A failed read counts as not approved for that target only.
        """
        statuses = await asyncio.gather(
            *(self._check_one(proxy_address, target) for target in APPROVAL_TARGETS)
        )
        check = ApprovalCheck(
            all_approved=all(s.approved for s in statuses),
            statuses=list(statuses),
        )
        missing = [s.target.name for s in statuses if not s.approved]
        if missing:
            logger.info(f"Proxy {proxy_address} missing approvals: {', '.join(missing)}")
        return check

    def build_approval_batch(self) -> list[SafeTransaction]:
        """Full fixed-size batch, independent of current on-chain state."""
        return approval_transactions()

    async def submit(self, signer, proxy_address: str) -> str:
        """
        Submit the approval batch and wait for the relayer to settle it.

        Returns:
            Transaction hash of the batch

        Raises:
            ApprovalError: if submission fails, the batch fails, or it does
                not settle before the deadline
        """
        batch = self.build_approval_batch()
        try:
            submitted = await self._relayer.submit_safe_transactions(
                signer, proxy_address, batch, metadata=APPROVAL_METADATA
            )
            result = await self._relayer.poll_until_state(
                submitted.transaction_id,
                TERMINAL_TX_STATES,
                interval_s=self.poll_interval_s,
                timeout_s=self.timeout_s,
            )
        except RelayerError as e:
            raise ApprovalError(f"Approval batch submission failed: {e}") from e

        if result is None:
            raise ApprovalError(
                f"Approval batch {submitted.transaction_id} not confirmed within {self.timeout_s}s"
            )
        if result.state.is_failure:
            raise ApprovalError(
                f"Approval batch {result.transaction_id} ended in {result.state.value}: "
                f"{result.error_msg or 'no reason given'}"
            )

        logger.info(f"Approval batch settled for {proxy_address} (tx={result.tx_hash})")
        return result.tx_hash or result.transaction_id

    async def ensure(self, signer, proxy_address: str) -> ApprovalCheck:
        """
        Check, submit the batch if anything is missing, and re-check.

        Raises:
            ApprovalError: if approvals are still missing after the batch settled
        """
        check = await self.check_all(proxy_address)
        if check.all_approved:
            return check

        await self.submit(signer, proxy_address)
        check = await self.check_all(proxy_address)
        if not check.all_approved:
            missing = [name for name, ok in check.per_spender.items() if not ok]
            raise ApprovalError(f"Approvals still missing after batch: {', '.join(missing)}")
        return check
