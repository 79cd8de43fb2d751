"""
Proxy wallet deployment through the relayer.

The controller reports outcomes; persisting them is the orchestrator's job.
"""

import logging
from typing import Optional

from ..errors import (
    ChainReadError,
    DeploymentError,
    DeploymentTimeout,
    RelayerError,
    is_already_deployed,
)
from ..types.core import TERMINAL_TX_STATES, DeploymentState
from ..wallet.address import derive_proxy_address, normalize_address

logger = logging.getLogger(__name__)


class DeploymentController:
    """
    Checks and deploys an owner's proxy wallet.

    The indexed relayer lookup is tried first; the chain is consulted when
    the lookup fails or reports "not deployed", and the chain wins when the
    two disagree (the index can lag a fresh deployment).
    """

    def __init__(
        self,
        relayer,
        chain_reader,
        poll_interval_s: float = 3.0,
        timeout_s: float = 60.0,
    ):
        """
        Initialize the controller.

        Args:
            relayer: RelayerClient (or compatible)
            chain_reader: ChainReader used for the bytecode fallback
            poll_interval_s: Seconds between relayer status polls
            timeout_s: Hard deadline for one deployment
        """
        self._relayer = relayer
        self._chain = chain_reader
        self.poll_interval_s = poll_interval_s
        self.timeout_s = timeout_s
        self._states: dict[str, DeploymentState] = {}

    def state(self, proxy_address: str) -> DeploymentState:
        return self._states.get(proxy_address.lower(), DeploymentState.UNCHECKED)

    def _set_state(self, proxy_address: str, state: DeploymentState) -> None:
        self._states[proxy_address.lower()] = state

    async def check_deployed(self, proxy_address: str) -> bool:
        """
        Check whether code exists at the proxy address.

        Raises:
            ChainReadError: if the relayer lookup failed and no RPC answered
        """
        proxy_address = normalize_address(proxy_address)
        self._set_state(proxy_address, DeploymentState.CHECKING)

        indexed: Optional[bool] = None
        try:
            indexed = await self._relayer.get_deployed(proxy_address)
        except RelayerError as e:
            logger.warning(f"Indexed deployment check failed for {proxy_address}, using chain: {e}")

        if indexed:
            self._set_state(proxy_address, DeploymentState.DEPLOYED)
            return True

        try:
            on_chain = await self._chain.has_code(proxy_address)
        except ChainReadError:
            if indexed is None:
                self._set_state(proxy_address, DeploymentState.UNCHECKED)
                raise
            # Index answered "not deployed" and the chain is unreachable
            logger.warning(f"Chain check failed for {proxy_address}; trusting indexed result")
            on_chain = False

        if indexed is False and on_chain:
            logger.info(f"Relayer index lags chain for {proxy_address}; treating as deployed")

        self._set_state(
            proxy_address,
            DeploymentState.DEPLOYED if on_chain else DeploymentState.NOT_DEPLOYED,
        )
        return on_chain

    async def deploy(self, signer, owner_address: Optional[str] = None) -> str:
        """
        Deploy the owner's proxy wallet and wait for a terminal state.

        An "already deployed" rejection is a success: it means another
        attempt won the race, and the predicted address is returned.

        Args:
            signer: Owner signer
            owner_address: Owner address (defaults to the signer's)

        Returns:
            Proxy address

        Raises:
            DeploymentTimeout: polling exceeded the deadline
            DeploymentError: the relayer reported a terminal failure
        """
        owner = normalize_address(owner_address or signer.address)
        predicted = derive_proxy_address(owner)
        self._set_state(predicted, DeploymentState.DEPLOYING)
        logger.info(f"Deploying proxy {predicted} for owner {owner}")

        try:
            submitted = await self._relayer.submit_safe_create(signer, predicted)
            result = await self._relayer.poll_until_state(
                submitted.transaction_id,
                TERMINAL_TX_STATES,
                interval_s=self.poll_interval_s,
                timeout_s=self.timeout_s,
            )
        except RelayerError as e:
            if is_already_deployed(str(e)):
                logger.info(f"Proxy {predicted} already deployed, continuing")
                self._set_state(predicted, DeploymentState.DEPLOYED)
                return predicted
            self._set_state(predicted, DeploymentState.FAILED)
            raise DeploymentError(f"Proxy deployment failed: {e}") from e

        if result is None:
            self._set_state(predicted, DeploymentState.FAILED)
            raise DeploymentTimeout(
                f"Proxy deployment {submitted.transaction_id} not confirmed within {self.timeout_s}s"
            )

        if result.state.is_failure:
            if is_already_deployed(result.error_msg):
                logger.info(f"Proxy {predicted} already deployed, continuing")
                self._set_state(predicted, DeploymentState.DEPLOYED)
                return predicted
            self._set_state(predicted, DeploymentState.FAILED)
            raise DeploymentError(
                f"Proxy deployment {result.transaction_id} ended in {result.state.value}: "
                f"{result.error_msg or 'no reason given'}"
            )

        proxy = result.proxy_address or predicted
        if proxy.lower() != predicted.lower():
            logger.warning(f"Relayer reported proxy {proxy}, predicted {predicted}; using predicted")
        self._set_state(predicted, DeploymentState.DEPLOYED)
        logger.info(f"Proxy {predicted} deployed (tx={result.tx_hash})")
        return predicted
