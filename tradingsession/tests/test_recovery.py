"""Tests for legacy wallet recovery."""

import pytest

from tradingsession.session import LegacyWalletRecovery
from tradingsession.wallet import derive_legacy_proxy_address, derive_proxy_address
from tradingsession.wallet.contracts import LEGACY_SAFE_FACTORY, selector

from .fakes import FakeChainWriter


@pytest.fixture
def writer():
    return FakeChainWriter()


def _apply_to_chain(chain, writer):
    """Deploys create code at the legacy proxy; transfers drain its balance."""
    def on_send(to, data):
        if to == LEGACY_SAFE_FACTORY:
            chain.code = True
        else:
            chain.balance = 0
    writer.on_send = on_send


class TestRecoveryCheck:
    """Tests for check."""

    @pytest.mark.asyncio
    async def test_reads_balance_and_code(self, chain, writer, signer):
        """check() records deployment status and balance."""
        chain.balance = 7_250_000
        state = await LegacyWalletRecovery(chain, writer).check(signer.address)

        assert state.checked is True
        assert state.legacy_address == derive_legacy_proxy_address(signer.address)
        assert state.current_address == derive_proxy_address(signer.address)
        assert state.balance == 7.25
        assert state.needs_recovery is True
        assert state.is_deployed is False

    @pytest.mark.asyncio
    async def test_read_failure_recorded(self, chain, writer, signer):
        """RPC failures land on state.error."""
        chain.fail_reads = True
        state = await LegacyWalletRecovery(chain, writer).check(signer.address)

        assert state.checked is False
        assert "Failed to check" in state.error


class TestRecover:
    """Tests for the full migration."""

    @pytest.mark.asyncio
    async def test_nothing_to_recover(self, chain, writer, signer):
        """Zero balance stops after the check."""
        state = await LegacyWalletRecovery(chain, writer).recover(signer)
        assert state.error is None
        assert writer.sent == []

    @pytest.mark.asyncio
    async def test_deploys_then_transfers(self, chain, writer, signer):
        """An undeployed funded proxy is deployed, then drained to the current proxy."""
        chain.balance = 3_000_000
        _apply_to_chain(chain, writer)
        state = await LegacyWalletRecovery(chain, writer).recover(signer)

        assert state.error is None
        assert len(writer.sent) == 2
        deploy_to, deploy_data, _ = writer.sent[0]
        assert deploy_to == LEGACY_SAFE_FACTORY
        assert deploy_data.startswith("0x" + selector("createProxyWithNonce(address,bytes,uint256)").hex())
        transfer_to, transfer_data, _ = writer.sent[1]
        assert transfer_to == state.legacy_address
        assert transfer_data.startswith(
            "0x" + selector(
                "execTransaction(address,uint256,bytes,uint8,uint256,uint256,uint256,address,address,bytes)"
            ).hex()
        )
        assert state.deploy_tx_hash is not None
        assert state.transfer_tx_hash is not None
        assert state.balance == 0
        assert state.complete is True

    @pytest.mark.asyncio
    async def test_deployed_proxy_skips_deploy(self, chain, writer, signer):
        """A deployed legacy proxy goes straight to the transfer."""
        chain.code = True
        chain.balance = 1_000_000
        _apply_to_chain(chain, writer)
        state = await LegacyWalletRecovery(chain, writer).recover(signer)

        assert len(writer.sent) == 1
        assert state.deploy_tx_hash is None
        assert state.transfer_tx_hash is not None
        assert state.complete is True

    @pytest.mark.asyncio
    async def test_deploy_without_code_is_an_error(self, chain, writer, signer):
        """A mined deployment that leaves no code at the legacy address stops recovery."""
        chain.balance = 3_000_000
        state = await LegacyWalletRecovery(chain, writer).recover(signer)

        assert state.is_deployed is False
        assert state.deploy_tx_hash is not None
        assert "no code" in state.error
        assert state.complete is False
        assert len(writer.sent) == 1

    @pytest.mark.asyncio
    async def test_transfer_without_balance_change_is_an_error(self, chain, writer, signer):
        """A mined transfer that leaves the legacy balance unchanged is not complete."""
        chain.code = True
        chain.balance = 3_000_000
        state = await LegacyWalletRecovery(chain, writer).recover(signer)

        assert state.transfer_tx_hash is not None
        assert state.balance == 3.0
        assert "did not decrease" in state.error
        assert state.complete is False

    @pytest.mark.asyncio
    async def test_transfer_unconfirmed_when_balance_unreadable(self, chain, writer, signer):
        """A failed balance refresh after the transfer is reported."""
        chain.code = True
        chain.balance = 3_000_000
        recovery = LegacyWalletRecovery(chain, writer)
        await recovery.check(signer.address)

        chain.fail_reads = True
        state = await recovery.transfer(signer)

        assert "Failed to confirm" in state.error
        assert state.complete is False

    @pytest.mark.asyncio
    async def test_transfer_failure_keeps_deploy(self, chain, writer, signer):
        """A failed transfer keeps the completed deployment result."""
        chain.balance = 3_000_000
        _apply_to_chain(chain, writer)
        writer.fail_on = 2
        recovery = LegacyWalletRecovery(chain, writer)

        state = await recovery.recover(signer)

        assert state.is_deployed is True
        assert state.deploy_tx_hash is not None
        assert state.transfer_tx_hash is None
        assert "Failed to transfer" in state.error

        # Retrying only the transfer does not redeploy
        writer.fail_on = None
        state = await recovery.transfer(signer)
        assert state.error is None
        assert len(writer.sent) == 3
        assert writer.sent[2][0] == state.legacy_address

    @pytest.mark.asyncio
    async def test_deploy_failure_stops(self, chain, writer, signer):
        """A failed deployment does not attempt the transfer."""
        chain.balance = 3_000_000
        writer.fail_on = 1

        state = await LegacyWalletRecovery(chain, writer).recover(signer)

        assert state.is_deployed is False
        assert "Failed to deploy" in state.error
        assert len(writer.sent) == 1

    @pytest.mark.asyncio
    async def test_transfer_requires_deployment(self, chain, writer, signer):
        """transfer() on an undeployed proxy reports an error."""
        state = await LegacyWalletRecovery(chain, writer).transfer(signer, amount=1.0)
        assert "must be deployed" in state.error
        assert writer.sent == []
