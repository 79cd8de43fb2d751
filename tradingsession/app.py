"""
Command-line entry point.

    python -m tradingsession.app activate
    python -m tradingsession.app recover
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from .clients import ChainReader, ChainWriter, ExchangeClient, RelayerClient, RemoteSigningClient
from .config import SessionConfig
from .errors import TradingSessionError
from .execution import CacheInvalidator, OrderBookPricer, OrderExecutionEngine
from .session import (
    ApprovalBatcher,
    CredentialService,
    DeploymentController,
    LegacyWalletRecovery,
    ProxyTransfers,
    SessionOrchestrator,
    SqliteSessionStore,
)
from .types import RecoveryState, SessionOutcome
from .utils import setup_logging
from .wallet import LocalKeySigner

logger = logging.getLogger(__name__)


class TradingSessionApp:
    """
    Wires every component from a SessionConfig.

    Component graph:
    RemoteSigningClient -> RelayerClient -+-> DeploymentController -+
    ChainReader ---------------------------+-> ApprovalBatcher ------+-> SessionOrchestrator
    ExchangeClient -----------------------+-> CredentialService ----+
    ExchangeClient -> OrderBookPricer -> OrderExecutionEngine <- ProxyTransfers
    ChainReader + ChainWriter -> LegacyWalletRecovery
    """

    def __init__(self, config: SessionConfig):
        self.config = config
        config.validate()

        self.remote_signer = RemoteSigningClient(
            config.remote_signing_url, timeout_seconds=config.http_timeout_seconds
        )
        self.relayer = RelayerClient(
            base_url=config.relayer_url,
            chain_id=config.chain_id,
            remote_signer=self.remote_signer,
            timeout_seconds=config.http_timeout_seconds,
        )
        self.exchange = ExchangeClient(host=config.clob_host, chain_id=config.chain_id)
        self.chain_reader = ChainReader(config.rpc_urls)
        self.chain_writer = ChainWriter(config.rpc_urls, chain_id=config.chain_id)

        self.store = SqliteSessionStore(
            config.session_store_path, schema_version=config.session_schema_version
        )
        self.deployment = DeploymentController(
            self.relayer,
            self.chain_reader,
            poll_interval_s=config.deploy_poll_interval_s,
            timeout_s=config.deploy_timeout_s,
        )
        self.credentials = CredentialService(self.exchange)
        self.approvals = ApprovalBatcher(
            self.chain_reader,
            self.relayer,
            poll_interval_s=config.deploy_poll_interval_s,
            timeout_s=config.deploy_timeout_s,
        )
        self.orchestrator = SessionOrchestrator(
            self.store, self.deployment, self.credentials, self.approvals
        )
        self.transfers = ProxyTransfers(
            self.relayer,
            poll_interval_s=config.deploy_poll_interval_s,
            timeout_s=config.deploy_timeout_s,
        )
        self.pricer = OrderBookPricer(
            self.exchange,
            buffer=config.price_buffer,
            ceiling=config.price_ceiling,
            floor=config.price_floor,
            stale_after_ms=config.stale_after_ms,
            wide_spread_percent=config.wide_spread_percent,
            refresh_interval_s=config.book_refresh_interval_s,
            batch_size=config.book_batch_size,
        )
        self.invalidator = CacheInvalidator()
        self.engine = OrderExecutionEngine(
            self.exchange,
            self.pricer,
            invalidator=self.invalidator,
            transfers=self.transfers,
            default_min_order_size=config.default_min_order_size,
            skip_balance_check=config.skip_balance_check,
            fee_bps=config.fee_bps,
            fee_address=config.fee_address,
        )
        self.recovery = LegacyWalletRecovery(self.chain_reader, self.chain_writer)

        self._signer: Optional[LocalKeySigner] = None

    @property
    def signer(self) -> LocalKeySigner:
        if self._signer is None:
            self._signer = LocalKeySigner(self.config.private_key)
        return self._signer

    async def activate(self) -> SessionOutcome:
        return await self.orchestrator.activate(self.signer)

    async def recover(self) -> RecoveryState:
        return await self.recovery.recover(self.signer)

    async def close(self) -> None:
        await self.pricer.stop()
        await self.relayer.close()
        self.exchange.close()
        self.chain_reader.close()
        self.chain_writer.close()
        self.store.close()


def _print_outcome(outcome: SessionOutcome) -> int:
    steps = " -> ".join(step.value for step in outcome.steps)
    print(f"steps: {steps}")
    if outcome.session is not None:
        print(f"owner: {outcome.session.owner_address}")
        print(f"proxy: {outcome.session.proxy_address}")
    if outcome.error is not None:
        print(f"error: {outcome.error}")
        return 1
    return 0


def _print_recovery(state: RecoveryState) -> int:
    print(f"legacy proxy: {state.legacy_address} (deployed={state.is_deployed})")
    print(f"current proxy: {state.current_address}")
    print(f"legacy balance: {state.balance:.6f} USDC")
    if state.deploy_tx_hash:
        print(f"deploy tx: {state.deploy_tx_hash}")
    if state.transfer_tx_hash:
        print(f"transfer tx: {state.transfer_tx_hash}")
    if state.error:
        print(f"error: {state.error}")
        return 1
    return 0


async def _run(command: str, config: SessionConfig) -> int:
    app = TradingSessionApp(config)
    try:
        if command == "activate":
            return _print_outcome(await app.activate())
        return _print_recovery(await app.recover())
    finally:
        await app.close()


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point."""
    parser = argparse.ArgumentParser(prog="tradingsession")
    parser.add_argument("command", choices=["activate", "recover"])
    parser.add_argument("--env-file", default=".env", help="dotenv file to load")
    args = parser.parse_args(argv)

    load_dotenv(args.env_file)
    setup_logging("tradingsession", os.getenv("LOG_LEVEL", "INFO"))

    try:
        config = SessionConfig.from_env()
        return asyncio.run(_run(args.command, config))
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    except TradingSessionError as e:
        logger.error(f"{args.command} failed ({e.kind.value}): {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
