"""
Network collaborators: relayer, remote signer, exchange and chain RPC.
"""

from .chain import ChainReader, ChainWriter
from .exchange_client import ExchangeClient, TradingAccount
from .relayer_client import RelayerClient
from .remote_signer import RemoteSigningClient

__all__ = [
    "ChainReader",
    "ChainWriter",
    "ExchangeClient",
    "TradingAccount",
    "RelayerClient",
    "RemoteSigningClient",
]
