"""
On-chain transaction and approval types.
"""

from dataclasses import dataclass, field
from typing import Optional

from .core import RelayerTxState


@dataclass(slots=True, frozen=True)
class SafeTransaction:
    """A call executed from the proxy wallet. operation 0 = call, 1 = delegatecall."""
    to: str
    data: str
    value: int = 0
    operation: int = 0


@dataclass(slots=True, frozen=True)
class ApprovalTarget:
    """One (token, spender) pair of the fixed approval set."""
    name: str
    token: str
    spender: str
    is_erc1155: bool


@dataclass(slots=True)
class ApprovalStatus:
    """Approval state for one target."""
    target: ApprovalTarget
    approved: bool
    error: Optional[str] = None


@dataclass(slots=True)
class ApprovalCheck:
    """Result of checking the whole approval set."""
    all_approved: bool
    statuses: list[ApprovalStatus] = field(default_factory=list)

    @property
    def per_spender(self) -> dict[str, bool]:
        return {s.target.name: s.approved for s in self.statuses}


@dataclass(slots=True)
class RelayerTransaction:
    """Relayer view of a submitted transaction."""
    transaction_id: str
    state: RelayerTxState
    tx_hash: Optional[str] = None
    proxy_address: Optional[str] = None
    error_msg: Optional[str] = None


@dataclass(slots=True)
class RecoveryState:
    """Progress of the legacy-wallet migration for one owner."""
    owner_address: str
    legacy_address: str
    current_address: str
    balance: float = 0.0
    balance_raw: int = 0
    is_deployed: bool = False
    deploy_tx_hash: Optional[str] = None
    transfer_tx_hash: Optional[str] = None
    checked: bool = False
    error: Optional[str] = None

    @property
    def needs_recovery(self) -> bool:
        return self.balance_raw > 0

    @property
    def complete(self) -> bool:
        return self.transfer_tx_hash is not None and self.error is None
