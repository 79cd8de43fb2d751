"""
Session lifecycle: persistence, deployment, credentials, approvals,
orchestration, transfers and legacy recovery.
"""

from .approvals import ApprovalBatcher
from .credentials import CredentialService
from .deployment import DeploymentController
from .orchestrator import SessionOrchestrator
from .recovery import LegacyWalletRecovery
from .store import MemorySessionStore, SessionStore, SqliteSessionStore, session_key
from .transfers import ProxyTransfers, TransferResult

__all__ = [
    "ApprovalBatcher",
    "CredentialService",
    "DeploymentController",
    "SessionOrchestrator",
    "LegacyWalletRecovery",
    "MemorySessionStore",
    "SessionStore",
    "SqliteSessionStore",
    "session_key",
    "ProxyTransfers",
    "TransferResult",
]
