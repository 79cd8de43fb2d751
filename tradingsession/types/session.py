"""
Session types.

A Session is the serializable checkpoint the orchestrator persists after
every completed step, one per owner address.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .core import SessionStep


@dataclass(slots=True, frozen=True)
class ApiCredentials:
    """Exchange API credentials bound to one owner key."""
    key: str
    secret: str
    passphrase: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "secret": self.secret, "passphrase": self.passphrase}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApiCredentials":
        return cls(
            key=str(data["key"]),
            secret=str(data["secret"]),
            passphrase=str(data["passphrase"]),
        )


@dataclass(slots=True)
class Session:
    """
    Persisted trading session for a single owner.

    Invariant: credentials are only usable when credentials_derived_for
    equals owner_address (case-insensitive).
    """
    owner_address: str
    proxy_address: str
    schema_version: int
    is_proxy_deployed: bool = False
    has_credentials: bool = False
    has_approvals: bool = False
    credentials: Optional[ApiCredentials] = None
    credentials_derived_for: Optional[str] = None
    last_checked_at: int = 0  # wall clock ms

    @property
    def credentials_valid(self) -> bool:
        """Credentials exist and belong to the current owner."""
        return (
            self.has_credentials
            and self.credentials is not None
            and self.credentials_derived_for is not None
            and self.credentials_derived_for.lower() == self.owner_address.lower()
        )

    @property
    def is_complete(self) -> bool:
        return self.is_proxy_deployed and self.credentials_valid and self.has_approvals

    def copy(self, **changes: Any) -> "Session":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "owner_address": self.owner_address,
            "proxy_address": self.proxy_address,
            "schema_version": self.schema_version,
            "is_proxy_deployed": self.is_proxy_deployed,
            "has_credentials": self.has_credentials,
            "has_approvals": self.has_approvals,
            "credentials": self.credentials.to_dict() if self.credentials else None,
            "credentials_derived_for": self.credentials_derived_for,
            "last_checked_at": self.last_checked_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        creds = data.get("credentials")
        return cls(
            owner_address=data["owner_address"],
            proxy_address=data["proxy_address"],
            schema_version=int(data["schema_version"]),
            is_proxy_deployed=bool(data.get("is_proxy_deployed", False)),
            has_credentials=bool(data.get("has_credentials", False)),
            has_approvals=bool(data.get("has_approvals", False)),
            credentials=ApiCredentials.from_dict(creds) if creds else None,
            credentials_derived_for=data.get("credentials_derived_for"),
            last_checked_at=int(data.get("last_checked_at", 0)),
        )


@dataclass(slots=True)
class SessionOutcome:
    """Result of one orchestrator run."""
    step: SessionStep
    session: Optional[Session] = None
    error: Optional[Exception] = None
    steps: list[SessionStep] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.step == SessionStep.COMPLETE and self.error is None
