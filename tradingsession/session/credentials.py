"""Exchange API credential derivation."""

import logging
from typing import Optional

from ..errors import CredentialError, CredentialMismatch
from ..types.session import ApiCredentials, Session

logger = logging.getLogger(__name__)


class CredentialService:
    """
    Create-or-derive exchange credentials for an owner key.

    Only the owner signer is used, so this never depends on the proxy.
    """

    def __init__(self, exchange):
        self._exchange = exchange

    @staticmethod
    def check_binding(session: Session) -> None:
        """
        Raise CredentialMismatch if cached credentials belong to another owner.
        """
        if session.credentials is None:
            return
        bound = session.credentials_derived_for
        if bound is None or bound.lower() != session.owner_address.lower():
            raise CredentialMismatch(
                f"Credentials bound to {bound} cannot be used by {session.owner_address}"
            )

    async def derive_or_create(self, owner_address: str, signer) -> ApiCredentials:
        """
        Create new credentials, falling back to deriving existing ones.

        Raises:
            CredentialError: if both create and derive fail
        """
        if signer.address.lower() != owner_address.lower():
            raise CredentialError(
                f"Signer {signer.address} does not match owner {owner_address}"
            )

        create_error: Optional[Exception] = None
        try:
            creds = await self._exchange.create_api_key(signer.private_key)
            logger.info(f"Created API credentials for {owner_address}")
            return creds
        except Exception as e:
            create_error = e
            logger.info(f"Credential creation failed for {owner_address}, deriving: {e}")

        try:
            creds = await self._exchange.derive_api_key(signer.private_key)
            logger.info(f"Derived API credentials for {owner_address}")
            return creds
        except Exception as e:
            raise CredentialError(
                f"Could not create ({create_error}) or derive ({e}) credentials"
            ) from e

    async def ensure(self, session: Session, signer) -> Session:
        """
        Return a session carrying credentials valid for its owner.

        Credentials bound to a different owner are discarded and re-derived.
        """
        try:
            self.check_binding(session)
            if session.credentials_valid:
                return session
        except CredentialMismatch as e:
            logger.warning(f"{e}; re-deriving")

        creds = await self.derive_or_create(session.owner_address, signer)
        return session.copy(
            credentials=creds,
            has_credentials=True,
            credentials_derived_for=session.owner_address,
        )
