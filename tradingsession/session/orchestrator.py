"""
Session orchestrator.

Drives one owner through checking -> deploying -> deriving_credentials ->
setting_approvals -> complete, persisting after every completed step so a
restart resumes where the last run stopped. At most one run per owner is
in flight; concurrent callers share it.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..errors import NotConnected, TradingSessionError, wrap_exception
from ..types.core import SessionStep
from ..types.session import Session, SessionOutcome
from ..wallet.address import derive_proxy_address, normalize_address
from .approvals import ApprovalBatcher
from .credentials import CredentialService
from .deployment import DeploymentController
from .store import SessionStore

logger = logging.getLogger(__name__)

StepListener = Callable[[str, SessionStep, Optional[Exception]], None]


class SessionOrchestrator:
    """
    Resumable session state machine.

    Any failure moves the owner to ERROR and then straight back to IDLE;
    nothing is retried automatically. Calling activate() again re-enters
    at CHECKING and skips steps the persisted session already covers.
    """

    def __init__(
        self,
        store: SessionStore,
        deployment: DeploymentController,
        credentials: CredentialService,
        approvals: ApprovalBatcher,
    ):
        self._store = store
        self._deployment = deployment
        self._credentials = credentials
        self._approvals = approvals

        self._inflight: dict[str, asyncio.Task] = {}
        self._steps: dict[str, SessionStep] = {}
        self._listeners: list[StepListener] = []

    # --- Observation -------------------------------------------------------

    def add_listener(self, listener: StepListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StepListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def current_step(self, owner_address: str) -> SessionStep:
        return self._steps.get(owner_address.lower(), SessionStep.IDLE)

    def is_active(self, owner_address: str) -> bool:
        task = self._inflight.get(owner_address.lower())
        return task is not None and not task.done()

    def _emit(
        self,
        owner: str,
        step: SessionStep,
        trail: list[SessionStep],
        error: Optional[Exception] = None,
    ) -> None:
        self._steps[owner.lower()] = step
        trail.append(step)
        if error is not None:
            logger.warning(f"Session {owner}: {step.value} ({error})")
        else:
            logger.info(f"Session {owner}: {step.value}")
        for listener in list(self._listeners):
            try:
                listener(owner, step, error)
            except Exception as e:
                logger.error(f"Session step listener failed: {e}")

    # --- Entry points ------------------------------------------------------

    async def activate(self, signer) -> SessionOutcome:
        """
        Bring the signer's session to COMPLETE.

        A second call while a run is in flight awaits that run instead of
        starting another, so deployment and credential creation happen at
        most once.

        Args:
            signer: Owner signer, or None when no wallet is connected

        Returns:
            SessionOutcome with the final step, session and any error
        """
        if signer is None:
            return SessionOutcome(step=SessionStep.ERROR, error=NotConnected("Wallet not connected"))

        try:
            owner = normalize_address(signer.address)
        except TradingSessionError as e:
            return SessionOutcome(step=SessionStep.ERROR, error=e)

        key = owner.lower()
        task = self._inflight.get(key)
        if task is None or task.done():
            task = asyncio.ensure_future(self._run(signer, owner))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.info(f"Session {owner}: joining in-flight activation")

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def end(self, owner_address: str) -> None:
        """Clear the owner's persisted session and reset to IDLE."""
        owner = normalize_address(owner_address)
        task = self._inflight.get(owner.lower())
        if task is not None and not task.done():
            await asyncio.shield(task)
        await self._store.clear(owner)
        self._steps[owner.lower()] = SessionStep.IDLE
        logger.info(f"Session {owner}: ended")

    async def get_session(self, owner_address: str) -> Optional[Session]:
        return await self._store.load(normalize_address(owner_address))

    # --- Flow --------------------------------------------------------------

    async def _persist(self, base: Session, **changes) -> Session:
        """Apply changes to the latest stored session (or `base` if absent)."""
        def mutate(current: Optional[Session]) -> Session:
            if current is None or current.proxy_address.lower() != base.proxy_address.lower():
                current = base
            return current.copy(**changes)

        return await self._store.update(base.owner_address, mutate)

    async def _run(self, signer, owner: str) -> SessionOutcome:
        trail: list[SessionStep] = []
        session: Optional[Session] = None

        try:
            self._emit(owner, SessionStep.CHECKING, trail)
            proxy = derive_proxy_address(owner)
            session = await self._store.load(owner)
            if session is None or session.proxy_address.lower() != proxy.lower():
                session = Session(
                    owner_address=owner,
                    proxy_address=proxy,
                    schema_version=self._store.schema_version,
                )

            if not session.is_proxy_deployed:
                if await self._deployment.check_deployed(proxy):
                    session = await self._persist(session, is_proxy_deployed=True)

            if not session.is_proxy_deployed:
                self._emit(owner, SessionStep.DEPLOYING, trail)
                await self._deployment.deploy(signer, owner)
                session = await self._persist(session, is_proxy_deployed=True)

            self._emit(owner, SessionStep.DERIVING_CREDENTIALS, trail)
            if not session.credentials_valid:
                with_creds = await self._credentials.ensure(session, signer)
                session = await self._persist(
                    session,
                    credentials=with_creds.credentials,
                    has_credentials=True,
                    credentials_derived_for=owner,
                )

            self._emit(owner, SessionStep.SETTING_APPROVALS, trail)
            await self._approvals.ensure(signer, proxy)
            session = await self._persist(session, has_approvals=True)

            self._emit(owner, SessionStep.COMPLETE, trail)
            return SessionOutcome(step=SessionStep.COMPLETE, session=session, steps=trail)

        except asyncio.CancelledError:
            self._steps[owner.lower()] = SessionStep.IDLE
            raise
        except Exception as e:
            error = wrap_exception(e)
            logger.error(f"Session {owner} failed: {error}")
            self._emit(owner, SessionStep.ERROR, trail, error)
            self._emit(owner, SessionStep.IDLE, trail)
            return SessionOutcome(step=SessionStep.ERROR, session=session, error=error, steps=trail)
