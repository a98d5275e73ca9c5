"""
trade_client.py - Steam mobile-confirmation client (list / allow / cancel).

One ConfirmationClient owns one ConfirmationState. All state changes happen
inside the client's coroutines, i.e. on the event loop that awaits them, and
every change is pushed to subscribers as a new immutable snapshot.

Only one request may be in flight at a time: calling list()/act() while
is_loading is set raises OperationInProgress instead of racing.

Request signing uses sign_confirmation(identity_secret, now, "conf"); the
session cookies are forwarded verbatim as the Cookie header.
"""

from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple
import asyncio
import logging
import time

import httpx

from guard_core import settings
from guard_core.accounts import Account
from guard_core.confirmations import Confirmation, parse_confirmations
from guard_core.errors import (
    GuardError,
    InvalidSecret,
    MalformedResponse,
    MissingCredentialField,
    OperationInProgress,
    ServerRejected,
    TransportFailure,
)
from guard_core.session import Session
from guard_core.steam_codes import sign_confirmation

logger = logging.getLogger(__name__)

OPERATIONS = ("allow", "cancel")


@dataclass(frozen=True)
class ConfirmationState:
    confirmations: Tuple[Confirmation, ...] = ()
    is_loading: bool = False
    status_message: str = ""


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    message: str
    error: Optional[GuardError] = None


StateListener = Callable[[ConfirmationState], None]


class ConfirmationClient:
    def __init__(
        self,
        base_url: str | None = None,
        refresh_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")
        self.refresh_delay = settings.REFRESH_DELAY if refresh_delay is None else refresh_delay
        self._transport = transport
        self._clock = clock
        self._state = ConfirmationState()
        self._listeners: List[StateListener] = []
        self._refresh_task: asyncio.Task | None = None

    # --- State ---------------------------------------------------------------
    @property
    def state(self) -> ConfirmationState:
        return self._state

    @property
    def confirmations(self) -> Tuple[Confirmation, ...]:
        return self._state.confirmations

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def status_message(self) -> str:
        return self._state.status_message

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    # --- Request building ----------------------------------------------------
    def _begin(self, account: Account, status: str) -> dict:
        """
        Check preconditions, sign, and mark the client as loading.

        Nothing but status_message changes when a precondition fails, and no
        request is sent.

        Raises:
            OperationInProgress: a request is already running
            MissingCredentialField: identity_secret / device_id / steamid absent
            InvalidSecret: identity_secret is not valid base64
        """
        if self._state.is_loading:
            raise OperationInProgress("A confirmation request is already in progress")

        for field in ("identity_secret", "device_id", "steamid"):
            if not getattr(account, field):
                error = MissingCredentialField(field, account.account_name)
                self._update(status_message=str(error))
                raise error

        now = int(self._clock())
        try:
            signature = sign_confirmation(account.identity_secret, now, settings.CONFIRMATION_TAG)
        except InvalidSecret as e:
            self._update(status_message=f"Failed to sign request: {e}")
            raise

        self._update(is_loading=True, status_message=status)
        return {
            "p": account.device_id,
            "a": account.steamid,
            "k": signature,
            "t": str(now),
            "m": settings.CLIENT_PLATFORM,
            "tag": settings.CONFIRMATION_TAG,
        }

    async def _get(self, endpoint: str, params: dict, session: Session) -> dict:
        url = f"{self.base_url}/{endpoint}"
        try:
            async with httpx.AsyncClient(transport=self._transport) as http:
                response = await http.get(url, params=params, headers=session.cookie_header())
        except httpx.HTTPError as e:
            raise TransportFailure(f"Error: {e}") from e
        except UnicodeEncodeError as e:
            raise TransportFailure(f"Error: cannot encode request headers: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Parse error: {e}") from e
        if not isinstance(body, dict):
            raise MalformedResponse("Parse error: expected a JSON object")
        return body

    # --- Listing -------------------------------------------------------------
    async def list(self, account: Account, session: Session) -> OperationResult:
        """
        Fetch pending confirmations and replace the in-memory list.

        Transport, parse and server failures keep the current list and are
        reported through the result and status_message.
        """
        params = self._begin(account, "Loading confirmations...")
        try:
            result, confirmations = await self._fetch_list(params, session)
        except BaseException:
            self._update(is_loading=False)
            raise

        changes = {} if confirmations is None else {"confirmations": confirmations}
        self._update(is_loading=False, status_message=result.message, **changes)
        logger.info("[%s] %s", account.account_name, result.message)
        return result

    async def _fetch_list(self, params: dict, session: Session):
        try:
            body = await self._get("getlist", params, session)
        except (TransportFailure, MalformedResponse) as e:
            return OperationResult(False, str(e), e), None

        if body.get("success") is not True:
            error = ServerRejected("Steam returned failure")
            return OperationResult(False, str(error), error), None

        conf = body.get("conf")
        if not isinstance(conf, list) or not conf:
            return OperationResult(True, "No active confirmations"), ()

        parsed = parse_confirmations(conf, int(params["t"]))
        return OperationResult(True, f"Loaded {len(conf)} confirmations"), tuple(parsed)

    # --- Accept / decline ----------------------------------------------------
    async def act(
        self, confirmation: Confirmation, account: Account, session: Session, operation: str
    ) -> OperationResult:
        """
        Allow or cancel one confirmation.

        On success the confirmation leaves the list at once and a re-list is
        scheduled after refresh_delay seconds to reconcile with Steam.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"operation must be one of {OPERATIONS}, got {operation!r}")

        params = self._begin(account, "Sending confirmation...")
        params = {"op": operation, **params, "cid": confirmation.id, "ck": confirmation.key}
        try:
            body = await self._get("ajaxop", params, session)
        except (TransportFailure, MalformedResponse) as e:
            self._update(is_loading=False, status_message=str(e))
            return OperationResult(False, str(e), e)
        except BaseException:
            self._update(is_loading=False)
            raise

        if body.get("success") is not True:
            error = ServerRejected("Failed to perform action")
            self._update(is_loading=False, status_message=str(error))
            logger.warning("[%s] %s %s rejected", account.account_name, operation, confirmation.id)
            return OperationResult(False, str(error), error)

        message = "Accepted!" if operation == "allow" else "Declined!"
        remaining = tuple(c for c in self._state.confirmations if c.id != confirmation.id)
        self._update(is_loading=False, status_message=message, confirmations=remaining)
        logger.info("[%s] %s confirmation %s", account.account_name, operation, confirmation.id)
        self._schedule_refresh(account, session)
        return OperationResult(True, message)

    async def accept(self, confirmation: Confirmation, account: Account, session: Session) -> OperationResult:
        return await self.act(confirmation, account, session, "allow")

    async def decline(self, confirmation: Confirmation, account: Account, session: Session) -> OperationResult:
        return await self.act(confirmation, account, session, "cancel")

    # --- Reconciliation ------------------------------------------------------
    def _schedule_refresh(self, account: Account, session: Session) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_later(account, session))

    async def _refresh_later(self, account: Account, session: Session) -> None:
        await asyncio.sleep(self.refresh_delay)
        if self._state.is_loading:
            logger.debug("Skipping scheduled refresh, a request is in flight")
            return
        try:
            await self.list(account, session)
        except GuardError as e:
            logger.warning("Scheduled refresh failed: %s", e)

    async def wait_for_refresh(self) -> None:
        """Wait until the pending post-action re-list (if any) has finished."""
        task = self._refresh_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def aclose(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
            await asyncio.gather(self._refresh_task, return_exceptions=True)
        self._refresh_task = None
