"""
Profile store: the resolved identity state behind a client connection.

Holds the caller's resolved profile, a loading flag and the notices produced
while resolving. While the profile status is ``pending`` a background loop
re-resolves every ``refresh_interval`` seconds so out-of-band approvals are
picked up. The loop runs only while an identity is present and the status is
``pending``, and is torn down by ``set_identity(None)`` or ``close()``.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable, Collection
from typing import Optional

from ..core.config import get_settings
from ..core.enums import ApprovalStatus, Role
from ..schemas.access import GateDecision, Notice, ResolvedProfile
from .access_gate import evaluate_access
from .status_resolver import Resolution

logger = logging.getLogger(__name__)

# Undrained notices kept per store; older ones are dropped first.
MAX_NOTICES = 20

Resolver = Callable[[int], Resolution]
ChangeListener = Callable[["ProfileStore"], Optional[Awaitable[None]]]


class ProfileStore:
    def __init__(
        self,
        resolver: Resolver,
        refresh_interval: float | None = None,
        on_change: ChangeListener | None = None,
    ):
        self._resolver = resolver
        self._refresh_interval = (
            refresh_interval
            if refresh_interval is not None
            else get_settings().profile_refresh_interval_seconds
        )
        self._on_change = on_change
        self._poll_task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._closed = False

        self.identity: int | None = None
        self.profile: ResolvedProfile | None = None
        self.loading = True
        self.notices: list[Notice] = []

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def set_identity(self, user_id: int | None) -> None:
        """Switch to a new identity and resolve it; ``None`` signs the store out."""
        if user_id == self.identity and not self.loading:
            return
        self.identity = user_id
        self.profile = None
        if user_id is None:
            self.loading = False
            self._stop_polling()
            await self._emit()
            return
        self.loading = True
        await self.refresh()

    async def refresh(self) -> None:
        identity = self.identity
        if identity is None or self._closed:
            return
        resolution = await asyncio.to_thread(self._resolver, identity)
        if identity != self.identity or self._closed:
            # Identity changed while the fetch was in flight.
            return
        if not resolution.failed:
            self.profile = resolution.profile
        self._collect(resolution.notices)
        self.loading = False
        self._sync_polling()
        await self._emit()

    def decide(self, allowed_roles: Collection[Role] | None = None) -> GateDecision:
        return evaluate_access(
            identity_present=self.identity is not None,
            loading=self.loading,
            profile=self.profile,
            allowed_roles=allowed_roles,
        )

    def drain_notices(self) -> list[Notice]:
        notices, self.notices = self.notices, []
        return notices

    async def close(self) -> None:
        self._closed = True
        task = self._poll_task
        self._stop_polling()
        if task is not None and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _collect(self, notices: list[Notice]) -> None:
        for notice in notices:
            if self.notices and self.notices[-1] == notice:
                continue
            self.notices.append(notice)
        del self.notices[:-MAX_NOTICES]

    def _should_poll(self) -> bool:
        return (
            not self._closed
            and self.identity is not None
            and self.profile is not None
            and self.profile.status == ApprovalStatus.PENDING
        )

    def _sync_polling(self) -> None:
        if not self._should_poll():
            self._stop_polling()
        elif not self.polling:
            self._stop_event = asyncio.Event()
            self._poll_task = asyncio.create_task(self._poll_loop(self._stop_event))
            logger.debug("Profile refresh loop started for user %s", self.identity)

    def _stop_polling(self) -> None:
        task = self._poll_task
        if task is None:
            return
        self._poll_task = None
        if self._stop_event is not None:
            self._stop_event.set()
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
        logger.debug("Profile refresh loop stopped for user %s", self.identity)

    async def _poll_loop(self, stop_event: asyncio.Event) -> None:
        while self._should_poll():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._refresh_interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.refresh()
            except Exception as exc:
                logger.error("Error refreshing profile for user %s: %s", self.identity, exc, exc_info=True)

    async def _emit(self) -> None:
        if self._on_change is None:
            return
        result = self._on_change(self)
        if inspect.isawaitable(result):
            await result
