"""Resolution engine: drives one permission session from start to settle."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import Callable, Iterator, List, Optional

from .aggregate import ResultAggregator
from .config import PermScopeConfig, load_config
from .contracts import (
    AggregateResult,
    ConfiguredSet,
    PermissionResult,
    PermissionStatus,
    PermissionType,
    ReactionState,
    SessionState,
)
from .dispatch import RequestDispatcher
from .errors import ConfigurationError, SessionStateError
from .polling import PollingWatcher
from .registry import CapabilityRegistry
from .resolver import StatusResolver

logger = logging.getLogger(__name__)

OnChange = Callable[[bool, List[PermissionResult]], None]
OnCancel = Callable[[], None]


class ResolutionEngine:
    """Owns one session's reaction state, dispatcher and polling watcher.

    Every asynchronous signal ends up in ``reconcile``. Signals are queued
    and handled one after another by whichever thread holds the engine lock,
    so each ``on_change`` call sees a single snapshot of all configured
    capabilities and a signal never waits for a callback running elsewhere.
    Signals from a dispatcher of an earlier session are dropped.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        config: Optional[PermScopeConfig] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._registry = registry
        self._config = config or load_config()
        self._loop = loop
        self._resolver = StatusResolver(registry)
        self._aggregator = ResultAggregator(self._resolver)
        self._lock = threading.RLock()
        self._state = SessionState.IDLE
        self._reaction = ReactionState()
        self._configured: Optional[ConfiguredSet] = None
        self._on_change: Optional[OnChange] = None
        self._on_cancel: Optional[OnCancel] = None
        self._pending_lock = threading.Lock()
        self._pending = 0
        self._session = 0
        self._drainer: Optional[int] = None
        self._watcher, self._dispatcher = self._build_session_services()

    def _build_session_services(self) -> tuple[PollingWatcher, RequestDispatcher]:
        session = self._session
        watcher = PollingWatcher(
            self._resolver,
            lambda permission_type, granted: dispatcher.poll_finished(
                permission_type, granted
            ),
            config=self._config.polling,
            loop=self._loop,
        )
        dispatcher = RequestDispatcher(
            self._registry,
            self._resolver,
            lambda: self._reconcile_for(session),
            watcher,
        )
        return watcher, dispatcher

    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def last_results(self) -> Optional[AggregateResult]:
        return self._reaction.last_results

    @property
    def reaction(self) -> ReactionState:
        return self._reaction

    @property
    def dispatcher(self) -> RequestDispatcher:
        return self._dispatcher

    @property
    def watcher(self) -> PollingWatcher:
        return self._watcher

    @property
    def resolver(self) -> StatusResolver:
        return self._resolver

    def status_of(self, permission_type: PermissionType) -> PermissionStatus:
        """Query one capability; does not need a running session."""
        return self._resolver.status_of(permission_type)

    # ------------------------------------------------------------------
    def start(
        self,
        configured: ConfiguredSet,
        on_change: OnChange,
        on_cancel: Optional[OnCancel] = None,
    ) -> AggregateResult:
        """Begin a session for ``configured``.

        If everything is already authorized, ``on_change`` is called once
        before returning and no prompt is issued. Otherwise a request is
        dispatched for every capability that is not yet authorized.
        """

        if len(configured) == 0:
            raise ConfigurationError("Please add at least one permission")

        with self._exclusive():
            if self._state is not SessionState.IDLE:
                raise SessionStateError(
                    f"Cannot start a session in state {self._state.value}; call reset() first"
                )
            configured.freeze()
            self._configured = configured
            self._on_change = on_change
            self._on_cancel = on_cancel

            initial = self._aggregator.aggregate(configured)
            self._reaction.last_results = initial
            if initial.all_authorized:
                logger.info("All permissions already authorized, nothing to request")
                self._settle()
                self._notify(initial)
                return initial

            self._state = SessionState.RESOLVING
            logger.info(
                f"Resolving permissions: {', '.join(t.value for t in configured.types)}"
            )

        for result in initial.results:
            if not result.authorized:
                self._dispatcher.request(result.type)
        return initial

    def reconcile(self) -> None:
        """Recompute the aggregate and report it to the host.

        Safe to call from any thread, and never blocks on a running
        ``on_change``: if another thread holds the engine, the pass is queued
        and that thread runs it before letting go. A call made from inside
        ``on_change`` is likewise run after the current callback returns.
        Every call yields one pass, so ``on_change`` runs on whichever thread
        is draining the queue.
        """

        with self._pending_lock:
            self._pending += 1
        self._drain()

    def _reconcile_for(self, session: int) -> None:
        with self._pending_lock:
            if session != self._session:
                logger.debug(f"Ignoring signal from session {session}")
                return
            self._pending += 1
        self._drain()

    @contextlib.contextmanager
    def _exclusive(self) -> Iterator[None]:
        try:
            with self._lock:
                yield
        finally:
            self._drain()

    def _drain(self) -> None:
        me = threading.get_ident()
        while self._drainer != me:
            if not self._lock.acquire(blocking=False):
                return  # the holder drains our pass before releasing
            try:
                self._drainer = me
                while self._take_pending():
                    self._reconcile_once()
            finally:
                self._drainer = None
                self._lock.release()
            with self._pending_lock:
                if not self._pending:
                    return

    def _take_pending(self) -> bool:
        with self._pending_lock:
            if not self._pending:
                return False
            self._pending -= 1
            return True

    def cancel(self) -> bool:
        """Abandon an unsettled session. Returns ``False`` if there was none."""
        with self._exclusive():
            if self._state is not SessionState.RESOLVING:
                return False
            self._state = SessionState.ABANDONED
            self._shutdown()
            self._reaction.cancel_fired = True
            logger.info("Permission session cancelled")
            if self._on_cancel is not None:
                try:
                    self._on_cancel()
                except Exception:
                    logger.exception("Cancel callback raised")
            return True

    def reset(self) -> None:
        """Drop the current session and return to ``IDLE``."""
        with self._exclusive():
            self._shutdown()
            with self._pending_lock:
                self._session += 1
                self._pending = 0
            self._state = SessionState.IDLE
            self._reaction = ReactionState()
            self._configured = None
            self._on_change = None
            self._on_cancel = None
            self._watcher, self._dispatcher = self._build_session_services()
            logger.debug("Permission session reset")

    # ------------------------------------------------------------------
    def _reconcile_once(self) -> None:
        if self._state is not SessionState.RESOLVING or self._configured is None:
            logger.debug(f"Ignoring signal in state {self._state.value}")
            return

        snapshot = self._aggregator.aggregate(self._configured)
        self._reaction.last_results = snapshot
        if snapshot.all_authorized:
            logger.info("All permissions authorized")
            self._settle()
        self._notify(snapshot)

    def _settle(self) -> None:
        self._state = SessionState.SETTLED
        self._reaction.settled_fired = True
        self._shutdown()

    def _shutdown(self) -> None:
        self._watcher.stop_all()
        self._dispatcher.close()

    def _notify(self, snapshot: AggregateResult) -> None:
        self._reaction.change_count += 1
        if self._on_change is None:
            return
        try:
            self._on_change(snapshot.all_authorized, list(snapshot.results))
        except Exception:
            logger.exception("Change callback raised")

