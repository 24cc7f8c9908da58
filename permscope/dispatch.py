"""Request dispatcher for permscope."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Set, Tuple

from .checkers.base import CapabilityChecker, ChangeHandler, NotificationStrategy
from .contracts import PermissionStatus, PermissionType
from .errors import CheckerUnavailable, SessionStateError
from .polling import PollingWatcher
from .registry import CapabilityRegistry, CapabilityTrait
from .resolver import StatusResolver

logger = logging.getLogger(__name__)

Signal = Callable[[], None]


class _PushRegistration:
    """The single change handler attached to one push checker."""

    def __init__(self, checker: CapabilityChecker, handler: ChangeHandler) -> None:
        self.checker = checker
        self.handler = handler
        self.types: Set[PermissionType] = set()


class RequestDispatcher:
    """Issues one-shot grant requests and turns their answers into signals.

    Every way a checker can report back (push delegate, completion callback,
    polling watcher) ends in a call to ``on_signal``. A push checker that
    serves several capability types gets one handler, so one change on it
    produces one signal.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        resolver: StatusResolver,
        on_signal: Signal,
        watcher: Optional[PollingWatcher] = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._on_signal = on_signal
        self._watcher = watcher
        self._lock = threading.Lock()
        self._outstanding: Set[PermissionType] = set()
        self._push_registrations: List[_PushRegistration] = []
        self._closed = False
        self._strategies: Dict[NotificationStrategy, Callable[[CapabilityTrait], bool]] = {
            NotificationStrategy.PUSH: self._request_push,
            NotificationStrategy.COMPLETION: self._request_completion,
            NotificationStrategy.POLLING: self._request_polling,
        }

    @property
    def outstanding(self) -> Tuple[PermissionType, ...]:
        with self._lock:
            return tuple(self._outstanding)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def request(self, permission_type: PermissionType) -> bool:
        """Prompt for ``permission_type`` unless granted or already pending.

        Returns ``True`` when a prompt was actually issued.
        """

        with self._lock:
            if self._closed:
                return False
            if permission_type in self._outstanding:
                logger.debug(f"Request for {permission_type.value} already outstanding")
                return False
            self._outstanding.add(permission_type)

        if self._resolver.status_of(permission_type) is PermissionStatus.AUTHORIZED:
            logger.debug(f"{permission_type.value} already authorized, not prompting")
            self._release(permission_type)
            return False

        try:
            trait = self._registry.get(permission_type)
        except CheckerUnavailable as e:
            logger.warning(f"Cannot request {permission_type.value}: {e}")
            self._release(permission_type)
            return False

        try:
            prompted = self._strategies[trait.strategy](trait)
        except Exception:
            logger.exception(f"Request for {permission_type.value} failed")
            self._release(permission_type)
            return False
        if not prompted:
            return False

        logger.info(f"Requested {permission_type.value} ({trait.strategy.value})")
        return True

    def poll_finished(self, permission_type: PermissionType, granted: bool) -> None:
        """Hook for the polling watcher owned by the engine."""
        self._signal((permission_type,), f"poll finished, granted={granted}")

    def close(self) -> None:
        """Detach from checkers; every later signal is ignored."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._outstanding.clear()
            registrations, self._push_registrations = self._push_registrations, []

        for registration in registrations:
            try:
                registration.checker.remove_change_handler(registration.handler)
            except Exception:
                logger.exception(
                    f"Failed to detach from {type(registration.checker).__name__}"
                )

    # ------------------------------------------------------------------
    def _request_push(self, trait: CapabilityTrait) -> bool:
        checker = trait.checker
        attach: Optional[_PushRegistration] = None
        with self._lock:
            registration = self._push_registration_for(checker)
            if registration is None:
                registration = _PushRegistration(
                    checker, lambda _changed: self._handle_push(checker)
                )
                self._push_registrations.append(registration)
                attach = registration
            registration.types.add(trait.type)
        if attach is not None:
            checker.on_change(trait.type, attach.handler)
        checker.request(trait.type)
        return True

    def _request_completion(self, trait: CapabilityTrait) -> bool:
        lock = threading.Lock()
        answered = False

        def completion(granted: bool) -> None:
            nonlocal answered
            with lock:
                if answered:
                    logger.debug(f"Ignoring repeated completion for {trait.type.value}")
                    return
                answered = True
            # The flag may be stale; status is re-read on reconcile.
            self._signal((trait.type,), f"completion, granted={granted}")

        trait.checker.request(trait.type, completion)
        return True

    def _request_polling(self, trait: CapabilityTrait) -> bool:
        try:
            if self._watcher is None:
                raise CheckerUnavailable(
                    f"{trait.type.value} needs polling but no watcher is configured"
                )
            self._watcher.ensure_ready()
        except (CheckerUnavailable, SessionStateError) as e:
            # Nothing could ever report back, so the host gets the current
            # status now instead of a prompt nobody watches.
            logger.warning(f"Not prompting for {trait.type.value}: {e}")
            self._signal((trait.type,), "polling unavailable")
            return False
        trait.checker.request(trait.type)
        self._watcher.start(trait.type)
        return True

    def _push_registration_for(
        self, checker: CapabilityChecker
    ) -> Optional[_PushRegistration]:
        for registration in self._push_registrations:
            if registration.checker is checker:
                return registration
        return None

    def _handle_push(self, checker: CapabilityChecker) -> None:
        with self._lock:
            registration = self._push_registration_for(checker)
            served = tuple(registration.types) if registration is not None else ()
        self._signal(served, f"change delegate on {type(checker).__name__}")

    def _signal(self, permission_types: Tuple[PermissionType, ...], source: str) -> None:
        names = ", ".join(t.value for t in permission_types) or "no types"
        with self._lock:
            if self._closed:
                logger.debug(f"Ignoring late signal for {names} ({source})")
                return
            self._outstanding.difference_update(permission_types)
        logger.debug(f"Signal for {names} ({source})")
        self._on_signal()

    def _release(self, permission_type: PermissionType) -> None:
        with self._lock:
            self._outstanding.discard(permission_type)
