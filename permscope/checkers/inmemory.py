"""In-memory capability checkers for testing and simulations."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Collection, Dict, List, Optional, Tuple

from ..contracts import PermissionType
from ..errors import CheckerUnavailable
from .base import (
    ChangeHandler,
    CompletionChecker,
    Completion,
    PollingChecker,
    PushChecker,
)

logger = logging.getLogger(__name__)


class NativeStatus(str, Enum):
    """Platform-like authorization values used by the in-memory checkers."""

    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED = "authorized"
    AUTHORIZED_ALWAYS = "authorized_always"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"


_LOCATION_GRANTS: Dict[PermissionType, Tuple[NativeStatus, ...]] = {
    PermissionType.LOCATION_ALWAYS: (NativeStatus.AUTHORIZED_ALWAYS,),
    PermissionType.LOCATION_IN_USE: (NativeStatus.AUTHORIZED_WHEN_IN_USE,),
}


class _InMemoryChecker:
    """State shared by all in-memory checkers."""

    def __init__(
        self,
        status: NativeStatus = NativeStatus.NOT_DETERMINED,
        denied: Collection[NativeStatus] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._status = status
        self._denied = tuple(denied)
        self.available = True
        self.requests: List[PermissionType] = []

    @property
    def request_count(self) -> int:
        return len(self.requests)

    def current_status(self) -> Any:
        if not self.available:
            raise CheckerUnavailable(f"{type(self).__name__} is not available")
        with self._lock:
            return self._status

    def granted_states(self, permission_type: PermissionType) -> Collection[Any]:
        return _LOCATION_GRANTS.get(permission_type, (NativeStatus.AUTHORIZED,))

    def denied_states(self, permission_type: PermissionType) -> Collection[Any]:
        return self._denied

    def _record_request(self, permission_type: PermissionType) -> None:
        with self._lock:
            self.requests.append(permission_type)
        logger.debug(f"{type(self).__name__} prompted for {permission_type.value}")

    def set_status(self, status: NativeStatus) -> None:
        """Change the native status without emitting any signal."""
        with self._lock:
            self._status = status


class InMemoryPushChecker(_InMemoryChecker, PushChecker):
    """Delegate-style checker, modelled after a location manager.

    ``update`` changes the status and notifies every registered handler.
    """

    def __init__(
        self,
        status: NativeStatus = NativeStatus.NOT_DETERMINED,
        denied: Collection[NativeStatus] = (),
    ) -> None:
        super().__init__(status, denied)
        self._handlers: List[Tuple[PermissionType, ChangeHandler]] = []

    def request(self, permission_type: PermissionType) -> None:
        self._record_request(permission_type)

    def on_change(self, permission_type: PermissionType, handler: ChangeHandler) -> None:
        with self._lock:
            self._handlers.append((permission_type, handler))

    def remove_change_handler(self, handler: ChangeHandler) -> None:
        with self._lock:
            self._handlers = [(t, h) for t, h in self._handlers if h != handler]

    @property
    def handler_count(self) -> int:
        with self._lock:
            return len(self._handlers)

    def update(self, status: NativeStatus) -> None:
        """Set ``status`` and fire the change delegate."""
        self.set_status(status)
        self.emit()

    def emit(self) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for permission_type, handler in handlers:
            handler(permission_type)


class InMemoryCompletionChecker(_InMemoryChecker, CompletionChecker):
    """Checker whose request completes through a callback, like contacts.

    Pending completions are held until ``respond`` is called, unless
    ``auto_respond`` is set, in which case the request completes before
    returning.
    """

    def __init__(
        self,
        status: NativeStatus = NativeStatus.NOT_DETERMINED,
        denied: Collection[NativeStatus] = (),
        auto_respond: Optional[bool] = None,
    ) -> None:
        super().__init__(status, denied)
        self.auto_respond = auto_respond
        self._pending: List[Completion] = []

    def request(self, permission_type: PermissionType, completion: Completion) -> None:
        self._record_request(permission_type)
        with self._lock:
            self._pending.append(completion)
        if self.auto_respond is not None:
            self.respond(self.auto_respond)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def respond(self, granted: bool) -> None:
        """Resolve every pending request as the user would."""
        self.set_status(NativeStatus.AUTHORIZED if granted else NativeStatus.DENIED)
        with self._lock:
            pending, self._pending = self._pending, []
        for completion in pending:
            completion(granted)


class InMemoryPollingChecker(_InMemoryChecker, PollingChecker):
    """Checker with no change signal, like notification settings."""

    def request(self, permission_type: PermissionType) -> None:
        self._record_request(permission_type)
