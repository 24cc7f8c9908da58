"""Base interfaces for platform capability checkers."""

from __future__ import annotations

import abc
from enum import Enum
from typing import Any, Callable, ClassVar, Collection

from ..contracts import PermissionStatus, PermissionType

ChangeHandler = Callable[[PermissionType], None]
Completion = Callable[[bool], None]


class NotificationStrategy(str, Enum):
    """How a checker tells us that authorization changed."""

    PUSH = "push"
    COMPLETION = "completion"
    POLLING = "polling"


class CapabilityChecker(metaclass=abc.ABCMeta):
    """Abstract wrapper around one platform authorization subsystem.

    A checker reports a platform-native status synchronously. Mapping that
    value into a ``PermissionStatus`` is the checker's own policy: only native
    values listed by ``granted_states`` count as authorized, values listed by
    ``denied_states`` count as unauthorized, and everything else is unknown.
    """

    strategy: ClassVar[NotificationStrategy]

    @abc.abstractmethod
    def current_status(self) -> Any:
        """Return the platform-native authorization status."""
        raise NotImplementedError

    @abc.abstractmethod
    def granted_states(self, permission_type: PermissionType) -> Collection[Any]:
        """Native values that mean ``permission_type`` is fully granted."""
        raise NotImplementedError

    def denied_states(self, permission_type: PermissionType) -> Collection[Any]:
        """Native values reported as ``UNAUTHORIZED`` (none by default)."""
        return ()

    def to_status(self, permission_type: PermissionType, native: Any) -> PermissionStatus:
        if native in self.granted_states(permission_type):
            return PermissionStatus.AUTHORIZED
        if native in self.denied_states(permission_type):
            return PermissionStatus.UNAUTHORIZED
        return PermissionStatus.UNKNOWN


class PushChecker(CapabilityChecker):
    """Checker that calls registered handlers whenever status changes."""

    strategy = NotificationStrategy.PUSH

    @abc.abstractmethod
    def request(self, permission_type: PermissionType) -> None:
        """Ask the platform to prompt the user."""
        raise NotImplementedError

    @abc.abstractmethod
    def on_change(self, permission_type: PermissionType, handler: ChangeHandler) -> None:
        """Register ``handler`` for status changes of ``permission_type``."""
        raise NotImplementedError

    def remove_change_handler(self, handler: ChangeHandler) -> None:
        """Detach ``handler`` (no-op by default)."""
        pass


class CompletionChecker(CapabilityChecker):
    """Checker whose request reports back once through a completion callback."""

    strategy = NotificationStrategy.COMPLETION

    @abc.abstractmethod
    def request(self, permission_type: PermissionType, completion: Completion) -> None:
        """Prompt the user and invoke ``completion(granted)`` exactly once."""
        raise NotImplementedError


class PollingChecker(CapabilityChecker):
    """Checker that offers no change signal at all."""

    strategy = NotificationStrategy.POLLING

    @abc.abstractmethod
    def request(self, permission_type: PermissionType) -> None:
        """Ask the platform to prompt the user."""
        raise NotImplementedError
