"""Capability checker interfaces and in-memory implementations."""

from __future__ import annotations

from .base import (
    CapabilityChecker,
    ChangeHandler,
    Completion,
    CompletionChecker,
    NotificationStrategy,
    PollingChecker,
    PushChecker,
)
from .inmemory import (
    InMemoryCompletionChecker,
    InMemoryPollingChecker,
    InMemoryPushChecker,
    NativeStatus,
)

__all__ = [
    "CapabilityChecker",
    "ChangeHandler",
    "Completion",
    "CompletionChecker",
    "NotificationStrategy",
    "PollingChecker",
    "PushChecker",
    "InMemoryCompletionChecker",
    "InMemoryPollingChecker",
    "InMemoryPushChecker",
    "NativeStatus",
]
