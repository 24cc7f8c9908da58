"""permscope: resolve a small set of required permissions into one outcome."""

from .aggregate import ResultAggregator
from .checkers import (
    CapabilityChecker,
    CompletionChecker,
    NotificationStrategy,
    PollingChecker,
    PushChecker,
)
from .config import PermScopeConfig, PollingConfig, load_config
from .contracts import (
    AggregateResult,
    ConfiguredSet,
    PermissionConfig,
    PermissionResult,
    PermissionStatus,
    PermissionType,
    ReactionState,
    SessionState,
)
from .dispatch import RequestDispatcher
from .engine import ResolutionEngine
from .errors import (
    CheckerUnavailable,
    ConfigurationError,
    PermScopeError,
    SessionStateError,
)
from .polling import PollingWatcher
from .registry import CapabilityRegistry, CapabilityTrait
from .resolver import StatusResolver

__version__ = "0.1.0"
__all__ = [
    "AggregateResult",
    "CapabilityChecker",
    "CapabilityRegistry",
    "CapabilityTrait",
    "CheckerUnavailable",
    "CompletionChecker",
    "ConfigurationError",
    "ConfiguredSet",
    "NotificationStrategy",
    "PermScopeConfig",
    "PermScopeError",
    "PermissionConfig",
    "PermissionResult",
    "PermissionStatus",
    "PermissionType",
    "PollingChecker",
    "PollingConfig",
    "PollingWatcher",
    "PushChecker",
    "ReactionState",
    "RequestDispatcher",
    "ResolutionEngine",
    "ResultAggregator",
    "SessionState",
    "SessionStateError",
    "StatusResolver",
    "load_config",
]
