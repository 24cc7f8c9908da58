"""Core data contracts for permscope."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import MAX_PERMISSIONS
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class PermissionType(str, Enum):
    """Capabilities an application can ask for."""

    CONTACTS = "contacts"
    LOCATION_ALWAYS = "location_always"
    LOCATION_IN_USE = "location_in_use"
    NOTIFICATIONS = "notifications"
    MICROPHONE = "microphone"
    CAMERA = "camera"


class PermissionStatus(str, Enum):
    """Three-valued authorization state of a capability.

    ``UNKNOWN`` covers both "not asked yet" and "asked, not granted" for
    checkers that cannot tell the two apart.
    """

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    UNKNOWN = "unknown"


class SessionState(str, Enum):
    """Lifecycle of a resolution session."""

    IDLE = "idle"
    RESOLVING = "resolving"
    SETTLED = "settled"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.SETTLED, SessionState.ABANDONED)


class PermissionConfig(BaseModel):
    """A capability plus the message explaining why the app needs it."""

    model_config = ConfigDict(frozen=True)

    type: PermissionType
    message: str

    def __init__(self, **data) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError(
                "Including a message about your permission usage is required"
            )
        return value


class PermissionResult(BaseModel):
    """Status of one configured capability at aggregation time."""

    model_config = ConfigDict(frozen=True)

    type: PermissionType
    status: PermissionStatus

    @property
    def authorized(self) -> bool:
        return self.status is PermissionStatus.AUTHORIZED

    def __str__(self) -> str:
        return f"{self.type.value} {self.status.value}"


class AggregateResult(BaseModel):
    """Outcome of one aggregation pass over a configured set."""

    model_config = ConfigDict(frozen=True)

    all_authorized: bool
    results: Tuple[PermissionResult, ...] = ()

    def status_of(self, permission_type: PermissionType) -> Optional[PermissionStatus]:
        """Return the status recorded for ``permission_type`` if configured."""
        for result in self.results:
            if result.type is permission_type:
                return result.status
        return None


class ReactionState(BaseModel):
    """Per-session bookkeeping owned by a single engine."""

    last_results: Optional[AggregateResult] = None
    settled_fired: bool = False
    cancel_fired: bool = False
    change_count: int = Field(default=0, ge=0)


class ConfiguredSet:
    """Ordered, duplicate-free set of permission configurations.

    Built incrementally by the host, then frozen by the engine once a session
    starts. At most ``MAX_PERMISSIONS`` entries are accepted.
    """

    def __init__(self, configs: Optional[List[PermissionConfig]] = None) -> None:
        self._configs: List[PermissionConfig] = []
        self._frozen = False
        for config in configs or []:
            self.add(config)

    def add(self, config: PermissionConfig) -> PermissionConfig:
        """Append ``config`` preserving declaration order."""
        if self._frozen:
            raise ConfigurationError(
                "Permissions cannot be added once resolution has started"
            )
        if any(existing.type is config.type for existing in self._configs):
            raise ConfigurationError(
                f"Permission {config.type.value} is already configured"
            )
        if len(self._configs) >= MAX_PERMISSIONS:
            raise ConfigurationError(
                f"Ask for {MAX_PERMISSIONS} or fewer permissions at a time"
            )
        self._configs.append(config)
        logger.debug(f"Configured permission {config.type.value}")
        return config

    def add_permission(
        self, permission_type: PermissionType, message: str
    ) -> PermissionConfig:
        """Build and append a ``PermissionConfig``."""
        return self.add(PermissionConfig(type=permission_type, message=message))

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def types(self) -> Tuple[PermissionType, ...]:
        return tuple(config.type for config in self._configs)

    def message_for(self, permission_type: PermissionType) -> Optional[str]:
        for config in self._configs:
            if config.type is permission_type:
                return config.message
        return None

    def __iter__(self) -> Iterator[PermissionConfig]:
        return iter(tuple(self._configs))

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, permission_type: object) -> bool:
        return permission_type in self.types

    def __repr__(self) -> str:
        names = ", ".join(t.value for t in self.types)
        return f"ConfiguredSet([{names}], frozen={self._frozen})"
