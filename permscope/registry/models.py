"""Pydantic models describing capability traits."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from ..checkers.base import CapabilityChecker, NotificationStrategy
from ..contracts import PermissionType


class CapabilityTrait(BaseModel):
    """Everything the engine needs to know about one capability type."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: PermissionType
    checker: CapabilityChecker
    title: str

    @field_validator("title")
    @classmethod
    def _ensure_title(cls, v: str) -> str:
        if not v:
            raise ValueError("title must be a non-empty string")
        return v

    @property
    def strategy(self) -> NotificationStrategy:
        return self.checker.strategy
