"""Capability trait table: permission type to checker, strategy and title."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, Mapping, Optional, Tuple

from ..checkers.base import CapabilityChecker
from ..contracts import PermissionType
from ..errors import CheckerUnavailable, ConfigurationError
from .models import CapabilityTrait

logger = logging.getLogger(__name__)

DEFAULT_TITLES: Dict[PermissionType, str] = {
    PermissionType.CONTACTS: "Allow Contacts",
    PermissionType.LOCATION_ALWAYS: "Enable Location",
    PermissionType.LOCATION_IN_USE: "Enable Location",
    PermissionType.NOTIFICATIONS: "Enable Notifications",
    PermissionType.MICROPHONE: "Allow Microphone",
    PermissionType.CAMERA: "Allow Camera",
}


class CapabilityRegistry:
    """Lookup table resolved once when the host wires up its checkers.

    Several types may share one checker (location always and location in use
    are both answered by the location manager).
    """

    def __init__(self) -> None:
        self._traits: Dict[PermissionType, CapabilityTrait] = {}

    @classmethod
    def from_checkers(
        cls, checkers: Mapping[PermissionType, CapabilityChecker]
    ) -> "CapabilityRegistry":
        registry = cls()
        for permission_type, checker in checkers.items():
            registry.register(permission_type, checker)
        return registry

    def register(
        self,
        permission_type: PermissionType,
        checker: CapabilityChecker,
        title: Optional[str] = None,
    ) -> CapabilityTrait:
        """Add the trait for ``permission_type``.

        ``title`` defaults to the stock button text for the type.
        """

        if permission_type in self._traits:
            raise ConfigurationError(
                f"A checker is already registered for {permission_type.value}"
            )
        trait = CapabilityTrait(
            type=permission_type,
            checker=checker,
            title=title or DEFAULT_TITLES[permission_type],
        )
        self._traits[permission_type] = trait
        logger.debug(
            f"Registered {type(checker).__name__} for {permission_type.value} "
            f"({trait.strategy.value})"
        )
        return trait

    def get(self, permission_type: PermissionType) -> CapabilityTrait:
        try:
            return self._traits[permission_type]
        except KeyError:
            raise CheckerUnavailable(
                f"No checker registered for {permission_type.value}"
            ) from None

    def title(self, permission_type: PermissionType) -> str:
        trait = self._traits.get(permission_type)
        return trait.title if trait else DEFAULT_TITLES[permission_type]

    @property
    def types(self) -> Tuple[PermissionType, ...]:
        return tuple(self._traits)

    def __contains__(self, permission_type: object) -> bool:
        return permission_type in self._traits

    def __iter__(self) -> Iterator[CapabilityTrait]:
        return iter(tuple(self._traits.values()))

    def __len__(self) -> int:
        return len(self._traits)


__all__ = ["CapabilityRegistry", "CapabilityTrait", "DEFAULT_TITLES"]
