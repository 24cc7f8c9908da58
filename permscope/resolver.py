"""Per-capability status queries."""

from __future__ import annotations

import logging

from .contracts import PermissionStatus, PermissionType
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class StatusResolver:
    """Maps a permission type to its current status via its checker."""

    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    def status_of(self, permission_type: PermissionType) -> PermissionStatus:
        """Return the current status of ``permission_type``.

        Checker failures, including a missing checker, are reported as
        ``UNKNOWN`` rather than raised.
        """

        try:
            trait = self._registry.get(permission_type)
            native = trait.checker.current_status()
            return trait.checker.to_status(permission_type, native)
        except Exception as e:
            logger.warning(
                f"Could not query {permission_type.value}, treating as unknown: {e}"
            )
            return PermissionStatus.UNKNOWN
