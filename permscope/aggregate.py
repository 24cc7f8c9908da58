"""Aggregation of configured permissions into a single outcome."""

from __future__ import annotations

from typing import List

from .contracts import AggregateResult, ConfiguredSet, PermissionResult, PermissionType
from .resolver import StatusResolver


class ResultAggregator:
    """Computes per-capability results and the overall success flag."""

    def __init__(self, resolver: StatusResolver) -> None:
        self._resolver = resolver

    def aggregate(self, configured: ConfiguredSet) -> AggregateResult:
        """Query every configured type once, in declared order."""
        results = tuple(
            PermissionResult(
                type=config.type, status=self._resolver.status_of(config.type)
            )
            for config in configured
        )
        return AggregateResult(
            all_authorized=all(result.authorized for result in results),
            results=results,
        )

    def missing(self, configured: ConfiguredSet) -> List[PermissionType]:
        """Return configured types that are not authorized yet."""
        return [
            result.type
            for result in self.aggregate(configured).results
            if not result.authorized
        ]
