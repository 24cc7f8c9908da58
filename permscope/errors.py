"""Exception types raised by permscope."""

from __future__ import annotations


class PermScopeError(Exception):
    """Base class for all permscope errors."""


class ConfigurationError(PermScopeError, ValueError):
    """Invalid permission configuration, rejected at configuration time."""


class CheckerUnavailable(PermScopeError):
    """A capability checker could not be queried.

    The resolver never lets this escape; the capability is reported as
    ``unknown`` instead.
    """


class SessionStateError(PermScopeError):
    """An engine operation was called in a state that does not allow it."""
