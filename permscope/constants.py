"""Shared constants for permscope."""

MAX_PERMISSIONS = 3

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_POLL_MAX_ATTEMPTS = 60
