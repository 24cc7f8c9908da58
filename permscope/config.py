from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_MAX_ATTEMPTS


class PollingConfig(BaseModel):
    """Policy for capabilities that offer no change notification."""

    interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    max_attempts: int = Field(default=DEFAULT_POLL_MAX_ATTEMPTS, ge=1)


class PermScopeConfig(BaseModel):
    """Top-level configuration model."""

    polling: PollingConfig = PollingConfig()


def load_config(path: Optional[str] = None) -> PermScopeConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to PERMSCOPE_CONFIG env
            variable or 'permscope.yaml' in the current directory.
    """

    config_path = path or os.getenv("PERMSCOPE_CONFIG", "permscope.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = PermScopeConfig(**data)
    else:
        config = PermScopeConfig()

    env_interval = os.getenv("PERMSCOPE_POLL_INTERVAL")
    env_attempts = os.getenv("PERMSCOPE_POLL_MAX_ATTEMPTS")
    if env_interval or env_attempts:
        polling = config.polling.model_dump()
        if env_interval:
            polling["interval"] = env_interval
        if env_attempts:
            polling["max_attempts"] = env_attempts
        config.polling = PollingConfig(**polling)
    return config
