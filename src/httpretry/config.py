# httpretry/config.py
"""Configuration for backoff policies and download sessions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests

from httpretry.backoff import BackoffPolicy, ExponentialBackoff, WithMaxRetries
from httpretry.client import client_with_timeouts


@dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff settings, in seconds."""

    initial_interval: float = 0.5
    randomization_factor: float = 0.5
    multiplier: float = 1.5
    max_interval: float = 60.0
    max_elapsed_time: float = 900.0  # 0 disables the limit
    max_retries: Optional[int] = None  # None = bounded by elapsed time only

    def build(self) -> BackoffPolicy:
        policy: BackoffPolicy = ExponentialBackoff(
            initial_interval=self.initial_interval,
            randomization_factor=self.randomization_factor,
            multiplier=self.multiplier,
            max_interval=self.max_interval,
            max_elapsed_time=self.max_elapsed_time,
        )
        if self.max_retries is not None:
            policy = WithMaxRetries(policy, self.max_retries)
        return policy


@dataclass(frozen=True)
class TimeoutConfig:
    """Socket timeouts for download sessions, in seconds."""

    dial_timeout: float = 30.0
    keepalive_timeout: float = 30.0
    inactivity_timeout: float = 30.0

    def build_session(self) -> requests.Session:
        return client_with_timeouts(
            self.dial_timeout, self.keepalive_timeout, self.inactivity_timeout
        )
