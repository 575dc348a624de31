# httpretry/backoff.py
"""
Backoff policies and the blocking retry loop.

A policy answers one question, ``next_backoff()``: how many seconds to wait
before the next attempt, or ``STOP`` when no further attempt should be made.
``reset()`` returns a policy to its initial state.

``QuittableBackoff`` wraps any policy with a one-way ``done`` latch that the
getter sets when a response makes retrying pointless (4xx, no range support,
closed getter).
"""
from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, Protocol, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Returned by next_backoff() when no further attempt should be made.
STOP = None


class BackoffPolicy(Protocol):
    def next_backoff(self) -> Optional[float]: ...

    def reset(self) -> None: ...


class ExponentialBackoff:
    """
    Randomized exponential backoff.

    Each wait is drawn uniformly from
    ``[interval * (1 - randomization_factor), interval * (1 + randomization_factor)]``
    after which the interval grows by ``multiplier`` up to ``max_interval``.
    Once ``max_elapsed_time`` seconds have passed since the last reset the
    policy returns STOP (0 disables the limit).
    """

    def __init__(
        self,
        initial_interval: float = 0.5,
        randomization_factor: float = 0.5,
        multiplier: float = 1.5,
        max_interval: float = 60.0,
        max_elapsed_time: float = 900.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if initial_interval < 0 or max_interval < 0:
            raise ValueError("backoff intervals must be non-negative")
        if not 0 <= randomization_factor <= 1:
            raise ValueError("randomization_factor must be within [0, 1]")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")

        self.initial_interval = initial_interval
        self.randomization_factor = randomization_factor
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.max_elapsed_time = max_elapsed_time
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        self.current_interval = self.initial_interval
        self._start = self._clock()

    @property
    def elapsed_time(self) -> float:
        return self._clock() - self._start

    def next_backoff(self) -> Optional[float]:
        if self.max_elapsed_time and self.elapsed_time > self.max_elapsed_time:
            return STOP

        delta = self.randomization_factor * self.current_interval
        wait = random.uniform(self.current_interval - delta, self.current_interval + delta)

        if self.current_interval >= self.max_interval / self.multiplier:
            self.current_interval = self.max_interval
        else:
            self.current_interval *= self.multiplier
        return wait


class ConstantBackoff:
    """Always wait the same interval."""

    def __init__(self, interval: float):
        self.interval = interval

    def next_backoff(self) -> Optional[float]:
        return self.interval

    def reset(self) -> None:
        pass


class ZeroBackoff(ConstantBackoff):
    """Retry immediately, forever."""

    def __init__(self):
        super().__init__(0.0)


class StopBackoff:
    """Never retry."""

    def next_backoff(self) -> Optional[float]:
        return STOP

    def reset(self) -> None:
        pass


class WithMaxRetries:
    """Stop after ``max_retries`` retries of the wrapped policy."""

    def __init__(self, policy: BackoffPolicy, max_retries: int):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.policy = policy
        self.max_retries = max_retries
        self.retries = 0

    def next_backoff(self) -> Optional[float]:
        if self.retries >= self.max_retries:
            return STOP
        self.retries += 1
        return self.policy.next_backoff()

    def reset(self) -> None:
        self.retries = 0
        self.policy.reset()


class QuittableBackoff:
    """A policy that halts all future retries once ``mark_done()`` is called."""

    def __init__(self, policy: BackoffPolicy):
        self.policy = policy
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def mark_done(self) -> None:
        self._done = True

    def reset(self) -> None:
        self._done = False
        self.policy.reset()

    def next_backoff(self) -> Optional[float]:
        if self._done:
            return STOP
        return self.policy.next_backoff()


def default_backoff() -> BackoffPolicy:
    """Policy installed on every getter that isn't given one."""
    return ExponentialBackoff()


def retry(
    operation: Callable[[], T],
    policy: BackoffPolicy,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    notify: Optional[Callable[[BaseException, float], None]] = None,
) -> T:
    """
    Call ``operation`` until it returns, sleeping between failed attempts.

    Errors that aren't instances of ``retry_on`` propagate immediately. Once
    the policy returns STOP the last error is re-raised.
    """
    while True:
        try:
            return operation()
        except retry_on as exc:
            wait = policy.next_backoff()
            if wait is STOP:
                raise
            if notify is not None:
                notify(exc, wait)
            time.sleep(wait)
