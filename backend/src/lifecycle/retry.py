"""Bounded readiness polling.

The polling policy and the clock are injected, so a run with N attempts and
interval T waits at most (N - 1) x T and tests can drive it without sleeping.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from clients.base import ClientError
from utils.config import ReadinessConfig

from .errors import ReadinessTimeoutError

RUNNING_PHASE = "Running"


class Clock:
    """Wall clock used by polling loops."""

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def monotonic(self) -> float:
        return time.monotonic()


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how long to poll a workload for readiness."""

    max_attempts: int = 30
    interval: float = 2.0
    backoff: float = 1.0
    max_interval: float = 10.0
    settle_delay: float = 5.0

    @classmethod
    def from_config(cls, cfg: ReadinessConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, cfg.max_attempts),
            interval=cfg.interval,
            backoff=cfg.backoff,
            max_interval=cfg.max_interval,
            settle_delay=cfg.settle_delay,
        )

    def delay(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        if self.backoff == 1.0:
            return self.interval
        return min(self.interval * (self.backoff ** (attempt - 1)), max(self.interval, self.max_interval))

    def max_wait(self) -> float:
        """Upper bound of the time spent sleeping before a timeout is reported."""
        return sum(self.delay(a) for a in range(1, self.max_attempts))


PhaseCheck = Callable[[], Awaitable[Optional[str]]]
PollCallback = Callable[[int, Optional[str], Optional[Exception]], Awaitable[None]]


async def wait_for_phase(
    check: PhaseCheck,
    policy: RetryPolicy,
    clock: Clock,
    *,
    resource: str,
    step: str,
    target: str = RUNNING_PHASE,
    on_poll: Optional[PollCallback] = None,
) -> int:
    """Poll ``check`` until it reports ``target``.

    Errors raised by external clients count as a failed attempt.

    Returns:
        The attempt number on which the target phase was observed.

    Raises:
        ReadinessTimeoutError: After ``policy.max_attempts`` failed attempts.
    """
    for attempt in range(1, policy.max_attempts + 1):
        error: Optional[Exception] = None
        try:
            phase = await check()
        except ClientError as e:
            phase, error = None, e

        if on_poll is not None:
            await on_poll(attempt, phase, error)

        if phase == target:
            return attempt

        if attempt < policy.max_attempts:
            await clock.sleep(policy.delay(attempt))

    raise ReadinessTimeoutError(
        f"Timeout waiting for {resource} to reach phase {target} "
        f"after {policy.max_attempts} attempts",
        step=step,
        resource=resource,
        attempts=policy.max_attempts,
    )
