"""
Convergence waiting

The storage service is eventually consistent for existence and list calls,
so every accepted mutation is followed by polling an existence probe until
the new state is observable or the deadline passes.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, before_sleep_log, retry_if_result, stop_after_delay, wait_exponential

from .constants import DEFAULT_OPERATION_TIMEOUT, DEFAULT_POLL_MAX_INTERVAL, DEFAULT_POLL_MIN_INTERVAL
from .errors import classify
from .outcomes import OperationOutcome, OutcomeKind

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[bool]]


class ConvergenceWaiter:
    """Polls a probe until it reports the expected presence state."""

    def __init__(
        self,
        timeout: float = DEFAULT_OPERATION_TIMEOUT,
        min_interval: float = DEFAULT_POLL_MIN_INTERVAL,
        max_interval: float = DEFAULT_POLL_MAX_INTERVAL,
    ) -> None:
        if timeout <= 0:
            raise ValueError("Convergence timeout must be positive")
        self.timeout = timeout
        self.min_interval = min_interval
        self.max_interval = max(max_interval, min_interval)

    async def wait_for(
        self, probe: Probe, *, expect_present: bool, timeout: float | None = None, description: str = ""
    ) -> OperationOutcome:
        """Poll ``probe`` until it matches ``expect_present``.

        Args:
            probe: Zero-argument coroutine function doing one existence check.
                Returns True when present; may raise, and a NotFound error
                counts as absent.
            expect_present: State to wait for.
            timeout: Seconds before giving up (defaults to the waiter's timeout).
            description: Label used in log messages.

        Returns:
            Success on match, Timeout when the deadline passes, or the
            classified probe error for anything other than NotFound.
        """
        limit = self.timeout if timeout is None else timeout
        wanted = "present" if expect_present else "absent"
        attempts = 0
        started = time.monotonic()

        def timed_out() -> OperationOutcome:
            logger.error(f"Timed out after {limit:.1f}s ({attempts} probes) waiting for {description} to be {wanted}")
            return OperationOutcome.timeout(f"{description} not {wanted} after {limit:.1f}s")

        async def attempt() -> OperationOutcome | None:
            nonlocal attempts
            attempts += 1
            try:
                # A stalled probe must not outlive the wait itself
                present = await asyncio.wait_for(probe(), max(limit - (time.monotonic() - started), 0))
            except asyncio.TimeoutError:
                return timed_out()
            except Exception as e:
                outcome = classify(e)
                if outcome.kind is not OutcomeKind.NOT_FOUND:
                    logger.error(f"Probe for {description} failed while waiting for it to be {wanted}: {outcome}")
                    return outcome
                present = False

            if present == expect_present:
                return OperationOutcome.success()
            return None

        def give_up(retry_state) -> OperationOutcome:
            return timed_out()

        retrying = AsyncRetrying(
            retry=retry_if_result(lambda result: result is None),
            stop=stop_after_delay(limit),
            wait=wait_exponential(multiplier=self.min_interval, min=self.min_interval, max=self.max_interval),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            retry_error_callback=give_up,
        )
        result = await retrying(attempt)

        if result.ok:
            logger.debug(f"{description} is {wanted} after {attempts} probe(s)")
        return result
