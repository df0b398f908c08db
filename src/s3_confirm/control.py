"""
Deadline and cancellation handling for storage operations.

Every public manager coroutine accepts keyword-only ``deadline`` (seconds)
and ``cancel_event`` (asyncio.Event). When either fires, the in-flight remote
call and any convergence polling are cancelled, and the operation returns a
Timeout or Cancelled outcome instead of hanging.
"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .outcomes import OperationOutcome

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Aborted:
    """Marker returned by run_abortable when the operation was cut short."""

    def __init__(self, outcome: OperationOutcome) -> None:
        self.outcome = outcome


async def run_abortable(
    operation: Awaitable[T], *, deadline: float | None = None, cancel_event: asyncio.Event | None = None
) -> T | _Aborted:
    """Run ``operation`` until it finishes, the deadline passes, or the event is set."""
    if deadline is None and cancel_event is None:
        return await operation

    task = asyncio.ensure_future(operation)
    watchers: set[asyncio.Future[Any]] = {task}
    cancel_watcher = None
    if cancel_event is not None:
        cancel_watcher = asyncio.ensure_future(cancel_event.wait())
        watchers.add(cancel_watcher)

    try:
        done, _ = await asyncio.wait(watchers, timeout=deadline, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if cancel_watcher is not None:
            cancel_watcher.cancel()

    if task in done:
        return task.result()

    task.cancel()
    # Let the task unwind its own cleanup (aborting uploads, removing partial files)
    await asyncio.gather(task, return_exceptions=True)

    if cancel_event is not None and cancel_event.is_set():
        logger.warning("Storage operation cancelled by caller")
        return _Aborted(OperationOutcome.cancelled("operation cancelled by caller"))

    logger.warning(f"Storage operation exceeded deadline of {deadline:.1f}s")
    return _Aborted(OperationOutcome.timeout(f"operation exceeded deadline of {deadline:.1f}s"))


def abortable(on_abort: Callable[..., Any]):
    """Decorate a manager coroutine method with ``deadline`` / ``cancel_event`` support.

    ``on_abort`` builds the method's return value from the abort outcome; it
    receives the outcome followed by the method's own arguments.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(
            self, *args: Any, deadline: float | None = None, cancel_event: asyncio.Event | None = None, **kwargs: Any
        ):
            result = await run_abortable(func(self, *args, **kwargs), deadline=deadline, cancel_event=cancel_event)
            if isinstance(result, _Aborted):
                return on_abort(result.outcome, *args, **kwargs)
            return result

        return wrapper

    return decorator


def outcome_only(outcome: OperationOutcome, *args: Any, **kwargs: Any) -> OperationOutcome:
    return outcome


def absent_with(outcome: OperationOutcome, *args: Any, **kwargs: Any) -> tuple[bool, OperationOutcome]:
    return False, outcome


def empty_with(outcome: OperationOutcome, *args: Any, **kwargs: Any) -> tuple[list, OperationOutcome]:
    return [], outcome


def no_key_with(outcome: OperationOutcome, *args: Any, **kwargs: Any) -> tuple[None, OperationOutcome]:
    return None, outcome
