"""
Deadline-bounded execution of remote chain calls.

Every externally observable adapter operation runs through ``run_bounded``:
the caller gets either the work's own outcome or an ``OperationTimeout`` at
the deadline, whichever comes first. The work itself is never cancelled on
timeout. It keeps running in the background and its result is discarded,
so a timeout means "outcome unknown", not "aborted".
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Set, TypeVar

from .exceptions import OperationTimeout, TransportError

T = TypeVar('T')

logger = logging.getLogger(__name__)

# Strong references to abandoned work so it is not garbage collected mid-flight
_abandoned: Set["asyncio.Future"] = set()


@dataclass(frozen=True)
class TimeoutSpec:
    """
    Deadline attached to one bounded invocation.

    Attributes:
        duration_ms: Time budget in milliseconds
        label: Human-readable label used in the timeout error
    """
    duration_ms: int
    label: str

    def __post_init__(self):
        if self.duration_ms <= 0:
            raise ValueError(f"duration_ms must be positive, got: {self.duration_ms}")

    @property
    def seconds(self) -> float:
        return self.duration_ms / 1000.0


def _reap(task: "asyncio.Future") -> None:
    _abandoned.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned work finished after its deadline with error: %r", exc)
    else:
        logger.debug("Abandoned work finished after its deadline, result discarded")


def _abandon(task: "asyncio.Future") -> None:
    _abandoned.add(task)
    task.add_done_callback(_reap)


async def run_bounded(
    work: Awaitable[T],
    spec: TimeoutSpec,
    cancel_event: Optional[asyncio.Event] = None
) -> T:
    """
    Await work with a deadline.

    Args:
        work: Coroutine or future to run
        spec: Deadline and label
        cancel_event: Optional event set when the deadline elapses, for work
            that wants to observe the timeout and stop cooperatively

    Returns:
        The work's result if it finishes before the deadline

    Raises:
        OperationTimeout: If the deadline elapses first
        Exception: Whatever the work raised, unwrapped, if it failed in time
    """
    task = asyncio.ensure_future(work)
    try:
        done, _ = await asyncio.wait({task}, timeout=spec.seconds)
    except asyncio.CancelledError:
        _abandon(task)
        raise

    if task in done:
        return task.result()

    _abandon(task)
    if cancel_event is not None:
        cancel_event.set()
    raise OperationTimeout(spec.label, spec.duration_ms)


async def bounded(
    work: Awaitable[T],
    duration_ms: int,
    label: str,
    cancel_event: Optional[asyncio.Event] = None
) -> T:
    """Shorthand for ``run_bounded(work, TimeoutSpec(duration_ms, label))``"""
    return await run_bounded(work, TimeoutSpec(duration_ms, label), cancel_event)


async def retry_call(
    factory: Callable[[], Awaitable[T]],
    retry_times: int,
    label: str,
    logger_instance: Optional[logging.Logger] = None
) -> T:
    """
    Call ``factory()`` until it succeeds or the retry budget runs out.

    Only ``TransportError`` is retried; retries are immediate, the enclosing
    bounded operation owns the overall wait budget.

    Args:
        factory: Zero-argument callable returning a fresh awaitable per attempt
        retry_times: Number of retries after the first attempt
        label: Label used in log lines
        logger_instance: Logger to use (defaults to module logger)
    """
    log = logger_instance or logger
    attempt = 0
    while True:
        try:
            return await factory()
        except TransportError as e:
            if attempt >= retry_times:
                log.error("%s failed after %d retries: %s", label, attempt, e)
                raise
            attempt += 1
            log.debug("%s retry %d of %d after error: %s", label, attempt, retry_times, e)
