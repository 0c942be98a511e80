import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from advisor_mail.engine import FAILED_STATUSES, AssistantEngine, RunState, RunStatus
from advisor_mail.errors import AssistantAPIError, ProtocolError, RunTimeoutError

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


@dataclass
class PollOutcome:
    """
    Result of waiting on a run.

    Attributes:
        succeeded: True only when the run was observed as completed
        status: Last observed run status, None if none was observed
        last_error: Error object the service attached to a failed run
        error: RunTimeoutError on timeout, or the error that stopped status retrieval
    """
    succeeded: bool
    status: Optional[str] = None
    last_error: Optional[Dict[str, Any]] = None
    error: Optional[AssistantAPIError] = None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, RunTimeoutError)


def _retrieval_failed(engine: AssistantEngine, run_id: str) -> PollOutcome:
    error = engine.last_error or ProtocolError(f"Run {run_id} could not be retrieved.")
    logging.error(f"Failed to retrieve status of run {run_id}; giving up.")
    return PollOutcome(succeeded=False, error=error)


def _evaluate(run: RunState) -> Optional[PollOutcome]:
    """Return the final outcome for a terminal status, None to keep polling."""
    if run.status == RunStatus.COMPLETED:
        return PollOutcome(succeeded=True, status=run.status)
    if run.status in FAILED_STATUSES:
        logging.warning(f"Run {run.id} ended with status: {run.status}")
        if run.last_error:
            logging.warning(f"Run {run.id} error: {run.last_error}")
        return PollOutcome(succeeded=False, status=run.status, last_error=run.last_error)
    return None


def _timed_out(run_id: str, timeout: float, status: Optional[str]) -> PollOutcome:
    logging.error(f"Run {run_id} timed out after {timeout} seconds")
    return PollOutcome(
        succeeded=False,
        status=status,
        error=RunTimeoutError(f"Run {run_id} did not finish within {timeout} seconds."),
    )


def wait_for_run(engine: AssistantEngine, thread_id: str, run_id: str,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep) -> PollOutcome:
    """
    Poll a run until it reaches a terminal status or the timeout elapses.

    A failure to retrieve the status ends polling at once without retrying. The
    run is never cancelled here; cancelling after a timeout is the caller's call.

    Args:
        engine: Engine used to retrieve the run
        thread_id: Thread the run belongs to
        run_id: Run to observe
        timeout: Wall-clock budget in seconds, measured from the first poll
        poll_interval: Seconds to wait between polls
        clock: Monotonic time source
        sleep: Blocking sleep function

    Returns:
        PollOutcome: Success only if 'completed' was observed before the deadline
    """
    start = clock()
    status = None
    while clock() - start < timeout:
        run = engine.retrieve_run(thread_id, run_id)
        if run is None:
            return _retrieval_failed(engine, run_id)
        status = run.status
        outcome = _evaluate(run)
        if outcome is not None:
            return outcome
        logging.debug(f"Run {run_id} is {status}; checking again in {poll_interval}s.")
        sleep(poll_interval)
    return _timed_out(run_id, timeout, status)


async def async_wait_for_run(engine: AssistantEngine, thread_id: str, run_id: str,
                             timeout: float = DEFAULT_TIMEOUT_SECONDS,
                             poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                             clock: Callable[[], float] = time.monotonic) -> PollOutcome:
    """Same contract as wait_for_run, without blocking the event loop."""
    start = clock()
    status = None
    while clock() - start < timeout:
        run = await asyncio.to_thread(engine.retrieve_run, thread_id, run_id)
        if run is None:
            return _retrieval_failed(engine, run_id)
        status = run.status
        outcome = _evaluate(run)
        if outcome is not None:
            return outcome
        await asyncio.sleep(poll_interval)
    return _timed_out(run_id, timeout, status)
