"""JobFuture implementation for non-blocking job result retrieval."""

import logging
import threading
import time
from concurrent.futures import Future as ConcurrentFuture
from typing import Any, Callable, List, Optional

from .exceptions import JobCanceledError, JobFailedError
from .types import JobResult, JobState

logger = logging.getLogger(__name__)


class JobFuture:
    """A Future-like handle on a submitted job.

    A background thread polls the simulator until the job reaches a
    terminal state, then wakes waiters and runs callbacks.

    Example:
        >>> future = sim.submit_job_future(cid, "statevector", shots=1000)
        >>> future.add_done_callback(lambda f: print(f"Done: {f.result()}"))
        >>> result = future.result(timeout=30)  # Blocks until complete
    """

    def __init__(self, simulator, job_id, poll_interval: float = 0.05):
        """Initialize JobFuture.

        Args:
            simulator: Simulator the job was submitted to
            job_id: The job id
            poll_interval: Polling interval in seconds
        """
        self._simulator = simulator
        self._job_id = job_id
        self._poll_interval = poll_interval
        self._result: Optional[JobResult] = None
        self._exception: Optional[Exception] = None
        self._done = False
        self._cancelled = False
        self._callbacks: List[Callable[["JobFuture"], Any]] = []
        self._lock = threading.Lock()
        self._condition = threading.Condition(self._lock)

        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()

    @property
    def job_id(self):
        """Get the job id."""
        return self._job_id

    def done(self) -> bool:
        """Return True if the job has completed (success, failure, or cancelled)."""
        with self._lock:
            return self._done

    def cancelled(self) -> bool:
        """Return True if the job was cancelled."""
        with self._lock:
            return self._cancelled

    def running(self) -> bool:
        """Return True if a worker is executing the job right now."""
        if self.done():
            return False
        return self._simulator.get_job_status(self._job_id).state == JobState.RUNNING

    def cancel(self) -> bool:
        """Attempt to cancel the job.

        Returns:
            True if the job was cancelled, False if it already started
        """
        with self._lock:
            if self._done:
                return False
            success, _ = self._simulator.cancel_job(self._job_id)
            if not success:
                return False
            self._cancelled = True
            self._done = True
            self._condition.notify_all()
        self._run_callbacks()
        return True

    def result(self, timeout: Optional[float] = None) -> JobResult:
        """Get the job result, blocking until available.

        Args:
            timeout: Maximum time to wait in seconds (None for no limit)

        Raises:
            TimeoutError: If timeout is exceeded
            JobFailedError: If the job failed
            JobCanceledError: If the job was cancelled
        """
        with self._condition:
            if not self._done:
                if not self._condition.wait_for(lambda: self._done, timeout=timeout):
                    raise TimeoutError(f"Job {self._job_id} did not complete within {timeout} seconds")

            if self._cancelled:
                raise JobCanceledError(f"Job {self._job_id} was cancelled")

            if self._exception is not None:
                raise self._exception

            return self._result

    def exception(self, timeout: Optional[float] = None) -> Optional[Exception]:
        """Get the exception of a failed job, or None if it succeeded.

        Raises:
            TimeoutError: If timeout is exceeded
            JobCanceledError: If the job was cancelled
        """
        with self._condition:
            if not self._done:
                if not self._condition.wait_for(lambda: self._done, timeout=timeout):
                    raise TimeoutError(f"Job {self._job_id} did not complete within {timeout} seconds")

            if self._cancelled:
                raise JobCanceledError(f"Job {self._job_id} was cancelled")

            return self._exception

    def add_done_callback(self, fn: Callable[["JobFuture"], Any]):
        """Add a callback to be called with this future when the job completes.

        If the job is already done, the callback is called immediately.
        """
        with self._lock:
            if not self._done:
                self._callbacks.append(fn)
                return
        self._invoke(fn)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the job to complete.

        Returns:
            True if the job completed, False if timeout occurred
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._done, timeout=timeout)

    def as_concurrent_future(self) -> ConcurrentFuture:
        """Convert to a concurrent.futures.Future that tracks this job."""
        future = ConcurrentFuture()

        def done_callback(job_future):
            try:
                result = job_future.result()
                future.set_result(result)
            except JobCanceledError:
                future.cancel()
            except Exception as e:
                future.set_exception(e)

        self.add_done_callback(done_callback)
        return future

    def _finish(self, result=None, exception=None, cancelled=False):
        with self._lock:
            if self._done:
                return
            self._result = result
            self._exception = exception
            self._cancelled = cancelled
            self._done = True
            self._condition.notify_all()
        self._run_callbacks()

    def _poll_loop(self):
        """Background polling loop to check job status."""
        try:
            while not self.done():
                status = self._simulator.get_job_status(self._job_id)

                if status.state == JobState.COMPLETED:
                    self._finish(result=self._simulator.get_job_result(self._job_id))
                    return
                elif status.state == JobState.FAILED:
                    self._finish(exception=JobFailedError(f"Job failed: {status.error_message}"))
                    return
                elif status.state == JobState.CANCELED:
                    self._finish(cancelled=True)
                    return

                time.sleep(self._poll_interval)
        except Exception as e:
            self._finish(exception=e)

    def _run_callbacks(self):
        with self._lock:
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, fn):
        try:
            fn(self)
        except Exception:
            logger.exception("Done callback for job %s raised", self._job_id)


def as_completed(futures: List[JobFuture], timeout: Optional[float] = None):
    """Yield futures as they complete.

    Raises:
        TimeoutError: If timeout is exceeded
    """
    start_time = time.monotonic()
    pending = list(futures)

    while pending:
        completed = [f for f in pending if f.done()]

        for future in completed:
            pending.remove(future)
            yield future

        if not pending:
            break

        if timeout is not None and time.monotonic() - start_time >= timeout:
            raise TimeoutError(f"Not all futures completed within {timeout} seconds")

        time.sleep(0.01)


def wait(futures: List[JobFuture], timeout: Optional[float] = None, return_when: str = "ALL_COMPLETED"):
    """Wait for futures to complete.

    Args:
        futures: List of JobFuture objects
        timeout: Maximum time to wait (None for no limit)
        return_when: "ALL_COMPLETED", "FIRST_COMPLETED" or "FIRST_EXCEPTION"

    Returns:
        Tuple of (done_futures, not_done_futures)

    Raises:
        TimeoutError: If timeout is exceeded and return_when="ALL_COMPLETED"
    """
    if return_when not in ("ALL_COMPLETED", "FIRST_COMPLETED", "FIRST_EXCEPTION"):
        raise ValueError(f"Invalid return_when: {return_when}")
    start_time = time.monotonic()
    pending = set(futures)
    done = set()

    while pending:
        newly_done = {f for f in pending if f.done()}

        if newly_done:
            done.update(newly_done)
            pending -= newly_done

            if return_when == "FIRST_COMPLETED":
                return done, pending

            if return_when == "FIRST_EXCEPTION":
                for future in newly_done:
                    if not future.cancelled() and future.exception(timeout=0) is not None:
                        return done, pending

        if not pending:
            break

        if timeout is not None and time.monotonic() - start_time >= timeout:
            if return_when == "ALL_COMPLETED":
                raise TimeoutError(f"Not all futures completed within {timeout} seconds")
            return done, pending

        time.sleep(0.01)

    return done, pending
