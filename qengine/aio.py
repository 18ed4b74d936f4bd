"""Async facade over :class:`~qengine.simulator.Simulator`."""

import asyncio
from typing import Callable, List, Optional, Sequence, Tuple

from .backends import DEFAULT_BACKEND
from .exceptions import JobCanceledError, JobFailedError
from .simulator import Simulator
from .statevector import QuantumState
from .types import BackendInfo, JobResult, JobState, JobStatus


class AsyncSimulator:
    """Async/await access to a simulator.

    Registry calls complete immediately and are made inline. Waiting for a
    job polls with ``asyncio.sleep`` so the event loop stays free while the
    worker pool runs the job.

    Args:
        simulator: Simulator to wrap (a new one is created if omitted)
        owns_simulator: Shut the simulator down on ``close``

    Example:
        >>> async with AsyncSimulator() as sim:
        ...     job_id = await sim.submit_job(cid, "statevector", shots=1000)
        ...     result = await sim.wait_for_job(job_id)
        ...     print(result.counts)
    """

    def __init__(self, simulator: Optional[Simulator] = None, owns_simulator: Optional[bool] = None):
        self.simulator = simulator if simulator is not None else Simulator()
        self._owns_simulator = simulator is None if owns_simulator is None else owns_simulator

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Shut down the wrapped simulator if this facade created it."""
        if self._owns_simulator:
            await asyncio.get_running_loop().run_in_executor(None, self.simulator.shutdown)

    async def submit_job(self, circuit_id, backend_id: str = DEFAULT_BACKEND, shots: Optional[int] = None):
        """Submit a circuit for execution and return the job id.

        Raises:
            CapacityExceededError: If the circuit or shots exceed capacity
            UnknownBackendError: If the backend does not exist
        """
        return self.simulator.submit_job(circuit_id, backend_id, shots)

    async def submit_batch(
        self,
        jobs: Sequence[Tuple[object, int]],
        backend_id: str = DEFAULT_BACKEND,
    ) -> List[object]:
        """Submit ``(circuit_id, shots)`` pairs; returns job ids in order."""
        return [self.simulator.submit_job(cid, backend_id, shots) for cid, shots in jobs]

    async def get_job_status(self, job_id) -> JobStatus:
        return self.simulator.get_job_status(job_id)

    async def get_job_result(self, job_id) -> JobResult:
        """Get the result of a completed job.

        Raises:
            JobNotCompletedError: If the job is not completed
        """
        return self.simulator.get_job_result(job_id)

    async def cancel_job(self, job_id) -> tuple[bool, str]:
        return self.simulator.cancel_job(job_id)

    async def remove_job(self, job_id) -> None:
        self.simulator.remove_job(job_id)

    async def wait_for_job(
        self,
        job_id,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
        progress_callback: Optional[Callable[[JobStatus], None]] = None,
    ) -> JobResult:
        """Wait for a job to complete and return its result.

        Args:
            job_id: Job id
            poll_interval: Seconds between polls (default: the simulator's)
            max_wait: Maximum time to wait in seconds, None for no limit
            progress_callback: Optional callback called with the status on each poll

        Raises:
            TimeoutError: If max_wait is exceeded
            JobFailedError: If the job failed
            JobCanceledError: If the job was canceled
        """
        if poll_interval is None:
            poll_interval = self.simulator.config.poll_interval
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            status = await self.get_job_status(job_id)

            if progress_callback:
                progress_callback(status)

            if status.state == JobState.COMPLETED:
                return await self.get_job_result(job_id)
            elif status.state == JobState.FAILED:
                raise JobFailedError(f"Job failed: {status.error_message}")
            elif status.state == JobState.CANCELED:
                raise JobCanceledError("Job was canceled")

            if max_wait is not None and loop.time() - start_time >= max_wait:
                raise TimeoutError(f"Job did not complete within {max_wait} seconds")

            await asyncio.sleep(poll_interval)

    async def run(self, circuit_id, backend_id: str = DEFAULT_BACKEND, shots: Optional[int] = None,
                  max_wait: Optional[float] = None) -> JobResult:
        job_id = await self.submit_job(circuit_id, backend_id, shots)
        return await self.wait_for_job(job_id, max_wait=max_wait)

    async def run_statevector(self, circuit_id) -> QuantumState:
        """Evolve a circuit in the default executor and return its final state."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.simulator.run_statevector, circuit_id)

    async def list_backends(self) -> List[BackendInfo]:
        return self.simulator.list_backends()

    async def get_backend_info(self, backend_id: str) -> BackendInfo:
        return self.simulator.get_backend_info(backend_id)
