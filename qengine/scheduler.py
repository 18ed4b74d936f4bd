"""Job Scheduler.

Jobs move through a small state machine::

    SUBMITTED ──▶ RUNNING ──▶ COMPLETED
        │                └──▶ FAILED
        └──▶ CANCELED

A fixed pool of worker threads waits on one condition variable. ``submit``
appends the job id to a FIFO queue and wakes a single worker. A worker pops
an id and claims the job with a compare-and-set under the job's lock, so
exactly one worker ever moves a job out of SUBMITTED; a job canceled while
still queued fails the claim and is skipped.

Running a job means: freeze the circuit, allocate the state vector, apply
the gates in order (with noise when enabled), sample the shots. Any error
marks the job FAILED with a message; the worker itself keeps running.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple

import numpy as np

from . import statevector
from .arena import Arena, ArenaKey
from .circuits import Circuit
from .config import SimulatorConfig
from .exceptions import (
    JobNotCompletedError,
    JobNotFoundError,
    SimulationError,
    SubmissionError,
    ValidationError,
)
from .gates import Gate
from .noise import NoiseModel, apply_gate_noise
from .sampler import histogram_to_counts, sample_shots
from .types import TERMINAL_STATES, BackendInfo, Job, JobResult, JobState, JobStatus

logger = logging.getLogger(__name__)


@dataclass
class ExecutionStats:
    """Execution totals of one scheduler."""
    circuits_executed: int = 0
    total_shots: int = 0
    gates_executed: int = 0
    total_simulation_time: float = 0.0
    jobs_failed: int = 0
    jobs_canceled: int = 0

    @property
    def average_simulation_time(self) -> float:
        if self.circuits_executed == 0:
            return 0.0
        return self.total_simulation_time / self.circuits_executed


class JobRecord:
    """Mutable job state owned by the scheduler.

    Every field is read and written under ``_lock``. Once the job is
    terminal the record drops its circuit and RNG; results only need
    ``num_qubits``.
    """

    def __init__(
        self,
        circuit: Circuit,
        backend: BackendInfo,
        shots: int,
        rng: np.random.Generator,
    ):
        self.job_id: Optional[ArenaKey] = None
        self.circuit: Optional[Circuit] = circuit
        self.circuit_id = circuit.circuit_id
        self.num_qubits = circuit.num_qubits
        self.backend = backend
        self.shots = shots
        self.rng: Optional[np.random.Generator] = rng
        self.state = JobState.SUBMITTED
        self.submitted_at = datetime.now()
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None
        self.error_message: Optional[str] = None
        self.counts: Optional[Dict[int, int]] = None
        self.measurements: Tuple[Tuple[int, int], ...] = ()
        self.execution_time_ms: Optional[float] = None
        self._lock = threading.Lock()

    def try_transition(self, expected: JobState, new: JobState) -> bool:
        """Move from ``expected`` to ``new`` atomically; False if the state differs."""
        with self._lock:
            if self.state != expected:
                return False
            self.state = new
            now = datetime.now()
            if new == JobState.RUNNING:
                self.started_at = now
            elif new in TERMINAL_STATES:
                self.completed_at = now
                self._release()
            return True

    def complete(self, counts: Dict[int, int], measurements, elapsed_ms: float) -> None:
        with self._lock:
            self.counts = counts
            self.measurements = tuple(measurements)
            self.execution_time_ms = elapsed_ms
            self.state = JobState.COMPLETED
            self.completed_at = datetime.now()
            self._release()

    def fail(self, message: str) -> None:
        with self._lock:
            self.error_message = message
            self.state = JobState.FAILED
            self.completed_at = datetime.now()
            self._release()

    def _release(self) -> None:
        self.circuit = None
        self.rng = None

    def status(self) -> JobStatus:
        with self._lock:
            return JobStatus(self.state, self.error_message)

    def snapshot(self) -> Job:
        with self._lock:
            return Job(
                job_id=self.job_id,
                circuit_id=self.circuit_id,
                backend_id=self.backend.backend_id,
                shots=self.shots,
                state=self.state,
                submitted_at=self.submitted_at,
                started_at=self.started_at,
                completed_at=self.completed_at,
                error_message=self.error_message,
            )

    def result(self) -> JobResult:
        with self._lock:
            if self.state != JobState.COMPLETED:
                raise JobNotCompletedError(
                    f"Job {self.job_id} is {self.state.name}, not COMPLETED"
                )
            return JobResult(
                job_id=self.job_id,
                counts=dict(self.counts),
                shots=self.shots,
                num_qubits=self.num_qubits,
                measurements=list(self.measurements),
                execution_time_ms=self.execution_time_ms,
            )


def execute_gates(
    num_qubits: int,
    gates: Sequence[Gate],
    tolerance: float,
    max_qubits: Optional[int] = None,
    memory_limit_bytes: Optional[int] = None,
    noise: Optional[NoiseModel] = None,
    rng: Optional[np.random.Generator] = None,
) -> statevector.QuantumState:
    """Evolve |0...0⟩ through ``gates`` in order and return the final state.

    Raises:
        ResourceExhaustedError: If the state vector cannot be allocated.
        InvariantViolationError: If the norm drifts after a gate.
    """
    state = statevector.create(num_qubits, max_qubits, memory_limit_bytes)
    gate_noise = noise is not None and noise.has_gate_errors
    if gate_noise and rng is None:
        rng = np.random.default_rng()
    for gate in gates:
        statevector.apply_gate(state, gate, tolerance)
        if gate_noise:
            apply_gate_noise(state, gate, noise, rng)
    return state


class JobScheduler:
    """Worker pool executing submitted jobs.

    Args:
        config: Worker count, memory ceiling, norm tolerance and seed.
        noise_provider: Returns the noise model to snapshot at job start.
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        noise_provider: Optional[Callable[[], NoiseModel]] = None,
    ):
        self._config = config or SimulatorConfig()
        self._noise_provider = noise_provider or NoiseModel.ideal
        self._jobs: Arena[JobRecord] = Arena()
        self._queue: Deque[ArenaKey] = deque()
        self._cond = threading.Condition()
        self._shutdown = False
        self._stats = ExecutionStats()
        self._stats_lock = threading.Lock()
        self._seeds = (
            np.random.SeedSequence(self._config.seed)
            if self._config.seed is not None
            else None
        )
        self._workers: List[threading.Thread] = []
        for i in range(self._config.num_workers):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"qengine-worker-{i}",
                daemon=True,
            )
            worker.start()
            self._workers.append(worker)
        logger.info("Job scheduler started with %d workers", len(self._workers))

    @property
    def num_workers(self) -> int:
        return len(self._workers)

    @property
    def is_shutdown(self) -> bool:
        with self._cond:
            return self._shutdown

    # -- submission --------------------------------------------------------

    def _next_rng(self) -> np.random.Generator:
        if self._seeds is None:
            return np.random.default_rng()
        with self._cond:
            (child,) = self._seeds.spawn(1)
        return np.random.default_rng(child)

    def submit(self, circuit: Circuit, backend: BackendInfo, shots: int) -> ArenaKey:
        """Queue a validated job and return its id.

        Raises:
            ValidationError: If ``shots`` is negative.
            SubmissionError: If the scheduler has been shut down.
        """
        if shots < 0:
            raise ValidationError(f"shots must be >= 0, got {shots}")
        record = JobRecord(circuit, backend, shots, self._next_rng())
        with self._cond:
            if self._shutdown:
                raise SubmissionError("Scheduler is shut down")
            job_id = self._jobs.insert(record)
            record.job_id = job_id
            self._queue.append(job_id)
            self._cond.notify()
        logger.debug(
            "Submitted job %s: circuit %s on %s, %d shots",
            job_id, record.circuit_id, backend.backend_id, shots,
        )
        return job_id

    # -- queries -----------------------------------------------------------

    def get(self, job_id) -> JobRecord:
        try:
            return self._jobs.get(job_id)
        except KeyError:
            raise JobNotFoundError(f"Job not found: {job_id}") from None

    def status(self, job_id) -> JobStatus:
        return self.get(job_id).status()

    def result(self, job_id) -> JobResult:
        return self.get(job_id).result()

    def list_jobs(self, state: Optional[JobState] = None) -> List[Job]:
        jobs = [record.snapshot() for record in self._jobs.values()]
        if state is not None:
            jobs = [job for job in jobs if job.state == state]
        return jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def stats(self) -> ExecutionStats:
        with self._stats_lock:
            return replace(self._stats)

    def pending_count(self) -> int:
        with self._cond:
            return len(self._queue)

    # -- control -----------------------------------------------------------

    def cancel(self, job_id) -> bool:
        """Cancel a job that has not started yet.

        Returns:
            True if the job moved to CANCELED, False if it was already
            running or finished.
        """
        record = self.get(job_id)
        if not record.try_transition(JobState.SUBMITTED, JobState.CANCELED):
            logger.debug("Job %s not cancelable in state %s", job_id, record.status().state.name)
            return False
        with self._stats_lock:
            self._stats.jobs_canceled += 1
        logger.info("Canceled job %s", job_id)
        return True

    def remove_job(self, job_id) -> None:
        """Forget a finished job; its id no longer resolves afterwards.

        Raises:
            JobNotFoundError: If the job does not exist.
            JobNotCompletedError: If the job is still queued or running.
        """
        record = self.get(job_id)
        state = record.status().state
        if state not in TERMINAL_STATES:
            raise JobNotCompletedError(
                f"Job {job_id} is {state.name}; only finished jobs can be removed"
            )
        try:
            self._jobs.remove(job_id)
        except KeyError:
            raise JobNotFoundError(f"Job not found: {job_id}") from None
        logger.debug("Removed job %s", job_id)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop the workers and cancel jobs that never started.

        Jobs already running finish normally.
        """
        with self._cond:
            if self._shutdown:
                return
            self._shutdown = True
            pending = list(self._queue)
            self._queue.clear()
            self._cond.notify_all()
        for job_id in pending:
            record = self._jobs.get(job_id)
            if record.try_transition(JobState.SUBMITTED, JobState.CANCELED):
                with self._stats_lock:
                    self._stats.jobs_canceled += 1
        if wait:
            for worker in self._workers:
                worker.join(timeout)
        logger.info("Job scheduler stopped (%d queued jobs canceled)", len(pending))

    # -- workers -----------------------------------------------------------

    def _worker_loop(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._shutdown:
                    self._cond.wait()
                if self._shutdown:
                    return
                job_id = self._queue.popleft()
            try:
                record = self._jobs.get(job_id)
            except KeyError:
                continue
            self._run(record)

    def _run(self, record: JobRecord) -> None:
        if not record.try_transition(JobState.SUBMITTED, JobState.RUNNING):
            return
        circuit = record.circuit
        backend = record.backend
        rng = record.rng
        gates, measurements = circuit.freeze()
        logger.debug("Running job %s on %s (%d gates)", record.job_id, backend.backend_id, len(gates))

        start = time.perf_counter()
        try:
            noise = self._noise_provider()
            state = execute_gates(
                circuit.num_qubits,
                gates,
                self._config.norm_tolerance,
                max_qubits=backend.max_qubits,
                memory_limit_bytes=self._config.memory_limit_bytes,
                noise=noise,
                rng=rng,
            )
            histogram = sample_shots(
                state, record.shots, noise, rng, backend.readout_fidelity
            )
        except SimulationError as exc:
            self._fail(record, str(exc))
            logger.warning("Job %s failed: %s", record.job_id, exc)
            return
        except Exception as exc:
            self._fail(record, f"{type(exc).__name__}: {exc}")
            logger.exception("Job %s failed with an unexpected error", record.job_id)
            return

        elapsed = time.perf_counter() - start
        record.complete(histogram_to_counts(histogram), measurements, elapsed * 1000.0)
        with self._stats_lock:
            self._stats.circuits_executed += 1
            self._stats.total_shots += record.shots
            self._stats.gates_executed += len(gates)
            self._stats.total_simulation_time += elapsed
        logger.info(
            "Job %s completed: %d qubits, %d gates, %d shots in %.2f ms",
            record.job_id, circuit.num_qubits, len(gates), record.shots, elapsed * 1000.0,
        )

    def _fail(self, record: JobRecord, message: str) -> None:
        record.fail(message)
        with self._stats_lock:
            self._stats.jobs_failed += 1
