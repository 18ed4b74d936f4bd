"""Simulator context: the public entry point of qengine."""

import logging
import threading
import time
from typing import List, Optional

from .backends import DEFAULT_BACKEND, BackendRegistry
from .circuits import Circuit, CircuitRegistry
from .config import SimulatorConfig
from .exceptions import JobCanceledError, JobFailedError, ValidationError
from .gates import Gate
from .job_future import JobFuture
from .noise import NoiseModel
from .scheduler import ExecutionStats, JobScheduler, execute_gates
from .statevector import QuantumState
from .types import BackendInfo, Job, JobResult, JobState, JobStatus

logger = logging.getLogger(__name__)


class Simulator:
    """In-process quantum circuit simulator.

    A simulator owns its circuits, backends, noise model and worker pool.
    Separate instances share nothing.

    Args:
        config: Startup configuration (default: ``SimulatorConfig()``).
        backends: Backends to register instead of the stock two.
        noise_model: Initial noise model (default: stock rates, disabled).

    Example:
        >>> with Simulator() as sim:
        ...     cid = sim.create_circuit("bell", qubits=2, classical_bits=2)
        ...     sim.add_gate(cid, "h", [0])
        ...     sim.add_gate(cid, "cx", [0, 1])
        ...     job_id = sim.submit_job(cid, "statevector", shots=1000)
        ...     result = sim.wait_for_job(job_id)
        ...     print(result.bitstring_counts())
    """

    def __init__(
        self,
        config: Optional[SimulatorConfig] = None,
        backends: Optional[List[BackendInfo]] = None,
        noise_model: Optional[NoiseModel] = None,
    ):
        self.config = config or SimulatorConfig()
        self.circuits = CircuitRegistry()
        self.backends = BackendRegistry(backends)
        self._noise = noise_model if noise_model is not None else NoiseModel()
        self._noise_lock = threading.Lock()
        self._scheduler = JobScheduler(self.config, noise_provider=lambda: self.noise_model)

    @classmethod
    def from_env(cls, **kwargs) -> "Simulator":
        """Create a simulator configured from ``QENGINE_*`` environment variables."""
        return cls(config=SimulatorConfig.from_env(), **kwargs)

    def shutdown(self, wait: bool = True):
        """Stop the worker pool; queued jobs are canceled."""
        self._scheduler.shutdown(wait=wait)

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.shutdown()

    # -- circuits ----------------------------------------------------------

    def create_circuit(self, name: str, qubits: int, classical_bits: int = 0):
        """Create an empty circuit.

        Args:
            name: Display name
            qubits: Number of qubits (1-64)
            classical_bits: Number of classical bits (>= 0)

        Returns:
            Circuit id

        Raises:
            ValidationError: If a size is out of range
        """
        return self.circuits.create_circuit(name, qubits, classical_bits)

    def circuit(self, circuit_id) -> Circuit:
        """Get the circuit object, e.g. for chained gate calls."""
        return self.circuits.get(circuit_id)

    def add_gate(self, circuit_id, gate_tag, targets, params=(), matrix=None) -> Gate:
        """Append a gate to a circuit.

        Args:
            circuit_id: Circuit id
            gate_tag: Gate tag or name (``"h"``, ``"cx"``, ``GateType.RZ`` ...)
            targets: Target qubits, controls first
            params: Rotation angles
            matrix: Unitary for Custom gates

        Raises:
            CircuitNotFoundError: If the circuit does not exist
            InvalidGateError: If the tag or arity is wrong
            OutOfRangeError: If a target is outside the circuit
            CircuitFrozenError: If a job using the circuit has started
        """
        return self.circuits.add_gate(circuit_id, gate_tag, targets, params, matrix)

    def add_measurement(self, circuit_id, qubit: int, classical_bit: int):
        """Bind a qubit to a classical bit.

        Raises:
            OutOfRangeError: If the qubit or classical bit is outside the circuit
        """
        self.circuits.add_measurement(circuit_id, qubit, classical_bit)

    def remove_circuit(self, circuit_id):
        """Delete a circuit. Jobs already submitted keep running on it."""
        self.circuits.remove_circuit(circuit_id)

    def list_circuits(self):
        return self.circuits.list_circuits()

    def run_statevector(self, circuit_id) -> QuantumState:
        """Evolve a circuit synchronously and return its final state.

        No job is created, no noise is applied and the circuit is not frozen.
        """
        circuit = self.circuits.get(circuit_id)
        return execute_gates(
            circuit.num_qubits,
            circuit.gates,
            self.config.norm_tolerance,
            memory_limit_bytes=self.config.memory_limit_bytes,
        )

    # -- jobs --------------------------------------------------------------

    def submit_job(self, circuit_id, backend_id: str = DEFAULT_BACKEND, shots: Optional[int] = None):
        """Submit a circuit for execution.

        Args:
            circuit_id: Circuit id
            backend_id: Backend to execute on (default: "statevector")
            shots: Number of shots (default: ``config.default_shots``)

        Returns:
            Job id

        Raises:
            CircuitNotFoundError: If the circuit does not exist
            ValidationError: If shots is negative
            UnknownBackendError: If the backend does not exist
            BackendUnavailableError: If the backend is unavailable
            CapacityExceededError: If the circuit or shots exceed capacity
        """
        if shots is None:
            shots = self.config.default_shots
        if shots < 0:
            raise ValidationError(f"shots must be >= 0, got {shots}")
        circuit = self.circuits.get(circuit_id)
        backend = self.backends.validate(circuit.num_qubits, backend_id, shots)
        return self._scheduler.submit(circuit, backend, shots)

    def get_job_status(self, job_id) -> JobStatus:
        """Get the state and error message of a job.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        return self._scheduler.status(job_id)

    def get_job(self, job_id) -> Job:
        """Get a metadata snapshot of a job (timestamps, backend, shots)."""
        return self._scheduler.get(job_id).snapshot()

    def get_job_result(self, job_id) -> JobResult:
        """Get the result of a completed job.

        Raises:
            JobNotFoundError: If the job does not exist
            JobNotCompletedError: If the job is not completed
        """
        return self._scheduler.result(job_id)

    def cancel_job(self, job_id) -> tuple[bool, str]:
        """Cancel a job that has not started.

        Returns:
            Tuple of (success, message)
        """
        if self._scheduler.cancel(job_id):
            return True, "Job canceled"
        state = self._scheduler.status(job_id).state
        return False, f"Job is {state.name} and can no longer be canceled"

    def remove_job(self, job_id) -> None:
        """Drop a finished job and its result from the job table.

        Raises:
            JobNotFoundError: If the job does not exist
            JobNotCompletedError: If the job is still queued or running
        """
        self._scheduler.remove_job(job_id)

    def wait_for_job(
        self,
        job_id,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
    ) -> JobResult:
        """Wait for a job to complete and return its result.

        Args:
            job_id: Job id
            poll_interval: Seconds between polls (default: ``config.poll_interval``)
            max_wait: Maximum time to wait in seconds, None for no limit

        Raises:
            TimeoutError: If max_wait is exceeded
            JobFailedError: If the job failed
            JobCanceledError: If the job was canceled
        """
        if poll_interval is None:
            poll_interval = self.config.poll_interval
        start_time = time.monotonic()

        while True:
            status = self.get_job_status(job_id)

            if status.state == JobState.COMPLETED:
                return self.get_job_result(job_id)
            elif status.state == JobState.FAILED:
                raise JobFailedError(f"Job failed: {status.error_message}")
            elif status.state == JobState.CANCELED:
                raise JobCanceledError("Job was canceled")

            if max_wait is not None and (time.monotonic() - start_time) >= max_wait:
                raise TimeoutError(f"Job did not complete within {max_wait} seconds")

            time.sleep(poll_interval)

    def run(self, circuit_id, backend_id: str = DEFAULT_BACKEND, shots: Optional[int] = None,
            max_wait: Optional[float] = None) -> JobResult:
        """Submit a circuit and block until its result is available."""
        job_id = self.submit_job(circuit_id, backend_id, shots)
        return self.wait_for_job(job_id, max_wait=max_wait)

    def list_jobs(self, state: Optional[JobState] = None) -> List[Job]:
        return self._scheduler.list_jobs(state)

    def submit_job_future(self, circuit_id, backend_id: str = DEFAULT_BACKEND,
                          shots: Optional[int] = None, poll_interval: Optional[float] = None):
        """Submit a job and return a :class:`~qengine.job_future.JobFuture`."""
        job_id = self.submit_job(circuit_id, backend_id, shots)
        if poll_interval is None:
            poll_interval = self.config.poll_interval
        return JobFuture(self, job_id, poll_interval=poll_interval)

    # -- backends ----------------------------------------------------------

    def list_backends(self) -> List[BackendInfo]:
        return self.backends.list_backends()

    def get_backend_info(self, backend_id: str) -> BackendInfo:
        """Get backend capabilities.

        Raises:
            UnknownBackendError: If the backend does not exist
        """
        return self.backends.get(backend_id)

    # -- noise -------------------------------------------------------------

    @property
    def noise_model(self) -> NoiseModel:
        with self._noise_lock:
            return self._noise

    def set_noise_model(self, noise_model: NoiseModel):
        """Replace the noise model. Running jobs keep the model they started with."""
        with self._noise_lock:
            self._noise = noise_model
        logger.info("Noise model set to %s (enabled=%s)", noise_model.name, noise_model.enabled)

    def enable_noise(self, enabled: bool = True):
        with self._noise_lock:
            self._noise = self._noise.with_enabled(enabled)
        logger.info("Noise %s", "enabled" if enabled else "disabled")

    # -- statistics --------------------------------------------------------

    def stats(self) -> ExecutionStats:
        return self._scheduler.stats()

    @property
    def num_workers(self) -> int:
        return self._scheduler.num_workers
