"""qengine: in-process quantum circuit simulation engine.

State-vector simulation with a circuit registry, a worker-pool job
scheduler, shot sampling and an optional Pauli noise model.

Supports both synchronous and asynchronous APIs:
- Simulator: synchronous facade owning registries and workers
- AsyncSimulator: async/await wrapper polling with asyncio

Example:
    >>> import qengine
    >>> with qengine.Simulator() as sim:
    ...     cid = sim.create_circuit("flip", qubits=2, classical_bits=2)
    ...     sim.circuit(cid).x(0).cx(0, 1).measure_all()
    ...     result = sim.run(cid, "statevector", shots=1000)
    ...     print(result.bitstring_counts())
    {'11': 1000}
"""

from .simulator import Simulator
from .aio import AsyncSimulator
from .job_future import JobFuture, as_completed, wait
from .circuits import Circuit, CircuitRegistry
from .backends import BackendRegistry, default_backends
from .config import SimulatorConfig
from .gates import Gate, GateType
from .noise import NoiseModel
from .scheduler import ExecutionStats
from .statevector import QuantumState
from .types import BackendInfo, Job, JobResult, JobState, JobStatus
from .exceptions import (
    QEngineError,
    ValidationError,
    InvalidGateError,
    OutOfRangeError,
    CircuitNotFoundError,
    CircuitFrozenError,
    JobNotFoundError,
    JobNotCompletedError,
    JobFailedError,
    JobCanceledError,
    SubmissionError,
    CapacityExceededError,
    UnknownBackendError,
    BackendUnavailableError,
    SimulationError,
    ResourceExhaustedError,
    InvariantViolationError,
)

__version__ = "0.1.0"
__all__ = [
    "Simulator",
    "AsyncSimulator",
    "JobFuture",
    "as_completed",
    "wait",
    "Circuit",
    "CircuitRegistry",
    "BackendRegistry",
    "default_backends",
    "SimulatorConfig",
    "Gate",
    "GateType",
    "NoiseModel",
    "ExecutionStats",
    "QuantumState",
    "BackendInfo",
    "Job",
    "JobResult",
    "JobState",
    "JobStatus",
    "QEngineError",
    "ValidationError",
    "InvalidGateError",
    "OutOfRangeError",
    "CircuitNotFoundError",
    "CircuitFrozenError",
    "JobNotFoundError",
    "JobNotCompletedError",
    "JobFailedError",
    "JobCanceledError",
    "SubmissionError",
    "CapacityExceededError",
    "UnknownBackendError",
    "BackendUnavailableError",
    "SimulationError",
    "ResourceExhaustedError",
    "InvariantViolationError",
]
