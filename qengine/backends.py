"""Backend Registry.

Backends describe execution capacity (qubits, shots) and fidelity. The
registry is populated at startup and read-only while jobs execute.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .exceptions import (
    BackendUnavailableError,
    CapacityExceededError,
    UnknownBackendError,
    ValidationError,
)
from .gates import SUPPORTED_GATES
from .types import BackendInfo

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "statevector"


def default_backends() -> List[BackendInfo]:
    """The two stock simulator backends."""
    return [
        BackendInfo(
            backend_id="statevector",
            name="State Vector Simulator",
            kind="simulator",
            max_qubits=32,
            max_shots=1_000_000,
            gate_fidelity=1.0,
            readout_fidelity=1.0,
            supported_gates=SUPPORTED_GATES,
            description="Ideal state-vector simulation",
        ),
        BackendInfo(
            backend_id="shot_simulator",
            name="Shot-based Simulator",
            kind="simulator",
            max_qubits=20,
            max_shots=100_000,
            gate_fidelity=0.999,
            readout_fidelity=0.99,
            supported_gates=SUPPORTED_GATES,
            description="Shot-based simulation with imperfect readout",
        ),
    ]


class BackendRegistry:
    """Backends keyed by id."""

    def __init__(self, backends: Optional[Iterable[BackendInfo]] = None):
        self._backends: Dict[str, BackendInfo] = {}
        self._lock = threading.Lock()
        for backend in default_backends() if backends is None else backends:
            self.register(backend)

    def register(self, backend: BackendInfo) -> None:
        """Add or replace a backend.

        Raises:
            ValidationError: If its capacities are not positive.
        """
        if backend.max_qubits < 1 or backend.max_shots < 0:
            raise ValidationError(
                f"Backend {backend.backend_id!r} has invalid capacity "
                f"({backend.max_qubits} qubits, {backend.max_shots} shots)"
            )
        with self._lock:
            self._backends[backend.backend_id] = backend
        logger.debug("Registered backend %s (%d qubits)", backend.backend_id, backend.max_qubits)

    def get(self, backend_id: str) -> BackendInfo:
        with self._lock:
            backend = self._backends.get(backend_id)
        if backend is None:
            raise UnknownBackendError(f"Backend not found: {backend_id}")
        return backend

    def list_backends(self) -> List[BackendInfo]:
        with self._lock:
            return list(self._backends.values())

    def validate(self, num_qubits: int, backend_id: str, shots: int) -> BackendInfo:
        """Check that a circuit of ``num_qubits`` and ``shots`` fits a backend.

        Raises:
            UnknownBackendError: If the backend id is not registered.
            BackendUnavailableError: If the backend is marked unavailable.
            CapacityExceededError: If qubits or shots exceed its capacity.
        """
        backend = self.get(backend_id)
        if not backend.is_available:
            raise BackendUnavailableError(f"Backend {backend_id} is not available")
        if num_qubits > backend.max_qubits:
            raise CapacityExceededError(
                f"Circuit has {num_qubits} qubits, backend {backend_id} "
                f"supports at most {backend.max_qubits}"
            )
        if shots > backend.max_shots:
            raise CapacityExceededError(
                f"{shots} shots requested, backend {backend_id} "
                f"supports at most {backend.max_shots}"
            )
        return backend

    def __contains__(self, backend_id: str) -> bool:
        with self._lock:
            return backend_id in self._backends

    def __len__(self) -> int:
        with self._lock:
            return len(self._backends)
