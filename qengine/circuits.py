"""Circuit Registry.

Circuits are append-only gate lists. A circuit becomes *frozen* the moment a
job that references it starts running; after that every append raises
:class:`~qengine.exceptions.CircuitFrozenError` so the running worker sees a
stable gate list.

Example:
    >>> registry = CircuitRegistry()
    >>> cid = registry.create_circuit("bell", qubits=2, classical_bits=2)
    >>> registry.get(cid).h(0).cx(0, 1).measure_all()
"""

import logging
import threading
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from .arena import Arena, ArenaKey
from .exceptions import (
    CircuitFrozenError,
    CircuitNotFoundError,
    OutOfRangeError,
    ValidationError,
)
from .gates import Gate, GateType, controlled_phase_matrix

logger = logging.getLogger(__name__)

MAX_CIRCUIT_QUBITS = 64


class Circuit:
    """An ordered list of gates and measurement bindings.

    Gate methods return ``self`` so calls can be chained.
    """

    def __init__(self, name: str, num_qubits: int, num_clbits: int = 0):
        if not 1 <= num_qubits <= MAX_CIRCUIT_QUBITS:
            raise ValidationError(
                f"Circuit needs 1-{MAX_CIRCUIT_QUBITS} qubits, got {num_qubits}"
            )
        if num_clbits < 0:
            raise ValidationError(f"classical_bits must be >= 0, got {num_clbits}")
        self.circuit_id: Optional[ArenaKey] = None
        self.name = name
        self.num_qubits = num_qubits
        self.num_clbits = num_clbits
        self.created_at = datetime.now()
        self.modified_at = self.created_at
        self._gates: List[Gate] = []
        self._measurements: List[Tuple[int, int]] = []
        self._frozen = False
        self._lock = threading.Lock()

    # -- inspection --------------------------------------------------------

    @property
    def gates(self) -> Tuple[Gate, ...]:
        with self._lock:
            return tuple(self._gates)

    @property
    def measurements(self) -> Tuple[Tuple[int, int], ...]:
        """``(qubit, classical_bit)`` bindings in insertion order."""
        with self._lock:
            return tuple(self._measurements)

    @property
    def frozen(self) -> bool:
        with self._lock:
            return self._frozen

    def __len__(self) -> int:
        with self._lock:
            return len(self._gates)

    def depth(self) -> int:
        """Number of layers when gates on disjoint qubits share a layer."""
        level = [0] * self.num_qubits
        for gate in self.gates:
            layer = max(level[q] for q in gate.targets) + 1
            for q in gate.targets:
                level[q] = layer
        return max(level) if level else 0

    def freeze(self) -> Tuple[Tuple[Gate, ...], Tuple[Tuple[int, int], ...]]:
        """Reject further appends and return the final gates and bindings."""
        with self._lock:
            if not self._frozen:
                self._frozen = True
                logger.debug("Circuit %s (%s) frozen with %d gates",
                             self.circuit_id, self.name, len(self._gates))
            return tuple(self._gates), tuple(self._measurements)

    def __repr__(self) -> str:
        return (
            f"Circuit(name={self.name!r}, num_qubits={self.num_qubits}, "
            f"num_clbits={self.num_clbits}, gates={len(self)})"
        )

    # -- appends -----------------------------------------------------------

    def _check_open(self) -> None:
        if self._frozen:
            raise CircuitFrozenError(
                f"Circuit {self.name!r} is frozen: a job using it has started"
            )

    def append(self, gate: Gate) -> "Circuit":
        """Append a validated gate.

        Raises:
            OutOfRangeError: If a target is not a qubit of this circuit.
            CircuitFrozenError: If a job using this circuit has started.
        """
        for q in gate.targets:
            if q >= self.num_qubits:
                raise OutOfRangeError(
                    f"{gate.name} target {q} out of range for {self.num_qubits} qubits"
                )
        with self._lock:
            self._check_open()
            self._gates.append(gate)
            self.modified_at = datetime.now()
        return self

    def add_gate(
        self,
        tag,
        targets: Iterable[int],
        params: Iterable[float] = (),
        matrix=None,
    ) -> "Circuit":
        return self.append(Gate.create(tag, targets, params, matrix))

    def measure(self, qubit: int, clbit: Optional[int] = None) -> "Circuit":
        """Bind ``qubit`` to classical bit ``clbit`` (defaults to the same index)."""
        clbit = qubit if clbit is None else clbit
        if not 0 <= qubit < self.num_qubits:
            raise OutOfRangeError(
                f"Measured qubit {qubit} out of range for {self.num_qubits} qubits"
            )
        if not 0 <= clbit < self.num_clbits:
            raise OutOfRangeError(
                f"Classical bit {clbit} out of range for {self.num_clbits} bits"
            )
        with self._lock:
            self._check_open()
            self._measurements.append((qubit, clbit))
            self.modified_at = datetime.now()
        return self

    def measure_all(self) -> "Circuit":
        """Measure qubit i into classical bit i for every qubit that has one."""
        for q in range(min(self.num_qubits, self.num_clbits)):
            self.measure(q, q)
        return self

    # -- gate shortcuts ----------------------------------------------------

    def id(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.I, [qubit])

    def x(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.X, [qubit])

    def y(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.Y, [qubit])

    def z(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.Z, [qubit])

    def h(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.H, [qubit])

    def s(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.S, [qubit])

    def t(self, qubit: int) -> "Circuit":
        return self.add_gate(GateType.T, [qubit])

    def rx(self, theta: float, qubit: int) -> "Circuit":
        return self.add_gate(GateType.RX, [qubit], [theta])

    def ry(self, theta: float, qubit: int) -> "Circuit":
        return self.add_gate(GateType.RY, [qubit], [theta])

    def rz(self, theta: float, qubit: int) -> "Circuit":
        return self.add_gate(GateType.RZ, [qubit], [theta])

    def cx(self, control: int, target: int) -> "Circuit":
        return self.add_gate(GateType.CNOT, [control, target])

    def cz(self, q0: int, q1: int) -> "Circuit":
        return self.add_gate(GateType.CZ, [q0, q1])

    def swap(self, q0: int, q1: int) -> "Circuit":
        return self.add_gate(GateType.SWAP, [q0, q1])

    def ccx(self, c0: int, c1: int, target: int) -> "Circuit":
        return self.add_gate(GateType.TOFFOLI, [c0, c1, target])

    def cswap(self, control: int, q0: int, q1: int) -> "Circuit":
        return self.add_gate(GateType.FREDKIN, [control, q0, q1])

    def unitary(self, matrix, targets: Sequence[int]) -> "Circuit":
        return self.add_gate(GateType.CUSTOM, targets, (), matrix)

    def cp(self, theta: float, q0: int, q1: int) -> "Circuit":
        """Controlled phase e^{iθ} on |11⟩, as a Custom gate."""
        return self.unitary(controlled_phase_matrix(theta), [q0, q1])


class CircuitRegistry:
    """Owns every circuit of one simulator context."""

    def __init__(self):
        self._circuits: Arena[Circuit] = Arena()

    def create_circuit(self, name: str, qubits: int, classical_bits: int = 0) -> ArenaKey:
        """Create an empty circuit and return its id.

        Raises:
            ValidationError: If ``qubits`` is outside 1-64 or
                ``classical_bits`` is negative.
        """
        circuit = Circuit(name, qubits, classical_bits)
        key = self._circuits.insert(circuit)
        circuit.circuit_id = key
        logger.debug("Created circuit %s (%s, %d qubits)", key, name, qubits)
        return key

    def get(self, circuit_id) -> Circuit:
        try:
            return self._circuits.get(circuit_id)
        except KeyError:
            raise CircuitNotFoundError(f"Circuit not found: {circuit_id}") from None

    def add_gate(self, circuit_id, tag, targets, params=(), matrix=None) -> Gate:
        """Append a gate to a circuit and return it.

        Raises:
            CircuitNotFoundError: If the id does not resolve.
            InvalidGateError: On an unknown tag or an arity mismatch.
            OutOfRangeError: If a target is not a qubit of the circuit.
            CircuitFrozenError: If a job using the circuit has started.
        """
        circuit = self.get(circuit_id)
        gate = Gate.create(tag, targets, params, matrix)
        circuit.append(gate)
        return gate

    def add_measurement(self, circuit_id, qubit: int, classical_bit: int) -> None:
        self.get(circuit_id).measure(qubit, classical_bit)

    def remove_circuit(self, circuit_id) -> Circuit:
        try:
            circuit = self._circuits.remove(circuit_id)
        except KeyError:
            raise CircuitNotFoundError(f"Circuit not found: {circuit_id}") from None
        logger.debug("Removed circuit %s (%s)", circuit_id, circuit.name)
        return circuit

    def list_circuits(self) -> List[ArenaKey]:
        return self._circuits.keys()

    def __contains__(self, circuit_id) -> bool:
        return circuit_id in self._circuits

    def __len__(self) -> int:
        return len(self._circuits)
