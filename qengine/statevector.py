"""State Vector Engine.

A :class:`QuantumState` holds the 2**n complex amplitudes of an n-qubit
register. Basis index ``i`` has bit ``q`` equal to the value of qubit ``q``
(qubit 0 is the least significant bit).

All ``apply_*`` functions mutate ``state.amplitudes`` in place and keep the
array contiguous. A state is owned by exactly one worker for the duration
of a job and is never shared across threads, so nothing here locks.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from .exceptions import InvariantViolationError, OutOfRangeError, ResourceExhaustedError
from .gates import Gate, GateType, matrix_for

logger = logging.getLogger(__name__)

BYTES_PER_AMPLITUDE = np.dtype(np.complex128).itemsize
DEFAULT_TOLERANCE = 1e-6


class QuantumState:
    """Pure state of ``num_qubits`` qubits."""

    __slots__ = ("num_qubits", "amplitudes")

    def __init__(self, num_qubits: int, amplitudes: np.ndarray):
        self.num_qubits = num_qubits
        self.amplitudes = amplitudes

    @property
    def dimension(self) -> int:
        return self.amplitudes.shape[0]

    def copy(self) -> "QuantumState":
        return QuantumState(self.num_qubits, self.amplitudes.copy())

    def __repr__(self) -> str:
        return f"QuantumState(num_qubits={self.num_qubits})"


def required_bytes(num_qubits: int) -> int:
    """Memory needed for the amplitude array of ``num_qubits`` qubits."""
    return BYTES_PER_AMPLITUDE << num_qubits


def create(
    num_qubits: int,
    max_qubits: int | None = None,
    memory_limit_bytes: int | None = None,
) -> QuantumState:
    """Allocate |0...0⟩ on ``num_qubits`` qubits.

    Args:
        num_qubits: Register size, at least 1.
        max_qubits: Qubit capacity of the backend running the job.
        memory_limit_bytes: Global ceiling for a single amplitude array.

    Raises:
        ResourceExhaustedError: If the register exceeds either ceiling or
            the allocation itself fails.
    """
    if num_qubits < 1:
        raise OutOfRangeError(f"A state needs at least one qubit, got {num_qubits}")
    if max_qubits is not None and num_qubits > max_qubits:
        raise ResourceExhaustedError(
            f"{num_qubits} qubits exceeds backend capacity of {max_qubits}"
        )
    needed = required_bytes(num_qubits)
    if memory_limit_bytes is not None and needed > memory_limit_bytes:
        raise ResourceExhaustedError(
            f"State vector for {num_qubits} qubits needs {needed} bytes, "
            f"limit is {memory_limit_bytes}"
        )
    try:
        amplitudes = np.zeros(1 << num_qubits, dtype=np.complex128)
    except MemoryError as exc:
        raise ResourceExhaustedError(
            f"Could not allocate {needed} bytes for {num_qubits} qubits"
        ) from exc
    amplitudes[0] = 1.0
    return QuantumState(num_qubits, amplitudes)


def from_amplitudes(amplitudes: Sequence[complex]) -> QuantumState:
    """Wrap an explicit amplitude vector (length must be a power of two)."""
    arr = np.array(amplitudes, dtype=np.complex128).reshape(-1)
    dim = arr.shape[0]
    if dim < 2 or dim & (dim - 1):
        raise OutOfRangeError(f"Amplitude vector length must be a power of two >= 2, got {dim}")
    return QuantumState(dim.bit_length() - 1, arr)


def basis_state(num_qubits: int, index: int) -> QuantumState:
    """|index⟩ on ``num_qubits`` qubits."""
    state = create(num_qubits)
    if not 0 <= index < state.dimension:
        raise OutOfRangeError(f"Basis index {index} out of range for {num_qubits} qubits")
    state.amplitudes[0] = 0.0
    state.amplitudes[index] = 1.0
    return state


# ---------------------------------------------------------------------------
# Gate application
# ---------------------------------------------------------------------------

def _check_qubit(state: QuantumState, qubit: int) -> None:
    if not 0 <= qubit < state.num_qubits:
        raise OutOfRangeError(f"Qubit {qubit} out of range for {state.num_qubits} qubits")


def apply_single_qubit_gate(state: QuantumState, qubit: int, matrix: np.ndarray) -> None:
    """Apply a 2x2 matrix to ``qubit``.

    Viewing the amplitudes as ``(high, bit, low)`` puts every pair of indices
    that differ only in bit ``qubit`` at ``[h, 0, l]`` / ``[h, 1, l]``.
    """
    _check_qubit(state, qubit)
    n = state.num_qubits
    psi = state.amplitudes.reshape(1 << (n - 1 - qubit), 2, 1 << qubit)
    a0 = psi[:, 0, :].copy()
    a1 = psi[:, 1, :].copy()
    psi[:, 0, :] = matrix[0, 0] * a0 + matrix[0, 1] * a1
    psi[:, 1, :] = matrix[1, 0] * a0 + matrix[1, 1] * a1


def _insert_zero_bit(values: np.ndarray, bit: int) -> np.ndarray:
    low = values & ((1 << bit) - 1)
    return ((values >> bit) << (bit + 1)) | low


def _quad_indices(state: QuantumState, q0: int, q1: int):
    """Index arrays for the groups of four that differ only in bits q0, q1.

    Returned in matrix order |q0 q1⟩ = 00, 01, 10, 11.
    """
    _check_qubit(state, q0)
    _check_qubit(state, q1)
    if q0 == q1:
        raise OutOfRangeError(f"Two-qubit gate needs distinct qubits, got {q0} twice")
    lo, hi = sorted((q0, q1))
    base = np.arange(1 << (state.num_qubits - 2), dtype=np.int64)
    base = _insert_zero_bit(_insert_zero_bit(base, lo), hi)
    m0, m1 = 1 << q0, 1 << q1
    return base, base | m1, base | m0, base | m0 | m1


def apply_two_qubit_gate(
    state: QuantumState, q0: int, q1: int, matrix: np.ndarray
) -> None:
    """Apply a 4x4 matrix to qubits ``(q0, q1)``, ``q0`` being the matrix MSB."""
    i00, i01, i10, i11 = _quad_indices(state, q0, q1)
    amps = state.amplitudes
    block = np.stack((amps[i00], amps[i01], amps[i10], amps[i11]))
    out = np.asarray(matrix) @ block
    amps[i00] = out[0]
    amps[i01] = out[1]
    amps[i10] = out[2]
    amps[i11] = out[3]


def apply_controlled_x(state: QuantumState, control: int, target: int) -> None:
    """CNOT fast path: swap the control=1 halves of each group."""
    _, _, i10, i11 = _quad_indices(state, control, target)
    amps = state.amplitudes
    amps[i10], amps[i11] = amps[i11], amps[i10].copy()


def apply_controlled_z(state: QuantumState, q0: int, q1: int) -> None:
    """CZ fast path: negate every amplitude with both bits set."""
    _, _, _, i11 = _quad_indices(state, q0, q1)
    state.amplitudes[i11] *= -1


def apply_swap(state: QuantumState, q0: int, q1: int) -> None:
    _, i01, i10, _ = _quad_indices(state, q0, q1)
    amps = state.amplitudes
    amps[i01], amps[i10] = amps[i10], amps[i01].copy()


def apply_multi_qubit_gate(
    state: QuantumState, targets: Sequence[int], matrix: np.ndarray
) -> None:
    """Apply a dense 2^k x 2^k matrix to ``targets`` (``targets[0]`` is the MSB)."""
    for q in targets:
        _check_qubit(state, q)
    n = state.num_qubits
    k = len(targets)
    psi = state.amplitudes.reshape((2,) * n)
    axes = [n - 1 - q for q in targets]
    u = np.asarray(matrix).reshape((2,) * (2 * k))
    out = np.tensordot(u, psi, axes=(list(range(k, 2 * k)), axes))
    out = np.moveaxis(out, list(range(k)), axes)
    state.amplitudes[:] = out.reshape(-1)


def apply_gate(
    state: QuantumState,
    gate: Gate,
    tolerance: float | None = DEFAULT_TOLERANCE,
) -> None:
    """Apply one circuit gate and verify the norm afterwards.

    Raises:
        InvariantViolationError: If |Σ|a|² − 1| exceeds ``tolerance``.
    """
    targets = gate.targets
    gate_type = gate.type

    if gate_type is GateType.I:
        pass
    elif gate_type is GateType.CNOT:
        apply_controlled_x(state, targets[0], targets[1])
    elif gate_type is GateType.CZ:
        apply_controlled_z(state, targets[0], targets[1])
    elif gate_type is GateType.SWAP:
        apply_swap(state, targets[0], targets[1])
    elif len(targets) == 1:
        apply_single_qubit_gate(state, targets[0], matrix_for(gate))
    elif len(targets) == 2:
        apply_two_qubit_gate(state, targets[0], targets[1], matrix_for(gate))
    else:
        apply_multi_qubit_gate(state, targets, matrix_for(gate))

    if tolerance is not None:
        check_norm(state, tolerance, context=repr(gate))


def apply_matrix(
    state: QuantumState,
    targets: Sequence[int],
    matrix: np.ndarray,
    tolerance: float | None = DEFAULT_TOLERANCE,
) -> None:
    """Apply an arbitrary matrix without building a :class:`Gate` first."""
    matrix = np.asarray(matrix, dtype=np.complex128)
    if len(targets) == 1:
        apply_single_qubit_gate(state, targets[0], matrix)
    elif len(targets) == 2:
        apply_two_qubit_gate(state, targets[0], targets[1], matrix)
    else:
        apply_multi_qubit_gate(state, targets, matrix)
    if tolerance is not None:
        check_norm(state, tolerance, context=f"matrix on {tuple(targets)}")


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def norm(state: QuantumState) -> float:
    """Σ|a|² (1.0 for a valid state)."""
    return float(np.vdot(state.amplitudes, state.amplitudes).real)


def check_norm(state: QuantumState, tolerance: float, context: str = "") -> None:
    total = norm(state)
    if abs(total - 1.0) > tolerance:
        where = f" after {context}" if context else ""
        logger.error("Norm drifted to %.12f%s", total, where)
        raise InvariantViolationError(
            f"State norm {total:.12f} outside tolerance {tolerance:g}{where}"
        )


def probabilities(state: QuantumState) -> np.ndarray:
    """|a_i|² for every basis index."""
    amps = state.amplitudes
    return amps.real ** 2 + amps.imag ** 2


def marginal_probability(state: QuantumState, qubit: int) -> float:
    """P(qubit = 1): sum of |a|² over basis states with that bit set."""
    _check_qubit(state, qubit)
    n = state.num_qubits
    probs = probabilities(state).reshape(1 << (n - 1 - qubit), 2, 1 << qubit)
    return float(probs[:, 1, :].sum())


def fidelity(a: QuantumState, b: QuantumState) -> float:
    """|⟨a|b⟩|² between two pure states of equal size."""
    if a.num_qubits != b.num_qubits:
        raise OutOfRangeError(
            f"Cannot compare states of {a.num_qubits} and {b.num_qubits} qubits"
        )
    return float(abs(np.vdot(a.amplitudes, b.amplitudes)) ** 2)
