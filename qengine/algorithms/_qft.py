"""Quantum Fourier Transform circuits.

For qubits ``(q_0, ..., q_{m-1})`` the transform applies, for each i, H on
q_i followed by a controlled phase π/2^(j−i) between q_i and every later
q_j, then reverses the qubit order with SWAPs. The controlled phase is a
Custom 4x4 gate diag(1, 1, 1, e^{iφ}).

Qubits are listed most significant first. The default order
``(n-1, ..., 1, 0)`` makes the transform of basis state |x⟩ the DFT
Σ_k e^{2πi·xk/N} |k⟩ / √N in the usual index convention.
"""

from __future__ import annotations

import math
from typing import Sequence

from ..exceptions import ValidationError
from ..gates import GateType, controlled_phase_matrix


def _resolve_qubits(sim, circuit_id, qubits: Sequence[int] | None) -> list[int]:
    if qubits is None:
        return list(reversed(range(sim.circuit(circuit_id).num_qubits)))
    qubits = [int(q) for q in qubits]
    if len(set(qubits)) != len(qubits):
        raise ValidationError(f"QFT qubits must be distinct: {qubits}")
    return qubits


def append_qft(sim, circuit_id, qubits: Sequence[int] | None = None) -> None:
    """Append the QFT on ``qubits`` (all circuit qubits, most significant first, by default)."""
    qubits = _resolve_qubits(sim, circuit_id, qubits)
    count = len(qubits)
    for i in range(count):
        sim.add_gate(circuit_id, GateType.H, [qubits[i]])
        for j in range(i + 1, count):
            angle = math.pi / (1 << (j - i))
            sim.add_gate(
                circuit_id, GateType.CUSTOM, [qubits[j], qubits[i]],
                matrix=controlled_phase_matrix(angle),
            )
    for i in range(count // 2):
        sim.add_gate(circuit_id, GateType.SWAP, [qubits[i], qubits[count - 1 - i]])


def append_inverse_qft(sim, circuit_id, qubits: Sequence[int] | None = None) -> None:
    """Append the adjoint of :func:`append_qft`: gates reversed, phases negated."""
    qubits = _resolve_qubits(sim, circuit_id, qubits)
    count = len(qubits)
    for i in reversed(range(count // 2)):
        sim.add_gate(circuit_id, GateType.SWAP, [qubits[i], qubits[count - 1 - i]])
    for i in reversed(range(count)):
        for j in reversed(range(i + 1, count)):
            angle = -math.pi / (1 << (j - i))
            sim.add_gate(
                circuit_id, GateType.CUSTOM, [qubits[j], qubits[i]],
                matrix=controlled_phase_matrix(angle),
            )
        sim.add_gate(circuit_id, GateType.H, [qubits[i]])


def build_qft_circuit(sim, n_qubits: int, inverse: bool = False):
    """Create an ``n_qubits`` circuit holding only the (inverse) QFT."""
    circuit_id = sim.create_circuit("qft_inverse" if inverse else "qft", n_qubits, n_qubits)
    if inverse:
        append_inverse_qft(sim, circuit_id)
    else:
        append_qft(sim, circuit_id)
    return circuit_id
