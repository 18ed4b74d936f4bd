"""Gate Matrix Library.

Maps a gate tag and its parameters to a unitary matrix. Everything here is
pure: the same :class:`Gate` always yields the same matrix.

Matrix convention: for a gate acting on ``targets = (t0, t1, ...)`` the
row/column index of the matrix is read with ``t0`` as the most significant
bit. So ``CNOT`` on ``(control, target)`` is::

    [[1, 0, 0, 0],
     [0, 1, 0, 0],
     [0, 0, 0, 1],
     [0, 0, 1, 0]]

which is the identity on the control=0 subspace and X on control=1.
"""

from __future__ import annotations

import cmath
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

import numpy as np

from .exceptions import InvalidGateError

MAX_TARGETS = 4
MAX_PARAMS = 4
UNITARY_ATOL = 1e-9


class GateType(Enum):
    """Tag of a gate variant."""
    I = "I"
    X = "X"
    Y = "Y"
    Z = "Z"
    H = "H"
    S = "S"
    T = "T"
    RX = "RX"
    RY = "RY"
    RZ = "RZ"
    CNOT = "CNOT"
    CZ = "CZ"
    SWAP = "SWAP"
    TOFFOLI = "Toffoli"
    FREDKIN = "Fredkin"
    CUSTOM = "Custom"


# (number of targets, number of params); Custom is checked separately.
_ARITY: dict[GateType, tuple[int, int]] = {
    GateType.I: (1, 0),
    GateType.X: (1, 0),
    GateType.Y: (1, 0),
    GateType.Z: (1, 0),
    GateType.H: (1, 0),
    GateType.S: (1, 0),
    GateType.T: (1, 0),
    GateType.RX: (1, 1),
    GateType.RY: (1, 1),
    GateType.RZ: (1, 1),
    GateType.CNOT: (2, 0),
    GateType.CZ: (2, 0),
    GateType.SWAP: (2, 0),
    GateType.TOFFOLI: (3, 0),
    GateType.FREDKIN: (3, 0),
}

_ALIASES: dict[str, GateType] = {
    "id": GateType.I,
    "cx": GateType.CNOT,
    "ccx": GateType.TOFFOLI,
    "ccnot": GateType.TOFFOLI,
    "cswap": GateType.FREDKIN,
    "unitary": GateType.CUSTOM,
}


def parse_gate_type(tag: GateType | str) -> GateType:
    """Resolve a tag given as a :class:`GateType` or a case-insensitive name.

    Raises:
        InvalidGateError: If the name is not a known gate.
    """
    if isinstance(tag, GateType):
        return tag
    if not isinstance(tag, str):
        raise InvalidGateError(f"Gate tag must be a GateType or str, got {type(tag).__name__}")
    key = tag.strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    for gate_type in GateType:
        if gate_type.value.lower() == key or gate_type.name.lower() == key:
            return gate_type
    raise InvalidGateError(f"Unknown gate: {tag!r}")


def gate_name(tag: GateType | str) -> str:
    """Display name of a gate tag, e.g. ``"RZ"`` or ``"Toffoli"``."""
    return parse_gate_type(tag).value


SUPPORTED_GATES: tuple[str, ...] = tuple(g.value for g in GateType)


@dataclass(frozen=True, eq=False)
class Gate:
    """One gate placed in a circuit.

    Instances are immutable; build them with :meth:`Gate.create`, which
    validates arity. A Custom gate owns a read-only copy of its matrix.
    """

    type: GateType
    targets: tuple[int, ...]
    params: tuple[float, ...] = ()
    matrix: np.ndarray | None = None

    @classmethod
    def create(
        cls,
        tag: GateType | str,
        targets: Iterable[int],
        params: Iterable[float] = (),
        matrix=None,
    ) -> "Gate":
        """Validate and build a gate.

        Args:
            tag: Gate tag or name (``"h"``, ``"cx"``, ``GateType.RZ`` ...).
            targets: Qubit indices; for controlled gates the controls come first.
            params: Real parameters (rotation angles).
            matrix: Explicit 2^k x 2^k unitary, required for Custom only.

        Raises:
            InvalidGateError: On an unknown tag or an arity/parameter mismatch.
        """
        gate_type = parse_gate_type(tag)
        try:
            targets = tuple(int(q) for q in targets)
        except (TypeError, ValueError) as exc:
            raise InvalidGateError(f"{gate_type.value} targets must be integers: {exc}") from exc
        try:
            params = tuple(float(p) for p in params)
        except (TypeError, ValueError) as exc:
            raise InvalidGateError(f"{gate_type.value} parameters must be real numbers: {exc}") from exc

        if not 1 <= len(targets) <= MAX_TARGETS:
            raise InvalidGateError(
                f"{gate_type.value} needs 1-{MAX_TARGETS} targets, got {len(targets)}"
            )
        if len(set(targets)) != len(targets):
            raise InvalidGateError(f"{gate_type.value} targets must be distinct: {targets}")
        if any(q < 0 for q in targets):
            raise InvalidGateError(f"{gate_type.value} targets must be non-negative: {targets}")
        if len(params) > MAX_PARAMS:
            raise InvalidGateError(f"At most {MAX_PARAMS} parameters, got {len(params)}")
        if any(not math.isfinite(p) for p in params):
            raise InvalidGateError(f"{gate_type.value} parameters must be finite: {params}")

        if gate_type is GateType.CUSTOM:
            if params:
                raise InvalidGateError("Custom gates take no parameters")
            owned = _validate_custom_matrix(matrix, len(targets))
            return cls(gate_type, targets, (), owned)

        if matrix is not None:
            raise InvalidGateError(f"{gate_type.value} does not accept an explicit matrix")
        n_targets, n_params = _ARITY[gate_type]
        if len(targets) != n_targets:
            raise InvalidGateError(
                f"{gate_type.value} acts on {n_targets} qubit(s), got {len(targets)}"
            )
        if len(params) != n_params:
            raise InvalidGateError(
                f"{gate_type.value} takes {n_params} parameter(s), got {len(params)}"
            )
        return cls(gate_type, targets, params, None)

    @property
    def num_qubits(self) -> int:
        return len(self.targets)

    @property
    def name(self) -> str:
        return self.type.value

    def __repr__(self) -> str:
        args = ", ".join(str(q) for q in self.targets)
        if self.params:
            angles = ", ".join(f"{p:.6g}" for p in self.params)
            return f"Gate({self.name}({angles}) q[{args}])"
        return f"Gate({self.name} q[{args}])"


def _validate_custom_matrix(matrix, n_targets: int) -> np.ndarray:
    if matrix is None:
        raise InvalidGateError("Custom gates require a matrix")
    try:
        owned = np.array(matrix, dtype=np.complex128)
    except (TypeError, ValueError) as exc:
        raise InvalidGateError(f"Custom matrix is not numeric: {exc}") from exc
    dim = 1 << n_targets
    if owned.shape != (dim, dim):
        raise InvalidGateError(
            f"Custom gate on {n_targets} qubit(s) needs a {dim}x{dim} matrix, "
            f"got shape {owned.shape}"
        )
    if not np.allclose(owned.conj().T @ owned, np.eye(dim), atol=UNITARY_ATOL):
        raise InvalidGateError("Custom matrix is not unitary")
    owned.setflags(write=False)
    return owned


# ---------------------------------------------------------------------------
# Standard matrices
# ---------------------------------------------------------------------------

_SQRT1_2 = 1.0 / math.sqrt(2.0)

_FIXED: dict[GateType, np.ndarray] = {
    GateType.I: np.eye(2, dtype=np.complex128),
    GateType.X: np.array([[0, 1], [1, 0]], dtype=np.complex128),
    GateType.Y: np.array([[0, -1j], [1j, 0]], dtype=np.complex128),
    GateType.Z: np.array([[1, 0], [0, -1]], dtype=np.complex128),
    GateType.H: np.array([[1, 1], [1, -1]], dtype=np.complex128) * _SQRT1_2,
    GateType.S: np.array([[1, 0], [0, 1j]], dtype=np.complex128),
    GateType.T: np.array([[1, 0], [0, cmath.exp(1j * math.pi / 4)]], dtype=np.complex128),
    GateType.CNOT: np.array(
        [[1, 0, 0, 0],
         [0, 1, 0, 0],
         [0, 0, 0, 1],
         [0, 0, 1, 0]],
        dtype=np.complex128,
    ),
    GateType.CZ: np.diag([1, 1, 1, -1]).astype(np.complex128),
    GateType.SWAP: np.array(
        [[1, 0, 0, 0],
         [0, 0, 1, 0],
         [0, 1, 0, 0],
         [0, 0, 0, 1]],
        dtype=np.complex128,
    ),
}

_toffoli = np.eye(8, dtype=np.complex128)
_toffoli[[6, 7]] = _toffoli[[7, 6]]
_FIXED[GateType.TOFFOLI] = _toffoli

_fredkin = np.eye(8, dtype=np.complex128)
_fredkin[[5, 6]] = _fredkin[[6, 5]]
_FIXED[GateType.FREDKIN] = _fredkin

for _m in _FIXED.values():
    _m.setflags(write=False)


def rx_matrix(theta: float) -> np.ndarray:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array([[c, -1j * s], [-1j * s, c]], dtype=np.complex128)


def ry_matrix(theta: float) -> np.ndarray:
    c, s = math.cos(theta / 2), math.sin(theta / 2)
    return np.array([[c, -s], [s, c]], dtype=np.complex128)


def rz_matrix(theta: float) -> np.ndarray:
    return np.array(
        [[cmath.exp(-1j * theta / 2), 0], [0, cmath.exp(1j * theta / 2)]],
        dtype=np.complex128,
    )


def controlled_phase_matrix(theta: float) -> np.ndarray:
    """diag(1, 1, 1, e^{iθ}): phase on |11⟩, symmetric in its two qubits."""
    return np.diag([1, 1, 1, cmath.exp(1j * theta)]).astype(np.complex128)


def multi_controlled_z_matrix(num_qubits: int) -> np.ndarray:
    """Diagonal matrix flipping the sign of |1...1⟩ on ``num_qubits`` qubits."""
    diag = np.ones(1 << num_qubits, dtype=np.complex128)
    diag[-1] = -1
    return np.diag(diag)


_ROTATIONS = {
    GateType.RX: rx_matrix,
    GateType.RY: ry_matrix,
    GateType.RZ: rz_matrix,
}


def matrix_for(gate: Gate) -> np.ndarray:
    """Return the unitary for ``gate`` as a read-only complex128 array.

    Raises:
        InvalidGateError: If the gate's arity does not match its tag. Gates
            built through :meth:`Gate.create` are already valid, so this only
            fires for hand-constructed instances.
    """
    gate_type = gate.type
    if gate_type is GateType.CUSTOM:
        if gate.matrix is None:
            raise InvalidGateError("Custom gate has no matrix")
        return gate.matrix

    n_targets, n_params = _ARITY[gate_type]
    if len(gate.targets) != n_targets or len(gate.params) != n_params:
        raise InvalidGateError(
            f"{gate_type.value} expects {n_targets} target(s) and {n_params} "
            f"parameter(s), got {len(gate.targets)} and {len(gate.params)}"
        )

    if gate_type in _ROTATIONS:
        return _ROTATIONS[gate_type](gate.params[0])
    return _FIXED[gate_type]


def is_unitary(matrix: Sequence, atol: float = UNITARY_ATOL) -> bool:
    m = np.asarray(matrix, dtype=np.complex128)
    if m.ndim != 2 or m.shape[0] != m.shape[1]:
        return False
    return bool(np.allclose(m.conj().T @ m, np.eye(m.shape[0]), atol=atol))
