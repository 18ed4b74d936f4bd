"""Tests for qengine.statevector: allocation, gate application and analysis."""

import math

import numpy as np
import pytest

from qengine import statevector as sv
from qengine.exceptions import InvariantViolationError, OutOfRangeError, ResourceExhaustedError
from qengine.gates import Gate, GateType, matrix_for


def apply(state, tag, targets, params=(), matrix=None):
    sv.apply_gate(state, Gate.create(tag, targets, params, matrix))


def dense_reference(num_qubits, gate):
    """Full 2^n x 2^n operator for ``gate`` built from basis-state images."""
    dim = 1 << num_qubits
    out = np.zeros((dim, dim), dtype=complex)
    for i in range(dim):
        state = sv.basis_state(num_qubits, i)
        sv.apply_multi_qubit_gate(state, gate.targets, matrix_for(gate))
        out[:, i] = state.amplitudes
    return out


class TestCreate:
    def test_zero_state(self):
        state = sv.create(3)
        assert state.num_qubits == 3
        assert state.dimension == 8
        assert state.amplitudes[0] == 1
        assert np.count_nonzero(state.amplitudes) == 1

    def test_needs_a_qubit(self):
        with pytest.raises(OutOfRangeError):
            sv.create(0)

    def test_backend_capacity(self):
        with pytest.raises(ResourceExhaustedError, match="capacity"):
            sv.create(5, max_qubits=4)

    def test_memory_ceiling(self):
        assert sv.required_bytes(10) == 16 * 1024
        with pytest.raises(ResourceExhaustedError, match="limit"):
            sv.create(10, memory_limit_bytes=1024)

    def test_from_amplitudes(self):
        state = sv.from_amplitudes([0, 0, 0, 1])
        assert state.num_qubits == 2
        with pytest.raises(OutOfRangeError):
            sv.from_amplitudes([1, 0, 0])

    def test_basis_state(self):
        state = sv.basis_state(2, 3)
        np.testing.assert_array_equal(state.amplitudes, [0, 0, 0, 1])
        with pytest.raises(OutOfRangeError):
            sv.basis_state(2, 4)

    def test_copy_is_independent(self):
        state = sv.create(1)
        other = state.copy()
        apply(other, "x", [0])
        assert state.amplitudes[0] == 1


class TestSingleQubitGates:
    def test_hadamard_twice_is_identity(self):
        state = sv.create(1)
        apply(state, "h", [0])
        apply(state, "h", [0])
        np.testing.assert_allclose(state.amplitudes, [1, 0], atol=1e-12)

    def test_hadamard_superposition(self):
        state = sv.create(1)
        apply(state, "h", [0])
        np.testing.assert_allclose(state.amplitudes, [1 / math.sqrt(2)] * 2)

    def test_x_flips_only_its_qubit(self):
        state = sv.create(3)
        apply(state, "x", [1])
        assert state.amplitudes[0b010] == 1

    def test_qubit_out_of_range(self):
        with pytest.raises(OutOfRangeError):
            apply(sv.create(2), "x", [2])

    def test_identity_is_noop(self):
        state = sv.create(2)
        apply(state, "h", [0])
        before = state.amplitudes.copy()
        apply(state, "i", [1])
        np.testing.assert_array_equal(state.amplitudes, before)


class TestTwoQubitGates:
    def test_cnot_control_one_target_zero(self):
        # |10⟩: qubit 1 set. CNOT(control=1, target=0) gives |11⟩.
        state = sv.basis_state(2, 0b10)
        apply(state, "cx", [1, 0])
        np.testing.assert_array_equal(state.amplitudes, [0, 0, 0, 1])

    def test_cnot_control_zero_does_nothing(self):
        state = sv.basis_state(2, 0b10)
        apply(state, "cx", [0, 1])
        np.testing.assert_array_equal(state.amplitudes, [0, 0, 1, 0])

    def test_bell_state(self):
        state = sv.create(2)
        apply(state, "h", [0])
        apply(state, "cx", [0, 1])
        np.testing.assert_allclose(state.amplitudes, [1 / math.sqrt(2), 0, 0, 1 / math.sqrt(2)])

    def test_cz_negates_11(self):
        state = sv.create(2)
        apply(state, "h", [0])
        apply(state, "h", [1])
        apply(state, "cz", [0, 1])
        np.testing.assert_allclose(state.amplitudes, [0.5, 0.5, 0.5, -0.5])

    def test_swap(self):
        state = sv.basis_state(3, 0b001)
        apply(state, "swap", [0, 2])
        assert state.amplitudes[0b100] == 1

    @pytest.mark.parametrize("targets", [(0, 1), (1, 0), (0, 2), (2, 0), (1, 2)])
    def test_fast_paths_match_general_matrix(self, targets, rng):
        amps = rng.normal(size=8) + 1j * rng.normal(size=8)
        amps /= np.linalg.norm(amps)
        for tag in ("cx", "cz", "swap"):
            fast = sv.from_amplitudes(amps)
            general = sv.from_amplitudes(amps)
            gate = Gate.create(tag, targets)
            sv.apply_gate(fast, gate)
            sv.apply_two_qubit_gate(general, targets[0], targets[1], matrix_for(gate))
            np.testing.assert_allclose(fast.amplitudes, general.amplitudes, atol=1e-12)

    def test_general_matrix_matches_tensordot(self, rng):
        q, _ = np.linalg.qr(rng.normal(size=(4, 4)) + 1j * rng.normal(size=(4, 4)))
        amps = rng.normal(size=8) + 1j * rng.normal(size=8)
        amps /= np.linalg.norm(amps)
        a = sv.from_amplitudes(amps)
        b = sv.from_amplitudes(amps)
        sv.apply_two_qubit_gate(a, 2, 0, q)
        sv.apply_multi_qubit_gate(b, (2, 0), q)
        np.testing.assert_allclose(a.amplitudes, b.amplitudes, atol=1e-12)

    def test_same_qubit_twice(self):
        with pytest.raises(OutOfRangeError):
            sv.apply_two_qubit_gate(sv.create(2), 1, 1, np.eye(4))


class TestMultiQubitGates:
    def test_toffoli_flips_target_when_both_controls_set(self):
        state = sv.basis_state(3, 0b011)
        apply(state, "ccx", [0, 1, 2])
        assert state.amplitudes[0b111] == 1

    def test_toffoli_leaves_partial_controls(self):
        state = sv.basis_state(3, 0b001)
        apply(state, "ccx", [0, 1, 2])
        assert state.amplitudes[0b001] == 1

    def test_fredkin_swaps_when_control_set(self):
        state = sv.basis_state(3, 0b011)
        apply(state, "cswap", [0, 1, 2])
        assert state.amplitudes[0b101] == 1

    def test_tensordot_agrees_with_reference(self):
        gate = Gate.create("ccx", [2, 0, 1])
        op = dense_reference(3, gate)
        # controls on qubits 2 and 0, target qubit 1
        assert op[0b111, 0b101] == 1
        assert op[0b101, 0b111] == 1
        assert op[0b011, 0b011] == 1


class TestNorm:
    def test_norm_preserved_after_every_gate(self, rng):
        state = sv.create(4)
        tags = ["h", "x", "y", "z", "s", "t"]
        for _ in range(50):
            kind = rng.integers(4)
            qubits = [int(q) for q in rng.permutation(4)]
            if kind == 0:
                apply(state, tags[rng.integers(len(tags))], qubits[:1])
            elif kind == 1:
                apply(state, ["rx", "ry", "rz"][rng.integers(3)], qubits[:1], [rng.uniform(0, 6.3)])
            elif kind == 2:
                apply(state, ["cx", "cz", "swap"][rng.integers(3)], qubits[:2])
            else:
                apply(state, ["ccx", "cswap"][rng.integers(2)], qubits[:3])
            assert abs(sv.norm(state) - 1.0) < 1e-6

    def test_drift_raises(self):
        state = sv.create(1)
        with pytest.raises(InvariantViolationError, match="norm"):
            sv.apply_matrix(state, [0], np.array([[2, 0], [0, 1]]))

    def test_tolerance_none_skips_check(self):
        state = sv.create(1)
        sv.apply_matrix(state, [0], np.array([[2, 0], [0, 1]]), tolerance=None)
        assert sv.norm(state) == pytest.approx(4.0)


class TestAnalysis:
    def test_probabilities(self):
        state = sv.create(2)
        apply(state, "h", [0])
        np.testing.assert_allclose(sv.probabilities(state), [0.5, 0.5, 0, 0])

    def test_marginal_probability(self):
        state = sv.create(2)
        apply(state, "h", [0])
        apply(state, "x", [1])
        assert sv.marginal_probability(state, 0) == pytest.approx(0.5)
        assert sv.marginal_probability(state, 1) == pytest.approx(1.0)

    def test_fidelity(self):
        a = sv.create(1)
        b = sv.create(1)
        apply(b, "h", [0])
        assert sv.fidelity(a, a) == pytest.approx(1.0)
        assert sv.fidelity(a, b) == pytest.approx(0.5)

    def test_fidelity_size_mismatch(self):
        with pytest.raises(OutOfRangeError):
            sv.fidelity(sv.create(1), sv.create(2))
