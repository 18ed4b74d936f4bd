"""Tests for qengine.gates: gate construction and matrices."""

import math

import numpy as np
import pytest

from qengine.exceptions import InvalidGateError
from qengine.gates import (
    SUPPORTED_GATES,
    Gate,
    GateType,
    controlled_phase_matrix,
    gate_name,
    is_unitary,
    matrix_for,
    multi_controlled_z_matrix,
    parse_gate_type,
)


class TestParseGateType:
    def test_enum_passthrough(self):
        assert parse_gate_type(GateType.H) is GateType.H

    @pytest.mark.parametrize("name,expected", [
        ("h", GateType.H),
        ("CNOT", GateType.CNOT),
        ("cx", GateType.CNOT),
        ("rz", GateType.RZ),
        ("ccx", GateType.TOFFOLI),
        ("toffoli", GateType.TOFFOLI),
        ("cswap", GateType.FREDKIN),
        ("unitary", GateType.CUSTOM),
        ("  Swap ", GateType.SWAP),
    ])
    def test_names_and_aliases(self, name, expected):
        assert parse_gate_type(name) is expected

    def test_unknown_name(self):
        with pytest.raises(InvalidGateError, match="Unknown gate"):
            parse_gate_type("frobnicate")

    def test_non_string(self):
        with pytest.raises(InvalidGateError):
            parse_gate_type(42)

    def test_gate_name(self):
        assert gate_name("ccx") == "Toffoli"
        assert gate_name(GateType.RX) == "RX"

    def test_supported_gates_lists_every_tag(self):
        assert len(SUPPORTED_GATES) == 16
        assert "Custom" in SUPPORTED_GATES


class TestGateCreate:
    def test_single_qubit(self):
        gate = Gate.create("h", [0])
        assert gate.type is GateType.H
        assert gate.targets == (0,)
        assert gate.params == ()
        assert gate.num_qubits == 1

    def test_rotation_needs_one_param(self):
        with pytest.raises(InvalidGateError, match="parameter"):
            Gate.create("rx", [0])
        with pytest.raises(InvalidGateError, match="parameter"):
            Gate.create("rx", [0], [0.1, 0.2])

    def test_wrong_target_count(self):
        with pytest.raises(InvalidGateError):
            Gate.create("cx", [0])
        with pytest.raises(InvalidGateError):
            Gate.create("h", [0, 1])

    def test_duplicate_targets(self):
        with pytest.raises(InvalidGateError, match="distinct"):
            Gate.create("cx", [1, 1])

    def test_too_many_targets(self):
        with pytest.raises(InvalidGateError):
            Gate.create("unitary", [0, 1, 2, 3, 4], matrix=np.eye(32))

    def test_too_many_params(self):
        with pytest.raises(InvalidGateError, match="At most"):
            Gate.create("rx", [0], [0.1] * 5)

    def test_non_finite_param(self):
        with pytest.raises(InvalidGateError, match="finite"):
            Gate.create("rz", [0], [math.nan])

    @pytest.mark.parametrize("targets,params", [
        ([0], ["abc"]),
        ([0], [1j]),
        (["q0"], [0.5]),
        ([None], [0.5]),
        (3, [0.5]),
    ])
    def test_non_numeric_arguments(self, targets, params):
        with pytest.raises(InvalidGateError):
            Gate.create("rx", targets, params)

    def test_matrix_rejected_for_fixed_gates(self):
        with pytest.raises(InvalidGateError, match="explicit matrix"):
            Gate.create("x", [0], matrix=np.eye(2))

    def test_gates_are_immutable(self):
        gate = Gate.create("x", [0])
        with pytest.raises(AttributeError):
            gate.targets = (1,)

    def test_repr(self):
        assert repr(Gate.create("cx", [0, 1])) == "Gate(CNOT q[0, 1])"
        assert "RZ(0.5)" in repr(Gate.create("rz", [2], [0.5]))


class TestCustomGate:
    def test_matrix_is_owned_copy(self):
        m = np.eye(4, dtype=complex)
        gate = Gate.create("unitary", [0, 1], matrix=m)
        m[0, 0] = 5
        assert gate.matrix[0, 0] == 1
        assert not gate.matrix.flags.writeable

    def test_requires_matrix(self):
        with pytest.raises(InvalidGateError, match="require a matrix"):
            Gate.create(GateType.CUSTOM, [0])

    def test_shape_must_match_targets(self):
        with pytest.raises(InvalidGateError, match="4x4"):
            Gate.create(GateType.CUSTOM, [0, 1], matrix=np.eye(2))

    def test_must_be_unitary(self):
        with pytest.raises(InvalidGateError, match="not unitary"):
            Gate.create(GateType.CUSTOM, [0], matrix=[[1, 1], [0, 1]])

    def test_no_params(self):
        with pytest.raises(InvalidGateError):
            Gate.create(GateType.CUSTOM, [0], [0.1], matrix=np.eye(2))

    def test_four_qubit_custom(self):
        gate = Gate.create(GateType.CUSTOM, [0, 1, 2, 3], matrix=multi_controlled_z_matrix(4))
        assert matrix_for(gate).shape == (16, 16)


class TestMatrices:
    @pytest.mark.parametrize("tag", [t for t in GateType if t is not GateType.CUSTOM])
    def test_every_fixed_gate_is_unitary(self, tag):
        n_targets = {GateType.CNOT: 2, GateType.CZ: 2, GateType.SWAP: 2,
                     GateType.TOFFOLI: 3, GateType.FREDKIN: 3}.get(tag, 1)
        params = [0.7] if tag in (GateType.RX, GateType.RY, GateType.RZ) else []
        gate = Gate.create(tag, range(n_targets), params)
        assert is_unitary(matrix_for(gate))

    def test_hadamard(self):
        h = matrix_for(Gate.create("h", [0]))
        np.testing.assert_allclose(h, np.array([[1, 1], [1, -1]]) / math.sqrt(2))

    def test_t_gate(self):
        t = matrix_for(Gate.create("t", [0]))
        assert t[1, 1] == pytest.approx(complex(math.cos(math.pi / 4), math.sin(math.pi / 4)))

    def test_rotations(self):
        theta = 0.3
        rx = matrix_for(Gate.create("rx", [0], [theta]))
        ry = matrix_for(Gate.create("ry", [0], [theta]))
        rz = matrix_for(Gate.create("rz", [0], [theta]))
        c, s = math.cos(theta / 2), math.sin(theta / 2)
        np.testing.assert_allclose(rx, [[c, -1j * s], [-1j * s, c]])
        np.testing.assert_allclose(ry, [[c, -s], [s, c]])
        np.testing.assert_allclose(np.diag(rz), [np.exp(-0.15j), np.exp(0.15j)])

    def test_cnot_is_x_on_control_one(self):
        cnot = matrix_for(Gate.create("cx", [0, 1]))
        np.testing.assert_array_equal(cnot[:2, :2], np.eye(2))
        np.testing.assert_array_equal(cnot[2:, 2:], [[0, 1], [1, 0]])

    def test_toffoli_swaps_last_two_rows(self):
        tof = matrix_for(Gate.create("ccx", [0, 1, 2]))
        assert tof[6, 7] == 1 and tof[7, 6] == 1
        np.testing.assert_array_equal(tof[:6, :6], np.eye(6))

    def test_fixed_matrices_read_only(self):
        x = matrix_for(Gate.create("x", [0]))
        with pytest.raises(ValueError):
            x[0, 0] = 1

    def test_matrix_for_is_deterministic(self):
        gate = Gate.create("ry", [0], [1.234])
        np.testing.assert_array_equal(matrix_for(gate), matrix_for(gate))

    def test_controlled_phase(self):
        cp = controlled_phase_matrix(math.pi / 2)
        np.testing.assert_allclose(np.diag(cp), [1, 1, 1, 1j], atol=1e-12)

    def test_hand_built_gate_with_bad_arity(self):
        gate = Gate(GateType.CNOT, (0,))
        with pytest.raises(InvalidGateError):
            matrix_for(gate)

    def test_is_unitary_rejects_non_square(self):
        assert not is_unitary(np.ones((2, 3)))
