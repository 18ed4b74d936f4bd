"""Tests for qengine.Simulator: the public programmatic interface."""

import math

import numpy as np
import pytest

from qengine import (
    BackendInfo,
    CapacityExceededError,
    CircuitFrozenError,
    CircuitNotFoundError,
    InvalidGateError,
    JobCanceledError,
    JobFailedError,
    JobNotCompletedError,
    JobNotFoundError,
    JobState,
    NoiseModel,
    OutOfRangeError,
    Simulator,
    SubmissionError,
    SimulatorConfig,
    UnknownBackendError,
    ValidationError,
)
from qengine.arena import ArenaKey
from qengine.statevector import norm


def make_bell(sim):
    cid = sim.create_circuit("bell", 2, 2)
    sim.add_gate(cid, "h", [0])
    sim.add_gate(cid, "cx", [0, 1])
    sim.add_measurement(cid, 0, 0)
    sim.add_measurement(cid, 1, 1)
    return cid


class TestCircuitApi:
    def test_create_and_build(self, sim):
        cid = make_bell(sim)
        qc = sim.circuit(cid)
        assert [g.name for g in qc.gates] == ["H", "CNOT"]
        assert qc.measurements == ((0, 0), (1, 1))
        assert sim.list_circuits() == [cid]

    def test_add_gate_errors(self, sim):
        cid = sim.create_circuit("c", 2, 0)
        with pytest.raises(OutOfRangeError):
            sim.add_gate(cid, "x", [5])
        with pytest.raises(InvalidGateError):
            sim.add_gate(cid, "rx", [0])
        with pytest.raises(InvalidGateError):
            sim.add_gate(cid, "ry", [0], ["half"])
        with pytest.raises(OutOfRangeError):
            sim.add_measurement(cid, 0, 0)

    def test_create_validates_sizes(self, sim):
        with pytest.raises(ValidationError):
            sim.create_circuit("empty", 0, 0)
        with pytest.raises(ValidationError):
            sim.create_circuit("huge", 65, 0)

    def test_remove_circuit(self, sim):
        cid = make_bell(sim)
        sim.remove_circuit(cid)
        with pytest.raises(CircuitNotFoundError):
            sim.submit_job(cid, "statevector", 10)

    def test_run_statevector(self, sim):
        state = sim.run_statevector(make_bell(sim))
        np.testing.assert_allclose(state.amplitudes, [2 ** -0.5, 0, 0, 2 ** -0.5])
        assert norm(state) == pytest.approx(1.0)


class TestJobs:
    def test_submit_and_wait(self, sim):
        job_id = sim.submit_job(make_bell(sim), "statevector", shots=1000)
        result = sim.wait_for_job(job_id, max_wait=30.0)

        assert result.job_id == job_id
        assert result.shots == 1000
        assert sum(result.counts.values()) == 1000
        # Qubits are sampled one at a time from their marginals
        assert set(result.bitstring_counts()) <= {"00", "01", "10", "11"}
        ones = sum(c for i, c in result.counts.items() if i & 1)
        assert 400 < ones < 600
        probs = result.probabilities()
        assert abs(sum(probs.values()) - 1.0) < 0.001

    def test_default_shots(self, sim):
        result = sim.run(make_bell(sim))
        assert result.shots == sim.config.default_shots

    def test_get_job_status(self, sim):
        job_id = sim.submit_job(make_bell(sim), "statevector", 500)
        status = sim.get_job_status(job_id)
        assert status.state in (JobState.SUBMITTED, JobState.RUNNING, JobState.COMPLETED)
        sim.wait_for_job(job_id)
        assert sim.get_job_status(job_id).state == JobState.COMPLETED

        job = sim.get_job(job_id)
        assert job.backend_id == "statevector"
        assert job.shots == 500

    def test_result_before_completion(self, held_sim):
        job_id = held_sim.submit_job(make_bell(held_sim), "statevector", 10)
        assert held_sim.hold.started.wait(5)
        assert held_sim.get_job_status(job_id).state == JobState.RUNNING
        with pytest.raises(JobNotCompletedError):
            held_sim.get_job_result(job_id)
        held_sim.hold.release.set()
        assert sum(held_sim.wait_for_job(job_id, max_wait=30).counts.values()) == 10

    def test_capacity_exceeded_creates_no_job(self, sim):
        cid = sim.create_circuit("wide", 21, 0)
        before = sim.list_jobs()
        with pytest.raises(CapacityExceededError):
            sim.submit_job(cid, "shot_simulator", 10)
        with pytest.raises(CapacityExceededError):
            sim.submit_job(make_bell(sim), "shot_simulator", 100_001)
        assert sim.list_jobs() == before

    def test_unknown_backend(self, sim):
        with pytest.raises(UnknownBackendError):
            sim.submit_job(make_bell(sim), "quantum_annealer", 10)
        assert sim.list_jobs() == []

    def test_negative_shots(self, sim):
        with pytest.raises(ValidationError):
            sim.submit_job(make_bell(sim), "statevector", -1)

    def test_unknown_job(self, sim):
        with pytest.raises(JobNotFoundError):
            sim.get_job_status(ArenaKey(99, 0))

    def test_frozen_after_job_starts(self, sim):
        cid = make_bell(sim)
        sim.wait_for_job(sim.submit_job(cid, "statevector", 10))
        with pytest.raises(CircuitFrozenError):
            sim.add_gate(cid, "x", [0])
        # The same circuit can be executed again
        result = sim.run(cid, "statevector", 10)
        assert sum(result.counts.values()) == 10

    def test_failed_job_raises_on_wait(self):
        with Simulator(SimulatorConfig(num_workers=1, memory_limit_bytes=64, poll_interval=0.005)) as sim:
            cid = sim.create_circuit("big", 4, 0)
            job_id = sim.submit_job(cid, "statevector", 10)
            with pytest.raises(JobFailedError, match="limit"):
                sim.wait_for_job(job_id, max_wait=30)
            assert sim.get_job_status(job_id).error_message
            with pytest.raises(JobNotCompletedError):
                sim.get_job_result(job_id)

    def test_cancel_finished_job(self, sim):
        job_id = sim.submit_job(make_bell(sim), "statevector", 10)
        sim.wait_for_job(job_id)
        success, message = sim.cancel_job(job_id)
        assert success is False
        assert "COMPLETED" in message

    def test_canceled_job_raises_on_wait(self, held_sim):
        cid = make_bell(held_sim)
        first = held_sim.submit_job(cid, "statevector", 10)
        assert held_sim.hold.started.wait(5)
        second = held_sim.submit_job(cid, "statevector", 10)

        success, message = held_sim.cancel_job(second)
        assert success is True
        assert held_sim.get_job_status(second).state == JobState.CANCELED
        with pytest.raises(JobCanceledError):
            held_sim.wait_for_job(second)

        success, _ = held_sim.cancel_job(first)
        assert success is False
        held_sim.hold.release.set()
        held_sim.wait_for_job(first, max_wait=30)

    def test_remove_job(self, held_sim):
        cid = make_bell(held_sim)
        job_id = held_sim.submit_job(cid, "statevector", 10)
        assert held_sim.hold.started.wait(5)
        with pytest.raises(JobNotCompletedError):
            held_sim.remove_job(job_id)

        held_sim.hold.release.set()
        held_sim.wait_for_job(job_id, max_wait=30)
        held_sim.remove_job(job_id)
        assert held_sim.list_jobs() == []
        with pytest.raises(JobNotFoundError):
            held_sim.get_job_result(job_id)

    def test_shutdown_cancels_queued(self, held_sim):
        cid = make_bell(held_sim)
        first = held_sim.submit_job(cid, "statevector", 10)
        assert held_sim.hold.started.wait(5)
        queued = held_sim.submit_job(cid, "statevector", 10)
        held_sim.shutdown(wait=False)
        held_sim.hold.release.set()
        held_sim.wait_for_job(first, max_wait=30)
        assert held_sim.get_job_status(first).state == JobState.COMPLETED
        assert held_sim.get_job_status(queued).state == JobState.CANCELED
        assert held_sim.stats().jobs_canceled == 1

    def test_wait_timeout(self, held_sim):
        job_id = held_sim.submit_job(make_bell(held_sim), "statevector", 10)
        assert held_sim.hold.started.wait(5)
        with pytest.raises(TimeoutError):
            held_sim.wait_for_job(job_id, max_wait=0.05)

    def test_two_concurrent_jobs_independent(self, sim):
        assert sim.num_workers >= 2
        a = sim.create_circuit("zero", 2, 2)
        sim.add_gate(a, "x", [1])
        b = sim.create_circuit("plus", 1, 1)
        sim.add_gate(b, "h", [0])
        ja = sim.submit_job(a, "statevector", 300)
        jb = sim.submit_job(b, "statevector", 3000)
        ra = sim.wait_for_job(ja, max_wait=30)
        rb = sim.wait_for_job(jb, max_wait=30)
        assert ra.counts == {0b10: 300}
        assert set(rb.counts) == {0, 1}
        assert sum(rb.counts.values()) == 3000


class TestBackends:
    def test_list_backends(self, sim):
        ids = {b.backend_id for b in sim.list_backends()}
        assert ids == {"statevector", "shot_simulator"}

    def test_get_backend_info(self, sim):
        info = sim.get_backend_info("statevector")
        assert info.is_available
        assert len(info.supported_gates) > 0

    def test_get_backend_info_not_found(self, sim):
        with pytest.raises(UnknownBackendError):
            sim.get_backend_info("nonexistent")

    def test_custom_backends(self):
        tiny = BackendInfo("tiny", "Tiny", "simulator", max_qubits=2, max_shots=100)
        with Simulator(SimulatorConfig(num_workers=1), backends=[tiny]) as sim:
            assert [b.backend_id for b in sim.list_backends()] == ["tiny"]
            cid = sim.create_circuit("c", 3, 0)
            with pytest.raises(CapacityExceededError):
                sim.submit_job(cid, "tiny", 1)


class TestNoise:
    def test_noise_disabled_by_default(self, sim):
        assert not sim.noise_model.enabled

    def test_enable_noise(self, sim):
        sim.enable_noise()
        assert sim.noise_model.enabled
        sim.enable_noise(False)
        assert not sim.noise_model.enabled

    def test_readout_noise_applies_when_enabled(self, sim):
        sim.set_noise_model(NoiseModel(
            depolarization_rate=0.0, bit_flip_rate=0.0, phase_flip_rate=0.0,
            readout_error_0to1=0.25, readout_error_1to0=0.0, enabled=True,
        ))
        cid = sim.create_circuit("zero", 1, 1)
        sim.add_gate(cid, "i", [0])
        result = sim.run(cid, "statevector", 8000)
        assert 1600 < result.counts.get(1, 0) < 2400

    def test_ideal_run_is_exact_without_noise(self, sim):
        cid = sim.create_circuit("x", 1, 1)
        sim.add_gate(cid, "x", [0])
        assert sim.run(cid, "shot_simulator", 1000).counts == {1: 1000}

    def test_gate_noise_with_certain_bit_flip(self, sim):
        sim.set_noise_model(NoiseModel(
            depolarization_rate=0.0, bit_flip_rate=1.0, phase_flip_rate=0.0,
            readout_error_0to1=0.0, readout_error_1to0=0.0, enabled=True,
        ))
        cid = sim.create_circuit("x", 1, 1)
        sim.add_gate(cid, "x", [0])
        # X followed by a certain bit flip leaves |0⟩
        assert sim.run(cid, "statevector", 100).counts == {0: 100}


class TestLifecycle:
    def test_context_manager_shuts_down(self):
        with Simulator(SimulatorConfig(num_workers=1)) as sim:
            cid = make_bell(sim)
        with pytest.raises(SubmissionError):
            sim.submit_job(cid, "statevector", 10)

    def test_instances_are_isolated(self):
        with Simulator(SimulatorConfig(num_workers=1)) as a, Simulator(SimulatorConfig(num_workers=1)) as b:
            cid = make_bell(a)
            assert b.list_circuits() == []
            with pytest.raises(CircuitNotFoundError):
                b.circuit(cid)

    def test_stats(self, sim):
        sim.run(make_bell(sim), "statevector", 100)
        stats = sim.stats()
        assert stats.circuits_executed == 1
        assert stats.total_shots == 100
        assert stats.gates_executed == 2

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("QENGINE_NUM_WORKERS", "1")
        with Simulator.from_env() as sim:
            assert sim.num_workers == 1


def test_hadamard_twice_through_engine(sim):
    cid = sim.create_circuit("hh", 1, 1)
    sim.add_gate(cid, "h", [0])
    sim.add_gate(cid, "h", [0])
    state = sim.run_statevector(cid)
    np.testing.assert_allclose(state.amplitudes, [1, 0], atol=1e-12)
    assert sim.run(cid, "statevector", 200).counts == {0: 200}


def test_rotation_statistics(sim):
    theta = 2 * math.asin(math.sqrt(0.3))
    cid = sim.create_circuit("ry", 1, 1)
    sim.add_gate(cid, "ry", [0], [theta])
    counts = sim.run(cid, "statevector", 20000).counts
    assert counts[1] / 20000 == pytest.approx(0.3, abs=0.02)
