"""Type definitions for the qengine public API."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Dict, List, Optional, Tuple


class JobState(IntEnum):
    """Job execution state."""
    SUBMITTED = 1
    RUNNING = 2
    COMPLETED = 3
    FAILED = 4
    CANCELED = 5


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELED})


@dataclass(frozen=True)
class JobStatus:
    """Point-in-time view of a job's state."""
    state: JobState
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """Check if the job is in a terminal state."""
        return self.state in TERMINAL_STATES


@dataclass
class Job:
    """Job metadata and status snapshot."""
    job_id: object
    circuit_id: object
    backend_id: str
    shots: int
    state: JobState
    submitted_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """Check if the job is in a terminal state."""
        return self.state in TERMINAL_STATES

    @property
    def is_pending(self) -> bool:
        """Check if the job is still pending."""
        return self.state in (JobState.SUBMITTED, JobState.RUNNING)

    @property
    def is_success(self) -> bool:
        """Check if the job completed successfully."""
        return self.state == JobState.COMPLETED


@dataclass
class JobResult:
    """Result of circuit execution.

    ``counts`` maps basis-state index to the number of shots that landed
    there; only non-empty bins are present.
    """
    job_id: object
    counts: Dict[int, int]
    shots: int
    num_qubits: int
    measurements: List[Tuple[int, int]] = field(default_factory=list)
    execution_time_ms: Optional[float] = None

    def histogram(self) -> List[int]:
        """Dense histogram of length 2**num_qubits."""
        dense = [0] * (1 << self.num_qubits)
        for index, count in self.counts.items():
            dense[index] = count
        return dense

    def bitstring_counts(self) -> Dict[str, int]:
        """Counts keyed by bitstring, qubit 0 as the rightmost character."""
        return {
            format(index, f"0{self.num_qubits}b"): count
            for index, count in self.counts.items()
        }

    def classical_counts(self) -> Dict[str, int]:
        """Counts projected onto the classical register via measurement bindings.

        Each binding ``(qubit, bit)`` copies the measured qubit into the
        classical bit; unbound classical bits read 0. Classical bit 0 is the
        rightmost character. Returns an empty dict when there are no bindings.
        """
        if not self.measurements:
            return {}
        width = max(bit for _, bit in self.measurements) + 1
        projected: Dict[str, int] = {}
        for index, count in self.counts.items():
            value = 0
            for qubit, bit in self.measurements:
                if (index >> qubit) & 1:
                    value |= 1 << bit
                else:
                    value &= ~(1 << bit)
            key = format(value, f"0{width}b")
            projected[key] = projected.get(key, 0) + count
        return projected

    def probabilities(self) -> Dict[int, float]:
        """Get the empirical probability of each observed basis index."""
        total = sum(self.counts.values())
        if total == 0:
            return {}
        return {k: v / total for k, v in self.counts.items()}

    def most_frequent(self) -> Optional[Tuple[int, float]]:
        """Get the most frequent basis index and its empirical probability."""
        if not self.counts:
            return None
        total = sum(self.counts.values())
        if total == 0:
            return None
        most = max(self.counts.items(), key=lambda x: x[1])
        return (most[0], most[1] / total)


@dataclass(frozen=True)
class BackendInfo:
    """Backend capabilities and information."""
    backend_id: str
    name: str
    kind: str
    max_qubits: int
    max_shots: int
    gate_fidelity: float = 1.0
    readout_fidelity: float = 1.0
    is_available: bool = True
    supports_custom_gates: bool = True
    supports_noise_model: bool = True
    supported_gates: Tuple[str, ...] = ()
    description: str = ""
