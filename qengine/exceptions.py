"""Exceptions for the qengine simulator."""


class QEngineError(Exception):
    """Base exception for qengine errors."""
    pass


class ValidationError(QEngineError):
    """Raised when a construction-time argument is rejected."""
    pass


class InvalidGateError(ValidationError):
    """Raised when a gate's tag, parameter count or target count is wrong."""
    pass


class OutOfRangeError(ValidationError):
    """Raised when a qubit or classical bit index is outside the circuit."""
    pass


class CircuitNotFoundError(QEngineError):
    """Raised when a circuit id does not resolve."""
    pass


class CircuitFrozenError(QEngineError):
    """Raised when appending to a circuit that a running job references."""
    pass


class JobNotFoundError(QEngineError):
    """Raised when a job is not found."""
    pass


class JobNotCompletedError(QEngineError):
    """Raised when attempting to get results for a non-completed job."""
    pass


class SubmissionError(QEngineError):
    """Raised when a job is rejected at submission time."""
    pass


class CapacityExceededError(SubmissionError):
    """Raised when a circuit or shot count exceeds a backend's capacity."""
    pass


class UnknownBackendError(SubmissionError):
    """Raised when a backend is not found."""
    pass


class BackendUnavailableError(SubmissionError):
    """Raised when a backend exists but is marked unavailable."""
    pass


class SimulationError(QEngineError):
    """Raised inside a worker while a job is executing."""
    pass


class ResourceExhaustedError(SimulationError):
    """Raised when a state vector would not fit the qubit or memory ceiling."""
    pass


class InvariantViolationError(SimulationError):
    """Raised when the state norm drifts beyond tolerance after a gate."""
    pass


class JobFailedError(QEngineError):
    """Raised when waiting on a job that ended in FAILED."""
    pass


class JobCanceledError(QEngineError):
    """Raised when waiting on a job that was canceled."""
    pass
