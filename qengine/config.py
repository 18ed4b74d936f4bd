"""Simulator configuration.

Values can be passed explicitly or read from the environment::

    QENGINE_NUM_WORKERS      worker threads in the job pool (default 4)
    QENGINE_MEMORY_LIMIT_MB  ceiling for a single state vector (default 1024)
    QENGINE_NORM_TOLERANCE   allowed drift of the state norm (default 1e-6)
    QENGINE_SEED             seed for measurement sampling (default: unseeded)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .exceptions import ValidationError

_MB = 1024 * 1024


@dataclass(frozen=True)
class SimulatorConfig:
    """Startup configuration for a :class:`~qengine.simulator.Simulator`.

    Args:
        num_workers: Size of the worker pool; fixed for the simulator's lifetime.
        memory_limit_bytes: Largest state vector a worker may allocate.
        norm_tolerance: Maximum allowed |Σ|a|² − 1| after any gate.
        default_shots: Shot count used when a caller passes ``shots=None``.
        poll_interval: Seconds between status polls in ``wait_for_job``.
        seed: Base seed for job RNGs. ``None`` draws fresh entropy.
    """

    num_workers: int = 4
    memory_limit_bytes: int = 1024 * _MB
    norm_tolerance: float = 1e-6
    default_shots: int = 1024
    poll_interval: float = 0.05
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.num_workers < 1:
            raise ValidationError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.memory_limit_bytes <= 0:
            raise ValidationError(
                f"memory_limit_bytes must be > 0, got {self.memory_limit_bytes}"
            )
        if not 0.0 < self.norm_tolerance < 1.0:
            raise ValidationError(
                f"norm_tolerance must be in (0, 1), got {self.norm_tolerance}"
            )
        if self.default_shots < 0:
            raise ValidationError(f"default_shots must be >= 0, got {self.default_shots}")
        if self.poll_interval <= 0:
            raise ValidationError(f"poll_interval must be > 0, got {self.poll_interval}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SimulatorConfig":
        """Build a config from ``QENGINE_*`` environment variables.

        Unset variables keep their defaults.

        Raises:
            ValidationError: If a variable is set but cannot be parsed.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        workers = _read(env, "QENGINE_NUM_WORKERS", int)
        if workers is not None:
            kwargs["num_workers"] = workers
        limit_mb = _read(env, "QENGINE_MEMORY_LIMIT_MB", int)
        if limit_mb is not None:
            kwargs["memory_limit_bytes"] = limit_mb * _MB
        tolerance = _read(env, "QENGINE_NORM_TOLERANCE", float)
        if tolerance is not None:
            kwargs["norm_tolerance"] = tolerance
        seed = _read(env, "QENGINE_SEED", int)
        if seed is not None:
            kwargs["seed"] = seed

        return cls(**kwargs)


def _read(env: Mapping[str, str], name: str, parse):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return parse(raw)
    except ValueError as exc:
        raise ValidationError(f"{name}={raw!r} is not a valid {parse.__name__}") from exc
