"""Configuration dataclasses for bwhmm learning."""

from dataclasses import dataclass

import jax
import jax.numpy as jnp

from bwhmm.errors import InvalidIterationCountError, PrecisionError

# Forward-backward computation strategies:
#   direct: unscaled linear-space recurrences (short sequences only)
#   scaled: alpha/beta renormalised at every timestep
#   log:    all arithmetic in log space
COMPUTATION_TYPES = ("direct", "scaled", "log")
DEFAULT_COMPUTATION = "scaled"

DEFAULT_N_ITERATIONS = 9

# Model parameters are stored in double precision unless asked otherwise
DEFAULT_DTYPE = jnp.float64

# Tolerance for "rows sum to one" checks on model parameters
STOCHASTIC_ATOL = 1e-6

# Lower bound on fitted Gaussian variances
VARIANCE_FLOOR = 1e-8


def check_computation(computation: str) -> str:
    """Return computation unchanged, or raise ValueError if unknown."""
    if computation not in COMPUTATION_TYPES:
        raise ValueError(
            f"Unknown computation {computation!r}; "
            f"expected one of {COMPUTATION_TYPES}"
        )
    return computation


def _x64_enabled() -> bool:
    return jax.dtypes.canonicalize_dtype(jnp.float64) == jnp.float64


def resolve_dtype(dtype=None):
    """Floating dtype for model parameters, DEFAULT_DTYPE when None.

    JAX silently truncates float64 to float32 unless jax_enable_x64 is set,
    so asking for float64 without it is an error rather than a downgrade.

    Raises:
        PrecisionError: float64 requested while jax_enable_x64 is off.
        ValueError: dtype is not a floating type.
    """
    dtype = jnp.dtype(DEFAULT_DTYPE if dtype is None else dtype)
    if not jnp.issubdtype(dtype, jnp.floating):
        raise ValueError(f"dtype must be a floating type, got {dtype}")
    if dtype == jnp.float64 and not _x64_enabled():
        raise PrecisionError(
            "float64 parameters need jax.config.update('jax_enable_x64', True); "
            "pass dtype=jnp.float32 to work in single precision"
        )
    return dtype


@dataclass(frozen=True)
class LearnerConfig:
    """Baum-Welch learning configuration."""
    n_iterations: int = DEFAULT_N_ITERATIONS
    computation: str = DEFAULT_COMPUTATION
    tol: float | None = None  # Relative log-likelihood change; None = fixed count
    n_workers: int = 1  # Threads for the per-sequence E-step

    def __post_init__(self):
        if self.n_iterations < 0:
            raise InvalidIterationCountError(
                f"Positive number of iterations expected, got {self.n_iterations}"
            )
        check_computation(self.computation)
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")
        if self.tol is not None and self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
