"""Exception hierarchy for bwhmm."""


class HMMError(Exception):
    """Base exception for bwhmm."""
    pass


class InvalidModelError(HMMError, ValueError):
    """HMM parameters are malformed (shapes, negative or unnormalised rows)."""
    pass


class EmptyCorpusError(HMMError, ValueError):
    """No observation sequences were supplied for learning."""
    pass


class InvalidIterationCountError(HMMError, ValueError):
    """Number of learning iterations is negative."""
    pass


class SequenceTooShortError(HMMError, ValueError):
    """Observation sequence has fewer than two observations."""

    def __init__(self, message: str = "Observation sequence too short",
                 sequence_index: int | None = None):
        if sequence_index is not None:
            message = f"{message} (sequence {sequence_index})"
        super().__init__(message)
        self.sequence_index = sequence_index


class ZeroProbabilityError(HMMError, ArithmeticError):
    """Sequence has zero (or unrepresentable) probability under the model."""

    def __init__(self, message: str = "Sequence has zero probability under the model",
                 sequence_index: int | None = None):
        if sequence_index is not None:
            message = f"{message} (sequence {sequence_index})"
        super().__init__(message)
        self.sequence_index = sequence_index


class InvalidObservationError(HMMError, ValueError):
    """Observation lies outside the support of an emission distribution."""
    pass


class PrecisionError(HMMError, RuntimeError):
    """Requested floating-point precision is unavailable in the JAX runtime."""
    pass
