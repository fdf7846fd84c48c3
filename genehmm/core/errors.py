"""Exceptions and warnings raised by genehmm."""

from typing import Any, Optional


class HMMError(Exception):
    """Base class for all genehmm errors."""


class ShapeError(HMMError, ValueError):
    """A container has ragged rows or does not match the shape it must have."""


class ModelError(HMMError, ValueError):
    """
    A model failed one of its construction checks.

    Attributes:
        check: Short name of the failed check (e.g. 'transition_stochastic')
        observed: What was found (shape, count, offending state or row sum)
        required: What the check needed
    """

    def __init__(self, message: str, check: str,
                 observed: Any = None, required: Any = None):
        super().__init__(message)
        self.check = check
        self.observed = observed
        self.required = required


class UnknownStateError(HMMError, LookupError):
    """A distribution was queried with a state outside its domain."""

    def __init__(self, state: Any, distribution: str, detail: Optional[str] = None):
        message = f"{distribution} has no state {state!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.state = state
        self.distribution = distribution


class UnknownObservationError(HMMError, LookupError):
    """A dense emitter was queried with an observation it cannot index."""

    def __init__(self, observation: Any, n_observations: int):
        super().__init__(
            f"observation {observation!r} is outside the emission alphabet "
            f"0..{n_observations - 1}"
        )
        self.observation = observation
        self.n_observations = n_observations


class DegenerateComputationWarning(RuntimeWarning):
    """
    A normalizer was zero: no state sequence in the model is consistent with
    the observations. The affected values are inf/NaN.
    """
