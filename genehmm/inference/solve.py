"""
genehmm inference engine

Provides:
1. Scaled forward pass (alpha) and the sequence likelihood it implies
2. Scaled backward pass (beta), sharing the forward pass's coefficients
3. Viterbi decoding of the most probable hidden-state path

The forward and backward passes rescale every time step so that values stay
in float range for arbitrarily long sequences. Viterbi works in log2 space.
All three go through the Model's distributions, so they run unchanged over
dense and sparse models.
"""

import warnings
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from genehmm.core.errors import DegenerateComputationWarning, ShapeError
from genehmm.core.matrix import Matrix
from genehmm.core.model import Model


def _require_observations(observations: Sequence):
    if len(observations) == 0:
        raise ValueError("need at least one observation")


def _warn_degenerate(what: str, t: int):
    warnings.warn(
        f"{what} normalizer is not positive at t={t}: no state sequence is consistent "
        f"with the observations; results contain inf/NaN",
        DegenerateComputationWarning,
        stacklevel=3,
    )


# =============================================================================
# Forward / backward
# =============================================================================

def forward(observations: Sequence, model: Model) -> Tuple[Matrix, np.ndarray]:
    """
    Scaled forward algorithm.

    Args:
        observations: Observation sequence, length T >= 1
        model: HMM

    Returns:
        alpha: (T x N) Matrix; every row is rescaled to sum to 1
        coefs: (T,) reciprocals of each row's raw sum
    """
    _require_observations(observations)

    emit = model.emission_rows(observations)
    trans = model.transition_array()
    T, n = emit.shape

    alpha = Matrix.with_dims(T, n)
    a = alpha.values
    coefs = np.empty(T)

    warned = False
    with np.errstate(divide='ignore', invalid='ignore'):
        for t in range(T):
            if t == 0:
                row = model.start_array() * emit[0]
            else:
                row = (a[t - 1] @ trans) * emit[t]
            total = row.sum()
            if not total > 0 and not warned:
                _warn_degenerate('forward', t)
                warned = True
            coefs[t] = 1.0 / total
            a[t] = row * coefs[t]

    return alpha, coefs


def likelihood(coefs: Iterable[float]) -> float:
    """
    Probability of the observation sequence, recovered from the forward
    pass's scaling coefficients: 2 ** -sum(log2(coef)).

    Underflows to 0.0 for long sequences; use log_likelihood() there.
    """
    with np.errstate(divide='ignore'):
        return float(np.exp2(-np.sum(np.log2(np.asarray(coefs, dtype=np.float64)))))


def log_likelihood(coefs: Iterable[float]) -> float:
    """Natural log of the sequence probability: -sum(ln(coef))."""
    with np.errstate(divide='ignore'):
        return float(-np.sum(np.log(np.asarray(coefs, dtype=np.float64))))


def backward(observations: Sequence, model: Model, coefs) -> Matrix:
    """
    Scaled backward algorithm.

    Reuses the forward pass's coefficients so that alpha and beta share one
    scale, which gamma needs.

    Args:
        observations: Observation sequence, length T
        model: HMM
        coefs: (T,) coefficients from forward()

    Returns:
        beta: (T x N) Matrix
    """
    _require_observations(observations)
    coefs = np.asarray(coefs, dtype=np.float64)
    if coefs.shape != (len(observations),):
        raise ShapeError(
            f"got {coefs.shape[0] if coefs.ndim else 0} coefficients for "
            f"{len(observations)} observations"
        )

    emit = model.emission_rows(observations)
    trans = model.transition_array()
    T, n = emit.shape

    beta = Matrix.with_dims(T, n)
    b = beta.values

    with np.errstate(invalid='ignore', over='ignore'):
        b[T - 1] = coefs[T - 1]
        for t in range(T - 2, -1, -1):
            b[t] = coefs[t] * (trans @ (emit[t + 1] * b[t + 1]))

    return beta


# =============================================================================
# Viterbi
# =============================================================================

class _Path:
    """Best state history ending in one hidden state, and its log2 score."""

    __slots__ = ('states', 'p')

    def __init__(self, states: List[int], p: float):
        self.states = states
        self.p = p


def _log2(values: np.ndarray) -> np.ndarray:
    # Exact zeros become -inf; nothing downstream subtracts, so no NaN
    with np.errstate(divide='ignore'):
        return np.log2(values)


def _best_path(scores: Iterable[float]) -> Tuple[int, float]:
    """First index with the strictly greatest score (ties go to the lowest)."""
    best_state, best = 0, -np.inf
    for i, p in enumerate(scores):
        if p > best:
            best_state, best = i, p
    return best_state, best


def viterbi_with_score(observations: Sequence, model: Model) -> Tuple[list, float]:
    """
    Viterbi algorithm for most likely state sequence.

    Returns:
        path: Most likely hidden-state sequence (model states), length T
        log2_prob: log2 probability of that path
    """
    _require_observations(observations)

    log_start = _log2(model.start_array())
    log_trans = _log2(model.transition_array())
    log_emit = _log2(model.emission_rows(observations))
    n = model.n

    paths = [_Path([], log_start[i] + log_emit[0, i]) for i in range(n)]

    for t in range(1, len(observations)):
        choices = []
        for i in range(n):
            emit = log_emit[t, i]
            choices.append(_best_path(
                path.p + log_trans[prev, i] + emit
                for prev, path in enumerate(paths)
            ))

        # Copies must read the previous step's histories before any of them
        # is extended in place below.
        copies = {i: paths[prev].states + [prev]
                  for i, (prev, _) in enumerate(choices) if prev != i}
        for i, (prev, p) in enumerate(choices):
            if i in copies:
                paths[i].states = copies[i]
            else:
                paths[i].states.append(prev)
            paths[i].p = p

    end, log2_prob = _best_path(path.p for path in paths)
    best = paths[end].states
    best.append(end)

    return [model.states[k] for k in best], float(log2_prob)


def viterbi(observations: Sequence, model: Model) -> list:
    """
    Predict most likely state sequence using the Viterbi algorithm.

    Args:
        observations: Observation sequence, length T >= 1
        model: HMM

    Returns:
        Hidden-state sequence of length T
    """
    path, _ = viterbi_with_score(observations, model)
    return path
