"""
Baum-Welch re-estimation.

The E-step is occupation_stats(): gamma (state occupation per time step) and
gap-gamma (joint occupation of consecutive time steps), computed from the
scaled forward and backward passes. The M-step is reestimate(), which turns
them into a new Model of the same representation as the old one.

One call to baum_welch_step() is exactly one EM iteration. baum_welch() runs
a fixed number of iterations; deciding when to stop is up to the caller.
"""

import warnings
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from genehmm.core.config import Tolerance
from genehmm.core.errors import DegenerateComputationWarning, ShapeError
from genehmm.core.matrix import Cube, Matrix
from genehmm.core.model import Model
from genehmm.inference.solve import backward, forward, log_likelihood


def _values(m) -> np.ndarray:
    return m.values if isinstance(m, (Matrix, Cube)) else np.asarray(m, dtype=np.float64)


def _symbol(observation) -> Hashable:
    return observation.item() if isinstance(observation, np.generic) else observation


def occupation_stats(observations: Sequence, model: Model,
                     alpha, beta) -> Tuple[Cube, Matrix]:
    """
    Compute gap-gamma and gamma from scaled alpha and beta.

    For t in [0, T-2]:
        gap_gamma[t][i][j] = alpha[t][i] * trans(i, j) * emit(j, o[t+1]) * beta[t+1][j] / denom
        gamma[t][i] = sum_j gap_gamma[t][i][j]
    and gamma[T-1] = alpha[T-1] normalized to sum to 1.

    A zero denominator means no state sequence fits the observations; the
    affected entries are NaN and a DegenerateComputationWarning is issued.

    Args:
        observations: Observation sequence, length T
        model: HMM that produced alpha and beta
        alpha: (T x N) scaled forward probabilities
        beta: (T x N) scaled backward probabilities

    Returns:
        gap_gamma: Cube of T-1 layers, each N x N
        gamma: (T x N) Matrix
    """
    a = _values(alpha)
    b = _values(beta)
    T, n = len(observations), model.n
    if T == 0:
        raise ValueError("need at least one observation")
    for name, arr in (('alpha', a), ('beta', b)):
        if arr.shape != (T, n):
            raise ShapeError(f"got {name} of shape {arr.shape}; need {(T, n)}")

    emit = model.emission_rows(observations)
    trans = model.transition_array()

    gap_gamma = Cube.with_dims(n, n, T - 1)
    gamma = Matrix.with_dims(T, n)
    gg = gap_gamma.values
    g = gamma.values

    with np.errstate(divide='ignore', invalid='ignore'):
        for t in range(T - 1):
            num = a[t][:, np.newaxis] * trans * (emit[t + 1] * b[t + 1])[np.newaxis, :]
            denom = num.sum()
            if not denom > 0:
                _warn_zero_denominator(t)
            gg[t] = num / denom
            g[t] = gg[t].sum(axis=1)

        # No gap-gamma past the last observation
        last = a[T - 1]
        total = last.sum()
        if not total > 0:
            _warn_zero_denominator(T - 1)
        g[T - 1] = last / total

    return gap_gamma, gamma


def _warn_zero_denominator(t: int):
    warnings.warn(
        f"gamma denominator is not positive at t={t}: no state sequence is consistent "
        f"with the observations; gamma contains NaN",
        DegenerateComputationWarning,
        stacklevel=3,
    )


def reestimate(gap_gamma, gamma, observations: Sequence, model: Model,
               tolerance: Optional[Tolerance] = None) -> Model:
    """
    Baum-Welch M-step.

    - start = gamma[0]
    - trans[i][j] = sum_t gap_gamma[t][i][j] / sum_t gamma[t][i], t in [0, T-2]
    - emit[i][o] = sum_{t: o[t] = o} gamma[t][i] / sum_t gamma[t][i], all t

    Args:
        gap_gamma: (T-1) x N x N statistics from occupation_stats()
        gamma: T x N statistics from occupation_stats()
        observations: The observation sequence they were computed from
        model: The model they were computed with; fixes the state order and
            the representation (dense or sparse) of the result
        tolerance: Tolerance for the new model (default: model.tolerance)

    Returns:
        A new Model. Construction re-validates stochasticity.
    """
    gg = _values(gap_gamma)
    g = _values(gamma)
    T, n = len(observations), model.n
    if T < 2:
        raise ValueError(f"need at least 2 observations to re-estimate transitions, got {T}")
    if g.shape != (T, n):
        raise ShapeError(f"got gamma of shape {g.shape}; need {(T, n)}")
    if gg.shape != (T - 1, n, n):
        raise ShapeError(f"got gap_gamma of shape {gg.shape}; need {(T - 1, n, n)}")

    symbols = list(dict.fromkeys(_symbol(o) for o in observations))
    column = {symbol: k for k, symbol in enumerate(symbols)}

    emit_counts = np.zeros((n, len(symbols)))
    for t, obs in enumerate(observations):
        emit_counts[:, column[_symbol(obs)]] += g[t]

    with np.errstate(divide='ignore', invalid='ignore'):
        start = g[0].copy()
        trans = gg.sum(axis=0) / g[:-1].sum(axis=0)[:, np.newaxis]
        emit = emit_counts / g.sum(axis=0)[:, np.newaxis]

    states = model.states
    return Model(
        model.starter.rebuild(states, start),
        model.emitter.rebuild(states, symbols, emit),
        model.transor.rebuild(states, trans),
        tolerance=tolerance if tolerance is not None else model.tolerance,
    )


def baum_welch_step(observations: Sequence, model: Model) -> Tuple[Model, float]:
    """
    One EM iteration: forward, backward, occupation statistics, re-estimate.

    Returns:
        new_model: Re-estimated model
        log_prob: Natural-log likelihood of observations under the OLD model
    """
    alpha, coefs = forward(observations, model)
    beta = backward(observations, model, coefs)
    gap_gamma, gamma = occupation_stats(observations, model, alpha, beta)
    return reestimate(gap_gamma, gamma, observations, model), log_likelihood(coefs)


class TrainingMonitor:
    """
    Log-likelihood trace of a baum_welch() run.

    history[k] is the natural-log likelihood of the observations under the
    model going INTO iteration k, so the final re-estimated model is not
    scored. Under EM the trace is non-decreasing up to rounding.
    """

    def __init__(self):
        self.history: List[float] = []

    @property
    def n_iter(self) -> int:
        return len(self.history)

    def improvement(self) -> float:
        """Log-likelihood gained between the first and last recorded iteration."""
        if len(self.history) < 2:
            return 0.0
        return self.history[-1] - self.history[0]


def baum_welch(observations: Sequence, model: Model, n_iter: int = 10,
               verbose: bool = False, desc: str = "EM") -> Tuple[Model, TrainingMonitor]:
    """
    Run exactly n_iter Baum-Welch iterations.

    There is no convergence test; inspect monitor.history (log-likelihood of
    the model going into each iteration) to decide whether to continue.

    Args:
        observations: Observation sequence
        model: Initial model
        n_iter: Number of EM iterations
        verbose: Show progress bar
        desc: Description for progress bar

    Returns:
        (model, monitor)
    """
    monitor = TrainingMonitor()

    iterator = tqdm(range(n_iter), desc=desc, leave=False, disable=not verbose)
    for _ in iterator:
        model, log_prob = baum_welch_step(observations, model)
        monitor.history.append(log_prob)
        if verbose:
            iterator.set_postfix({'logprob': f'{log_prob:.4e}'})

    return model, monitor
