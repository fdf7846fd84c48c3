"""
Supervised training from labeled paths.

Each training path is a sequence of (hidden state, observation) pairs. Starts,
emissions and transitions are counted directly and each distribution is
normalized row by row. Paths are independent: the last point of one path is
never connected to the first point of the next.
"""

from collections import defaultdict
from typing import Dict, Hashable, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from genehmm.core.config import DEFAULT_TOLERANCE, Tolerance
from genehmm.core.distributions import _as_index
from genehmm.core.errors import UnknownObservationError, UnknownStateError
from genehmm.core.model import Model

LabeledPath = Sequence[Tuple[Hashable, Hashable]]
Overrides = Mapping[Tuple[Hashable, Hashable], float]


def _stochast(row: Mapping) -> Dict:
    """Divide every count in row by the row total (empty rows stay empty)."""
    total = sum(row.values())
    if total == 0:
        return {}
    return {key: count / total for key, count in row.items()}


def train_supervised(paths: Iterable[LabeledPath],
                     overrides: Optional[Overrides] = None,
                     tolerance: Tolerance = DEFAULT_TOLERANCE,
                     verbose: bool = False) -> Model:
    """
    Train a sparse (hash-keyed) model by counting labeled paths.

    Args:
        paths: Labeled paths, each a sequence of (state, observation)
        overrides: Optional {(source, target): probability}. Each entry
            replaces that single normalized transition probability.
        tolerance: Tolerance for the resulting model
        verbose: Show progress bar

    Returns:
        Model over the states seen, in first-seen order. Pairs that never
        co-occurred have probability 0.

    Raises:
        ValueError: if no path has any points
        ModelError: if the counts (or overrides) do not give a valid model,
            e.g. a state that never transitions out of itself
    """
    start_counts: Dict[Hashable, float] = defaultdict(float)
    emit_counts: Dict[Hashable, Dict[Hashable, float]] = {}
    trans_counts: Dict[Hashable, Dict[Hashable, float]] = {}

    for path in tqdm(paths, desc="Counting paths", disable=not verbose):
        prev = None
        for i, (state, observation) in enumerate(path):
            if i == 0:
                start_counts[state] += 1
            else:
                trans_counts[prev][state] = trans_counts[prev].get(state, 0.0) + 1
            row = emit_counts.setdefault(state, {})
            row[observation] = row.get(observation, 0.0) + 1
            trans_counts.setdefault(state, {})
            prev = state

    if not start_counts:
        raise ValueError("no labeled points to train on")

    states = list(trans_counts)
    n_paths = sum(start_counts.values())
    start = {state: start_counts.get(state, 0.0) / n_paths for state in states}
    emission = {state: _stochast(emit_counts[state]) for state in states}
    transition = {state: _stochast(trans_counts[state]) for state in states}

    for (source, target), p in (overrides or {}).items():
        transition.setdefault(source, {})[target] = float(p)

    return Model.from_dicts(start, transition, emission, tolerance=tolerance)


def train_supervised_dense(n: int, m: int,
                           paths: Iterable[LabeledPath],
                           overrides: Optional[Overrides] = None,
                           tolerance: Tolerance = DEFAULT_TOLERANCE,
                           verbose: bool = False) -> Model:
    """
    Train a dense model over states 0..n-1 and observations 0..m-1.

    Same counting as train_supervised(), into an n-vector and n x m / n x n
    matrices. Rows with no counts stay all-zero.

    Raises:
        UnknownStateError / UnknownObservationError: for labels out of range
    """
    starts = np.zeros(n)
    emit = np.zeros((n, m))
    trans = np.zeros((n, n))

    for path in tqdm(paths, desc="Counting paths", disable=not verbose):
        prev = -1
        for i, (state, observation) in enumerate(path):
            s = _as_index(state, n)
            if s < 0:
                raise UnknownStateError(state, 'dense trainer', f"states are 0..{n - 1}")
            o = _as_index(observation, m)
            if o < 0:
                raise UnknownObservationError(observation, m)
            if i == 0:
                starts[s] += 1
            else:
                trans[prev, s] += 1
            emit[s, o] += 1
            prev = s

    if starts.sum() == 0:
        raise ValueError("no labeled points to train on")

    starts /= starts.sum()
    for counts in (emit, trans):
        totals = counts.sum(axis=1, keepdims=True)
        np.divide(counts, totals, out=counts, where=totals > 0)

    for (source, target), p in (overrides or {}).items():
        i, j = _as_index(source, n), _as_index(target, n)
        if i < 0 or j < 0:
            bad = source if i < 0 else target
            raise UnknownStateError(bad, 'transition override', f"states are 0..{n - 1}")
        trans[i, j] = p

    return Model.from_arrays(starts, trans, emit, tolerance=tolerance)
