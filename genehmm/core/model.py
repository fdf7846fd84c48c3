"""
genehmm Model

An immutable composition of one Starter, one Emitter and one Transor.
All consistency checks run at construction; a Model that exists is valid.
Re-estimation never mutates a Model, it builds a new one.
"""

from typing import Any, Dict, Hashable, Sequence, Tuple

import numpy as np

from genehmm.core.config import DEFAULT_TOLERANCE, Tolerance
from genehmm.core.distributions import (
    DenseEmitter,
    DenseStarter,
    DenseTransor,
    Emitter,
    SparseEmitter,
    SparseStarter,
    SparseTransor,
    Starter,
    Transor,
)
from genehmm.core.errors import ModelError, UnknownStateError


class Model:
    """
    Hidden Markov Model over hidden states S and observations O.

    The state set is taken once from transor.states() (distinct values, in
    the order returned) and every algorithm indexes states through
    model.states.

    Raises:
        ModelError: if any construction check fails. The error's `check`,
            `observed` and `required` attributes identify the failure.
    """

    def __init__(self, starter: Starter, emitter: Emitter, transor: Transor,
                 tolerance: Tolerance = DEFAULT_TOLERANCE):
        self._starter = starter
        self._emitter = emitter
        self._transor = transor
        self._tolerance = tolerance

        self._states = tuple(dict.fromkeys(transor.states()))
        n = len(self._states)

        if n <= 1:
            raise ModelError(
                f"got {n} hidden states in transform dist; need > 1",
                check='n_states', observed=n, required='> 1')

        if isinstance(transor, DenseTransor) and transor.shape != (n, n):
            rows, cols = transor.shape
            raise ModelError(
                f"got {rows}x{cols} transform dist; need {n}x{n}",
                check='transition_shape', observed=(rows, cols), required=(n, n))

        if isinstance(starter, DenseStarter) and len(starter) != n:
            raise ModelError(
                f"got {len(starter)} hidden states in initial dist; need N={n}",
                check='start_shape', observed=len(starter), required=n)

        if isinstance(emitter, DenseEmitter) and emitter.shape[0] != n:
            raise ModelError(
                f"got {emitter.shape[0]} emissions dists; need N={n}",
                check='emission_shape', observed=emitter.shape[0], required=n)

        if isinstance(emitter, DenseEmitter) and emitter.shape[1] <= 1:
            raise ModelError(
                f"got {emitter.shape[1]} possible emissions; need > 1",
                check='emission_symbols', observed=emitter.shape[1], required='> 1')

        self._start = self._build_start()
        self._transition = self._build_transition()

        for state in self._states:
            if not emitter.knows(state):
                raise ModelError(
                    f"emissions dist has no row for state {state!r}",
                    check='emission_states', observed=state)
        self._check_emission()

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def _build_start(self) -> np.ndarray:
        start = np.empty(len(self._states))
        for i, state in enumerate(self._states):
            try:
                start[i] = self._starter.startp(state)
            except UnknownStateError as e:
                raise ModelError(
                    f"initial dist has no probability for state {state!r}",
                    check='start_states', observed=state) from e

        _check_range(start, 'initial dist', 'start_range')
        total = float(start.sum())
        if not self._tolerance.sums_to_one(start):
            raise ModelError(
                f"initial dist is not row stochastic (sums to {total!r})",
                check='start_stochastic', observed=total, required=1.0)

        start.setflags(write=False)
        return start

    def _build_transition(self) -> np.ndarray:
        n = len(self._states)
        trans = np.empty((n, n))
        for i, source in enumerate(self._states):
            for j, target in enumerate(self._states):
                try:
                    trans[i, j] = self._transor.transp(source, target)
                except UnknownStateError as e:
                    raise ModelError(
                        f"transform dist has no row for state {source!r}",
                        check='transition_stochastic', observed=source) from e

        _check_range(trans, 'transform dist', 'transition_range')
        for i, row in enumerate(trans):
            if not self._tolerance.sums_to_one(row):
                total = float(row.sum())
                raise ModelError(
                    f"transform dist is not row stochastic "
                    f"(row for state {self._states[i]!r} sums to {total!r})",
                    check='transition_stochastic', observed=total, required=1.0)

        trans.setflags(write=False)
        return trans

    def _check_emission(self):
        # Other Emitter implementations cannot enumerate their rows
        if isinstance(self._emitter, DenseEmitter):
            probs = self._emitter.probs
            rows = [(self._states[i], row) for i, row in enumerate(probs)]
            _check_range(probs, 'emissions dist', 'emission_range')
        elif isinstance(self._emitter, SparseEmitter):
            table = self._emitter.probs
            rows = [(state, np.array(list(table[state].values()), dtype=np.float64))
                    for state in self._states]
            for state, row in rows:
                _check_range(row, f'emissions dist for state {state!r}', 'emission_range')
        else:
            return

        for state, row in rows:
            if not self._tolerance.sums_to_one(row):
                total = float(row.sum())
                raise ModelError(
                    f"emissions dist is not row stochastic "
                    f"(row for state {state!r} sums to {total!r})",
                    check='emission_stochastic', observed=total, required=1.0)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def starter(self) -> Starter:
        return self._starter

    @property
    def emitter(self) -> Emitter:
        return self._emitter

    @property
    def transor(self) -> Transor:
        return self._transor

    @property
    def tolerance(self) -> Tolerance:
        return self._tolerance

    @property
    def states(self) -> Tuple:
        return self._states

    @property
    def n(self) -> int:
        """Number of hidden states."""
        return len(self._states)

    def start_array(self) -> np.ndarray:
        """Read-only (N,) start probabilities in state order."""
        return self._start

    def transition_array(self) -> np.ndarray:
        """Read-only (N, N) transition probabilities in state order."""
        return self._transition

    def emission_column(self, observation) -> np.ndarray:
        """(N,) probabilities of each state emitting observation."""
        return np.array([self._emitter.emitp(state, observation)
                         for state in self._states])

    def emission_rows(self, observations: Sequence) -> np.ndarray:
        """
        (T, N) emission probabilities for a whole observation sequence.

        Columns are looked up once per distinct observation. The cache key
        includes the type, since True == 1 but the two are different symbols.
        """
        out = np.empty((len(observations), len(self._states)))
        seen: Dict[Tuple[type, Hashable], np.ndarray] = {}
        for t, obs in enumerate(observations):
            value = obs.item() if isinstance(obs, np.generic) else obs
            key = (type(value), value)
            column = seen.get(key)
            if column is None:
                column = self.emission_column(obs)
                seen[key] = column
            out[t] = column
        return out

    # -------------------------------------------------------------------------
    # Constructors and serialization
    # -------------------------------------------------------------------------

    @classmethod
    def from_arrays(cls, start, transition, emission,
                    tolerance: Tolerance = DEFAULT_TOLERANCE) -> 'Model':
        """
        Dense model from a start vector, an N x N transition matrix and an
        N x M emission matrix (traditionally pi, A and B).
        """
        return cls(DenseStarter(start), DenseEmitter(emission),
                   DenseTransor(transition), tolerance=tolerance)

    @classmethod
    def from_dicts(cls, start, transition, emission,
                   tolerance: Tolerance = DEFAULT_TOLERANCE) -> 'Model':
        """
        Sparse model from {state: p}, {source: {target: p}} and
        {state: {observation: p}} mappings.
        """
        return cls(SparseStarter(start), SparseEmitter(emission),
                   SparseTransor(transition), tolerance=tolerance)

    @property
    def is_dense(self) -> bool:
        return (isinstance(self._starter, DenseStarter)
                and isinstance(self._emitter, DenseEmitter)
                and isinstance(self._transor, DenseTransor))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize model to dictionary."""
        if self.is_dense:
            return {
                'model_type': 'dense',
                'n_states': self.n,
                'start': self._starter.probs.tolist(),
                'transition': self._transor.probs.tolist(),
                'emission': self._emitter.probs.tolist(),
            }
        if (isinstance(self._starter, SparseStarter)
                and isinstance(self._emitter, SparseEmitter)
                and isinstance(self._transor, SparseTransor)):
            return {
                'model_type': 'sparse',
                'n_states': self.n,
                'start': self._starter.probs,
                'transition': self._transor.probs,
                'emission': self._emitter.probs,
            }
        raise TypeError(
            f"cannot serialize a model mixing {type(self._starter).__name__}, "
            f"{type(self._emitter).__name__} and {type(self._transor).__name__}"
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any],
                  tolerance: Tolerance = DEFAULT_TOLERANCE) -> 'Model':
        """Deserialize model from dictionary."""
        model_type = d.get('model_type', 'dense')
        if model_type == 'dense':
            build = cls.from_arrays
        elif model_type == 'sparse':
            build = cls.from_dicts
        else:
            raise ValueError(f"Unknown model_type: {model_type}")
        return build(d['start'], d['transition'], d['emission'], tolerance=tolerance)

    def __repr__(self) -> str:
        kind = 'dense' if self.is_dense else type(self._transor).__name__
        return f"Model(n={self.n}, states={list(self._states)!r}, {kind})"


def _check_range(values: np.ndarray, name: str, check: str):
    bad = np.flatnonzero((values < 0) | (values > 1) | np.isnan(values))
    if len(bad):
        index = np.unravel_index(bad[0], values.shape)
        index = tuple(int(i) for i in index)
        raise ModelError(
            f"{name} has probability {values[index]!r} outside [0, 1] at {index}",
            check=check, observed=float(values[index]), required=(0.0, 1.0))
