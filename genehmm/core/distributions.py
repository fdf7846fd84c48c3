"""
Probability distributions that make up an HMM.

Three capabilities, each an abstract base class:

- Starter: state -> start probability
- Emitter: (state, observation) -> emission probability
- Transor: (source, target) -> transition probability, plus the state set

Each capability has two representations:

1. Dense: numpy arrays indexed by small integers (states 0..N-1,
   observations 0..M-1). Fast path for discrete numeric alphabets.
2. Sparse: nested dicts keyed by any hashable state/observation type.
   A known state with an unseen target/observation has probability 0;
   an unknown state is an error.

The algorithms only ever go through these interfaces, and only ever index
states through the list a Model captured from Transor.states().
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, List, Mapping, Sequence

import numpy as np

from genehmm.core.errors import ShapeError, UnknownObservationError, UnknownStateError


# =============================================================================
# Capabilities
# =============================================================================

class Starter(ABC):
    """Start (initial) distribution over hidden states."""

    @abstractmethod
    def startp(self, state) -> float:
        """Probability of starting in state."""

    @abstractmethod
    def rebuild(self, states: Sequence, probs: np.ndarray) -> 'Starter':
        """New starter of the same representation with probs[i] for states[i]."""


class Emitter(ABC):
    """Per-state emission distributions over observations."""

    @abstractmethod
    def emitp(self, state, observation) -> float:
        """Probability of state emitting observation."""

    @abstractmethod
    def knows(self, state) -> bool:
        """True if the emitter has a distribution for state."""

    @abstractmethod
    def rebuild(self, states: Sequence, symbols: Sequence,
                probs: np.ndarray) -> 'Emitter':
        """
        New emitter of the same representation.

        Args:
            states: Hidden states, one per row of probs
            symbols: Observations, one per column of probs
            probs: (len(states), len(symbols)) emission probabilities
        """


class Transor(ABC):
    """Transition distribution between hidden states."""

    @abstractmethod
    def transp(self, source, target) -> float:
        """Probability of moving from source to target."""

    @abstractmethod
    def states(self) -> List:
        """All hidden states the distribution knows about."""

    @abstractmethod
    def rebuild(self, states: Sequence, probs: np.ndarray) -> 'Transor':
        """New transor of the same representation with probs[i][j] for states[i] -> states[j]."""


# =============================================================================
# Dense (integer-indexed) representation
# =============================================================================

def _as_index(value: Any, size: int) -> int:
    """Return value as an int in [0, size), or -1 if it cannot be one."""
    if isinstance(value, (bool, np.bool_)):
        return -1
    if not isinstance(value, (int, np.integer)):
        return -1
    value = int(value)
    if 0 <= value < size:
        return value
    return -1


def _frozen(values, ndim: int, name: str) -> np.ndarray:
    arr = np.array(values, dtype=np.float64)
    if ndim == 1 and arr.ndim == 2 and arr.shape[0] == 1:
        # A start distribution given as a single-row matrix
        arr = arr[0]
    if arr.ndim != ndim:
        raise ShapeError(f"{name} needs {ndim} dimension(s), got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


class DenseStarter(Starter):
    """Start distribution stored as a length-N vector."""

    def __init__(self, probs):
        self._probs = _frozen(probs, 1, 'start distribution')

    @property
    def probs(self) -> np.ndarray:
        return self._probs

    def __len__(self) -> int:
        return len(self._probs)

    def startp(self, state) -> float:
        i = _as_index(state, len(self._probs))
        if i < 0:
            raise UnknownStateError(state, 'start distribution',
                                    f"dense states are 0..{len(self._probs) - 1}")
        return float(self._probs[i])

    def rebuild(self, states, probs):
        new = np.zeros(len(self._probs))
        for state, p in zip(states, probs):
            new[self._index(state)] = p
        return DenseStarter(new)

    def _index(self, state) -> int:
        i = _as_index(state, len(self._probs))
        if i < 0:
            raise UnknownStateError(state, 'start distribution')
        return i


class DenseEmitter(Emitter):
    """Emission distributions stored as an N x M matrix."""

    def __init__(self, probs):
        self._probs = _frozen(probs, 2, 'emission distribution')

    @property
    def probs(self) -> np.ndarray:
        return self._probs

    @property
    def shape(self):
        return self._probs.shape

    @property
    def n_observations(self) -> int:
        return self._probs.shape[1]

    def knows(self, state) -> bool:
        return _as_index(state, self._probs.shape[0]) >= 0

    def emitp(self, state, observation) -> float:
        n_states, n_obs = self._probs.shape
        i = _as_index(state, n_states)
        if i < 0:
            raise UnknownStateError(state, 'emission distribution',
                                    f"dense states are 0..{n_states - 1}")
        o = _as_index(observation, n_obs)
        if o < 0:
            raise UnknownObservationError(observation, n_obs)
        return float(self._probs[i, o])

    def rebuild(self, states, symbols, probs):
        n_states, n_obs = self._probs.shape
        new = np.zeros((n_states, n_obs))
        columns = []
        for symbol in symbols:
            o = _as_index(symbol, n_obs)
            if o < 0:
                raise UnknownObservationError(symbol, n_obs)
            columns.append(o)
        for row, state in zip(probs, states):
            i = _as_index(state, n_states)
            if i < 0:
                raise UnknownStateError(state, 'emission distribution')
            new[i, columns] = row
        return DenseEmitter(new)


class DenseTransor(Transor):
    """Transition distribution stored as an N x N matrix."""

    def __init__(self, probs):
        self._probs = _frozen(probs, 2, 'transition distribution')

    @property
    def probs(self) -> np.ndarray:
        return self._probs

    @property
    def shape(self):
        return self._probs.shape

    def states(self):
        return list(range(self._probs.shape[0]))

    def transp(self, source, target) -> float:
        rows, cols = self._probs.shape
        i = _as_index(source, rows)
        if i < 0:
            raise UnknownStateError(source, 'transition distribution',
                                    f"dense states are 0..{rows - 1}")
        j = _as_index(target, cols)
        if j < 0:
            raise UnknownStateError(target, 'transition distribution',
                                    f"dense targets are 0..{cols - 1}")
        return float(self._probs[i, j])

    def rebuild(self, states, probs):
        index = [_as_index(s, self._probs.shape[0]) for s in states]
        for state, i in zip(states, index):
            if i < 0:
                raise UnknownStateError(state, 'transition distribution')
        new = np.zeros(self._probs.shape)
        new[np.ix_(index, index)] = probs
        return DenseTransor(new)


# =============================================================================
# Sparse (hash-keyed) representation
# =============================================================================

def _rows(table: Mapping) -> Dict[Hashable, Dict[Hashable, float]]:
    return {key: {k: float(v) for k, v in row.items()} for key, row in table.items()}


class SparseStarter(Starter):
    """Start distribution keyed by state."""

    def __init__(self, probs: Mapping):
        self._probs = {state: float(p) for state, p in probs.items()}

    @property
    def probs(self) -> Dict:
        return dict(self._probs)

    def startp(self, state) -> float:
        try:
            return self._probs[state]
        except KeyError:
            raise UnknownStateError(state, 'start distribution') from None

    def rebuild(self, states, probs):
        return SparseStarter({state: p for state, p in zip(states, probs)})


class SparseEmitter(Emitter):
    """
    Emission distributions keyed by state, then observation.

    An observation a known state never emitted has probability 0.
    """

    def __init__(self, probs: Mapping):
        self._probs = _rows(probs)

    @property
    def probs(self) -> Dict:
        return _rows(self._probs)

    def knows(self, state) -> bool:
        return state in self._probs

    def emitp(self, state, observation) -> float:
        row = self._probs.get(state)
        if row is None:
            raise UnknownStateError(state, 'emission distribution')
        return row.get(observation, 0.0)

    def rebuild(self, states, symbols, probs):
        return SparseEmitter({
            state: {symbol: p for symbol, p in zip(symbols, row)}
            for state, row in zip(states, probs)
        })


class SparseTransor(Transor):
    """
    Transition distribution keyed by source state, then target state.

    A target a known source never moved to has probability 0.
    """

    def __init__(self, probs: Mapping):
        self._probs = _rows(probs)

    @property
    def probs(self) -> Dict:
        return _rows(self._probs)

    def states(self):
        seen = dict.fromkeys(self._probs)
        for row in self._probs.values():
            seen.update(dict.fromkeys(row))
        return list(seen)

    def transp(self, source, target) -> float:
        row = self._probs.get(source)
        if row is None:
            raise UnknownStateError(source, 'transition distribution')
        return row.get(target, 0.0)

    def rebuild(self, states, probs):
        return SparseTransor({
            source: {target: p for target, p in zip(states, row)}
            for source, row in zip(states, probs)
        })
