"""
Shared pytest fixtures for genehmm tests.
"""
import pytest
import numpy as np


@pytest.fixture
def canonical_arrays():
    """
    2-state, 3-symbol textbook model.
    Hand-computed values for this model are used throughout the tests.
    """
    start = np.array([0.6, 0.4])
    trans = np.array([
        [0.7, 0.3],
        [0.4, 0.6],
    ])
    emit = np.array([
        [0.1, 0.4, 0.5],
        [0.7, 0.2, 0.1],
    ])
    return start, trans, emit


@pytest.fixture
def canonical_model(canonical_arrays):
    """Dense canonical model."""
    from genehmm.core.model import Model

    return Model.from_arrays(*canonical_arrays)


@pytest.fixture
def sparse_canonical_model():
    """
    The canonical model with states 'H'/'C' in place of 0/1 and
    observations 'x'/'y'/'z' in place of 0/1/2.
    """
    from genehmm.core.model import Model

    return Model.from_dicts(
        {'H': 0.6, 'C': 0.4},
        {'H': {'H': 0.7, 'C': 0.3}, 'C': {'H': 0.4, 'C': 0.6}},
        {'H': {'x': 0.1, 'y': 0.4, 'z': 0.5}, 'C': {'x': 0.7, 'y': 0.2, 'z': 0.1}},
    )


@pytest.fixture
def to_sparse_obs():
    """Translate dense observations of the canonical model into sparse ones."""
    symbols = 'xyz'

    def convert(obs):
        return [symbols[o] for o in obs]
    return convert


@pytest.fixture
def island_emission_probs():
    """
    Background vs. GC-island emissions over symbols 0..3 (a, c, g, t).
    State 1 favours c and g.
    """
    return np.array([
        [0.3, 0.2, 0.2, 0.3],
        [0.1, 0.4, 0.4, 0.1],
    ])


@pytest.fixture
def island_observations():
    """AT-rich flanks around a GC-rich run."""
    return np.array([0, 3, 3, 0, 1, 0, 3, 1, 2, 2, 1, 2, 1, 1, 2, 0, 3, 0, 0, 3], dtype=np.int32)


@pytest.fixture
def sticky_model(island_emission_probs):
    """4-symbol model with high self-transition probability."""
    from genehmm.core.model import Model

    return Model.from_arrays(
        [0.5, 0.5],
        [[0.9, 0.1], [0.1, 0.9]],
        island_emission_probs,
    )


@pytest.fixture
def three_state_model():
    """3-state, 4-symbol model with uneven parameters."""
    from genehmm.core.model import Model

    return Model.from_arrays(
        [0.5, 0.3, 0.2],
        [[0.8, 0.15, 0.05],
         [0.1, 0.7, 0.2],
         [0.25, 0.25, 0.5]],
        [[0.4, 0.3, 0.2, 0.1],
         [0.1, 0.1, 0.4, 0.4],
         [0.25, 0.25, 0.25, 0.25]],
    )


@pytest.fixture
def labeled_paths():
    """Labeled (state, observation) paths for supervised training."""
    return [
        [('N', 'a'), ('N', 'c'), ('G', 'a'), ('G', 't'), ('N', 'g')],
        [('G', 'a'), ('G', 'a'), ('N', 'c')],
        [('N', 't'), ('N', 't'), ('G', 'g')],
    ]
