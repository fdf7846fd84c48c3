"""
Dense numeric containers.

Matrix wraps a 2-D float64 ndarray of equal-length rows; Cube stacks k
matrices of the same (i, j) shape and is used for the gap-gamma statistic.
Both are plain working buffers: created per algorithm call and mutated in
place by index.
"""

from typing import Iterator, Sequence, Tuple

import numpy as np

from genehmm.core.config import DEFAULT_TOLERANCE, Tolerance
from genehmm.core.errors import ShapeError


class Matrix:
    """Dense 2-D container of float64 values."""

    def __init__(self, rows=()):
        if isinstance(rows, np.ndarray):
            values = np.array(rows, dtype=np.float64)
            if values.ndim == 1 and values.size == 0:
                values = values.reshape(0, 0)
        else:
            rows = list(rows)
            for i, row in enumerate(rows):
                if np.ndim(row) != 1:
                    raise ShapeError(
                        f"matrix row {i} is {row!r}; need a sequence of values "
                        f"(wrap a single row as [row])"
                    )
            rows = [list(row) for row in rows]
            if rows:
                width = len(rows[0])
                for i, row in enumerate(rows):
                    if len(row) != width:
                        raise ShapeError(
                            f"ragged matrix: row {i} has {len(row)} columns; "
                            f"row 0 has {width}"
                        )
                values = np.array(rows, dtype=np.float64).reshape(len(rows), width)
            else:
                values = np.zeros((0, 0))

        if values.ndim != 2:
            raise ShapeError(f"matrix needs 2 dimensions, got {values.ndim}")
        self._values = values

    @classmethod
    def with_dims(cls, n: int, m: int, default: float = 0.0) -> 'Matrix':
        """Create an n x m matrix filled with default."""
        return cls(np.full((n, m), default, dtype=np.float64))

    @property
    def values(self) -> np.ndarray:
        """The backing (rows, cols) ndarray; writes go through."""
        return self._values

    def dims(self) -> Tuple[int, int]:
        """(row count, column count); (0, 0) when empty."""
        if self._values.shape[0] == 0:
            return (0, 0)
        return self._values.shape

    def row_stochastic(self, tolerance: Tolerance = DEFAULT_TOLERANCE) -> bool:
        """True if every row sums to 1.0 within tolerance."""
        return all(tolerance.sums_to_one(row) for row in self._values)

    def tolist(self):
        return self._values.tolist()

    def __getitem__(self, index):
        return self._values[index]

    def __setitem__(self, index, value):
        self._values[index] = value

    def __len__(self) -> int:
        return self._values.shape[0]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self._values)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return (self._values.shape == other._values.shape
                and bool(np.array_equal(self._values, other._values)))

    def __repr__(self) -> str:
        return f"Matrix({self.tolist()!r})"


class Cube:
    """
    Stack of k matrices, each i x j.

    cube[k] returns a Matrix view of the k-th layer, so
    cube[t][i][j] = value writes into the cube.
    """

    def __init__(self, layers: Sequence[Matrix] = ()):
        layers = list(layers)
        if layers:
            shape = layers[0].values.shape
            for k, layer in enumerate(layers):
                if layer.values.shape != shape:
                    raise ShapeError(
                        f"cube layer {k} is {layer.values.shape[0]}x{layer.values.shape[1]}; "
                        f"layer 0 is {shape[0]}x{shape[1]}"
                    )
            self._values = np.stack([layer.values for layer in layers])
        else:
            self._values = np.zeros((0, 0, 0))

    @classmethod
    def with_dims(cls, i: int, j: int, k: int, default: float = 0.0) -> 'Cube':
        """Create k layers of i x j matrices filled with default."""
        cube = cls()
        cube._values = np.full((k, i, j), default, dtype=np.float64)
        return cube

    @property
    def values(self) -> np.ndarray:
        """The backing (k, i, j) ndarray."""
        return self._values

    def dims(self) -> Tuple[int, int, int]:
        k, i, j = self._values.shape
        return (i, j, k)

    def __getitem__(self, k: int) -> Matrix:
        return _view(self._values[k])

    def __len__(self) -> int:
        return self._values.shape[0]

    def __iter__(self) -> Iterator[Matrix]:
        for k in range(len(self)):
            yield self[k]


def _view(values: np.ndarray) -> Matrix:
    """Wrap an existing 2-D array without copying it."""
    matrix = Matrix.__new__(Matrix)
    matrix._values = values
    return matrix
