"""Containers, distributions and the Model."""

from genehmm.core.config import DEFAULT_TOLERANCE, Tolerance, ulps_between
from genehmm.core.errors import (
    DegenerateComputationWarning,
    HMMError,
    ModelError,
    ShapeError,
    UnknownObservationError,
    UnknownStateError,
)
from genehmm.core.matrix import Cube, Matrix
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
from genehmm.core.model import Model
