"""
genehmm - discrete Hidden Markov Model inference and training:
Viterbi decoding, scaled forward/backward passes, Baum-Welch re-estimation
and supervised training from labeled paths.
"""

__version__ = "0.1.0"

from genehmm.core import (
    DEFAULT_TOLERANCE,
    Cube,
    DegenerateComputationWarning,
    DenseEmitter,
    DenseStarter,
    DenseTransor,
    Emitter,
    HMMError,
    Matrix,
    Model,
    ModelError,
    ShapeError,
    SparseEmitter,
    SparseStarter,
    SparseTransor,
    Starter,
    Tolerance,
    Transor,
    UnknownObservationError,
    UnknownStateError,
)
from genehmm.inference import (
    backward,
    forward,
    likelihood,
    log_likelihood,
    viterbi,
    viterbi_with_score,
)
from genehmm.training import (
    TrainingMonitor,
    baum_welch,
    baum_welch_step,
    occupation_stats,
    reestimate,
    train_supervised,
    train_supervised_dense,
)
