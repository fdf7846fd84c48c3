"""Baum-Welch re-estimation and supervised training."""

from genehmm.training.estimate import (
    TrainingMonitor,
    baum_welch,
    baum_welch_step,
    occupation_stats,
    reestimate,
)
from genehmm.training.supervised import train_supervised, train_supervised_dense

__all__ = [
    'occupation_stats',
    'reestimate',
    'baum_welch_step',
    'baum_welch',
    'TrainingMonitor',
    'train_supervised',
    'train_supervised_dense',
]
