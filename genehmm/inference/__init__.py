"""Forward/backward passes, likelihood and Viterbi decoding."""

from genehmm.inference.solve import (
    backward,
    forward,
    likelihood,
    log_likelihood,
    viterbi,
    viterbi_with_score,
)

__all__ = [
    'forward',
    'backward',
    'likelihood',
    'log_likelihood',
    'viterbi',
    'viterbi_with_score',
]
