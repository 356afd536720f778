#!/usr/bin/env python3
"""
Beam sampling for non-parametric Bayesian hidden Markov models. The hierarchical
Dirichlet process hidden Markov model allows an unbounded number of latent states;
the beam sampler uses slice variables to resample the latent sequences exactly,
instantiating new states only as the data requires them.
"""

import warnings

from .chain import STARTING_STATE
from .errors import (
    BeamSamplerError,
    DegenerateObservation,
    InvalidHyperparameter,
    NonConvergentGrowth,
    NumericUnderflow,
)
from .hdphmm import DEFAULT_MAX_STATES, HDPHMM
from .hierarchical_dirichlet_process import (
    AuxiliaryVariable,
    DirichletDistributionFamily,
    DirichletProcessFamily,
    StickBreakingProcess,
    Variable,
)
from .ragged_array import RaggedArray
from .random_provider import NumpyRandomProvider, RandomProvider
from .stirling import StirlingCache, exact_log_stirling1_row, log_stirling1_row

warnings.warn("beam_hmm is in beta testing and future versions may behave differently")
