"""Errors raised by the beam sampler.

Each error subclasses the builtin exception a caller would otherwise expect, so that code catching ``ValueError``
around construction (for example) keeps working.
"""


class BeamSamplerError(Exception):
    """Base class for all errors raised by the beam_hmm package."""


class InvalidHyperparameter(BeamSamplerError, ValueError):
    """A concentration parameter, emission prior, or growth bound is not strictly positive."""


class DegenerateObservation(BeamSamplerError, ValueError):
    """The observation sequences cannot be sampled; e.g. an empty sequence or a symbol outside the alphabet."""


class NumericUnderflow(BeamSamplerError, ArithmeticError):
    """A set of sampling weights has total zero.

    In the forward filter this means that either the observation has zero probability under every reachable state,
    or that the filtered probabilities lost precision.
    """


class NonConvergentGrowth(BeamSamplerError, RuntimeError):
    """The number of instantiated states reached its bound while the slice variables still required more."""
