#!/usr/bin/env python3
"""
Helper functions for the beam_hmm package. Should not be called directly by the
user.
"""
import typing

import numpy

# smallest concentration parameter passed to Beta and Dirichlet draws
DEFAULT_EPS = 1e-8


# used to ensure all concentration parameters have non-zero values
def floor_values(values: typing.Union[float, typing.Sequence[float]], eps: float = DEFAULT_EPS) -> numpy.ndarray:
    """Replace every value below `eps` with `eps`.

    Args:
        values: A single value or a sequence of values.
        eps: The smallest value allowed in the output.

    Returns:
        A float array with the same shape as `values`.

    """
    return numpy.maximum(numpy.asarray(values, dtype=float), eps)


def shrink_probabilities(values: typing.Sequence[float], eps: float = 1e-12) -> numpy.ndarray:
    """Move a probability vector slightly towards uniform, so that every entry is strictly positive.

    Used before evaluating Dirichlet densities, which are undefined on the boundary of the simplex.

    Args:
        values: Non-negative values summing (approximately) to one.
        eps: Mass added to every entry before renormalising.

    Returns:
        A probability vector with no zero entries.

    """
    values = numpy.asarray(values, dtype=float) + eps
    return values / values.sum()
