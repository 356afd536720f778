"""Random number generation for the beam sampler.

Every random draw made by the sampler goes through a ``RandomProvider``, which is handed to the sampler when it is
created. Two samplers given separate providers never share random state; a single provider must not be used by
samplers running in different threads at the same time.
"""

import typing
from abc import ABCMeta, abstractmethod

import numpy
import scipy.special
import scipy.stats

from . import errors, stirling, utils

# counts up to this value use exact (sympy) Stirling numbers by default
DEFAULT_EXACT_STIRLING_LIMIT = 32


class RandomProvider(object, metaclass=ABCMeta):
    """The primitive random draws used by the beam sampler.

    Subclasses supply uniform, Beta and Dirichlet draws; categorical sampling is built on top of ``uniform``.
    None of the methods modify their arguments.
    """

    @abstractmethod
    def uniform(self) -> float:
        raise NotImplementedError("Random providers must implement a 'uniform' method.")

    @abstractmethod
    def sample_beta(self, a: float, b: float) -> float:
        raise NotImplementedError("Random providers must implement a 'sample_beta' method.")

    @abstractmethod
    def sample_dirichlet(self, concentrations: typing.Sequence[float]) -> numpy.ndarray:
        raise NotImplementedError("Random providers must implement a 'sample_dirichlet' method.")

    def sample_from_probabilities(self, probabilities: typing.Sequence[float]) -> int:
        """Draw an index with probability proportional to its weight.

        The draw inverts the cumulative weights at a single ``uniform()`` value, so a scripted uniform stream gives a
        predictable index.

        Args:
            probabilities: Non-negative weights. They need not sum to one.

        Returns:
            The sampled index.

        Raises:
            ValueError: If the weights are empty, negative, or not finite.
            NumericUnderflow: If the weights sum to zero.

        """
        weights = numpy.asarray(probabilities, dtype=float)
        if weights.ndim != 1 or weights.size == 0:
            raise ValueError("Probabilities must be a non-empty vector.")
        if not numpy.all(numpy.isfinite(weights)) or numpy.any(weights < 0):
            raise ValueError("Probabilities must be finite and non-negative.")

        cumulative = numpy.cumsum(weights)
        total = cumulative[-1]
        if total <= 0:
            raise errors.NumericUnderflow("Cannot sample from probabilities that sum to zero.")

        index = int(numpy.searchsorted(cumulative, self.uniform() * total, side="right"))
        # rounding can push the draw past the final positive weight
        return min(index, int(numpy.flatnonzero(weights)[-1]))

    def sample_from_log_scores(self, scores: typing.Sequence[float]) -> int:
        """Draw an index with probability proportional to the exponential of its score.

        Args:
            scores: Unnormalised log probabilities; ``-inf`` marks an impossible index.

        Returns:
            The sampled index.

        Raises:
            NumericUnderflow: If no score is finite.

        """
        scores = numpy.array(scores, dtype=float)
        normaliser = scipy.special.logsumexp(scores)
        if not numpy.isfinite(normaliser):
            raise errors.NumericUnderflow("Cannot sample from log scores without a finite normalising constant.")
        return self.sample_from_probabilities(numpy.exp(scores - normaliser))

    def log_stirling1_row(self, n: int) -> numpy.ndarray:
        """Log unsigned Stirling numbers of the first kind for count `n`; a pure function of `n`."""
        return stirling.log_stirling1_row(n)


class NumpyRandomProvider(RandomProvider):
    def __init__(
        self,
        seed: typing.Union[None, int, numpy.random.Generator] = None,
        eps: float = utils.DEFAULT_EPS,
        exact_stirling_limit: int = DEFAULT_EXACT_STIRLING_LIMIT,
    ) -> None:
        """A random provider backed by its own numpy Generator.

        Args:
            seed: Passed to ``numpy.random.default_rng``; give an integer for reproducible draws, or an existing
                Generator to share it.
            eps: Beta and Dirichlet concentration parameters are floored at this value, since numerical underflow can
                otherwise produce zero parameters for rarely used states.
            exact_stirling_limit: Stirling rows for counts up to this value are computed from exact integers.

        """
        super(NumpyRandomProvider, self).__init__()
        self.generator: numpy.random.Generator = numpy.random.default_rng(seed)
        self.eps = eps
        self.exact_stirling_limit = exact_stirling_limit

    def __repr__(self) -> str:
        return f"<NumpyRandomProvider, eps {self.eps}>"

    def uniform(self) -> float:
        """A uniform draw on the open interval ``(0, 1)``."""
        return float(self.generator.uniform(low=numpy.finfo(float).tiny, high=1.0))

    def sample_beta(self, a: float, b: float) -> float:
        a, b = utils.floor_values((a, b), eps=self.eps)
        return float(scipy.stats.beta.rvs(a=a, b=b, random_state=self.generator))

    def sample_dirichlet(self, concentrations: typing.Sequence[float]) -> numpy.ndarray:
        """A Dirichlet draw, with concentration parameters floored at ``eps``.

        Args:
            concentrations: One positive parameter per component.

        Returns:
            A probability vector with the same length as `concentrations`.

        Raises:
            NumericUnderflow: If the draw could not be normalised.

        """
        alpha = utils.floor_values(concentrations, eps=self.eps)
        value = scipy.stats.dirichlet.rvs(alpha=alpha, size=1, random_state=self.generator)[0]
        if not numpy.all(numpy.isfinite(value)):
            raise errors.NumericUnderflow("Dirichlet draw underflowed; concentration parameters are too small.")
        return value

    def log_stirling1_row(self, n: int) -> numpy.ndarray:
        return stirling.log_stirling1_row(n, exact=n <= self.exact_stirling_limit)
