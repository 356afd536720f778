import typing

import numpy
import scipy.stats

from .. import random_provider, ragged_array, utils
from . import variable


class DirichletDistributionFamily(variable.Variable):
    def __init__(self, prior: typing.Sequence[float], provider: random_provider.RandomProvider) -> None:
        """The emission probabilities of the hidden Markov model.

        Each latent state has a categorical distribution over the N observable symbols, with a shared Dirichlet prior.
        Unlike the transition probabilities, the set of outcomes is fixed, so rows never grow; only new rows are added
        as states are instantiated.

        Args:
            prior: The Dirichlet prior parameters, one strictly positive value for each symbol.
            provider: The source of random draws.

        """
        super(DirichletDistributionFamily, self).__init__(provider)
        self.prior: numpy.ndarray = numpy.asarray(prior, dtype=float)

        # fill with empty initial value
        self.value: ragged_array.RaggedArray[float] = ragged_array.RaggedArray()

    @property
    def k(self) -> int:
        return len(self.value)

    @property
    def n(self) -> int:
        """The number of symbols in the alphabet."""
        return len(self.prior)

    def posterior_parameters(self, counts: ragged_array.RaggedArray[int]) -> numpy.ndarray:
        """The parameters of the posterior distribution.

        Args:
            counts: A K x N array; ``counts[k][e]`` is the number of times state ``k`` emitted symbol ``e``.

        Returns:
            A K x N array of Dirichlet parameters.

        """
        return counts.to_numpy(dtype=float).reshape(self.k, self.n) + self.prior

    def log_likelihood(self) -> float:
        """The unconditional log likelihood of the emission probabilities under their Dirichlet prior."""
        log_likelihoods = [
            scipy.stats.dirichlet.logpdf(utils.shrink_probabilities(row), self.prior) for row in self.value
        ]
        return float(sum(log_likelihoods))

    def resample(self, counts: ragged_array.RaggedArray[int]) -> ragged_array.RaggedArray[float]:
        """Repopulate the emission probabilities from their posterior distribution.

        Args:
            counts: The emission counts for the current latent sequences.

        Returns:
            The resampled value.

        """
        parameters = self.posterior_parameters(counts)
        for k, row_parameters in enumerate(parameters):
            self.value[k][:] = [float(x) for x in self.provider.sample_dirichlet(row_parameters)]
        return self.value

    def add_state(self) -> None:
        """Add a state with emission probabilities drawn from the prior."""
        self.value.append(float(x) for x in self.provider.sample_dirichlet(self.prior))
