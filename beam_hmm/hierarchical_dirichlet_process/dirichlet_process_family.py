import numpy
import scipy.stats

from .. import random_provider, ragged_array, utils
from . import stick_breaking_process, variable


class DirichletProcessFamily(variable.Variable):
    def __init__(
        self,
        beta: stick_breaking_process.StickBreakingProcess,
        alpha0: float,
        provider: random_provider.RandomProvider,
    ) -> None:
        """The Dirichlet process gives the (infinite) transition probabilities of the hidden Markov model.

        This object is actually a family of Dirichlet processes, which share a common hierarchical prior (given by
        beta, another Dirichlet process, modelled as a stick breaking process). Since beta can grow in size (in number
        of states), the Dirichlet processes can grow in size also. Row ``i`` of ``value`` holds the probability of
        moving from state ``i`` to each instantiated state, followed by the aggregate probability of moving to any
        state not yet instantiated.

        Args:
            beta: The stick breaking process describing the hierarchical priors for each Dirichlet process. States with
                large associated beta values are more likely to have large transition probabilities.
            alpha0: The concentration parameter of each Dirichlet process.
            provider: The source of random draws.

        """
        super(DirichletProcessFamily, self).__init__(provider)

        # store parents
        self.beta: stick_breaking_process.StickBreakingProcess = beta
        self.alpha0: float = alpha0

        # fill with empty initial value
        self.value: ragged_array.RaggedArray[float] = ragged_array.RaggedArray()

    @property
    def k(self) -> int:
        return len(self.value)

    @property
    def max_unseen(self) -> float:
        """The largest probability, over instantiated states, of moving to a state that is not yet instantiated.

        Returns:
            The maximum of the final column of the transition matrix (zero if no states exist).

        """
        return max((row[-1] for row in self.value), default=0.0)

    def prior_parameters(self) -> numpy.ndarray:
        return self.alpha0 * numpy.asarray(self.beta.value, dtype=float)

    def posterior_parameters(self, counts: ragged_array.RaggedArray[int]) -> numpy.ndarray:
        """The parameters of the posterior distribution.

        Args:
            counts: The K x K transition counts of the current latent sequences.

        Returns:
            A K x (K+1) array; row ``i`` parametrises the Dirichlet posterior of row ``i`` of the transition matrix.

        """
        k = self.k
        parameters = numpy.tile(self.prior_parameters(), (k, 1))
        if k > 0:
            parameters[:, :k] += counts.to_numpy(dtype=float)
        return parameters

    def log_likelihood(self) -> float:
        """The unconditional log likelihood of the Dirichlet processes.

        This uses the prior distribution only, and ignores the transition counts.

        Returns:
            The log likelihood as a float (not necessarily negative).

        """
        parameters = utils.floor_values(self.prior_parameters())
        log_likelihoods = [
            scipy.stats.dirichlet.logpdf(utils.shrink_probabilities(row), parameters) for row in self.value
        ]
        return float(sum(log_likelihoods))

    def resample(self, counts: ragged_array.RaggedArray[int]) -> ragged_array.RaggedArray[float]:
        """Repopulate every row of the transition matrix with a draw from its posterior distribution.

        Args:
            counts: The K x K transition counts of the current latent sequences.

        Returns:
            The resampled value.

        """
        parameters = self.posterior_parameters(counts)
        for i, row_parameters in enumerate(parameters):
            # column j of the row receives the j-th component of the draw
            self.value[i][:] = [float(x) for x in self.provider.sample_dirichlet(row_parameters)]
        return self.value

    def add_state(self) -> None:
        """Add a state to the family of Dirichlet processes, without resampling existing states.

        The stick breaking process must already contain the new state. Each existing row breaks its unseen mass in the
        same proportion (in expectation) as beta broke its unseen mass, and the new state's own row is drawn from the
        prior.

        Raises:
            ValueError: If the stick breaking process has not been extended first.

        """
        k = self.k
        if len(self.beta.value) != k + 2:
            raise ValueError("The stick breaking process must include the new state before it is added.")

        new_weight, unseen_weight = self.beta.value[k], self.beta.value[k + 1]
        for row in self.value:
            fraction = self.provider.sample_beta(self.alpha0 * new_weight, self.alpha0 * unseen_weight)
            unseen = row[k]
            row[k] = fraction * unseen
            row.append((1.0 - fraction) * unseen)

        self.value.append(float(x) for x in self.provider.sample_dirichlet(self.prior_parameters()))
