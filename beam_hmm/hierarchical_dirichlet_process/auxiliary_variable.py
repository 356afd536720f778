"""The auxiliary variables are used to capture the conditional dependence of the stick breaking process."""

import typing

import numpy
import scipy.special

from .. import random_provider, ragged_array, stirling, utils
from . import stick_breaking_process, variable


class AuxiliaryVariable(variable.Variable):
    def __init__(
        self,
        beta: stick_breaking_process.StickBreakingProcess,
        alpha0: float,
        provider: random_provider.RandomProvider,
        stirling_cache: typing.Optional[stirling.StirlingCache] = None,
    ) -> None:
        """The auxiliary variables parametrise the posterior distribution of the stick breaking process.

        In the Chinese restaurant franchise, ``value[i][j]`` is the number of tables in restaurant ``i`` (transitions
        out of state ``i``) serving dish ``j`` (transitions into state ``j``). Given the transition counts, these
        variables are conditionally independent with an Antoniak distribution, and given them, beta has a Dirichlet
        posterior. This greatly simplifies the resampling steps of the hierarchical Dirichlet process.

        Args:
            beta: The stick breaking process itself.
            alpha0: The concentration parameter of the transition Dirichlet processes.
            provider: The source of random draws.
            stirling_cache: A cache of log Stirling rows; shared across sweeps so each count is computed once. If None,
                an unbounded cache over ``provider.log_stirling1_row`` is created.

        """
        super(AuxiliaryVariable, self).__init__(provider)

        # auxiliary variables combine multiple variables (used to remove dependence in beta child)
        self.beta: stick_breaking_process.StickBreakingProcess = beta
        self.alpha0: float = alpha0
        if stirling_cache is None:
            stirling_cache = stirling.StirlingCache(provider.log_stirling1_row)
        self.stirling_cache: stirling.StirlingCache = stirling_cache

        # fill with empty initial value
        self.value: ragged_array.RaggedArray[int] = ragged_array.RaggedArray()

    @staticmethod
    def single_variable_log_likelihood(scale: float, value: int, count: int, log_stirling_row: numpy.ndarray) -> float:
        """The posterior likelihood of a single auxiliary variable element.

        Args:
            scale: A parameter of the distribution equal to alpha0 * beta (beta for the destination state).
            value: The number of tables.
            count: The observed transition count between the two states.
            log_stirling_row: Log unsigned Stirling numbers of the first kind for `count`.

        Returns:
            Posterior log likelihood of the given value.

        """
        if count == 0:
            return 0.0 if value == 0 else -numpy.inf
        if not 1 <= value <= count:
            return -numpy.inf

        return float(
            scipy.special.gammaln(scale)
            - scipy.special.gammaln(scale + count)
            + value * numpy.log(scale)
            + log_stirling_row[value]
        )

    @staticmethod
    def single_variable_resample(
        scale: float, count: int, log_stirling_row: numpy.ndarray, provider: random_provider.RandomProvider
    ) -> int:
        """Sample a single auxiliary variable with given distribution.

        Args:
            scale: Equal to alpha0 * beta for the destination state.
            count: The number of observed transitions between the two states of interest.
            log_stirling_row: Log unsigned Stirling numbers of the first kind for `count`.
            provider: The source of random draws.

        Returns:
            An auxiliary variable in ``1..count``, or zero when there are no transitions.

        """
        if count <= 0:
            return 0

        # unnormalised scores for 1..count tables; the gamma function terms are constant in the value
        values = numpy.arange(1, count + 1)
        scores = log_stirling_row[1 : count + 1] + values * numpy.log(scale)
        return provider.sample_from_log_scores(scores) + 1

    def log_likelihood(self, counts: ragged_array.RaggedArray[int]) -> float:
        """Calculate the log likelihood of all auxiliary variables, given the transition counts.

        Note that this log likelihood differs to the likelihoods of other Bayesian variables in the hierarchical
        Dirichlet process, since they are not actually a parameter of the model; it is not included in the model's
        log likelihood.

        Args:
            counts: The number of transitions of each type.

        Returns:
            The sum of log likelihoods of each auxiliary variable.

        """
        scales = self.scales(len(counts))
        return sum(
            self.single_variable_log_likelihood(
                scale=scales[j],
                value=self.value[i][j],
                count=counts[i][j],
                log_stirling_row=self.stirling_cache[counts[i][j]],
            )
            for i in range(len(counts))
            for j in range(len(counts))
        )

    def scales(self, k: int) -> numpy.ndarray:
        """The Antoniak scale ``alpha0 * beta[j]`` for each of the first `k` states, floored away from zero."""
        return utils.floor_values(self.alpha0 * numpy.asarray(self.beta.value[:k], dtype=float))

    def resample(self, counts: ragged_array.RaggedArray[int]) -> ragged_array.RaggedArray[int]:
        """Fill the value attribute of the AuxiliaryVariable with new values according to the conditional distribution.

        Args:
            counts: The K x K transition counts between states for the current latent sequences.

        Returns:
            The resampled value.

        """
        k = len(counts)
        scales = self.scales(k)
        value: ragged_array.RaggedArray[int] = ragged_array.RaggedArray(k, k, fill=0)
        for i in range(k):
            for j in range(k):
                count = counts[i][j]
                value[i][j] = self.single_variable_resample(
                    scale=scales[j], count=count, log_stirling_row=self.stirling_cache[count], provider=self.provider
                )

        self.value = value
        return self.value

    def value_aggregated(self) -> numpy.ndarray:
        """The AuxiliaryVariables after the aggregation required to resample the stick breaking process.

        Returns:
            For each state, the total number of tables serving it across every restaurant (the column sums).

        """
        # transpose so that each row holds the tables serving a single dish
        dishes = ragged_array.RaggedArray.from_rows(zip(*self.value))
        return numpy.array([dishes.sum(j) for j in range(len(dishes))], dtype=float)
