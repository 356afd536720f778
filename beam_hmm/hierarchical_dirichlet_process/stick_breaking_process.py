"""A stick breaking process implementation of the top level Dirichlet process."""

from __future__ import annotations  # auxiliary variable not yet defined; this avoids errors

import typing

import numpy
import scipy.stats

from .. import random_provider
from . import variable

if typing.TYPE_CHECKING:
    from . import auxiliary_variable


class StickBreakingProcess(variable.Variable):
    def __init__(self, gamma: float, provider: random_provider.RandomProvider) -> None:
        """The stick breaking process parametrises the prior for the transition probabilities.

        It contains a partition of the unit interval into infinitely many intervals, with each interval's size given by
        a beta random variable multiplied by the remaining length (beta itself has distribution ``Beta(1, gamma)``). Of
        course, we do not capture the infinite number of states: instead, the final entry of ``value`` aggregates the
        tail into a single unseen mass, which is broken further whenever a state is added.

        Args:
            gamma: The concentration parameter of the top level Dirichlet process.
            provider: The source of random draws.

        """
        super(StickBreakingProcess, self).__init__(provider)
        self.gamma: float = gamma

        # fill with empty initial value: no states, all mass unseen
        self.value: typing.List[float] = [1.0]

    @property
    def k(self) -> int:
        """The number of instantiated states (excluding the unseen mass)."""
        return len(self.value) - 1

    @property
    def unseen(self) -> float:
        """The total weight of all states not yet instantiated."""
        return self.value[-1]

    def log_likelihood(self) -> float:
        """The likelihood of the stick breaking process is the product of likelihoods of each component length.

        Each length is given by a beta variable (see the help for the object), so the log likelihood is simply a sum
        of beta variable likelihoods.

        Returns:
            The log likelihood (under the prior distribution) of the stick breaking process' current value.

        """
        values = self.value[:-1]
        breaks = [val / (1 + val - cumval) for val, cumval in zip(values, numpy.cumsum(values))]
        log_likelihoods = [scipy.stats.beta.logpdf(x=b, a=1, b=self.gamma) for b in breaks]
        return float(sum(log_likelihoods))

    def resample(self, auxiliary: auxiliary_variable.AuxiliaryVariable) -> typing.List[float]:
        """Draw another realisation of the stick breaking process, according to the current conditional distribution.

        The conditional distribution is parametrised completely by the auxiliary variables: each instantiated state
        has parameter equal to the number of tables serving it across all restaurants, and the unseen mass has
        parameter gamma.

        Args:
            auxiliary: The auxiliary variables, already resampled, which parametrise the conditional distribution.

        Returns:
            The new value of beta.

        """
        parameters = numpy.append(auxiliary.value_aggregated(), self.gamma)
        self.value = [float(x) for x in self.provider.sample_dirichlet(parameters)]
        return self.value

    def add_state(self) -> float:
        """Separates another state from the unseen mass to be explicitly included.

        Returns:
            The weight of the new state.

        """
        fraction = self.provider.sample_beta(1.0, self.gamma)
        unseen = self.value[-1]
        self.value[-1] = fraction * unseen
        self.value.append((1.0 - fraction) * unseen)
        return self.value[-2]
