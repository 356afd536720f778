from abc import ABCMeta, abstractmethod

from .. import random_provider


class Variable(object, metaclass=ABCMeta):
    """A parent class for the Bayesian variables resampled by the beam sampler.

    Every variable draws its randomness from the provider it is given, never from global random state.
    """

    def __init__(self, provider: random_provider.RandomProvider) -> None:
        self.provider: random_provider.RandomProvider = provider

    @abstractmethod
    def log_likelihood(self, *args) -> float:
        raise NotImplementedError("Bayesian variables must implement a 'log_likelihood' method.")

    @abstractmethod
    def resample(self, *args):
        raise NotImplementedError("Bayesian variables must define a 'resample' method.")
