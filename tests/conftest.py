import collections
import typing

import numpy
import pytest

import beam_hmm


class ScriptedProvider(beam_hmm.RandomProvider):
    """A provider with a predictable stream of draws.

    Uniform draws are taken from `uniforms` in order, falling back to `default` once they run out. Beta and Dirichlet
    draws return the mean of the distribution.
    """

    def __init__(self, uniforms: typing.Sequence[float] = (), default: float = 0.5) -> None:
        self.uniforms = collections.deque(uniforms)
        self.default = default

    def uniform(self) -> float:
        return self.uniforms.popleft() if self.uniforms else self.default

    def sample_beta(self, a: float, b: float) -> float:
        return a / (a + b)

    def sample_dirichlet(self, concentrations: typing.Sequence[float]) -> numpy.ndarray:
        concentrations = numpy.asarray(concentrations, dtype=float)
        return concentrations / concentrations.sum()


@pytest.fixture
def scripted_provider() -> typing.Callable[..., ScriptedProvider]:
    return ScriptedProvider
