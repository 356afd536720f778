#!/usr/bin/env python3
"""
Per-sequence steps of the beam sampler.
A chain is a single observed emission sequence together with its latent state sequence and slice variables. These
functions operate on one chain at a time; the HDPHMM object applies them to every chain in turn.
"""

import typing

import numpy

from . import errors, random_provider

# the implicit state preceding the first time step of every chain
STARTING_STATE = 0

# Shorthand for numeric types.
Numeric = typing.Union[int, float]
Matrix = typing.Union[numpy.ndarray, typing.Sequence[typing.Sequence[Numeric]]]


def sample_slice_variables(
    latent_sequence: typing.Sequence[int], transition_probabilities: Matrix, provider: random_provider.RandomProvider
) -> typing.List[float]:
    """Sample the auxiliary beam variables of a chain.

    Each slice variable is uniform between zero and the probability of the transition actually taken, so the realised
    transition always clears its slice.

    Args:
        latent_sequence: The current latent states of the chain.
        transition_probabilities: Row ``i`` holds the probability of moving from state ``i`` to each state.
        provider: The source of random draws.

    Returns:
        One slice variable per time step.
    """
    slice_sequence = []
    state_prev = STARTING_STATE
    for state in latent_sequence:
        slice_sequence.append(provider.uniform() * transition_probabilities[state_prev][state])
        state_prev = state
    return slice_sequence


def forward_filter(
    emission_sequence: typing.Sequence[int],
    slice_sequence: typing.Sequence[float],
    transition_probabilities: numpy.ndarray,
    emission_probabilities: numpy.ndarray,
) -> numpy.ndarray:
    """Compute P(s_t | u_{1:t}, y_{1:t}) for every time step, restricted to transitions that clear their slice.

    With the slice variables given, a transition from ``l`` to ``k`` at time ``t`` is possible only if
    ``u[t] < pi[l][k]``, and all possible transitions are equally weighted. Each time step is normalised to avoid
    numerical underflow on long chains.

    Args:
        emission_sequence: The observed symbols of the chain.
        slice_sequence: The slice variables of the chain.
        transition_probabilities: A K x (K+1) transition matrix; the final (unseen) column is ignored.
        emission_probabilities: A K x N emission matrix.

    Returns:
        An array with shape (T, K) whose rows are probability vectors.

    Raises:
        NumericUnderflow: If no state is possible at some time step.
    """
    k = transition_probabilities.shape[0]
    reachable = transition_probabilities[:, :k]
    filtered = numpy.zeros((len(emission_sequence), k))

    for t, (emission, threshold) in enumerate(zip(emission_sequence, slice_sequence)):
        if t == 0:
            p_temp = emission_probabilities[:, emission] * (threshold < reachable[STARTING_STATE])
        else:
            p_temp = emission_probabilities[:, emission] * (filtered[t - 1] @ (threshold < reachable).astype(float))

        p_temp_total = p_temp.sum()
        if not p_temp_total > 0:
            raise errors.NumericUnderflow(f"Forward filter probabilities sum to zero at time step {t}.")
        filtered[t] = p_temp / p_temp_total

    return filtered


def backward_sample(
    filtered: numpy.ndarray,
    slice_sequence: typing.Sequence[float],
    transition_probabilities: numpy.ndarray,
    provider: random_provider.RandomProvider,
) -> typing.List[int]:
    """Sample a latent sequence from the end backwards, given the forward filter.

    Args:
        filtered: The output of ``forward_filter``.
        slice_sequence: The slice variables of the chain.
        transition_probabilities: The transition matrix used in the forward filter.
        provider: The source of random draws.

    Returns:
        The new latent sequence.
    """
    seqlen, k = filtered.shape
    latent_sequence = [STARTING_STATE] * seqlen

    # overwrite latent sequence from end backwards
    latent_sequence[seqlen - 1] = provider.sample_from_probabilities(filtered[seqlen - 1])
    for t in range(seqlen - 1, 0, -1):
        # states that cannot reach the (already sampled) next state are excluded
        possible = slice_sequence[t] < transition_probabilities[:k, latent_sequence[t]]
        latent_sequence[t - 1] = provider.sample_from_probabilities(filtered[t - 1] * possible)

    return latent_sequence


def resample_latent_sequence(
    emission_sequence: typing.Sequence[int],
    slice_sequence: typing.Sequence[float],
    transition_probabilities: numpy.ndarray,
    emission_probabilities: numpy.ndarray,
    provider: random_provider.RandomProvider,
) -> typing.List[int]:
    """Resample the latent sequence of a chain.

    This is usually called by another method or class, rather than directly.

    Args:
        emission_sequence: The observed symbols of the chain.
        slice_sequence: The slice variables of the chain.
        transition_probabilities: A K x (K+1) transition matrix.
        emission_probabilities: A K x N emission matrix.
        provider: The source of random draws.

    Returns:
        A sequence of resampled latent variables, with the same length as the emission sequence.
    """
    filtered = forward_filter(emission_sequence, slice_sequence, transition_probabilities, emission_probabilities)
    return backward_sample(filtered, slice_sequence, transition_probabilities, provider)


def log_likelihood(
    emission_sequence: typing.Sequence[int],
    latent_sequence: typing.Sequence[int],
    transition_probabilities: Matrix,
    emission_probabilities: Matrix,
) -> float:
    """Log likelihood of a chain's latent and emission sequences, using the given parameters.

    Args:
        emission_sequence: The observed symbols of the chain.
        latent_sequence: The latent states of the chain.
        transition_probabilities: The current probability that state s0 is followed by state s1.
        emission_probabilities: The current probability that state s emits symbol e.

    Returns:
        A float for the log likelihood of the chain (``-inf`` if any step has zero probability).
    """
    states_prev = [STARTING_STATE] + list(latent_sequence[:-1])
    transition_likelihoods = [transition_probabilities[s0][s1] for s0, s1 in zip(states_prev, latent_sequence)]
    emission_likelihoods = [emission_probabilities[s][e] for s, e in zip(latent_sequence, emission_sequence)]
    with numpy.errstate(divide="ignore"):
        log_likelihoods = (
            numpy.sum(numpy.log(transition_likelihoods)),
            numpy.sum(numpy.log(emission_likelihoods)),
        )
    return float(sum(log_likelihoods))
