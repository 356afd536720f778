"""A beam sampler for non-parametric Hierarchical Dirichlet process hidden Markov models.

An HDPHMM holds one or more observed sequences of integer symbols, and samples a latent
state for every observation together with the probabilities linking states to each other
and to symbols. The model is made of

  + A stick breaking process (beta), which gives the top level weight of every state, and
      aggregates the weight of all states not yet instantiated.
  + A transition probability (pi), which dictates the probability that any given state in
      the latent sequence is followed by another given state. Each row has a Dirichlet process
      prior centred on beta. The first state of every sequence is drawn from the row of state 0.
  + An emission probability (phi), which dictates the probability that any given symbol is
      observed conditional on the latent state at the same time point. This uses a Dirichlet
      prior.

The beam sampler introduces a slice variable at every time point. Given the slice variables,
only finitely many transitions are possible, so the latent sequences can be resampled
exactly with a forward filter and backward sampler, even though the number of states is
unbounded. States are instantiated as the slice variables require them.
"""

import copy
import typing

import numpy
import terminaltables
import tqdm

from . import chain, errors, random_provider, ragged_array, stirling
from .hierarchical_dirichlet_process import (
    AuxiliaryVariable,
    DirichletDistributionFamily,
    DirichletProcessFamily,
    StickBreakingProcess,
)

# upper bound on the number of states instantiated while sampling slice variables
DEFAULT_MAX_STATES = 1000


class HDPHMM(object):
    """
    The Hierarchical Dirichlet Process Hidden Markov Model object, fitted by beam sampling.
    """

    def __init__(
        self,
        emission_sequences: typing.Iterable[typing.Sequence[int]],
        gamma: float = 1.0,
        alpha0: float = 1.0,
        emission_prior: typing.Optional[typing.Sequence[float]] = None,
        provider: typing.Optional[random_provider.RandomProvider] = None,
        seed: typing.Optional[int] = None,
        max_states: int = DEFAULT_MAX_STATES,
        stirling_cache_size: typing.Optional[int] = None,
    ) -> None:
        """A fully non-parametric Bayesian hierarchical Dirichlet process hidden Markov model.

        The model starts with a single instantiated state, to which every observation is assigned. Further states are
        instantiated by ``sample_beam`` whenever the slice variables allow transitions to them.

        Parameters govern the dynamics of the model:
            + gamma: concentration of the top level Dirichlet process. Higher values of gamma leave
                more weight for states that are not yet instantiated, so the model explores more states.
            + alpha0: concentration of the transition Dirichlet processes. Higher values of alpha0
                keep rows of the transition matrix more similar to beta.
            + emission_prior: Dirichlet prior for every state's emission probabilities. Its length
                is the size of the alphabet.

        Args:
            emission_sequences: An iterable containing the observed emission sequences. Emissions are integer symbols
                in ``[0, N)``; sequences can be different lengths, but not zero length.
            gamma: The concentration parameter of the top level Dirichlet process.
            alpha0: The concentration parameter of the transition Dirichlet processes.
            emission_prior: The Dirichlet prior over emissions, one strictly positive value per symbol. If None, a
                uniform prior of ones over symbols ``0..max(observed symbol)`` is used.
            provider: The source of random draws. If None, a ``NumpyRandomProvider`` is created from `seed`. Samplers
                that run concurrently must not share a provider.
            seed: Seed for the default provider; ignored if `provider` is given.
            max_states: The largest number of states that may be instantiated. Reaching it while the slice variables
                still require more states raises ``NonConvergentGrowth``.
            stirling_cache_size: If given, the number of log Stirling rows kept in memory (least recently used rows are
                dropped). If None (the default), every row is kept.

        Raises:
            InvalidHyperparameter: If gamma, alpha0, max_states, or any emission prior value is not positive.
            DegenerateObservation: If there are no sequences, a sequence is empty, or a symbol is outside the alphabet.

        """
        # check hyperparameters
        if not gamma > 0:
            raise errors.InvalidHyperparameter(f"gamma must be positive, received {gamma}.")
        if not alpha0 > 0:
            raise errors.InvalidHyperparameter(f"alpha0 must be positive, received {alpha0}.")
        if max_states < 1:
            raise errors.InvalidHyperparameter(f"max_states must be at least one, received {max_states}.")

        # store chains
        self._observations: ragged_array.RaggedArray[int]
        self._observations = ragged_array.RaggedArray.from_rows([int(e) for e in seq] for seq in emission_sequences)
        if len(self._observations) == 0:
            raise errors.DegenerateObservation("At least one emission sequence is required.")
        for i, size in enumerate(self._observations.sizes()):
            if size == 0:
                raise errors.DegenerateObservation(f"Emission sequence {i} has zero length.")

        # emissions
        if emission_prior is None:
            emission_prior = numpy.ones(max(max(seq) for seq in self._observations) + 1)
        emission_prior = numpy.asarray(emission_prior, dtype=float)
        if emission_prior.ndim != 1 or emission_prior.size == 0:
            raise errors.InvalidHyperparameter("emission_prior must be a non-empty vector.")
        if not numpy.all(emission_prior > 0) or not numpy.all(numpy.isfinite(emission_prior)):
            raise errors.InvalidHyperparameter("emission_prior values must be positive and finite.")
        for i, seq in enumerate(self._observations):
            if min(seq) < 0 or max(seq) >= emission_prior.size:
                raise errors.DegenerateObservation(
                    f"Emission sequence {i} has symbols outside [0, {emission_prior.size})."
                )

        # store raw hyperparameter values for convenience
        self.gamma: float = gamma
        self.alpha0: float = alpha0
        self.max_states: int = max_states
        self.provider: random_provider.RandomProvider
        self.provider = provider if provider is not None else random_provider.NumpyRandomProvider(seed)

        # latent variables have the same shape as the observations
        sizes = self._observations.sizes()
        self._latent_sequences: ragged_array.RaggedArray[int]
        self._latent_sequences = ragged_array.RaggedArray(len(sizes), sizes, fill=chain.STARTING_STATE)
        self._slice_variables: ragged_array.RaggedArray[float]
        self._slice_variables = ragged_array.RaggedArray(len(sizes), sizes, fill=1.0)

        # create the hierarchical Dirichlet process (beta, auxiliary variables, pi) and emission model (phi)
        self.beta = StickBreakingProcess(gamma=self.gamma, provider=self.provider)
        self.transition_model = DirichletProcessFamily(beta=self.beta, alpha0=self.alpha0, provider=self.provider)
        self.emission_model = DirichletDistributionFamily(prior=emission_prior, provider=self.provider)
        self.auxiliary_variable = AuxiliaryVariable(
            beta=self.beta,
            alpha0=self.alpha0,
            provider=self.provider,
            stirling_cache=stirling.StirlingCache(self.provider.log_stirling1_row, maxsize=stirling_cache_size),
        )

        # use internal properties to store aggregate statistics (used to update Bayesian variables efficiently)
        self._transition_counts: ragged_array.RaggedArray[int] = ragged_array.RaggedArray()

        # the single starting state, with parameters drawn given that every observation is assigned to it
        self.add_state()
        self._transition_counts = self.count_transitions()
        self.sample_transitions()
        self.sample_emissions()

    @property
    def c(self) -> int:
        """Number of chains (emission sequences) in the HMM."""
        return len(self._observations)

    @property
    def k(self) -> int:
        """Number of latent states currently instantiated.

        Returns:
            The number of states, excluding the aggregate unseen state.

        """
        return self.transition_model.k

    @property
    def n(self) -> int:
        """Number of symbols in the emission alphabet."""
        return self.emission_model.n

    @property
    def observations(self) -> ragged_array.RaggedArray[int]:
        return self._observations

    @property
    def latent_sequences(self) -> ragged_array.RaggedArray[int]:
        """The current latent state of every observation, one row per chain."""
        return self._latent_sequences

    @property
    def slice_variables(self) -> ragged_array.RaggedArray[float]:
        return self._slice_variables

    @property
    def transition_matrix(self) -> ragged_array.RaggedArray[float]:
        """The K x (K+1) transition matrix; the final column is the probability of moving to an unseen state."""
        return self.transition_model.value

    @property
    def emission_matrix(self) -> ragged_array.RaggedArray[float]:
        """The K x N emission matrix."""
        return self.emission_model.value

    @property
    def stick_weights(self) -> typing.List[float]:
        """The K+1 top level weights; the final entry is the weight of all unseen states."""
        return self.beta.value

    @property
    def transition_counts(self) -> ragged_array.RaggedArray[int]:
        return self._transition_counts

    @property
    def table_counts(self) -> ragged_array.RaggedArray[int]:
        return self.auxiliary_variable.value

    @property
    def max_unseen(self) -> float:
        """The largest probability, from any instantiated state, of moving to an unseen state."""
        return self.transition_model.max_unseen

    def __repr__(self) -> str:
        return "<beam_hmm.HDPHMM, size {C}>".format(C=self.c)

    def __str__(self) -> str:
        fs = "beam_hmm.HDPHMM," + " ({C} chains, {K} states, {N} emissions, {Ob} observations)"
        return fs.format(C=self.c, K=self.k, N=self.n, Ob=sum(self._observations.sizes()))

    def tabulate(self) -> numpy.ndarray:
        """Create a table containing the state label of every emission and chain.

        Returns:
            A numpy array with dimension (l, 3), where l is the total number of observations. Columns hold the index of
                the chain, the current latent state, and the emission.

        """
        return numpy.concatenate(
            tuple(
                numpy.column_stack(([i] * len(emission_sequence), latent_sequence, emission_sequence))
                for i, (latent_sequence, emission_sequence) in enumerate(
                    zip(self._latent_sequences, self._observations)
                )
            ),
            axis=0,
        )

    def add_state(self) -> int:
        """Instantiate a new latent state, and update all parameters accordingly.

        The unseen weight of beta is broken to give the new state its weight, every transition row breaks its unseen
        probability in turn, and the new state receives transition and emission probabilities drawn from their priors.

        Returns:
            The label of the new state.

        """
        state = self.k

        # add the state to the hierarchical process
        self.beta.add_state()
        self.transition_model.add_state()
        self.emission_model.add_state()

        # new states have no transitions yet
        for counts in (self._transition_counts, self.auxiliary_variable.value):
            for row in counts:
                row.append(0)
            counts.append([0] * (state + 1))

        return state

    def count_transitions(self) -> ragged_array.RaggedArray[int]:
        """Count the transitions between states in the current latent sequences.

        The transition into the first state of a chain is counted as a transition from state 0, matching the
        probability used for it by the forward filter. This keeps the posterior of row 0 consistent with the probability
        of the whole latent sequence, so the counts total the number of observations rather than the number of
        consecutive pairs.

        Returns:
            A K x K array of counts.

        """
        counts: ragged_array.RaggedArray[int] = ragged_array.RaggedArray(self.k, self.k, fill=0)
        for latent_sequence in self._latent_sequences:
            state_prev = chain.STARTING_STATE
            for state in latent_sequence:
                counts[state_prev][state] += 1
                state_prev = state
        return counts

    def count_emissions(self) -> ragged_array.RaggedArray[int]:
        """Count the symbols emitted by each state in the current latent sequences.

        Returns:
            A K x N array of counts.

        """
        counts: ragged_array.RaggedArray[int] = ragged_array.RaggedArray(self.k, self.n, fill=0)
        for latent_sequence, emission_sequence in zip(self._latent_sequences, self._observations):
            for state, emission in zip(latent_sequence, emission_sequence):
                counts[state][emission] += 1
        return counts

    def sample_slice_variables(self) -> float:
        """Resample the slice variables, and instantiate states until every possible transition is instantiated.

        Returns:
            The smallest slice variable.

        Raises:
            NonConvergentGrowth: If more than ``max_states`` states would be required.

        """
        for i, latent_sequence in enumerate(self._latent_sequences):
            self._slice_variables[i][:] = chain.sample_slice_variables(
                latent_sequence, self.transition_matrix, self.provider
            )
        min_slice = min(min(slice_sequence) for slice_sequence in self._slice_variables)

        # if necessary, break the pi stick some more
        while self.max_unseen > min_slice:
            if self.k >= self.max_states:
                raise errors.NonConvergentGrowth(
                    f"Reached {self.k} states, but unseen transition probability {self.max_unseen:.3g} still exceeds "
                    f"the smallest slice variable {min_slice:.3g}."
                )
            self.add_state()

        return min_slice

    def sample_latent_sequences(self) -> ragged_array.RaggedArray[int]:
        """Resample the latent states in all chains, and recompute the transition counts.

        This uses beam sampling: given the slice variables, each chain is forward filtered over the finitely many
        possible transitions, then sampled backwards. Latent sequences are only replaced if every chain succeeds.

        Returns:
            The new latent sequences.

        Raises:
            NumericUnderflow: If a chain has a time step at which no state is possible.

        """
        p_transition = self.transition_matrix.to_numpy()
        p_emission = self.emission_matrix.to_numpy()

        latent_sequences: ragged_array.RaggedArray[int] = ragged_array.RaggedArray()
        for i, (emission_sequence, slice_sequence) in enumerate(zip(self._observations, self._slice_variables)):
            try:
                latent_sequence = chain.resample_latent_sequence(
                    emission_sequence, slice_sequence, p_transition, p_emission, self.provider
                )
            except errors.NumericUnderflow as err:
                raise errors.NumericUnderflow(f"Chain {i}: {err}") from err
            latent_sequences.append(latent_sequence)

        # update counts
        self._latent_sequences = latent_sequences
        self._transition_counts = self.count_transitions()
        return self._latent_sequences

    def sample_transitions(self) -> ragged_array.RaggedArray[float]:
        """Resample every row of the transition matrix from its posterior given the transition counts."""
        return self.transition_model.resample(counts=self._transition_counts)

    def sample_emissions(self) -> ragged_array.RaggedArray[float]:
        """Resample the emission matrix from its posterior given the current latent sequences."""
        return self.emission_model.resample(counts=self.count_emissions())

    def sample_table_counts(self) -> ragged_array.RaggedArray[int]:
        """Resample the auxiliary table counts from their Antoniak distribution given the transition counts."""
        return self.auxiliary_variable.resample(counts=self._transition_counts)

    def sample_stick_weights(self) -> typing.List[float]:
        """Resample the auxiliary table counts, and then beta from its posterior given them."""
        self.sample_table_counts()
        return self.beta.resample(auxiliary=self.auxiliary_variable)

    def sample_beam(self) -> None:
        """Perform one sweep of the beam sampler.

        The stages are always run in the same order: slice variables (instantiating states as required), latent
        sequences, transition probabilities, emission probabilities, and finally the stick breaking process. An error
        in any stage is raised immediately and the remaining stages are not run.

        """
        self.sample_slice_variables()
        self.sample_latent_sequences()
        self.sample_transitions()
        self.sample_emissions()
        self.sample_stick_weights()

    def chain_log_likelihoods(self) -> typing.List[float]:
        """Calculate the log likelihood of every chain in the model.

        Each value uses the current latent states and the current transition and emission matrices; the priors
        over those matrices are not included.

        Returns:
            A list of the log likelihood for each chain.

        """
        return [
            chain.log_likelihood(emission_sequence, latent_sequence, self.transition_matrix, self.emission_matrix)
            for emission_sequence, latent_sequence in zip(self._observations, self._latent_sequences)
        ]

    def log_likelihood(self) -> float:
        """The full joint likelihood of the model and all observed data.

        Returns:
            The total log likelihood of the model, including the stick breaking process, the Dirichlet transition
                probabilities, the Dirichlet emission probabilities, and the latent state transition and emission
                probabilities.

        """
        log_likelihoods = (
            self.beta.log_likelihood(),
            self.transition_model.log_likelihood(),
            self.emission_model.log_likelihood(),
            sum(self.chain_log_likelihoods()),
        )
        return float(sum(log_likelihoods))

    def print_probabilities(self, digits: int = 4) -> typing.Tuple[str, str]:
        """Create an ascii-printable version of the transition and emission parameters.

        Args:
            digits: decimal places to print

        Returns:
            emission parameters, transition parameters: two tables, each containing a
                table parameters.
        """
        # make nested lists for clean printing
        emissions = [
            [str(s)] + [str(round(p, digits)) for p in row] for s, row in enumerate(self.emission_matrix)
        ]
        emissions.insert(0, ["S_i \\ E_i"] + list(map(str, range(self.n))))
        transitions = [
            [str(s)] + [str(round(p, digits)) for p in row] for s, row in enumerate(self.transition_matrix)
        ]
        transitions.insert(0, ["S_i \\ S_j"] + list(map(str, range(self.k))) + ["unseen"])

        # format tables
        te = terminaltables.DoubleTable(emissions, "Emission probabilities")
        tt = terminaltables.DoubleTable(transitions, "Transition probabilities")
        te.padding_left = 1
        te.padding_right = 1
        tt.padding_left = 1
        tt.padding_right = 1
        te.justify_columns[0] = "right"
        tt.justify_columns[0] = "right"

        return te.table, tt.table

    def mcmc(
        self, n: int = 1000, burn_in: int = 500, save_every: int = 10, verbose: bool = True
    ) -> typing.Dict[str, typing.List[typing.Any]]:
        """Iterate beam sampling sweeps to estimate parameters and model fit.

        Use Markov chain Monte Carlo to estimate the transition and emission parameters of the HDPHMM, as well as the
        number of latent states.

        Args:
            n: The number of iterations to complete.
            burn_in: The number of iterations to complete before saving results.
            save_every: only iterations which are a multiple of `save_every`
                will have their results appended to the results.
            verbose: Flag to indicate whether a progress bar and iteration-level statistics should be printed.

        Returns:
            A dict containing results from every saved iteration. Includes:
                + the number of states of the HDPHMM
                + the log likelihood of the entire model
                + the log likelihood of the chains only
                + the stick breaking weights
                + the transition and emission probabilities

        """
        results: typing.Dict[str, typing.List[typing.Any]] = {
            "state_count": list(),
            "log_likelihood": list(),
            "chain_log_likelihood": list(),
            "stick_weights": list(),
            "transition_probabilities": list(),
            "emission_probabilities": list(),
        }

        for i in tqdm.tqdm(range(n), disable=not verbose):
            # update statistics
            k_prev = self.k

            self.sample_beam()

            # update computation-heavy statistics
            likelihood_curr = self.log_likelihood()

            # print iteration summary if required
            if verbose:
                if i == burn_in:
                    tqdm.tqdm.write("Burn-in period complete")
                msg = [
                    "Iter: {}".format(i),
                    "Likelihood: {0:.1f}".format(likelihood_curr),
                    "states: {}".format(self.k),
                ]
                if self.k > k_prev:
                    msg.append("states added: {}".format(self.k - k_prev))
                tqdm.tqdm.write(", ".join(msg))

            # store results
            if i >= burn_in and i % save_every == 0:
                results["state_count"].append(self.k)
                results["log_likelihood"].append(likelihood_curr)
                results["chain_log_likelihood"].append(sum(self.chain_log_likelihoods()))
                results["stick_weights"].append(copy.deepcopy(self.stick_weights))
                results["transition_probabilities"].append(self.transition_matrix.copy())
                results["emission_probabilities"].append(self.emission_matrix.copy())

        return results
