import numpy
import pytest

import beam_hmm


def create_hmm(seed: int = 0, **kwargs) -> beam_hmm.HDPHMM:
    sequences = [[0, 1, 2, 1, 0] * 4, [2, 2, 1, 0] * 3, [1] * 7]
    return beam_hmm.HDPHMM(sequences, gamma=1.0, alpha0=2.0, emission_prior=[0.5, 0.5, 0.5], seed=seed, **kwargs)


def test_initialise_hmm() -> None:
    hmm = create_hmm()

    # a single state explains every observation
    assert hmm.c == 3
    assert hmm.k == 1
    assert hmm.n == 3
    assert hmm.observations.sizes() == [20, 12, 7]
    assert hmm.latent_sequences.sizes() == hmm.observations.sizes()
    assert all(s == 0 for seq in hmm.latent_sequences for s in seq)
    assert all(u == 1.0 for seq in hmm.slice_variables for u in seq)
    assert hmm.transition_counts == beam_hmm.RaggedArray.from_rows([[39]])
    assert hmm.table_counts == beam_hmm.RaggedArray.from_rows([[0]])

    # parameters are probability vectors of the right size
    assert len(hmm.stick_weights) == 2
    assert numpy.isclose(sum(hmm.stick_weights), 1.0)
    assert hmm.transition_matrix.sizes() == [2]
    assert numpy.isclose(sum(hmm.transition_matrix[0]), 1.0)
    assert hmm.emission_matrix.sizes() == [3]
    assert numpy.isclose(sum(hmm.emission_matrix[0]), 1.0)
    assert hmm.max_unseen == hmm.transition_matrix[0][1]


def test_default_emission_prior() -> None:
    hmm = beam_hmm.HDPHMM([[0, 4], [2]], seed=1)
    assert hmm.n == 5
    assert numpy.array_equal(hmm.emission_model.prior, numpy.ones(5))


def test_invalid_hyperparameters() -> None:
    sequences = [[0, 1]]
    with pytest.raises(beam_hmm.InvalidHyperparameter, match="gamma"):
        beam_hmm.HDPHMM(sequences, gamma=0.0)
    with pytest.raises(beam_hmm.InvalidHyperparameter, match="alpha0"):
        beam_hmm.HDPHMM(sequences, alpha0=-1.0)
    with pytest.raises(beam_hmm.InvalidHyperparameter, match="max_states"):
        beam_hmm.HDPHMM(sequences, max_states=0)
    with pytest.raises(beam_hmm.InvalidHyperparameter, match="positive"):
        beam_hmm.HDPHMM(sequences, emission_prior=[1.0, 0.0])
    with pytest.raises(beam_hmm.InvalidHyperparameter, match="non-empty"):
        beam_hmm.HDPHMM(sequences, emission_prior=[])
    with pytest.raises(beam_hmm.InvalidHyperparameter, match="non-empty"):
        beam_hmm.HDPHMM(sequences, emission_prior=[[1.0, 1.0]])

    # construction errors are value errors
    with pytest.raises(ValueError):
        beam_hmm.HDPHMM(sequences, gamma=float("nan"))


def test_degenerate_observations() -> None:
    with pytest.raises(beam_hmm.DegenerateObservation, match="At least one"):
        beam_hmm.HDPHMM([])
    with pytest.raises(beam_hmm.DegenerateObservation, match="sequence 1 has zero length"):
        beam_hmm.HDPHMM([[0, 1], []])
    with pytest.raises(beam_hmm.DegenerateObservation, match="outside"):
        beam_hmm.HDPHMM([[0, 2]], emission_prior=[1.0, 1.0])
    with pytest.raises(beam_hmm.DegenerateObservation, match="outside"):
        beam_hmm.HDPHMM([[0, -1]], emission_prior=[1.0, 1.0])
    assert issubclass(beam_hmm.DegenerateObservation, beam_hmm.BeamSamplerError)


def test_print() -> None:
    # checks that printing does not cause an error
    hmm = create_hmm()
    hmm.sample_beam()
    print(hmm)
    assert repr(hmm) == "<beam_hmm.HDPHMM, size 3>"
    assert "39 observations" in str(hmm)
    emissions, transitions = hmm.print_probabilities()
    assert "Emission probabilities" in emissions
    assert "unseen" in transitions


def test_tabulate() -> None:
    hmm = create_hmm()
    hmm.sample_beam()
    table = hmm.tabulate()
    assert table.shape == (39, 3)
    assert list(table[:, 0]) == [0] * 20 + [1] * 12 + [2] * 7
    assert list(table[:20, 1]) == list(hmm.latent_sequences[0])
    assert list(table[20:32, 2]) == [2, 2, 1, 0] * 3


def test_seeded_sweeps_are_reproducible() -> None:
    hmm_a = create_hmm(seed=12)
    hmm_b = create_hmm(seed=12)
    for _ in range(5):
        hmm_a.sample_beam()
        hmm_b.sample_beam()
    assert hmm_a.latent_sequences == hmm_b.latent_sequences
    assert hmm_a.transition_matrix == hmm_b.transition_matrix
    assert hmm_a.stick_weights == hmm_b.stick_weights


def test_sweep_invariants() -> None:
    hmm = create_hmm(seed=3)
    total = sum(hmm.observations.sizes())
    k_prev = hmm.k

    for _ in range(25):
        hmm.sample_slice_variables()
        assert hmm.max_unseen <= min(min(seq) for seq in hmm.slice_variables)
        assert hmm.k >= k_prev
        k_prev = hmm.k

        # every realised transition clears its slice
        hmm.sample_latent_sequences()
        for latent_sequence, slice_sequence in zip(hmm.latent_sequences, hmm.slice_variables):
            states_prev = [beam_hmm.STARTING_STATE] + latent_sequence[:-1]
            assert all(
                u < hmm.transition_matrix[s0][s1]
                for u, s0, s1 in zip(slice_sequence, states_prev, latent_sequence)
            )
            assert all(0 <= s < hmm.k for s in latent_sequence)
        assert hmm.latent_sequences.sizes() == hmm.observations.sizes()
        assert sum(hmm.transition_counts.sum(i) for i in range(hmm.k)) == total

        hmm.sample_transitions()
        assert hmm.transition_matrix.sizes() == [hmm.k + 1] * hmm.k
        assert all(numpy.isclose(sum(row), 1.0) for row in hmm.transition_matrix)

        hmm.sample_emissions()
        assert hmm.emission_matrix.sizes() == [hmm.n] * hmm.k
        assert all(numpy.isclose(sum(row), 1.0) for row in hmm.emission_matrix)

        hmm.sample_stick_weights()
        assert len(hmm.stick_weights) == hmm.k + 1
        assert numpy.isclose(sum(hmm.stick_weights), 1.0)
        for i in range(hmm.k):
            for j in range(hmm.k):
                assert hmm.table_counts[i][j] <= hmm.transition_counts[i][j]
                assert (hmm.table_counts[i][j] > 0) == (hmm.transition_counts[i][j] > 0)


def test_emission_counts() -> None:
    hmm = create_hmm(seed=5)
    for _ in range(3):
        hmm.sample_beam()
    counts = hmm.count_emissions()
    assert counts.sizes() == [hmm.n] * hmm.k
    assert sum(counts.sum(i) for i in range(hmm.k)) == 39
    assert sum(counts[s][2] for s in range(hmm.k)) == 10


def two_state_hmm(scripted_provider, sequences):
    provider = scripted_provider()
    hmm = beam_hmm.HDPHMM(sequences, gamma=1.0, alpha0=1.0, emission_prior=[1.0, 1.0], provider=provider)
    hmm.add_state()
    hmm.transition_matrix[0][:] = [0.6, 0.3, 0.1]
    hmm.transition_matrix[1][:] = [0.2, 0.7, 0.1]
    hmm.emission_matrix[0][:] = [0.9, 0.1]
    hmm.emission_matrix[1][:] = [0.2, 0.8]
    return provider, hmm


def test_scripted_latent_sequence(scripted_provider) -> None:
    """Check beam sampling against a hand computed two state example."""
    provider, hmm = two_state_hmm(scripted_provider, [[0, 0, 1, 1]])
    assert hmm.k == 2
    hmm.slice_variables[0][:] = [0.05, 0.25, 0.05, 0.25]

    provider.uniforms.extend([0.5, 0.05, 0.9, 0.5])
    hmm.sample_latent_sequences()
    assert hmm.latent_sequences[0] == [0, 1, 0, 1]
    assert hmm.transition_counts == beam_hmm.RaggedArray.from_rows([[1, 2], [1, 0]])
    assert hmm.count_emissions() == beam_hmm.RaggedArray.from_rows([[1, 1], [1, 1]])


def test_latent_sequences_underflow(scripted_provider) -> None:
    provider, hmm = two_state_hmm(scripted_provider, [[0, 0], [0, 1]])
    hmm.emission_matrix[0][:] = [1.0, 0.0]
    hmm.emission_matrix[1][:] = [1.0, 0.0]
    for slice_sequence in hmm.slice_variables:
        slice_sequence[:] = [0.01, 0.01]
    latent_sequences = hmm.latent_sequences

    # the second chain cannot be explained, so nothing is changed
    with pytest.raises(beam_hmm.NumericUnderflow, match="Chain 1"):
        hmm.sample_latent_sequences()
    assert hmm.latent_sequences is latent_sequences
    assert hmm.latent_sequences == beam_hmm.RaggedArray.from_rows([[0, 0], [0, 0]])


def test_add_state(scripted_provider) -> None:
    provider, hmm = two_state_hmm(scripted_provider, [[0, 1]])
    assert hmm.add_state() == 2
    assert hmm.k == 3
    assert len(hmm.stick_weights) == 4
    assert hmm.transition_matrix.sizes() == [4, 4, 4]
    assert hmm.emission_matrix.sizes() == [2, 2, 2]
    assert hmm.transition_counts.sizes() == [3, 3, 3]
    assert hmm.table_counts.sizes() == [3, 3, 3]
    assert all(numpy.isclose(sum(row), 1.0) for row in hmm.transition_matrix)

    # existing transitions are kept, and the unseen mass is split
    assert hmm.transition_matrix[0][:2] == [0.6, 0.3]
    assert numpy.isclose(sum(hmm.transition_matrix[0][2:]), 0.1)


def test_guaranteed_growth(scripted_provider) -> None:
    # small uniforms force small slices, so states are added until the unseen mass is below them
    provider = scripted_provider(default=0.01)
    hmm = beam_hmm.HDPHMM([[0, 1, 0]], gamma=1.0, alpha0=1.0, emission_prior=[1.0, 1.0], provider=provider)
    assert hmm.k == 1
    # the first row is drawn given three transitions into state 0
    assert hmm.transition_matrix[0] == [0.875, 0.125]

    min_slice = hmm.sample_slice_variables()
    assert min_slice == pytest.approx(0.00875)
    assert hmm.slice_variables[0] == pytest.approx([0.00875] * 3)

    # new rows take the unseen mass of beta, which halves with each new state
    assert hmm.k == 7
    assert hmm.max_unseen == pytest.approx(0.5 ** 7)
    assert hmm.max_unseen <= min_slice
    assert numpy.isclose(sum(hmm.stick_weights), 1.0)


def test_growth_bound(scripted_provider) -> None:
    provider = scripted_provider(default=0.01)
    hmm = beam_hmm.HDPHMM(
        [[0, 1, 0]], gamma=1.0, alpha0=1.0, emission_prior=[1.0, 1.0], provider=provider, max_states=3
    )
    with pytest.raises(beam_hmm.NonConvergentGrowth, match="Reached 3 states"):
        hmm.sample_slice_variables()
    assert hmm.k == 3

    # a single state cannot grow at all
    provider = scripted_provider(default=0.01)
    hmm = beam_hmm.HDPHMM(
        [[0, 1, 0]], gamma=1.0, alpha0=1.0, emission_prior=[1.0, 1.0], provider=provider, max_states=1
    )
    with pytest.raises(beam_hmm.NonConvergentGrowth):
        hmm.sample_beam()
    assert hmm.k == 1


def test_log_likelihood() -> None:
    hmm = create_hmm(seed=9)
    for _ in range(5):
        hmm.sample_beam()

    chain_log_likelihoods = hmm.chain_log_likelihoods()
    assert len(chain_log_likelihoods) == 3
    assert all(numpy.isfinite(x) and x < 0 for x in chain_log_likelihoods)
    assert isinstance(hmm.log_likelihood(), float)


def test_stirling_cache_size() -> None:
    hmm = create_hmm(seed=2, stirling_cache_size=2)
    for _ in range(5):
        hmm.sample_beam()
    assert len(hmm.auxiliary_variable.stirling_cache) <= 2


@pytest.mark.parametrize("seed", range(20))
def test_small_concentration_slices(seed: int) -> None:
    # the starting parameters must give the initial latent sequences positive probability
    hmm = beam_hmm.HDPHMM([[0, 1, 0, 1]], alpha0=1e-3, emission_prior=[1e-3, 1e-3], seed=seed, max_states=40)
    assert hmm.transition_matrix[0][0] > 0
    assert all(p > 0 for p in hmm.emission_matrix[0])

    hmm.sample_slice_variables()
    assert all(u > 0 for seq in hmm.slice_variables for u in seq)
    assert hmm.k < 40
    hmm.sample_beam()
