"""
Tests for evolution operators.

Tests the mutation, crossover, selection and prediction helpers for:
- Weight bounds and lineage counters
- Fitness-biased crossover
- Deterministic ranking
"""
import random

import pytest

from lotoevo.evolution.crossover import WeightCrossover
from lotoevo.evolution.mutations import WeightMutator
from lotoevo.evolution.players import Niche
from lotoevo.evolution.predictions import predict_numbers
from lotoevo.evolution.selection import TruncationSelection, rank_players

from .factories import PlayerFactory


class TestWeightMutator:
    """Tests for WeightMutator."""

    def test_adaptive_rate_grows_with_age(self):
        mutator = WeightMutator(base_rate=0.1)
        assert mutator.adaptive_rate(0) == pytest.approx(0.1)
        assert mutator.adaptive_rate(50) == pytest.approx(0.2)
        assert mutator.adaptive_rate(25, base_rate=0.2) == pytest.approx(0.3)

    def test_weights_stay_in_unit_interval(self):
        """Even a huge jitter cannot push weights outside [0, 1]."""
        mutator = WeightMutator(base_rate=1.0, jitter=10.0, rng=random.Random(1))
        parent = PlayerFactory(weights=[1.0, 0.0, 0.5, 0.99, 0.01] * 5)

        for _ in range(50):
            child = mutator.mutate(parent)
            assert all(0.0 <= w <= 1.0 for w in child.weights)

    def test_zero_rate_copies_weights(self):
        mutator = WeightMutator(base_rate=0.0)
        parent = PlayerFactory(weights=[0.25] * 25, age=10)
        assert mutator.mutate(parent).weights == parent.weights

    def test_child_lineage(self):
        mutator = WeightMutator(rng=random.Random(3))
        parent = PlayerFactory(generation=4, age=7, score=12, predictions=[[1, 2, 3]])

        child = mutator.mutate(parent)

        assert child.generation == 5
        assert child.age == 0
        assert child.score == 0
        assert child.predictions == []
        assert child.id != parent.id

    def test_parent_untouched(self):
        mutator = WeightMutator(base_rate=1.0, rng=random.Random(5))
        parent = PlayerFactory(weights=[0.5] * 25)
        mutator.mutate(parent)
        assert parent.weights == [0.5] * 25

    def test_clone_keeps_niche_nine_times_in_ten(self):
        """Kept 90% of the time, plus a quarter of the random redraws."""
        mutator = WeightMutator(base_rate=0.0, rng=random.Random(17))
        parent = PlayerFactory(niche=Niche.SEQUENCE_AFFINITY)

        trials = 4000
        kept = sum(mutator.mutate(parent).niche == parent.niche for _ in range(trials))

        assert kept / trials == pytest.approx(0.9 + 0.1 / len(Niche), abs=0.02)


class TestWeightCrossover:
    """Tests for WeightCrossover."""

    @pytest.fixture
    def crossover(self):
        return WeightCrossover(rng=random.Random(11))

    def test_pick_probability(self, crossover):
        fit = PlayerFactory(fitness=5.0)
        weak = PlayerFactory(fitness=1.0)

        assert crossover.pick_probability(fit, weak) == pytest.approx(0.7)
        assert crossover.pick_probability(weak, fit) == pytest.approx(0.3)
        assert crossover.pick_probability(weak, weak) == pytest.approx(0.5)

    def test_child_weights_come_from_parents(self, crossover):
        a = PlayerFactory(weights=[0.1] * 25, fitness=3.0)
        b = PlayerFactory(weights=[0.9] * 25, fitness=1.0)

        child = crossover.crossover(a, b)

        assert len(child.weights) == 25
        assert set(child.weights) <= {0.1, 0.9}

    def test_generation_is_max_plus_one(self, crossover):
        a = PlayerFactory(generation=3)
        b = PlayerFactory(generation=7)
        assert crossover.crossover(a, b).generation == 8

    def test_child_is_newborn(self, crossover):
        child = crossover.crossover(PlayerFactory(age=3), PlayerFactory(age=9))
        assert child.age == 0
        assert child.score == 0
        assert child.predictions == []

    def test_niche_follows_fitter_parent(self):
        crossover = WeightCrossover(niche_keep_probability=1.0)
        a = PlayerFactory(fitness=1.0, niche=Niche.EVEN_AFFINITY)
        b = PlayerFactory(fitness=2.0, niche=Niche.ODD_AFFINITY)
        assert crossover.crossover(a, b).niche == Niche.ODD_AFFINITY

    def test_niche_tie_goes_to_second_parent(self):
        crossover = WeightCrossover(niche_keep_probability=1.0)
        a = PlayerFactory(fitness=1.0, niche=Niche.EVEN_AFFINITY)
        b = PlayerFactory(fitness=1.0, niche=Niche.SEQUENCE_AFFINITY)
        assert crossover.crossover(a, b).niche == Niche.SEQUENCE_AFFINITY

    @pytest.mark.parametrize('fitness_a, fitness_b, expected', [
        (3.0, 1.0, 0.7),
        (1.0, 3.0, 0.3),
        (2.0, 2.0, 0.5),
    ])
    def test_weights_favour_fitter_parent(self, fitness_a, fitness_b, expected):
        crossover = WeightCrossover(rng=random.Random(23))
        a = PlayerFactory(weights=[0.0] * 25, fitness=fitness_a)
        b = PlayerFactory(weights=[1.0] * 25, fitness=fitness_b)

        picks = [w for _ in range(2000) for w in crossover.crossover(a, b).weights]
        share_from_a = picks.count(0.0) / len(picks)

        assert share_from_a == pytest.approx(expected, abs=0.01)

    def test_child_niche_matches_fitter_parent(self):
        crossover = WeightCrossover(rng=random.Random(29))
        a = PlayerFactory(fitness=1.0, niche=Niche.EVEN_AFFINITY)
        b = PlayerFactory(fitness=2.0, niche=Niche.ODD_AFFINITY)

        trials = 4000
        kept = sum(crossover.crossover(a, b).niche == Niche.ODD_AFFINITY for _ in range(trials))

        assert kept / trials == pytest.approx(0.8 + 0.2 / len(Niche), abs=0.02)

    def test_length_mismatch(self, crossover):
        with pytest.raises(ValueError):
            crossover.crossover(PlayerFactory(weights=[0.5] * 3), PlayerFactory(weights=[0.5] * 4))


class TestSelection:
    """Tests for ranking and truncation selection."""

    def test_rank_by_fitness(self):
        players = [PlayerFactory(fitness=f) for f in (1.0, 3.0, 2.0)]
        assert [p.fitness for p in rank_players(players)] == [3.0, 2.0, 1.0]

    def test_tie_broken_by_younger_age(self):
        older = PlayerFactory(fitness=10.0, age=5)
        younger = PlayerFactory(fitness=10.0, age=2)

        ranked = rank_players([older, younger])

        assert ranked[0] is younger

    def test_full_tie_keeps_order(self):
        a = PlayerFactory(fitness=1.0, age=1)
        b = PlayerFactory(fitness=1.0, age=1)
        assert rank_players([a, b]) == [a, b]
        assert rank_players([b, a]) == [b, a]

    def test_survivor_count(self):
        selection = TruncationSelection(survivor_fraction=0.25)
        assert selection.survivor_count(100) == 25
        assert selection.survivor_count(3) == 1

    def test_survivors_are_top_ranked(self):
        selection = TruncationSelection(survivor_fraction=0.5)
        players = [PlayerFactory(fitness=f) for f in (1.0, 4.0, 2.0, 3.0)]
        assert [p.fitness for p in selection.survivors(players)] == [4.0, 3.0]

    def test_select_pair_distinct(self):
        selection = TruncationSelection(rng=random.Random(2))
        parents = [PlayerFactory() for _ in range(4)]
        a, b = selection.select_pair(parents)
        assert a is not b

    def test_select_pair_single_parent(self):
        selection = TruncationSelection()
        only = PlayerFactory()
        assert selection.select_pair([only]) == (only, only)

    def test_invalid_fraction(self):
        with pytest.raises(ValueError):
            TruncationSelection(survivor_fraction=0.0)


class TestPredictNumbers:
    """Tests for predict_numbers."""

    def test_top_scores(self):
        scores = [i / 25 for i in range(1, 26)]
        assert predict_numbers(scores, [1.0]) == list(range(11, 26))

    def test_ties_go_to_lower_numbers(self):
        assert predict_numbers([0.5] * 25, [1.0]) == list(range(1, 16))

    def test_weights_reorder_scores(self):
        weights = [0.0] * 10 + [1.0] * 15
        assert predict_numbers([0.5] * 25, weights) == list(range(11, 26))

    def test_draw_size(self):
        assert len(predict_numbers([0.5] * 25, [1.0], draw_size=5)) == 5

    def test_too_few_scores(self):
        with pytest.raises(ValueError):
            predict_numbers([0.5] * 10, [1.0])

    def test_no_weights(self):
        with pytest.raises(ValueError):
            predict_numbers([0.5] * 25, [])
