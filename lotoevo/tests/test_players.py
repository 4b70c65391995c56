"""
Tests for player records.
"""
import pytest

from lotoevo.evolution.players import Niche, Player
from lotoevo.exceptions import ValidationError

from .factories import PlayerFactory


class TestPlayer:
    """Tests for Player serialization and validation."""

    def test_round_trip(self):
        player = PlayerFactory(
            score=4, predictions=[[1, 2, 3]], generation=3, age=2, niche=Niche.ODD_AFFINITY,
        )
        assert Player.from_dict(player.to_dict()) == player

    def test_fitness_reset_on_load(self):
        player = PlayerFactory(fitness=9.5)
        assert Player.from_dict(player.to_dict()).fitness == 0.0

    def test_defaults(self):
        player = Player.from_dict({'id': 1, 'weights': [0.5]})
        assert player.generation == 1
        assert player.age == 0
        assert player.niche == Niche.GENERAL

    @pytest.mark.parametrize('record', [
        {'weights': [0.5]},
        {'id': 'x', 'weights': [0.5]},
        {'id': 1, 'weights': 'abc'},
        {'id': 1, 'weights': [1.5]},
        {'id': 1, 'weights': [0.5], 'predictions': [['a']]},
        {'id': 1, 'weights': [0.5], 'niche': 9},
        {'id': 1, 'weights': [0.5], 'age': -1},
    ])
    def test_invalid_records(self, record):
        with pytest.raises(ValidationError):
            Player.from_dict(record)

    def test_weight_count(self):
        with pytest.raises(ValidationError):
            Player.from_dict({'id': 1, 'weights': [0.5] * 3}, weight_count=25)

    def test_new_id_positive(self):
        assert Player.new_id() >= 1
