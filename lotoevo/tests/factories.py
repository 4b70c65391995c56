"""
Factory Boy factories for lotoevo records.

These factories create test players with sensible defaults.
"""
import factory

from lotoevo.evolution.players import Niche, Player


class PlayerFactory(factory.Factory):
    """Factory for creating Player instances."""

    class Meta:
        model = Player

    id = factory.Sequence(lambda n: n + 1)
    weights = factory.LazyFunction(lambda: [0.5] * 25)
    score = 0
    predictions = factory.LazyFunction(list)
    fitness = 0.0
    generation = 1
    age = 0
    niche = Niche.GENERAL
