"""
Evolutionary population engine.

Players are weight vectors scored against historical draws. Each
generation tick evaluates every player, ranks them, keeps the top
performers and refills the population with crossover children and
mutation clones.

This module provides:
- Player records and the Niche enumeration
- Fitness evaluation and niche bonuses
- Mutation and crossover operators
- Ranking and truncation selection
- Population management

Example usage:
    from lotoevo.evolution import Population, EvolutionConfig

    pop = Population(EvolutionConfig(total_players=100, seed=7))
    pop.initialize()

    for draw in draws:
        stats = pop.advance(draw.numbers)
        print(f"Gen {stats.generation}: best={stats.best_fitness:.2f}")

    champion = pop.get_champion()
"""
from .players import Player, Niche
from .niches import NicheClassifier, count_sequences
from .fitness import FitnessEvaluator
from .mutations import WeightMutator
from .crossover import WeightCrossover
from .selection import TruncationSelection, rank_players, rank_key
from .predictions import predict_numbers
from .population import Population, EvolutionConfig, GenerationStats

__all__ = [
    # Records
    'Player',
    'Niche',

    # Scoring
    'NicheClassifier',
    'count_sequences',
    'FitnessEvaluator',

    # Operators
    'WeightMutator',
    'WeightCrossover',

    # Selection
    'TruncationSelection',
    'rank_players',
    'rank_key',

    # Prediction
    'predict_numbers',

    # Population management
    'Population',
    'EvolutionConfig',
    'GenerationStats',
]
