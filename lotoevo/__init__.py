"""
lotoevo: evolutionary draw-prediction engine.

Subpackages:
- evolution: players, fitness, niches, mutation, crossover, population
- networks: draw predictor networks and the binary weight codec
- training: checkpoint store, model checkpoints, training loop
- evaluation: cross-validation metrics
"""
__version__ = '0.1.0'
