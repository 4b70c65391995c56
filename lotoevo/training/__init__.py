"""
Training infrastructure for draw predictors and the population.

This module provides:
- CheckpointStore: key-addressed JSON/binary file store
- ModelCheckpointManager: predictor parameters + optimizer state as one unit
- Trainer: generation-tick orchestration with cancellation and resume

Example usage:
    from lotoevo.training import Trainer, TrainingConfig

    trainer = Trainer(TrainingConfig(checkpoint_dir='./checkpoints'))
    result = trainer.train(draws)
"""
from .checkpoints import (
    CheckpointStore,
    ModelCheckpointManager,
    SaveResult,
    checkpoint_name,
)
from .trainer import Trainer, TrainingConfig, TrainingResult

__all__ = [
    # Checkpoints
    'CheckpointStore',
    'ModelCheckpointManager',
    'SaveResult',
    'checkpoint_name',

    # Orchestration
    'Trainer',
    'TrainingConfig',
    'TrainingResult',
]
