"""
Main training orchestration module.

Ties together the draw predictor, the evolving population and
checkpointing. One generation tick per consecutive pair of draws:

1. Predict per-number scores from the previous draw
2. Advance the population against the current draw
3. Fit the predictor on (previous draw -> current draw)
4. Checkpoint every ``checkpoint_interval`` ticks

Cancellation is checked between ticks only, so readers never see a
half-finished generation.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .. import settings
from ..draws import Draw, encode_draw
from ..evaluation.metrics import PredictionMetrics, cross_validate
from ..evolution.players import Player
from ..evolution.population import EvolutionConfig, GenerationStats, Population
from ..exceptions import NotFoundError, TrainingError, ValidationError
from ..networks.architectures import draw_predictor_architecture
from ..networks.predictor import Predictor
from .checkpoints import (
    POPULATION_FILE,
    CheckpointStore,
    ModelCheckpointManager,
    SaveResult,
    checkpoint_name,
)


@dataclass
class TrainingConfig:
    """Configuration for a training run."""

    # Predictor
    learning_rate: float = settings.LEARNING_RATE
    hidden_sizes: List[int] = field(default_factory=lambda: [64, 32, 16])
    dropout: float = 0.2
    epochs_per_draw: int = settings.EPOCHS_PER_DRAW
    batch_size: int = 32

    # Checkpoints
    checkpoint_dir: str = settings.CHECKPOINT_DIR
    checkpoint_interval: int = settings.CHECKPOINT_INTERVAL

    # Validation of the champion's predictions
    validation_folds: int = 10


@dataclass
class TrainingResult:
    """Results from a training run."""
    ticks: int = 0
    cancelled: bool = False
    best_fitness: float = 0.0
    last_loss: Optional[float] = None
    last_accuracy: Optional[float] = None
    champion: Optional[Player] = None
    checkpoint_dir: Optional[str] = None
    training_time_seconds: float = 0.0
    validation: List[PredictionMetrics] = field(default_factory=list)
    history: List[Dict[str, Any]] = field(default_factory=list)


class Trainer:
    """
    Runs the population and the predictor over a draw history.

    Example:
        trainer = Trainer(TrainingConfig(checkpoint_dir='./checkpoints'))
        result = trainer.train(draws)
        print(f"Champion: {result.champion.id} best={result.best_fitness:.2f}")

        # In a later process
        trainer = Trainer(TrainingConfig(checkpoint_dir='./checkpoints'))
        trainer.resume()
        trainer.train(new_draws)
    """

    def __init__(
        self,
        config: Optional[TrainingConfig] = None,
        population: Optional[Population] = None,
        predictor: Optional[Predictor] = None,
        checkpoint_manager: Optional[ModelCheckpointManager] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the trainer.

        Args:
            config: Training configuration.
            population: Population to evolve (a default one if None).
            predictor: Draw predictor (built from config if None).
            checkpoint_manager: Where checkpoints go (config.checkpoint_dir if None).
            logger: Logger shared with the default components.
        """
        self.config = config or TrainingConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.population = population or Population(EvolutionConfig(), logger=self.logger)
        self.predictor = predictor or Predictor.build(
            draw_predictor_architecture(
                universe=self.population.config.universe,
                hidden_sizes=self.config.hidden_sizes,
                dropout=self.config.dropout,
            ),
            learning_rate=self.config.learning_rate,
            logger=self.logger,
        )
        self.checkpoint_manager = checkpoint_manager or ModelCheckpointManager(
            CheckpointStore(self.config.checkpoint_dir, logger=self.logger),
            logger=self.logger,
        )
        self.draws_seen = 0

    def train(
        self,
        draws: Sequence[Draw],
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[int, GenerationStats, Dict[str, float]], None]] = None,
    ) -> TrainingResult:
        """
        Run one tick per consecutive pair of draws.

        Args:
            draws: Draw history, oldest first.
            cancel_event: When set, the run stops before the next tick.
            progress_callback: Called with (generation, stats, fit metrics).

        Returns:
            Training results.

        Raises:
            ValidationError: If fewer than two draws are given.
            TrainingError: If the predictor fails. Population, predictor
                          and draws_seen are rolled back to the start of
                          the failed tick.
            OSError: If a checkpoint cannot be written; a periodic
                    checkpoint failure rolls back its tick the same way.
        """
        if len(draws) < 2:
            raise ValidationError("Training needs at least two draws")

        if not self.population.players:
            self.population.initialize()

        universe = self.population.config.universe
        result = TrainingResult()
        start_time = time.time()
        last_metrics: Dict[str, float] = {}

        for previous, current in zip(draws, draws[1:]):
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                self.logger.info(
                    f"Training cancelled at generation {self.population.generation} "
                    f"after {result.ticks} ticks"
                )
                break

            population_state = self.population.snapshot()
            predictor_state = self.predictor.snapshot()
            draws_seen = self.draws_seen

            try:
                stats, last_metrics = self._tick(previous, current, universe)
                self.draws_seen += 1

                interval = self.config.checkpoint_interval
                if interval > 0 and (result.ticks + 1) % interval == 0:
                    result.checkpoint_dir = self.checkpoint(last_metrics).checkpoint_dir
            except (TrainingError, OSError):
                self.population.rollback(population_state)
                self.predictor.rollback(predictor_state)
                self.draws_seen = draws_seen
                self.logger.error(
                    f"Tick on draw {current.draw_index} failed; "
                    f"population stays at generation {self.population.generation}"
                )
                raise

            result.ticks += 1
            result.best_fitness = max(result.best_fitness, stats.best_fitness)
            result.last_loss = last_metrics.get('loss')
            result.last_accuracy = last_metrics.get('accuracy')
            result.history.append({
                'generation': stats.generation,
                'draw_index': current.draw_index,
                'best_fitness': stats.best_fitness,
                'avg_fitness': stats.avg_fitness,
                'loss': result.last_loss,
            })

            if progress_callback:
                progress_callback(self.population.generation, stats, last_metrics)

        if result.ticks and result.checkpoint_dir != checkpoint_name(self.population.generation):
            result.checkpoint_dir = self.checkpoint(last_metrics).checkpoint_dir

        result.champion = self.population.get_champion()
        result.validation = self._validate_champion(result.champion, draws[1:result.ticks + 1])
        result.training_time_seconds = time.time() - start_time
        return result

    def _tick(
        self,
        previous: Draw,
        current: Draw,
        universe: int,
    ) -> Tuple[GenerationStats, Dict[str, float]]:
        features = encode_draw(previous.numbers, universe)
        scores = self.predictor.predict(features)
        stats = self.population.advance(current.numbers, scores=scores)

        history = self.predictor.fit(
            [features],
            [encode_draw(current.numbers, universe)],
            epochs=self.config.epochs_per_draw,
            batch_size=self.config.batch_size,
        )
        return stats, (history[-1] if history else {})

    def checkpoint(self, metrics: Optional[Dict[str, float]] = None) -> SaveResult:
        """
        Save predictor, optimizer state, metadata and population together.

        The population goes first; a directory only lists as a checkpoint
        once the model manifest is written.

        Returns:
            SaveResult for the predictor part.

        Raises:
            OSError: If any part cannot be written.
        """
        metrics = metrics or {}
        name = checkpoint_name(self.population.generation)
        metadata = {
            'generation': self.population.generation,
            'draws_seen': self.draws_seen,
            'epochs': self.predictor.epochs_trained,
            'loss': metrics.get('loss'),
            'accuracy': metrics.get('accuracy'),
            'best_fitness': self.population.best_fitness,
        }

        self.population.save_checkpoint(
            self.checkpoint_manager.store, f'{name}/{POPULATION_FILE}'
        )
        return self.checkpoint_manager.save(self.predictor, name, metadata=metadata)

    def resume(self, checkpoint_dir: Optional[str] = None) -> str:
        """
        Restore predictor and population from a checkpoint.

        Args:
            checkpoint_dir: Checkpoint to resume from (latest if None).

        Returns:
            The checkpoint directory that was loaded.

        Raises:
            NotFoundError: If there is no such checkpoint or it lacks a
                          model or population snapshot.
        """
        checkpoint_dir = checkpoint_dir or self.checkpoint_manager.latest_checkpoint()
        if checkpoint_dir is None:
            raise NotFoundError(f"No checkpoints in {self.checkpoint_manager.store.base_path}")

        predictor = self.checkpoint_manager.load(checkpoint_dir)
        if predictor is None:
            raise NotFoundError(f"Checkpoint {checkpoint_dir} has no model")

        self.population.load_checkpoint(
            self.checkpoint_manager.store, f'{checkpoint_dir}/{POPULATION_FILE}'
        )
        self.predictor = predictor

        metadata = self.checkpoint_manager.load_metadata(checkpoint_dir) or {}
        self.draws_seen = metadata.get('draws_seen', 0)

        self.logger.info(
            f"Resumed from {checkpoint_dir} (generation {self.population.generation}, "
            f"optimizer {'restored' if predictor.optimizer_state_restored else 'reset'})"
        )
        return checkpoint_dir

    def _validate_champion(
        self,
        champion: Optional[Player],
        observed: Sequence[Draw],
    ) -> List[PredictionMetrics]:
        if champion is None or not champion.predictions or not observed:
            return []

        actual = [list(d.numbers) for d in observed]
        n = min(len(champion.predictions), len(actual))
        folds = min(self.config.validation_folds, n)
        return cross_validate(champion.predictions[-n:], actual[-n:], folds=folds)
