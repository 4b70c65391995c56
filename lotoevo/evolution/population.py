"""
Population management for the evolutionary engine.

Handles the lifecycle of a fixed-size population of players:
- Initialization (randomized weights, one elite slot with a head start)
- Evaluation (fitness against the current draw)
- Ranking and truncation selection
- Reproduction (crossover children and mutation clones)
- Atomic replacement of the generation

Every generation tick runs on a private copy of the population and is
swapped in only once it has completed, so an exception mid-tick leaves
the previous generation untouched.
"""
import copy
import logging
import random
import threading
from dataclasses import asdict, dataclass
from typing import (
    Any, Callable, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING,
)

from .. import settings
from ..exceptions import NotFoundError, ValidationError
from .crossover import WeightCrossover
from .fitness import FitnessEvaluator
from .mutations import WeightMutator
from .niches import NicheClassifier
from .players import Player
from .predictions import predict_numbers
from .selection import TruncationSelection, rank_players

if TYPE_CHECKING:
    from ..training.checkpoints import CheckpointStore

WEIGHT_SCALE = 1000
ELITE_WEIGHT_FLOOR = 500


@dataclass
class EvolutionConfig:
    """Configuration for an evolving population."""

    # Population
    total_players: int = settings.TOTAL_PLAYERS
    weight_count: int = settings.WEIGHT_COUNT
    elite_index: int = settings.ELITE_INDEX

    # Selection
    survivor_fraction: float = settings.SURVIVOR_FRACTION

    # Reproduction: share of offspring made by crossover, the rest are mutation clones
    crossover_rate: float = settings.CROSSOVER_RATE

    # Mutation
    base_mutation_rate: float = settings.BASE_MUTATION_RATE
    mutation_jitter: float = 0.05
    mutation_niche_keep: float = 0.9

    # Crossover
    crossover_fitness_bias: float = 0.2
    crossover_niche_keep: float = 0.8

    # Draws
    draw_size: int = settings.DRAW_SIZE
    universe: int = settings.NUMBER_UNIVERSE

    seed: Optional[int] = None

    def validate(self) -> None:
        """
        Raises:
            ValidationError: If any setting is out of range.
        """
        if self.total_players < 1:
            raise ValidationError("total_players must be at least 1")
        if self.weight_count < 1:
            raise ValidationError("weight_count must be at least 1")
        if not 0.0 < self.survivor_fraction <= 1.0:
            raise ValidationError("survivor_fraction must be in (0, 1]")
        if not 0.0 <= self.crossover_rate <= 1.0:
            raise ValidationError("crossover_rate must be in [0, 1]")
        if not 0 < self.draw_size <= self.universe:
            raise ValidationError("draw_size must be in 1..universe")


@dataclass
class GenerationStats:
    """Statistics for a generation tick."""
    generation: int = 0
    best_fitness: float = 0.0
    avg_fitness: float = 0.0
    min_fitness: float = 0.0
    fitness_std: float = 0.0
    champion_id: Optional[int] = None
    num_survivors: int = 0
    num_mutations: int = 0
    num_crossovers: int = 0


class Population:
    """
    Owns the player population and advances it one draw at a time.

    Only one tick may run at a time against a population; a second
    concurrent call to advance() raises RuntimeError.

    Example:
        config = EvolutionConfig(total_players=100)
        pop = Population(config)
        pop.initialize()

        for draw in draws:
            stats = pop.advance(draw.numbers, scores=model_scores)
            print(f"Gen {stats.generation}: best={stats.best_fitness:.2f}")

        champion = pop.get_champion()
    """

    def __init__(
        self,
        config: Optional[EvolutionConfig] = None,
        evaluator: Optional[FitnessEvaluator] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the population manager.

        Args:
            config: Evolution configuration.
            evaluator: Fitness evaluator (default one is built if None).
            rng: Random source shared by all operators.
            logger: Logger for generation summaries.
        """
        self.config = config or EvolutionConfig()
        self.config.validate()
        self.rng = rng or random.Random(self.config.seed)
        self.logger = logger or logging.getLogger(__name__)

        self._injected_evaluator = evaluator
        self._build_operators(evaluator)

        self.players: List[Player] = []
        self.generation = 0
        self.champion: Optional[Player] = None
        self.stats_history: List[GenerationStats] = []

        self._tick_lock = threading.Lock()

    def _build_operators(self, evaluator: Optional[FitnessEvaluator] = None) -> None:
        """(Re)create the evolution operators from the current config."""
        niches = NicheClassifier(rng=self.rng, logger=self.logger)
        self.niche_classifier = niches
        self.evaluator = evaluator or FitnessEvaluator(
            niche_classifier=niches,
            universe=self.config.universe,
            logger=self.logger,
        )
        self.mutator = WeightMutator(
            base_rate=self.config.base_mutation_rate,
            jitter=self.config.mutation_jitter,
            niche_keep_probability=self.config.mutation_niche_keep,
            niche_classifier=niches,
            rng=self.rng,
            logger=self.logger,
        )
        self.crossover = WeightCrossover(
            fitness_bias=self.config.crossover_fitness_bias,
            niche_keep_probability=self.config.crossover_niche_keep,
            niche_classifier=niches,
            rng=self.rng,
            logger=self.logger,
        )
        self.selection = TruncationSelection(
            survivor_fraction=self.config.survivor_fraction,
            rng=self.rng,
        )

    def initialize(self) -> None:
        """
        Create a fresh population.

        Weights are integers in 0..1000 scaled into [0, 1]. The elite
        slot draws from 500..1000 instead.
        """
        self.players = []
        for i in range(self.config.total_players):
            floor = ELITE_WEIGHT_FLOOR if i == self.config.elite_index else 0
            weights = [
                self.rng.randint(floor, WEIGHT_SCALE) / WEIGHT_SCALE
                for _ in range(self.config.weight_count)
            ]
            self.players.append(Player(
                id=i + 1,
                weights=weights,
                generation=1,
                niche=self.niche_classifier.assign(i),
            ))

        self.generation = 0
        self.champion = None
        self.stats_history = []
        self.logger.info(f"Initialized population of {len(self.players)} players")

    def advance(
        self,
        draw_numbers: Sequence[int],
        scores: Optional[Sequence[float]] = None,
    ) -> GenerationStats:
        """
        Run one generation tick against a draw.

        EVALUATE -> RANK -> SELECT/REPRODUCE -> REPLACE.

        Args:
            draw_numbers: Numbers of the draw just observed.
            scores: Optional model scores per number. When given, every
                   player first records its prediction for this draw.

        Returns:
            Statistics for the tick.

        Raises:
            RuntimeError: If the population is empty or another tick
                         is already running.
        """
        if not self._tick_lock.acquire(blocking=False):
            raise RuntimeError("A generation tick is already running on this population")
        try:
            return self._advance(draw_numbers, scores)
        finally:
            self._tick_lock.release()

    def _advance(
        self,
        draw_numbers: Sequence[int],
        scores: Optional[Sequence[float]],
    ) -> GenerationStats:
        if not self.players:
            raise RuntimeError("Population is empty; call initialize() first")

        working = copy.deepcopy(self.players)
        draw = set(draw_numbers) if isinstance(draw_numbers, (list, tuple, set, frozenset)) else None

        # Evaluate
        for player in working:
            if scores is not None:
                player.predictions.append(
                    predict_numbers(scores, player.weights, self.config.draw_size)
                )
            if draw is not None and player.predictions:
                player.score += sum(1 for n in player.predictions[-1] if n in draw)
            player.fitness = self.evaluator.evaluate(player, draw_numbers)

        # Rank and select
        ranked = rank_players(working)
        champion = copy.deepcopy(ranked[0])
        survivors = ranked[:self.selection.survivor_count(len(ranked))]

        stats = GenerationStats(
            generation=self.generation + 1,
            num_survivors=len(survivors),
            champion_id=ranked[0].id,
        )
        self._fill_fitness_stats(stats, [p.fitness for p in working])

        # Reproduce
        offspring = []
        used_ids = {p.id for p in survivors}
        while len(survivors) + len(offspring) < self.config.total_players:
            if len(survivors) >= 2 and self.rng.random() < self.config.crossover_rate:
                parent_a, parent_b = self.selection.select_pair(survivors)
                child = self.crossover.crossover(parent_a, parent_b)
                stats.num_crossovers += 1
            else:
                parent = self.selection.select(survivors)
                child = self.mutator.mutate(parent)
                stats.num_mutations += 1

            while child.id in used_ids:
                child.id = Player.new_id(self.rng)
            used_ids.add(child.id)
            offspring.append(child)

        for survivor in survivors:
            survivor.age += 1

        # Replace
        self.players = survivors + offspring
        self.champion = champion
        self.generation += 1
        self.stats_history.append(stats)

        self.logger.info(
            f"Generation {stats.generation}: best={stats.best_fitness:.2f} "
            f"avg={stats.avg_fitness:.2f} champion={stats.champion_id} "
            f"(+{stats.num_crossovers} crossover, +{stats.num_mutations} mutation)"
        )
        return stats

    def evolve(
        self,
        draws: Iterable[Any],
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[int, GenerationStats], None]] = None,
    ) -> List[GenerationStats]:
        """
        Advance once per draw, without model scores.

        Args:
            draws: Draw objects or plain number sequences.
            cancel_event: Checked before each tick; when set, evolution stops.
            progress_callback: Called with (generation, stats) after each tick.

        Returns:
            Statistics of the ticks that ran.
        """
        all_stats = []
        for draw in draws:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info(f"Evolution cancelled after generation {self.generation}")
                break

            numbers = getattr(draw, 'numbers', draw)
            stats = self.advance(list(numbers))
            all_stats.append(stats)

            if progress_callback:
                progress_callback(self.generation, stats)

        return all_stats

    def get_champion(self) -> Optional[Player]:
        """Top-ranked player of the last tick (None before the first tick)."""
        return self.champion

    def get_top_n(self, n: int) -> List[Player]:
        """The n best current players by fitness, younger first on ties."""
        return rank_players(self.players)[:n]

    @property
    def best_fitness(self) -> float:
        return max(p.fitness for p in self.players) if self.players else 0.0

    @property
    def avg_fitness(self) -> float:
        if not self.players:
            return 0.0
        return sum(p.fitness for p in self.players) / len(self.players)

    def _fill_fitness_stats(self, stats: GenerationStats, fitnesses: List[float]) -> None:
        stats.best_fitness = max(fitnesses)
        stats.min_fitness = min(fitnesses)
        stats.avg_fitness = sum(fitnesses) / len(fitnesses)
        stats.fitness_std = self._std(fitnesses)

    def _std(self, values: List[float]) -> float:
        """Calculate standard deviation."""
        if len(values) < 2:
            return 0.0
        mean = sum(values) / len(values)
        variance = sum((x - mean) ** 2 for x in values) / len(values)
        return variance ** 0.5

    def snapshot(self) -> Dict[str, Any]:
        """In-memory copy of the generation state, fitness included."""
        return copy.deepcopy({
            'players': self.players,
            'generation': self.generation,
            'champion': self.champion,
            'stats_history': self.stats_history,
        })

    def rollback(self, state: Dict[str, Any]) -> None:
        """Return to a snapshot() taken earlier on this population."""
        with self._tick_lock:
            self.players = state['players']
            self.generation = state['generation']
            self.champion = state['champion']
            self.stats_history = state['stats_history']
        self.logger.info(f"Rolled back to generation {self.generation}")

    def to_dict(self) -> Dict[str, Any]:
        """Serializable snapshot. Fitness values are not included."""
        return {
            'generation': self.generation,
            'config': asdict(self.config),
            'players': [p.to_dict() for p in self.players],
            'champion': self.champion.to_dict() if self.champion else None,
            'stats_history': [asdict(s) for s in self.stats_history],
        }

    def restore(self, data: Dict[str, Any]) -> None:
        """
        Replace population state with a snapshot from to_dict().

        Raises:
            ValidationError: If the snapshot is malformed or its players
                            do not match the configured size.
        """
        if not isinstance(data, dict) or 'players' not in data:
            raise ValidationError("Population snapshot must be a dict with 'players'")

        config = data.get('config')
        if config:
            try:
                restored_config = EvolutionConfig(**config)
            except TypeError as e:
                raise ValidationError(f"Invalid population config: {e}")
            restored_config.validate()
        else:
            restored_config = self.config

        players = [
            Player.from_dict(p, weight_count=restored_config.weight_count)
            for p in data['players']
        ]
        if len(players) != restored_config.total_players:
            raise ValidationError(
                f"Snapshot holds {len(players)} players, expected {restored_config.total_players}"
            )

        champion = data.get('champion')
        if champion:
            champion = Player.from_dict(champion, weight_count=restored_config.weight_count)

        try:
            stats_history = [GenerationStats(**s) for s in data.get('stats_history', [])]
        except TypeError as e:
            raise ValidationError(f"Invalid generation stats in snapshot: {e}")

        generation = data.get('generation', 0)
        if not isinstance(generation, int) or isinstance(generation, bool) or generation < 0:
            raise ValidationError(f"Generation must be a non-negative integer, got {generation!r}")

        self.config = restored_config
        # Operators follow the restored config unless an evaluator was injected
        self._build_operators(self._injected_evaluator)
        self.players = players
        self.champion = champion or None
        self.generation = generation
        self.stats_history = stats_history

    def save_checkpoint(self, store: 'CheckpointStore', key: str) -> None:
        """Write the population snapshot to a checkpoint store as JSON."""
        store.write(key, self.to_dict())

    def load_checkpoint(self, store: 'CheckpointStore', key: str) -> None:
        """
        Restore the population from a checkpoint store.

        Raises:
            NotFoundError: If nothing is stored under ``key``.
        """
        data = store.read(key)
        if data is None:
            raise NotFoundError(f"No population checkpoint at {key}")
        self.restore(data)
        self.logger.info(f"Restored population at generation {self.generation} from {key}")
