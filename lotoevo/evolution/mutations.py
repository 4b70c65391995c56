"""
Mutation operator for player weight vectors.

Each weight is perturbed independently with an age-adaptive
probability by a signed multiplicative jitter, then clamped to [0, 1].
Older lineages mutate more: the rate grows linearly with age.
"""
import logging
import random
from typing import Optional

from .niches import NicheClassifier
from .players import Player


class WeightMutator:
    """
    Produces a mutated clone of a player.

    Attributes:
        base_rate: Per-weight mutation probability for a newborn (age 0).
        jitter: Maximum relative perturbation (0.05 = +/-5% of the weight).
        niche_keep_probability: Chance that the clone keeps the parent niche.

    Example:
        mutator = WeightMutator(base_rate=0.1)
        child = mutator.mutate(parent)
    """

    AGE_SCALE = 50.0

    def __init__(
        self,
        base_rate: float = 0.1,
        jitter: float = 0.05,
        niche_keep_probability: float = 0.9,
        niche_classifier: Optional[NicheClassifier] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.base_rate = base_rate
        self.jitter = jitter
        self.niche_keep_probability = niche_keep_probability
        self.rng = rng or random
        self.niche_classifier = niche_classifier or NicheClassifier(rng=self.rng)
        self.logger = logger or logging.getLogger(__name__)

    def adaptive_rate(self, age: int, base_rate: Optional[float] = None) -> float:
        """Mutation rate for a player of the given age: base * (1 + age/50)."""
        base_rate = self.base_rate if base_rate is None else base_rate
        return base_rate * (1 + age / self.AGE_SCALE)

    def mutate(self, player: Player, base_rate: Optional[float] = None) -> Player:
        """
        Create a mutated clone of ``player``.

        The parent is left untouched. The clone gets a new random id, an
        empty history, ``generation = parent.generation + 1`` and age 0.

        Args:
            player: Parent player.
            base_rate: Overrides the configured base rate for this call.

        Returns:
            The mutated child.
        """
        rate = self.adaptive_rate(player.age, base_rate)

        weights = []
        for weight in player.weights:
            if self.rng.random() < rate:
                mutation = self.rng.uniform(-self.jitter, self.jitter)
                weight = weight * (1 + mutation)
            weights.append(_clamp(weight))

        child = Player(
            id=Player.new_id(self.rng),
            weights=weights,
            score=0,
            predictions=[],
            fitness=0.0,
            generation=player.generation + 1,
            age=0,
            niche=self.niche_classifier.perturb(player.niche, self.niche_keep_probability),
        )
        self.logger.debug(
            f"Mutated player {player.id} -> {child.id} (rate={rate:.3f}, age={player.age})"
        )
        return child


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
