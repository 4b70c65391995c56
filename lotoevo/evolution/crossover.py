"""
Crossover operator for player weight vectors.

Uniform crossover biased toward the fitter parent: every weight index
independently comes from parent A with probability 0.7 when A is
fitter, 0.3 when B is fitter and 0.5 on a tie.
"""
import logging
import random
from typing import Optional

from .niches import NicheClassifier
from .players import Player


class WeightCrossover:
    """
    Combines two parents into one child.

    Both parents must have weight vectors of the same length.

    Example:
        crossover = WeightCrossover()
        child = crossover.crossover(parent_a, parent_b)
    """

    def __init__(
        self,
        fitness_bias: float = 0.2,
        niche_keep_probability: float = 0.8,
        niche_classifier: Optional[NicheClassifier] = None,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the crossover operator.

        Args:
            fitness_bias: Shift of the per-weight pick probability
                         toward the fitter parent.
            niche_keep_probability: Chance the child takes the fitter
                                   parent's niche instead of a random one.
            niche_classifier: Niche perturbation helper.
            rng: Random source.
            logger: Logger for lineage messages.
        """
        self.fitness_bias = fitness_bias
        self.niche_keep_probability = niche_keep_probability
        self.rng = rng or random
        self.niche_classifier = niche_classifier or NicheClassifier(rng=self.rng)
        self.logger = logger or logging.getLogger(__name__)

    def pick_probability(self, parent_a: Player, parent_b: Player) -> float:
        """Probability of taking each weight from parent A."""
        if parent_a.fitness > parent_b.fitness:
            return 0.5 + self.fitness_bias
        if parent_a.fitness < parent_b.fitness:
            return 0.5 - self.fitness_bias
        return 0.5

    def crossover(self, parent_a: Player, parent_b: Player) -> Player:
        """
        Create a child from two parents.

        Args:
            parent_a: First parent.
            parent_b: Second parent.

        Returns:
            Child with ``generation = max(parent generations) + 1``.

        Raises:
            ValueError: If the weight vectors differ in length.
        """
        if len(parent_a.weights) != len(parent_b.weights):
            raise ValueError("Parents must have weight vectors of the same length")

        p_a = self.pick_probability(parent_a, parent_b)
        weights = [
            weight_a if self.rng.random() < p_a else weight_b
            for weight_a, weight_b in zip(parent_a.weights, parent_b.weights)
        ]

        fitter = parent_a if parent_a.fitness > parent_b.fitness else parent_b
        niche = self.niche_classifier.perturb(fitter.niche, self.niche_keep_probability)

        child = Player(
            id=Player.new_id(self.rng),
            weights=weights,
            score=0,
            predictions=[],
            fitness=0.0,
            generation=max(parent_a.generation, parent_b.generation) + 1,
            age=0,
            niche=niche,
        )
        self.logger.debug(f"Crossover {parent_a.id} x {parent_b.id} -> {child.id}")
        return child
