"""
Fitness evaluation for players.

Fitness is a fixed weighted sum of four non-negative terms:

    matches * 2 + consistency * 0.3 + adaptability * 0.2 + niche * 1.5

- matches: how many numbers across the player's whole prediction
  history also appear in the current draw (a flat sum).
- consistency: share of adjacent prediction pairs overlapping in at
  least 10 numbers, scaled to 5.
- adaptability: distinct numbers used over the last 5 predictions,
  relative to 60% of the number universe, scaled by 5.
- niche: see NicheClassifier.

The weights must not change: ranking reproducibility depends on them.
"""
import logging
from typing import Any, Optional, Sequence

from .. import settings
from .niches import NicheClassifier
from .players import Player

MATCH_WEIGHT = 2.0
CONSISTENCY_WEIGHT = 0.3
ADAPTABILITY_WEIGHT = 0.2
NICHE_WEIGHT = 1.5

CONSISTENCY_OVERLAP = 10
CONSISTENCY_SCALE = 5.0
ADAPTABILITY_WINDOW = 5
ADAPTABILITY_COVERAGE = 0.6
ADAPTABILITY_SCALE = 5.0


class FitnessEvaluator:
    """
    Scores a player's prediction history against a draw.

    Malformed input never raises: the evaluator returns 0 so that one
    corrupt individual cannot abort a generation tick. The reason is
    logged.

    Example:
        evaluator = FitnessEvaluator()
        fitness = evaluator.evaluate(player, [1, 2, 3, 4, 5])
    """

    def __init__(
        self,
        niche_classifier: Optional[NicheClassifier] = None,
        universe: int = settings.NUMBER_UNIVERSE,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the evaluator.

        Args:
            niche_classifier: Scorer for niche bonuses.
            universe: Size of the number universe (25 for 1..25).
            logger: Logger to report skipped evaluations to.
        """
        self.niche_classifier = niche_classifier or NicheClassifier()
        self.universe = universe
        self.logger = logger or logging.getLogger(__name__)

    def evaluate(self, player: Player, draw_numbers: Any) -> float:
        """
        Compute the fitness of a player for one draw.

        Args:
            player: Player to score.
            draw_numbers: Numbers of the observed draw.

        Returns:
            Fitness (>= 0). 0 if predictions or draw are malformed.
        """
        predictions = getattr(player, 'predictions', None)
        if not _is_sequence(predictions):
            self.logger.warning(
                f"Player {getattr(player, 'id', '?')}: predictions are not a sequence, fitness 0"
            )
            return 0.0
        if not _is_number_set(draw_numbers) or not all(_is_int(n) for n in draw_numbers):
            self.logger.warning(f"Malformed draw {draw_numbers!r}, fitness 0")
            return 0.0

        draw = set(draw_numbers)

        matches = self.count_matches(predictions, draw)
        consistency = self.consistency_bonus(predictions)
        adaptability = self.adaptability_score(predictions)
        niche = self.niche_classifier.bonus(player.niche, list(draw_numbers))

        return (
            matches * MATCH_WEIGHT
            + consistency * CONSISTENCY_WEIGHT
            + adaptability * ADAPTABILITY_WEIGHT
            + niche * NICHE_WEIGHT
        )

    def count_matches(self, predictions: Sequence[Any], draw: set) -> int:
        """Total hits over every past prediction; malformed entries count 0."""
        matches = 0
        for prediction in predictions:
            if _is_number_set(prediction):
                matches += sum(1 for n in prediction if _is_int(n) and n in draw)
        return matches

    def consistency_bonus(self, predictions: Sequence[Any]) -> float:
        """Fraction of adjacent prediction pairs sharing >= 10 numbers, times 5."""
        if len(predictions) < 2:
            return 0.0

        consistent = 0
        for prev, curr in zip(predictions, predictions[1:]):
            if _is_number_set(prev) and _is_number_set(curr):
                current = set(curr)
                overlap = sum(1 for n in prev if _is_int(n) and n in current)
                if overlap >= CONSISTENCY_OVERLAP:
                    consistent += 1

        return consistent / max(1, len(predictions) - 1) * CONSISTENCY_SCALE

    def adaptability_score(self, predictions: Sequence[Any]) -> float:
        """Distinct numbers over the last 5 predictions vs 60% of the universe."""
        if len(predictions) < ADAPTABILITY_WINDOW:
            return 0.0

        recent = predictions[-ADAPTABILITY_WINDOW:]
        if not all(_is_number_set(p) for p in recent):
            return 0.0

        unique = {n for prediction in recent for n in prediction}
        return len(unique) / (self.universe * ADAPTABILITY_COVERAGE) * ADAPTABILITY_SCALE


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_number_set(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
