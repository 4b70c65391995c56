"""
Niche specialization.

Each player carries a niche that biases how a draw is scored for it:
even-heavy draws favour EVEN_AFFINITY players, runs of consecutive
numbers favour SEQUENCE_AFFINITY players, and so on. Niches are mostly
inherited by offspring, occasionally resampled to keep all four
represented.
"""
import logging
import random
from typing import Any, Callable, Dict, Optional, Sequence

from .players import Niche


def count_sequences(numbers: Sequence[int]) -> int:
    """
    Count length-3 runs of consecutive integers in a number set.

    Runs overlap: [1, 2, 3, 4] contains two (1-2-3 and 2-3-4).
    """
    ordered = sorted(numbers)
    runs = 0
    for i in range(len(ordered) - 2):
        if ordered[i + 1] == ordered[i] + 1 and ordered[i + 2] == ordered[i] + 2:
            runs += 1
    return runs


class NicheClassifier:
    """
    Assigns, perturbs and scores niches.

    Example:
        classifier = NicheClassifier()
        bonus = classifier.bonus(Niche.EVEN_AFFINITY, [1, 2, 3, 4, 5])  # 1.0
        child_niche = classifier.perturb(parent.niche, keep_probability=0.9)
    """

    EVEN_WEIGHT = 0.5
    ODD_WEIGHT = 0.5
    SEQUENCE_WEIGHT = 1.2
    GENERAL_BONUS = 0.3

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.rng = rng or random
        self.logger = logger or logging.getLogger(__name__)
        self._scorers: Dict[Niche, Callable[[Sequence[int]], float]] = {
            Niche.EVEN_AFFINITY: self._even_bonus,
            Niche.ODD_AFFINITY: self._odd_bonus,
            Niche.SEQUENCE_AFFINITY: self._sequence_bonus,
            Niche.GENERAL: self._general_bonus,
        }

    def assign(self, index: int) -> Niche:
        """Niche for the index-th player of a fresh population (round robin)."""
        return Niche(index % len(Niche))

    def perturb(self, niche: Niche, keep_probability: float) -> Niche:
        """Keep ``niche`` with the given probability, else resample uniformly."""
        if self.rng.random() < keep_probability:
            return niche
        return Niche.random(self.rng)

    def bonus(self, niche: Any, draw_numbers: Sequence[int]) -> float:
        """
        Niche bonus of a draw for a player specialized in ``niche``.

        Unknown niche values score 0.
        """
        try:
            scorer = self._scorers[Niche(niche)]
        except ValueError:
            self.logger.debug(f"No niche bonus for unknown niche {niche!r}")
            return 0.0
        return scorer(draw_numbers)

    def _even_bonus(self, numbers: Sequence[int]) -> float:
        return sum(1 for n in numbers if n % 2 == 0) * self.EVEN_WEIGHT

    def _odd_bonus(self, numbers: Sequence[int]) -> float:
        return sum(1 for n in numbers if n % 2 != 0) * self.ODD_WEIGHT

    def _sequence_bonus(self, numbers: Sequence[int]) -> float:
        return count_sequences(numbers) * self.SEQUENCE_WEIGHT

    def _general_bonus(self, numbers: Sequence[int]) -> float:
        return self.GENERAL_BONUS
