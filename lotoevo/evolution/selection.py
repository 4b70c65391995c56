"""
Ranking and parent selection.

Players are ranked by fitness, highest first. Equal fitness is broken
by age, younger first; players equal on both keep their population
order (the sort is stable), so a ranking is fully reproducible.
"""
import random
from typing import List, Optional, Sequence, Tuple

from .players import Player


def rank_key(player: Player) -> Tuple[float, int]:
    """Sort key: descending fitness, then ascending age."""
    return (-player.fitness, player.age)


def rank_players(players: Sequence[Player]) -> List[Player]:
    """Return players ordered best first."""
    return sorted(players, key=rank_key)


class TruncationSelection:
    """
    Truncation selection: only the top fraction reproduces.

    Example:
        selection = TruncationSelection(survivor_fraction=0.25)
        parents = selection.survivors(population)
        a, b = selection.select_pair(parents)
    """

    def __init__(
        self,
        survivor_fraction: float = 0.25,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize truncation selection.

        Args:
            survivor_fraction: Top fraction that survives and reproduces (0-1].
            rng: Random source for parent draws.
        """
        if not 0.0 < survivor_fraction <= 1.0:
            raise ValueError(f"survivor_fraction must be in (0, 1], got {survivor_fraction}")
        self.survivor_fraction = survivor_fraction
        self.rng = rng or random

    def survivor_count(self, population_size: int) -> int:
        return max(1, int(population_size * self.survivor_fraction))

    def survivors(self, players: Sequence[Player]) -> List[Player]:
        """Top players by rank."""
        ranked = rank_players(players)
        return ranked[:self.survivor_count(len(ranked))]

    def select(self, parents: Sequence[Player]) -> Player:
        """Pick one parent uniformly."""
        return self.rng.choice(list(parents))

    def select_pair(self, parents: Sequence[Player]) -> Tuple[Player, Player]:
        """
        Pick two distinct parents uniformly.

        With a single parent available the same player fills both slots.
        """
        parents = list(parents)
        if len(parents) < 2:
            return parents[0], parents[0]
        parent_a, parent_b = self.rng.sample(parents, 2)
        return parent_a, parent_b
