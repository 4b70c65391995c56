"""
Player records for the evolutionary population.

A player is one candidate solution: a fixed-length weight vector plus
the bookkeeping the population needs (score, prediction history,
lineage counters and a niche specialization).
"""
import random
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import ValidationError

MAX_PLAYER_ID = 2 ** 53


class Niche(IntEnum):
    """Specialization bias applied when scoring a player against a draw."""
    EVEN_AFFINITY = 0
    ODD_AFFINITY = 1
    SEQUENCE_AFFINITY = 2
    GENERAL = 3

    @classmethod
    def random(cls, rng: Optional[random.Random] = None) -> 'Niche':
        rng = rng or random
        return cls(rng.randrange(len(cls)))


@dataclass
class Player:
    """
    One member of the population.

    ``id`` is only unique within a single generation snapshot; children
    get fresh random ids, so it cannot be used as a lineage key.
    ``fitness`` is recomputed on every tick and is not persisted.
    """
    id: int
    weights: List[float]
    score: int = 0
    predictions: List[List[int]] = field(default_factory=list)
    fitness: float = 0.0
    generation: int = 1
    age: int = 0
    niche: Niche = Niche.GENERAL

    @staticmethod
    def new_id(rng: Optional[random.Random] = None) -> int:
        """Draw a fresh random numeric id."""
        rng = rng or random
        return rng.randrange(1, MAX_PLAYER_ID)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        weight_count: Optional[int] = None,
    ) -> 'Player':
        """
        Build a player from a loosely-typed record.

        Args:
            data: Mapping with at least ``id`` and ``weights``.
            weight_count: If given, the exact weight vector length required.

        Returns:
            A validated Player with fitness reset to 0.

        Raises:
            ValidationError: If any field is missing or malformed.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Player record must be a mapping, got {type(data).__name__}")

        player_id = data.get('id')
        if not _is_number(player_id):
            raise ValidationError(f"Player id must be numeric, got {player_id!r}")

        weights = data.get('weights')
        if not isinstance(weights, (list, tuple)):
            raise ValidationError(f"Player {player_id}: weights must be a list")
        if weight_count is not None and len(weights) != weight_count:
            raise ValidationError(
                f"Player {player_id}: expected {weight_count} weights, got {len(weights)}"
            )
        for w in weights:
            if not _is_number(w) or not 0.0 <= w <= 1.0:
                raise ValidationError(f"Player {player_id}: weight {w!r} outside [0, 1]")

        predictions = data.get('predictions', [])
        if not isinstance(predictions, (list, tuple)):
            raise ValidationError(f"Player {player_id}: predictions must be a list")
        for prediction in predictions:
            if not isinstance(prediction, (list, tuple)) or not all(
                isinstance(n, int) and not isinstance(n, bool) for n in prediction
            ):
                raise ValidationError(
                    f"Player {player_id}: predictions must be lists of integers"
                )

        niche = data.get('niche', Niche.GENERAL)
        try:
            niche = Niche(niche)
        except ValueError:
            raise ValidationError(f"Player {player_id}: unknown niche {niche!r}")

        counters = {}
        for key in ('score', 'generation', 'age'):
            value = data.get(key, 1 if key == 'generation' else 0)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"Player {player_id}: {key} must be a non-negative integer")
            counters[key] = value

        return cls(
            id=player_id,
            weights=[float(w) for w in weights],
            predictions=[list(p) for p in predictions],
            niche=niche,
            **counters,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for persistence. Fitness is not persisted."""
        return {
            'id': self.id,
            'score': self.score,
            'predictions': [list(p) for p in self.predictions],
            'weights': list(self.weights),
            'generation': self.generation,
            'age': self.age,
            'niche': int(self.niche),
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
