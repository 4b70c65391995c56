"""
Turn model scores into a player's number prediction.

The predictor emits one score per number in the universe. A player
reweights those scores with its own weight vector (cycled when it is
shorter than the universe) and picks the best ``draw_size`` numbers.
"""
from typing import List, Sequence

from .. import settings


def predict_numbers(
    scores: Sequence[float],
    weights: Sequence[float],
    draw_size: int = settings.DRAW_SIZE,
) -> List[int]:
    """
    Pick the ``draw_size`` best numbers for a player.

    Args:
        scores: Model score per number; ``scores[i]`` is number ``i + 1``.
        weights: The player's weight vector.
        draw_size: How many numbers to pick.

    Returns:
        Sorted list of picked numbers. Ties go to the lower number.

    Raises:
        ValueError: If there are fewer scores than numbers to pick,
            or no weights.
    """
    if not weights:
        raise ValueError("Player has no weights")
    if len(scores) < draw_size:
        raise ValueError(f"Need at least {draw_size} scores, got {len(scores)}")

    weighted = [
        (score * weights[i % len(weights)], i + 1)
        for i, score in enumerate(scores)
    ]
    weighted.sort(key=lambda item: (-item[0], item[1]))
    return sorted(number for _, number in weighted[:draw_size])
