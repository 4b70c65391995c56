"""
Cross-validation of a prediction history.

Splits aligned (prediction, actual draw) pairs into equal folds and
reports hit-based accuracy, precision, recall and F1 for each fold.
"""
from dataclasses import dataclass
from typing import List, Sequence


@dataclass
class PredictionMetrics:
    """Hit statistics for one fold."""
    accuracy: float = 0.0
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0


def calculate_metrics(
    predictions: Sequence[Sequence[int]],
    actual: Sequence[Sequence[int]],
) -> PredictionMetrics:
    """Metrics over aligned prediction/actual pairs. Empty input scores 0."""
    true_positives = 0
    false_positives = 0
    false_negatives = 0

    for predicted, drawn in zip(predictions, actual):
        drawn_set = set(drawn)
        predicted_set = set(predicted)
        for num in predicted:
            if num in drawn_set:
                true_positives += 1
            else:
                false_positives += 1
        false_negatives += sum(1 for num in drawn if num not in predicted_set)

    precision = _ratio(true_positives, true_positives + false_positives)
    recall = _ratio(true_positives, true_positives + false_negatives)
    accuracy = _ratio(true_positives, true_positives + false_positives + false_negatives)
    f1_score = _ratio(2 * precision * recall, precision + recall)

    return PredictionMetrics(
        accuracy=accuracy,
        precision=precision,
        recall=recall,
        f1_score=f1_score,
    )


def cross_validate(
    predictions: Sequence[Sequence[int]],
    actual: Sequence[Sequence[int]],
    folds: int = 10,
) -> List[PredictionMetrics]:
    """
    Per-fold metrics.

    Args:
        predictions: Predicted number sets, oldest first.
        actual: Drawn number sets aligned with ``predictions``.
        folds: Number of equal folds; trailing rows that do not fill a
               fold are ignored.

    Returns:
        One PredictionMetrics per fold (empty if there are fewer rows
        than folds).

    Raises:
        ValueError: If the sequences differ in length or folds < 1.
    """
    if len(predictions) != len(actual):
        raise ValueError(
            f"{len(predictions)} predictions but {len(actual)} actual draws"
        )
    if folds < 1:
        raise ValueError("folds must be at least 1")

    fold_size = len(predictions) // folds
    if fold_size == 0:
        return []

    metrics = []
    for i in range(folds):
        start = i * fold_size
        end = start + fold_size
        metrics.append(calculate_metrics(predictions[start:end], actual[start:end]))
    return metrics


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0
