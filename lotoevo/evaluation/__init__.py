"""
Evaluation of prediction histories against observed draws.
"""
from .metrics import PredictionMetrics, calculate_metrics, cross_validate

__all__ = [
    'PredictionMetrics',
    'calculate_metrics',
    'cross_validate',
]
