"""
Preset neural network architectures for draw prediction.

The predictor reads the previous draw one-hot encoded over the number
universe and emits one sigmoid score per number for the next draw.
"""
from typing import Any, Dict, List, Optional

from .. import settings


def draw_predictor_architecture(
    universe: int = settings.NUMBER_UNIVERSE,
    hidden_sizes: Optional[List[int]] = None,
    dropout: float = 0.2,
) -> Dict[str, Any]:
    """
    Default draw predictor.

    Architecture:
        Input (25) -> 64 ReLU -> 32 ReLU -> Dropout -> 16 ReLU -> Output (25, sigmoid)

    Args:
        universe: Size of the number universe (input and output width).
        hidden_sizes: Hidden layer widths. Default [64, 32, 16].
        dropout: Dropout probability after every second hidden layer.

    Returns:
        JSON architecture specification.
    """
    if hidden_sizes is None:
        hidden_sizes = [64, 32, 16]

    layers = []
    prev_size = universe

    for i, hidden_size in enumerate(hidden_sizes):
        layers.append({
            'id': f'linear_{i}',
            'type': 'linear',
            'in': prev_size,
            'out': hidden_size,
        })
        layers.append({
            'id': f'act_{i}',
            'type': 'activation',
            'fn': 'relu',
        })

        # Dropout between the deeper hidden layers only
        if dropout > 0 and i % 2 == 1 and i < len(hidden_sizes) - 1:
            layers.append({
                'id': f'dropout_{i}',
                'type': 'dropout',
                'p': dropout,
            })

        prev_size = hidden_size

    layers.append({
        'id': 'output',
        'type': 'linear',
        'in': prev_size,
        'out': universe,
    })
    layers.append({
        'id': 'output_act',
        'type': 'activation',
        'fn': 'sigmoid',
    })

    return {
        'name': 'Draw Predictor',
        'input_size': universe,
        'output_size': universe,
        'layers': layers,
    }


def minimal_architecture(universe: int = settings.NUMBER_UNIVERSE) -> Dict[str, Any]:
    """Smallest useful predictor: one hidden layer of 8, used in tests and demos."""
    return draw_predictor_architecture(universe=universe, hidden_sizes=[8], dropout=0.0)
