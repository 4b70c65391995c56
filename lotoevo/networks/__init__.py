"""
Neural network infrastructure for draw predictors.

This module provides:
- NetworkBuilder: Convert JSON layer specs into PyTorch models
- Preset predictor architectures
- Binary weight codec shared by model and optimizer checkpoints
- Predictor: the build/fit/predict/save/load/dispose capability
"""
from .builder import NetworkBuilder, DynamicNetwork
from .architectures import draw_predictor_architecture, minimal_architecture
from .codec import encode_weights, decode_weights, weight_spec
from .predictor import Predictor

__all__ = [
    # Builder
    'NetworkBuilder',
    'DynamicNetwork',

    # Architectures
    'draw_predictor_architecture',
    'minimal_architecture',

    # Codec
    'encode_weights',
    'decode_weights',
    'weight_spec',

    # Tensor-compute capability
    'Predictor',
]
