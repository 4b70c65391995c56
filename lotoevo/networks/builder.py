"""
JSON layer specs to PyTorch modules.

A predictor's architecture is stored as plain JSON inside every saved
model, so a checkpoint can be rebuilt without importing the code that
created it. Supported layer types: linear, activation, dropout,
batchnorm, layernorm.

Weights travel through the binary codec rather than torch.save, so the
on-disk format is independent of the torch version.
"""
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Tuple

import torch
import torch.nn as nn

from .codec import decode_weights, encode_weights


class DynamicNetwork(nn.Module):
    """
    Sequential network that remembers the spec it was built from.

    Attributes:
        architecture: The JSON spec; written into model.json on save.
    """

    def __init__(self, layers: 'OrderedDict[str, nn.Module]', architecture: Dict[str, Any]):
        super().__init__()
        self.architecture = architecture
        self.stack = nn.ModuleDict(layers)
        self.order = list(layers)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        for layer_id in self.order:
            x = self.stack[layer_id](x)
        return x

    def layer_ids(self) -> List[str]:
        """Layer ids in execution order."""
        return list(self.order)


class NetworkBuilder:
    """
    Builds DynamicNetworks and moves their weights in and out of buffers.

    Spec format:
        {
            "input_size": 25,
            "output_size": 25,
            "layers": [
                {"id": "linear_0", "type": "linear", "in": 25, "out": 64},
                {"id": "act_0", "type": "activation", "fn": "relu"},
                {"id": "output", "type": "linear", "in": 64, "out": 25},
                {"id": "output_act", "type": "activation", "fn": "sigmoid"}
            ]
        }

    Example:
        builder = NetworkBuilder()
        network = builder.from_json(draw_predictor_architecture())
        data, specs = builder.serialize_weights(network)
        builder.deserialize_weights(data, specs, other_network)
    """

    ACTIVATIONS: Dict[str, Callable[[], nn.Module]] = {
        'relu': nn.ReLU,
        'sigmoid': nn.Sigmoid,
        'tanh': nn.Tanh,
        'leaky_relu': nn.LeakyReLU,
        'elu': nn.ELU,
        'identity': nn.Identity,
    }

    def __init__(self):
        self._factories: Dict[str, Callable[[Dict[str, Any]], nn.Module]] = {
            'linear': self._linear,
            'activation': self._activation,
            'dropout': lambda spec: nn.Dropout(p=spec.get('p', 0.2)),
            'batchnorm': lambda spec: nn.BatchNorm1d(spec['features']),
            'layernorm': lambda spec: nn.LayerNorm(spec['features']),
        }

    def from_json(self, architecture: Dict[str, Any]) -> DynamicNetwork:
        """
        Build a network from a spec.

        Raises:
            ValueError: If the spec is malformed or names an unknown
                layer type or activation.
        """
        layer_specs = self._check_spec(architecture)

        layers = OrderedDict()
        for index, spec in enumerate(layer_specs):
            factory = self._factories.get(spec['type'])
            if factory is None:
                raise ValueError(f"Layer {index}: unknown type {spec['type']!r}")
            layers[spec.get('id', f'layer_{index}')] = factory(spec)

        return DynamicNetwork(layers, architecture)

    def _linear(self, spec: Dict[str, Any]) -> nn.Module:
        return nn.Linear(spec['in'], spec['out'], bias=spec.get('bias', True))

    def _activation(self, spec: Dict[str, Any]) -> nn.Module:
        name = spec.get('fn', 'relu')
        if name not in self.ACTIVATIONS:
            raise ValueError(f"Unknown activation: {name!r}")
        return self.ACTIVATIONS[name]()

    def _check_spec(self, architecture: Any) -> List[Dict[str, Any]]:
        if not isinstance(architecture, dict) or not isinstance(architecture.get('layers'), list):
            raise ValueError("Architecture must be a dict with a 'layers' list")

        for index, spec in enumerate(architecture['layers']):
            if not isinstance(spec, dict) or 'type' not in spec:
                raise ValueError(f"Layer {index} must be a dict with a 'type'")
        return architecture['layers']

    def serialize_weights(self, network: nn.Module) -> Tuple[bytes, List[Dict[str, Any]]]:
        """Encode the full state dict (parameters and buffers)."""
        return encode_weights(
            (name, tensor.detach().cpu().numpy())
            for name, tensor in network.state_dict().items()
        )

    def deserialize_weights(
        self,
        data: bytes,
        specs: List[Dict[str, Any]],
        network: nn.Module,
    ) -> None:
        """
        Load an encoded state dict into ``network``.

        Raises:
            DecodeError: If the buffer does not match the specs.
            RuntimeError: If the decoded names or shapes do not fit the network.
        """
        current = network.state_dict()
        state_dict = OrderedDict()
        for name, array in decode_weights(data, specs).items():
            tensor = torch.from_numpy(array)
            state_dict[name] = tensor.to(current[name].dtype) if name in current else tensor
        network.load_state_dict(state_dict, strict=True)

    def get_parameter_count(self, network: nn.Module) -> int:
        """Trainable parameter count."""
        return sum(p.numel() for p in network.parameters() if p.requires_grad)
