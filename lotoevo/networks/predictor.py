"""
Draw predictor backed by PyTorch.

This is the tensor-compute capability the rest of the package uses:
build / fit / predict / save / load / dispose, plus access to the
Adam optimizer state so checkpoints can resume training exactly.

On-disk layout of a saved model directory:

    model.json   architecture, learning rate and weights manifest
    weights.bin  raw parameter buffer described by the manifest
"""
import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import torch
import torch.nn as nn

from .. import settings
from ..exceptions import DecodeError, TrainingError, ValidationError
from .architectures import draw_predictor_architecture
from .builder import NetworkBuilder
from .codec import weight_spec

MODEL_FORMAT = 'lotoevo-layers'
MODEL_FILE = 'model.json'
WEIGHTS_FILE = 'weights.bin'

# Adam keeps these per parameter, in this order
OPTIMIZER_SLOTS = ('step', 'exp_avg', 'exp_avg_sq')


class Predictor:
    """
    A trainable draw predictor.

    Attributes:
        network: The PyTorch network.
        optimizer: Adam optimizer over the network parameters.
        learning_rate: Optimizer learning rate.
        epochs_trained: Epochs run by fit() over the predictor's lifetime.
        optimizer_state_restored: True when a checkpoint load restored
                                  optimizer state, False when it was reset.

    Example:
        predictor = Predictor.build(draw_predictor_architecture())
        history = predictor.fit(inputs, targets, epochs=5)
        scores = predictor.predict(encode_draw(last_draw.numbers))
        predictor.save('./checkpoints/run/model')
    """

    def __init__(
        self,
        network: nn.Module,
        learning_rate: float = settings.LEARNING_RATE,
        logger: Optional[logging.Logger] = None,
    ):
        self.network = network
        self.learning_rate = learning_rate
        self.logger = logger or logging.getLogger(__name__)
        self.optimizer = torch.optim.Adam(self.network.parameters(), lr=learning_rate)
        self.epochs_trained = 0
        self.optimizer_state_restored = False
        self._disposed = False

    @classmethod
    def build(
        cls,
        architecture: Optional[Dict[str, Any]] = None,
        learning_rate: float = settings.LEARNING_RATE,
        logger: Optional[logging.Logger] = None,
    ) -> 'Predictor':
        """
        Build a fresh predictor from a JSON layer specification.

        Args:
            architecture: Layer spec (default: draw_predictor_architecture()).
            learning_rate: Adam learning rate.
            logger: Logger for training messages.
        """
        network = NetworkBuilder().from_json(architecture or draw_predictor_architecture())
        return cls(network, learning_rate=learning_rate, logger=logger)

    @property
    def architecture(self) -> Dict[str, Any]:
        return self.network.architecture

    def fit(
        self,
        inputs: Sequence[Sequence[float]],
        targets: Sequence[Sequence[float]],
        epochs: int = 1,
        batch_size: int = 32,
    ) -> List[Dict[str, float]]:
        """
        Train on (input, target) rows with binary cross-entropy.

        Args:
            inputs: Input rows.
            targets: Target rows (0/1 per number).
            epochs: Passes over the data.
            batch_size: Rows per optimizer step.

        Returns:
            One metrics dict per epoch: epoch, loss, accuracy.

        Raises:
            ValidationError: If inputs and targets have different row counts.
            TrainingError: If the tensor backend fails.
        """
        self._check_alive()

        x = torch.as_tensor(np.asarray(inputs, dtype=np.float32))
        y = torch.as_tensor(np.asarray(targets, dtype=np.float32))
        if x.dim() == 1:
            x, y = x.unsqueeze(0), y.unsqueeze(0)
        if x.shape[0] != y.shape[0]:
            raise ValidationError(f"{x.shape[0]} input rows but {y.shape[0]} target rows")

        num_rows = x.shape[0]
        loss_fn = nn.BCELoss()
        history = []

        try:
            for _ in range(epochs):
                self.network.train()
                permutation = torch.randperm(num_rows)
                total_loss = 0.0
                correct = 0
                total = 0

                for start in range(0, num_rows, batch_size):
                    index = permutation[start:start + batch_size]
                    features, labels = x[index], y[index]

                    self.optimizer.zero_grad()
                    output = self.network(features)
                    loss = loss_fn(output, labels)
                    loss.backward()
                    self.optimizer.step()

                    total_loss += loss.item() * features.size(0)
                    correct += ((output >= 0.5).float() == labels).sum().item()
                    total += labels.numel()

                self.epochs_trained += 1
                history.append({
                    'epoch': self.epochs_trained,
                    'loss': total_loss / num_rows,
                    'accuracy': correct / total,
                })
        except RuntimeError as e:
            raise TrainingError(f"Training step failed: {e}") from e

        return history

    def predict(self, features: Sequence[float]) -> List[float]:
        """
        Score one input row.

        Raises:
            TrainingError: If the tensor backend fails.
        """
        self._check_alive()
        self.network.eval()
        try:
            with torch.no_grad():
                x = torch.as_tensor(np.asarray(features, dtype=np.float32)).unsqueeze(0)
                output = self.network(x)
        except RuntimeError as e:
            raise TrainingError(f"Prediction failed: {e}") from e
        return output.squeeze(0).tolist()

    def get_weights(self) -> Dict[str, np.ndarray]:
        """Copy of the network state as numpy arrays."""
        self._check_alive()
        return {
            name: tensor.detach().cpu().numpy().copy()
            for name, tensor in self.network.state_dict().items()
        }

    def save(self, path: Union[str, Path]) -> Path:
        """
        Write the model directory (weights first, manifest last).

        Returns:
            Path to the written model.json.
        """
        self._check_alive()
        model_dir = Path(path)
        model_dir.mkdir(parents=True, exist_ok=True)

        data, specs = NetworkBuilder().serialize_weights(self.network)
        (model_dir / WEIGHTS_FILE).write_bytes(data)

        manifest = {
            'format': MODEL_FORMAT,
            'architecture': self.architecture,
            'learning_rate': self.learning_rate,
            'epochs_trained': self.epochs_trained,
            'weights_manifest': [{'paths': [WEIGHTS_FILE], 'weights': specs}],
        }
        manifest_path = model_dir / MODEL_FILE
        manifest_path.write_text(json.dumps(manifest, indent=2))
        return manifest_path

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        logger: Optional[logging.Logger] = None,
    ) -> 'Predictor':
        """
        Load a model directory written by save(). The optimizer starts fresh.

        Raises:
            OSError: If model.json or a weight shard cannot be read.
            DecodeError: If the shards do not match the manifest.
        """
        model_dir = Path(path)
        manifest = json.loads((model_dir / MODEL_FILE).read_text())
        if manifest.get('format') != MODEL_FORMAT:
            raise DecodeError(f"{model_dir}: unknown model format {manifest.get('format')!r}")

        builder = NetworkBuilder()
        network = builder.from_json(manifest['architecture'])

        for group in manifest['weights_manifest']:
            data = b''.join((model_dir / shard).read_bytes() for shard in group['paths'])
            builder.deserialize_weights(data, group['weights'], network)

        predictor = cls(
            network,
            learning_rate=manifest.get('learning_rate', settings.LEARNING_RATE),
            logger=logger,
        )
        predictor.epochs_trained = manifest.get('epochs_trained', 0)
        return predictor

    def optimizer_weight_specs(self) -> List[Dict[str, Any]]:
        """Declared layout of the optimizer state: step, exp_avg, exp_avg_sq per parameter."""
        self._check_alive()
        specs = []
        for i, param in enumerate(self.network.parameters()):
            specs.append(weight_spec(f'{i}/step', []))
            specs.append(weight_spec(f'{i}/exp_avg', param.shape))
            specs.append(weight_spec(f'{i}/exp_avg_sq', param.shape))
        return specs

    def get_optimizer_weights(self) -> Optional[List[Tuple[str, np.ndarray]]]:
        """
        Current optimizer state in spec order, or None if the optimizer
        has never stepped. Parameters without state yet get zeros.
        """
        self._check_alive()
        if not self.optimizer.state:
            return None

        weights = []
        for i, param in enumerate(self.network.parameters()):
            slot = self.optimizer.state.get(param, {})
            step = slot.get('step', 0.0)
            step = step.item() if torch.is_tensor(step) else float(step)
            weights.append((f'{i}/step', np.array(step, dtype=np.float32)))
            for name in OPTIMIZER_SLOTS[1:]:
                value = slot.get(name)
                if value is None:
                    array = np.zeros(tuple(param.shape), dtype=np.float32)
                else:
                    array = value.detach().cpu().numpy()
                weights.append((f'{i}/{name}', array))
        return weights

    def set_optimizer_weights(self, named_arrays: Mapping[str, np.ndarray]) -> None:
        """
        Restore optimizer state from decoded arrays.

        Raises:
            DecodeError: If an entry is missing or has the wrong shape.
        """
        self._check_alive()
        state_dict = self.optimizer.state_dict()

        state = {}
        for i, param in enumerate(self.network.parameters()):
            entry = {}
            for name in OPTIMIZER_SLOTS:
                key = f'{i}/{name}'
                if key not in named_arrays:
                    raise DecodeError(f"Optimizer state is missing {key}")
                array = np.asarray(named_arrays[key])
                expected = () if name == 'step' else tuple(param.shape)
                if array.shape != expected:
                    raise DecodeError(f"{key}: shape {array.shape} does not match {expected}")
                entry[name] = torch.tensor(array, dtype=torch.float32)
            state[i] = entry

        state_dict['state'] = state
        self.optimizer.load_state_dict(state_dict)
        self.optimizer_state_restored = True

    def snapshot(self) -> Dict[str, Any]:
        """In-memory copy of parameters, optimizer state and epoch count."""
        self._check_alive()
        return {
            'network': copy.deepcopy(self.network.state_dict()),
            'optimizer': copy.deepcopy(self.optimizer.state_dict()),
            'epochs_trained': self.epochs_trained,
        }

    def rollback(self, state: Dict[str, Any]) -> None:
        """Return to a snapshot() taken earlier on this predictor."""
        self._check_alive()
        self.network.load_state_dict(state['network'])
        self.optimizer.load_state_dict(state['optimizer'])
        self.epochs_trained = state['epochs_trained']

    def reset_optimizer(self) -> None:
        """Discard optimizer state and start from a fresh Adam."""
        self._check_alive()
        self.optimizer = torch.optim.Adam(self.network.parameters(), lr=self.learning_rate)
        self.optimizer_state_restored = False

    def dispose(self) -> None:
        """Release the network and optimizer. The predictor is unusable afterwards."""
        self.network = None
        self.optimizer = None
        self._disposed = True

    def _check_alive(self) -> None:
        if self._disposed:
            raise TrainingError("Predictor has been disposed")
