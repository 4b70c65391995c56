"""
Checkpoint management for resumable training.

Two layers:
- CheckpointStore: a key-addressed file store rooted at one directory.
  Keys are relative paths; payloads are JSON values or raw bytes.
- ModelCheckpointManager: saves and restores a Predictor's parameters
  and optimizer state as one unit on top of the store.

Directory layout of one checkpoint:

    <root>/checkpoint_000120/
        model/model.json         architecture + weights manifest
        model/weights.bin        raw parameter buffer
        optimizer_state.bin      raw Adam state (optional)
        metadata.json            training metadata (optional)
        population.json          population snapshot (optional)
"""
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Union

from ..exceptions import DecodeError, ValidationError
from ..networks.codec import decode_weights, encode_weights
from ..networks.predictor import MODEL_FILE, Predictor

MODEL_DIR = 'model'
OPTIMIZER_FILE = 'optimizer_state.bin'
METADATA_FILE = 'metadata.json'
POPULATION_FILE = 'population.json'
CHECKPOINT_PREFIX = 'checkpoint_'

_TMP_PREFIX = '.tmp-'


class CheckpointStore:
    """
    Key-addressed file store.

    Writing a key replaces whatever was stored under it. Writes land in
    a temporary sibling first and are moved into place with os.replace,
    so readers never observe a partial file. Operations on the same key
    are serialized; distinct keys do not block each other.

    Example:
        store = CheckpointStore('./checkpoints')
        store.write('run1/metadata.json', {'loss': 0.2})
        store.read('run1/metadata.json')         # {'loss': 0.2}
        store.read('missing.json')               # None
        store.write('run1/blob.bin', b'...', is_binary=True)
    """

    def __init__(
        self,
        base_path: Union[str, Path],
        logger: Optional[logging.Logger] = None,
    ):
        self.base_path = Path(base_path)
        self.logger = logger or logging.getLogger(__name__)
        self.base_path.mkdir(parents=True, exist_ok=True)

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, key: str) -> Path:
        """
        Absolute path of a key.

        Raises:
            ValidationError: If the key is empty, absolute or escapes the root.
        """
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(f"Invalid checkpoint key: {key!r}")

        relative = PurePosixPath(key.replace(os.sep, '/'))
        if relative.is_absolute() or '..' in relative.parts:
            raise ValidationError(f"Checkpoint key must stay inside the store: {key!r}")

        return self.base_path.joinpath(*relative.parts)

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def write(self, key: str, payload: Any, is_binary: bool = False) -> Path:
        """
        Store a payload under a key, creating parent directories.

        Args:
            key: Relative path.
            payload: JSON-serializable value, or bytes when is_binary.
            is_binary: Write payload verbatim instead of as JSON.

        Returns:
            Path of the written file.

        Raises:
            OSError: On filesystem failure (logged, then re-raised).
        """
        full_path = self.path_for(key)

        with self._lock_for(key):
            try:
                full_path.parent.mkdir(parents=True, exist_ok=True)
                if is_binary:
                    data = bytes(payload)
                else:
                    data = json.dumps(payload, indent=2).encode('utf-8')
                self._atomic_write(full_path, data)
            except OSError as e:
                self.logger.error(f"Error saving {key}: {e}")
                raise

        self.logger.info(f"Saved {key}")
        return full_path

    def read(self, key: str, is_binary: bool = False) -> Optional[Any]:
        """
        Read the payload stored under a key.

        Returns:
            The decoded JSON value or raw bytes, or None if nothing is
            stored under the key.

        Raises:
            OSError: If the file exists but cannot be read.
            ValueError: If a JSON payload is corrupt.
        """
        full_path = self.path_for(key)

        with self._lock_for(key):
            if not full_path.is_file():
                self.logger.warning(f"Checkpoint file not found: {key}")
                return None
            try:
                data = full_path.read_bytes()
            except OSError as e:
                self.logger.error(f"Error reading {key}: {e}")
                raise

        if is_binary:
            return data
        try:
            return json.loads(data.decode('utf-8'))
        except ValueError as e:
            self.logger.error(f"Corrupt JSON in {key}: {e}")
            raise

    def delete(self, key: str) -> bool:
        """
        Remove the payload stored under a key.

        Returns:
            True if something was removed, False if the key was empty.

        Raises:
            OSError: If the file exists but cannot be removed.
        """
        full_path = self.path_for(key)

        with self._lock_for(key):
            if not full_path.is_file():
                return False
            try:
                full_path.unlink()
            except OSError as e:
                self.logger.error(f"Error deleting {key}: {e}")
                raise

        self.logger.info(f"Deleted {key}")
        return True

    def list(self) -> List[str]:
        """
        Every key in the store, relative to the root.

        Order follows the filesystem walk and is not sorted.
        """
        keys = []
        for dirpath, _, filenames in os.walk(self.base_path):
            for filename in filenames:
                if filename.startswith(_TMP_PREFIX):
                    continue
                full_path = Path(dirpath) / filename
                keys.append(full_path.relative_to(self.base_path).as_posix())
        return keys

    def _lock_for(self, key: str) -> threading.Lock:
        normalized = self.path_for(key).as_posix()
        with self._locks_guard:
            if normalized not in self._locks:
                self._locks[normalized] = threading.Lock()
            return self._locks[normalized]

    def _atomic_write(self, full_path: Path, data: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(prefix=_TMP_PREFIX, dir=full_path.parent)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, full_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


@dataclass
class SaveResult:
    """Outcome of ModelCheckpointManager.save()."""
    checkpoint_dir: str
    model_path: Path
    optimizer_saved: bool = False
    optimizer_skip_reason: Optional[str] = None
    metadata_saved: bool = False


class ModelCheckpointManager:
    """
    Persist and restore a predictor's parameters and optimizer state.

    Parameters are the source of truth: loading them without optimizer
    state is fine (the optimizer is reset), but optimizer state is never
    applied without its parameters.

    Example:
        manager = ModelCheckpointManager(CheckpointStore('./checkpoints'))

        # Save during training
        manager.save(predictor, 'checkpoint_000100', metadata={'loss': 0.31})

        # Resume later
        predictor = manager.load_latest()
    """

    def __init__(
        self,
        store: CheckpointStore,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def save(
        self,
        model: Predictor,
        checkpoint_dir: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SaveResult:
        """
        Save a checkpoint.

        Parameters are written first. Optimizer state follows on a best
        effort basis: if it cannot be retrieved, the save still succeeds
        and the reason is recorded in the result. Any optimizer state left
        in the directory by an earlier save is removed in that case.

        Args:
            model: Predictor to save.
            checkpoint_dir: Checkpoint directory key inside the store.
            metadata: Optional training metadata (JSON-serializable).

        Returns:
            SaveResult describing what was written.

        Raises:
            OSError: If writing parameters or metadata fails.
        """
        model_path = model.save(self.store.path_for(f'{checkpoint_dir}/{MODEL_DIR}'))
        result = SaveResult(checkpoint_dir=checkpoint_dir, model_path=model_path)

        try:
            optimizer_weights = model.get_optimizer_weights()
        except (AttributeError, RuntimeError, ValueError) as e:
            optimizer_weights = None
            result.optimizer_skip_reason = f"optimizer state unavailable: {e}"
        else:
            if optimizer_weights is None:
                result.optimizer_skip_reason = 'optimizer has no state yet'

        if optimizer_weights is not None:
            data, _ = encode_weights(optimizer_weights)
            self.store.write(f'{checkpoint_dir}/{OPTIMIZER_FILE}', data, is_binary=True)
            result.optimizer_saved = True
        else:
            # Optimizer state from an earlier save belongs to other parameters
            if self.store.delete(f'{checkpoint_dir}/{OPTIMIZER_FILE}'):
                self.logger.info(f"Removed stale optimizer state from {checkpoint_dir}")
            self.logger.warning(
                f"Skipped optimizer state for {checkpoint_dir}: {result.optimizer_skip_reason}"
            )

        if metadata is not None:
            payload = {'timestamp': datetime.now().isoformat()}
            payload.update(metadata)
            self.store.write(f'{checkpoint_dir}/{METADATA_FILE}', payload)
            result.metadata_saved = True

        self.logger.debug(f"Model and optimizer saved to {checkpoint_dir}")
        return result

    def load(self, checkpoint_dir: str) -> Optional[Predictor]:
        """
        Load a checkpoint.

        Returns:
            The restored predictor, or None if the directory has no model
            manifest. ``optimizer_state_restored`` tells whether the
            optimizer state was applied or reset.

        Raises:
            OSError: If an existing model file cannot be read.
        """
        manifest_key = f'{checkpoint_dir}/{MODEL_DIR}/{MODEL_FILE}'
        if not self.store.exists(manifest_key):
            if self.store.exists(f'{checkpoint_dir}/{OPTIMIZER_FILE}'):
                self.logger.error(
                    f"{checkpoint_dir} holds optimizer state without model parameters; ignoring it"
                )
            else:
                self.logger.warning(f"No model manifest in {checkpoint_dir}")
            return None

        model = Predictor.load(
            self.store.path_for(f'{checkpoint_dir}/{MODEL_DIR}'),
            logger=self.logger,
        )
        self._restore_optimizer(model, checkpoint_dir)
        return model

    def _restore_optimizer(self, model: Predictor, checkpoint_dir: str) -> None:
        data = self.store.read(f'{checkpoint_dir}/{OPTIMIZER_FILE}', is_binary=True)
        if data is None:
            model.reset_optimizer()
            self.logger.info(f"No optimizer state in {checkpoint_dir}; optimizer reset")
            return

        try:
            specs = model.optimizer_weight_specs()
        except (AttributeError, RuntimeError) as e:
            self.logger.warning(f"Model exposes no optimizer weight specs ({e}); optimizer reset")
            model.reset_optimizer()
            return

        try:
            model.set_optimizer_weights(decode_weights(data, specs))
        except DecodeError as e:
            model.reset_optimizer()
            self.logger.error(f"Optimizer state in {checkpoint_dir} does not match the model: {e}")
            return

        self.logger.info(f"Restored optimizer state from {checkpoint_dir}")

    def load_metadata(self, checkpoint_dir: str) -> Optional[Dict[str, Any]]:
        """Metadata saved with a checkpoint, or None."""
        return self.store.read(f'{checkpoint_dir}/{METADATA_FILE}')

    def list_checkpoints(self) -> List[str]:
        """
        Checkpoint directories that hold a model manifest, sorted by name.
        """
        suffix = f'/{MODEL_DIR}/{MODEL_FILE}'
        dirs = {key[:-len(suffix)] for key in self.store.list() if key.endswith(suffix)}
        return sorted(dirs)

    def latest_checkpoint(self) -> Optional[str]:
        checkpoints = self.list_checkpoints()
        return checkpoints[-1] if checkpoints else None

    def load_latest(self) -> Optional[Predictor]:
        """
        Load the most recent checkpoint.

        Returns:
            Predictor or None if no checkpoints exist.
        """
        latest = self.latest_checkpoint()
        if latest is None:
            return None
        return self.load(latest)


def checkpoint_name(generation: int) -> str:
    """Directory name for a checkpoint taken at ``generation``."""
    return f'{CHECKPOINT_PREFIX}{generation:06d}'
