"""
Pytest fixtures for lotoevo tests.

Provides fixtures for:
- Historical draws
- Small predictor architectures
- Seeded populations
- Checkpoint stores rooted in tmp_path
"""
import random
from typing import Any, Dict, List

import pytest

from lotoevo.draws import Draw
from lotoevo.evolution.population import EvolutionConfig, Population
from lotoevo.networks.architectures import minimal_architecture
from lotoevo.training.checkpoints import CheckpointStore, ModelCheckpointManager


def make_draws(count: int, seed: int = 0) -> List[Draw]:
    """Deterministic draws of 15 numbers out of 1..25."""
    rng = random.Random(seed)
    return [
        Draw(draw_index=i + 1, numbers=tuple(sorted(rng.sample(range(1, 26), 15))))
        for i in range(count)
    ]


@pytest.fixture
def draws() -> List[Draw]:
    """Six consecutive draws: five generation ticks."""
    return make_draws(6)


@pytest.fixture
def draw_records() -> List[Dict[str, Any]]:
    """Raw draw records as they appear in a JSON history file."""
    return [draw.to_dict() for draw in make_draws(6)]


@pytest.fixture
def small_architecture() -> Dict[str, Any]:
    """Return a minimal predictor architecture for testing."""
    return minimal_architecture()


@pytest.fixture
def small_config() -> EvolutionConfig:
    """A small, seeded population configuration."""
    return EvolutionConfig(total_players=8, seed=42)


@pytest.fixture
def population(small_config) -> Population:
    """An initialized small population."""
    pop = Population(small_config)
    pop.initialize()
    return pop


@pytest.fixture
def store(tmp_path) -> CheckpointStore:
    """A checkpoint store rooted in a temporary directory."""
    return CheckpointStore(tmp_path / 'checkpoints')


@pytest.fixture
def manager(store) -> ModelCheckpointManager:
    """A model checkpoint manager on the temporary store."""
    return ModelCheckpointManager(store)
