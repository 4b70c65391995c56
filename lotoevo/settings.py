"""
Environment-driven defaults.

Every value can be overridden with a LOTOEVO_* environment variable;
the dataclass configurations use these as their defaults.
"""
import os

CHECKPOINT_DIR = os.environ.get('LOTOEVO_CHECKPOINT_DIR', './checkpoints')
LOG_LEVEL = os.environ.get('LOTOEVO_LOG_LEVEL', 'INFO')

# Draw universe: numbers 1..NUMBER_UNIVERSE, DRAW_SIZE of them per draw
NUMBER_UNIVERSE = int(os.environ.get('LOTOEVO_NUMBER_UNIVERSE', '25'))
DRAW_SIZE = int(os.environ.get('LOTOEVO_DRAW_SIZE', '15'))

# Population
TOTAL_PLAYERS = int(os.environ.get('LOTOEVO_TOTAL_PLAYERS', '100'))
WEIGHT_COUNT = int(os.environ.get('LOTOEVO_WEIGHT_COUNT', '25'))
ELITE_INDEX = int(os.environ.get('LOTOEVO_ELITE_INDEX', '10'))
SURVIVOR_FRACTION = float(os.environ.get('LOTOEVO_SURVIVOR_FRACTION', '0.25'))
CROSSOVER_RATE = float(os.environ.get('LOTOEVO_CROSSOVER_RATE', '0.5'))
BASE_MUTATION_RATE = float(os.environ.get('LOTOEVO_BASE_MUTATION_RATE', '0.1'))

# Predictor training
LEARNING_RATE = float(os.environ.get('LOTOEVO_LEARNING_RATE', '0.001'))
EPOCHS_PER_DRAW = int(os.environ.get('LOTOEVO_EPOCHS_PER_DRAW', '1'))
CHECKPOINT_INTERVAL = int(os.environ.get('LOTOEVO_CHECKPOINT_INTERVAL', '50'))
