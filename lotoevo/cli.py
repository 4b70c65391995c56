"""
Command line entry point.

Usage:
    lotoevo evolve draws.json [--checkpoint-dir ./checkpoints] [--players 100]
                              [--epochs 1] [--checkpoint-interval 50]
                              [--resume] [--seed 7]
    lotoevo checkpoints [--checkpoint-dir ./checkpoints]

Ctrl-C during ``evolve`` stops the run after the current generation and
still writes a final checkpoint.
"""
import argparse
import logging
import sys
import threading
from typing import List, Optional

from . import settings
from .draws import read_draws_json
from .evolution.population import EvolutionConfig, Population
from .exceptions import LotoEvoError
from .training.checkpoints import CheckpointStore, ModelCheckpointManager
from .training.trainer import Trainer, TrainingConfig, TrainingResult

logger = logging.getLogger('lotoevo')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lotoevo',
        description='Evolve a population of draw predictors over historical draws',
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default=settings.LOG_LEVEL,
        help=f'Logging level (default: {settings.LOG_LEVEL})',
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    evolve = subparsers.add_parser('evolve', help='Train over a JSON list of draws')
    evolve.add_argument(
        'draws',
        type=str,
        help='Path to a JSON file holding a list of draw records',
    )
    evolve.add_argument(
        '--checkpoint-dir',
        type=str,
        default=settings.CHECKPOINT_DIR,
        help=f'Checkpoint root directory (default: {settings.CHECKPOINT_DIR})',
    )
    evolve.add_argument(
        '--players',
        type=int,
        default=settings.TOTAL_PLAYERS,
        help=f'Population size (default: {settings.TOTAL_PLAYERS})',
    )
    evolve.add_argument(
        '--epochs',
        type=int,
        default=settings.EPOCHS_PER_DRAW,
        help=f'Predictor epochs per draw (default: {settings.EPOCHS_PER_DRAW})',
    )
    evolve.add_argument(
        '--checkpoint-interval',
        type=int,
        default=settings.CHECKPOINT_INTERVAL,
        help=f'Generations between checkpoints (default: {settings.CHECKPOINT_INTERVAL})',
    )
    evolve.add_argument(
        '--resume',
        action='store_true',
        help='Resume from the latest checkpoint in --checkpoint-dir',
    )
    evolve.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for the population',
    )

    checkpoints = subparsers.add_parser('checkpoints', help='List saved checkpoints')
    checkpoints.add_argument(
        '--checkpoint-dir',
        type=str,
        default=settings.CHECKPOINT_DIR,
        help=f'Checkpoint root directory (default: {settings.CHECKPOINT_DIR})',
    )

    return parser


def run_evolve(args: argparse.Namespace) -> int:
    draws = read_draws_json(args.draws)
    print(f"Loaded {len(draws)} draws from {args.draws}")

    population = Population(EvolutionConfig(total_players=args.players, seed=args.seed))
    trainer = Trainer(
        TrainingConfig(
            epochs_per_draw=args.epochs,
            checkpoint_dir=args.checkpoint_dir,
            checkpoint_interval=args.checkpoint_interval,
        ),
        population=population,
    )

    if args.resume:
        checkpoint_dir = trainer.resume()
        print(f"Resumed from {checkpoint_dir} at generation {population.generation}")

    cancel_event = threading.Event()
    outcome = {}

    def work():
        try:
            outcome['result'] = trainer.train(draws, cancel_event=cancel_event)
        except BaseException as e:
            outcome['error'] = e

    worker = threading.Thread(target=work, name='lotoevo-train')
    worker.start()
    try:
        while worker.is_alive():
            worker.join(timeout=0.5)
    except KeyboardInterrupt:
        print("Interrupted; stopping after the current generation...")
        cancel_event.set()
        worker.join()

    if 'error' in outcome:
        raise outcome['error']

    result: TrainingResult = outcome['result']
    status = 'cancelled' if result.cancelled else 'completed'
    champion_id = result.champion.id if result.champion else None
    print(
        f"\nTraining {status}!"
        f"\n  Generations: {population.generation}"
        f"\n  Ticks this run: {result.ticks}"
        f"\n  Best fitness: {result.best_fitness:.2f}"
        f"\n  Champion: {champion_id}"
        f"\n  Checkpoint: {result.checkpoint_dir}"
    )
    if result.validation:
        mean_f1 = sum(m.f1_score for m in result.validation) / len(result.validation)
        print(f"  Champion F1 over {len(result.validation)} folds: {mean_f1:.3f}")
    return 0


def run_checkpoints(args: argparse.Namespace) -> int:
    manager = ModelCheckpointManager(CheckpointStore(args.checkpoint_dir))
    checkpoints = manager.list_checkpoints()
    if not checkpoints:
        print(f"No checkpoints in {args.checkpoint_dir}")
        return 0

    for name in checkpoints:
        metadata = manager.load_metadata(name) or {}
        print(
            f"{name}  generation={metadata.get('generation', '?')} "
            f"loss={metadata.get('loss')} saved={metadata.get('timestamp', '?')}"
        )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    commands = {
        'evolve': run_evolve,
        'checkpoints': run_checkpoints,
    }

    try:
        return commands[args.command](args)
    except LotoEvoError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
