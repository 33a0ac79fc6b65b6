#!/usr/bin/env python3
"""Periodic driver for the Sternhalma genome trainer.

Each iteration runs one scheduler invocation (load progress, play a
bounded batch of headless games, save) and then sleeps. The trainer keeps
nothing in memory between iterations, so the loop can be killed at any
point and restarted against the same state directory.

Usage:
    python scripts/run_training_loop.py --state-dir ./training_state \\
        --interval-seconds 600 --batch 20
"""

from __future__ import annotations

import argparse
import logging
import time

from sternhalma.ai.cache import EvolvedGenomeCache
from sternhalma.config import TRAINING_PROFILES, ServiceSettings, load_settings
from sternhalma.errors import SternhalmaError
from sternhalma.training.persistence import JsonFileTrainingStore
from sternhalma.training.scheduler import TrainingScheduler

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_scheduler(args: argparse.Namespace, defaults: ServiceSettings) -> TrainingScheduler:
    settings = ServiceSettings(
        training_state_dir=args.state_dir or defaults.training_state_dir,
        training_seed=args.seed if args.seed is not None else defaults.training_seed,
        games_per_batch=args.batch or defaults.games_per_batch,
        training_profile=args.profile or defaults.training_profile,
        genome_cache_ttl_seconds=defaults.genome_cache_ttl_seconds,
        ai_workers=defaults.ai_workers,
        debug_search=defaults.debug_search,
    )
    store = JsonFileTrainingStore(settings.training_state_dir)

    def _load_best():
        record = store.load_best_genome()
        return record.genome if record is not None else None

    cache = EvolvedGenomeCache(_load_best, ttl_seconds=settings.genome_cache_ttl_seconds)
    return TrainingScheduler.from_settings(settings, evolved_cache=cache)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run the Sternhalma genome trainer in a loop"
    )
    parser.add_argument(
        "--state-dir",
        type=str,
        default=None,
        help="Directory holding training_state.json and best_genome.json "
        "(default: $STERNHALMA_TRAINING_STATE_DIR or ./training_state)",
    )
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=600.0,
        help="Pause between invocations",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=0,
        help="Number of invocations to run (0 = run forever)",
    )
    parser.add_argument(
        "--batch",
        type=int,
        default=None,
        help="Games per invocation (default: $STERNHALMA_GAMES_PER_BATCH or 20)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Base RNG seed (default: $STERNHALMA_TRAINING_SEED or 0)",
    )
    parser.add_argument(
        "--profile",
        type=str,
        default=None,
        choices=list(TRAINING_PROFILES),
        help="Training config preset",
    )
    args = parser.parse_args()

    if args.batch is not None and args.batch < 1:
        parser.error("--batch must be at least 1")

    try:
        scheduler = build_scheduler(args, load_settings())
    except SternhalmaError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.info(
        f"Training loop: state dir {scheduler.store.directory}, "
        f"batch {scheduler.games_per_batch}, population {scheduler.config.population_size}"
    )

    iteration = 0
    try:
        while args.iterations <= 0 or iteration < args.iterations:
            iteration += 1
            telemetry = scheduler.run_once()
            logger.info(
                f"Iteration {iteration}: gen {telemetry.generation}, "
                f"{telemetry.games_played} games, matchup "
                f"{telemetry.matchup_index}/{telemetry.schedule_length}, "
                f"best {telemetry.best_fitness}, persisted={telemetry.persisted}"
            )
            if args.iterations > 0 and iteration >= args.iterations:
                break
            time.sleep(args.interval_seconds)
    except KeyboardInterrupt:
        logger.info("Interrupted; progress up to the last saved batch is kept")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
