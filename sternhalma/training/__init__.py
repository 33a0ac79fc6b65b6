"""Evolutionary training of evaluator genomes through headless self-play."""

from .evolution import (
    build_matchup_schedule,
    create_initial_population,
    create_random_genome,
    crossover,
    evolve_generation,
    mutate,
    run_round_robin,
    summarize_generation,
    tournament_select,
)
from .persistence import InMemoryTrainingStore, JsonFileTrainingStore, TrainingStore
from .runner import GameResult, run_headless_game
from .scheduler import (
    DEFAULT_TRAINING_CONFIG,
    GAMES_PER_BATCH,
    SERVER_TRAINING_CONFIG,
    StepTelemetry,
    TrainingScheduler,
    step,
)

__all__ = [
    "DEFAULT_TRAINING_CONFIG",
    "GAMES_PER_BATCH",
    "GameResult",
    "InMemoryTrainingStore",
    "JsonFileTrainingStore",
    "SERVER_TRAINING_CONFIG",
    "StepTelemetry",
    "TrainingScheduler",
    "TrainingStore",
    "build_matchup_schedule",
    "create_initial_population",
    "create_random_genome",
    "crossover",
    "evolve_generation",
    "mutate",
    "run_headless_game",
    "run_round_robin",
    "step",
    "summarize_generation",
    "tournament_select",
]
