"""Resumable, batch-limited evolutionary training.

The trainer is driven from outside (a cron job, the loop script, the
``/training/step`` endpoint) and keeps no state between invocations. Each
invocation:

1. loads the persisted :class:`TrainingState` (or cold-starts),
2. plays at most ``games_per_batch`` scheduled games via :func:`step`,
3. on generation completion records history, maybe a new best genome,
   and evolves the next population,
4. saves the best genome first, then the progress record.

Progress counters only advance in the saved record, so a failed save means
the next invocation replays the same batch with the same derived RNG
instead of counting any game twice.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace

import numpy as np

from ..ai.cache import EvolvedGenomeCache
from ..config import ServiceSettings
from ..errors import StorageError, TrainingStateMismatchError
from ..metrics import record_training_step
from ..models import BestGenomeRecord, TrainingConfig, TrainingState
from .evolution import (
    PlayGame,
    build_matchup_schedule,
    create_initial_population,
    evolve_generation,
    matchup_seats,
    play_matchup_game,
    record_game_result,
    summarize_generation,
)
from .persistence import JsonFileTrainingStore, TrainingStore

logger = logging.getLogger(__name__)


DEFAULT_TRAINING_CONFIG = TrainingConfig(
    population_size=20,
    generations=30,
    games_per_matchup=2,
    mutation_rate=0.15,
    mutation_strength=0.3,
    elite_count=2,
    tournament_size=3,
    max_moves_per_game=500,
)

SERVER_TRAINING_CONFIG = TrainingConfig(
    population_size=12,
    generations=50,
    games_per_matchup=2,
    mutation_rate=0.15,
    mutation_strength=0.3,
    elite_count=2,
    tournament_size=3,
    max_moves_per_game=300,
)

TRAINING_CONFIG_PRESETS: dict[str, TrainingConfig] = {
    "default": DEFAULT_TRAINING_CONFIG,
    "server": SERVER_TRAINING_CONFIG,
}

GAMES_PER_BATCH = 20


@dataclass(frozen=True)
class StepTelemetry:
    """What one invocation did."""
    games_played: int
    generation: int
    matchup_index: int
    schedule_length: int
    games_completed_in_generation: int
    cold_start: bool = False
    generation_completed: bool = False
    cycle_completed: bool = False
    best_fitness: float | None = None
    new_best: BestGenomeRecord | None = None
    persisted: bool = True

    def as_dict(self) -> dict:
        return {
            "gamesPlayed": self.games_played,
            "generation": self.generation,
            "matchupIndex": self.matchup_index,
            "scheduleLength": self.schedule_length,
            "gamesCompletedInGeneration": self.games_completed_in_generation,
            "coldStart": self.cold_start,
            "generationCompleted": self.generation_completed,
            "cycleCompleted": self.cycle_completed,
            "bestFitness": self.best_fitness,
            "newBest": self.new_best is not None,
            "persisted": self.persisted,
        }


def initial_training_state(config: TrainingConfig, rng: np.random.Generator) -> TrainingState:
    return TrainingState(
        config=config,
        population=create_initial_population(config.population_size, rng),
        matchup_schedule=build_matchup_schedule(config.population_size),
    )


def check_state_shape(state: TrainingState, config: TrainingConfig) -> None:
    """Raise when ``state`` cannot be resumed under ``config``.

    Raises:
        TrainingStateMismatchError: Population size, population length or
            schedule do not match, or a cursor is out of range.
    """
    n = config.population_size
    context = {
        "expected_population": n,
        "stored_population": state.config.population_size,
        "population_length": len(state.population),
    }
    if state.config.population_size != n or len(state.population) != n:
        raise TrainingStateMismatchError("Population size changed", context=context)
    schedule = [tuple(pair) for pair in state.matchup_schedule]
    if schedule != build_matchup_schedule(n):
        raise TrainingStateMismatchError("Matchup schedule does not cover the population", context=context)
    if state.matchup_index > len(schedule):
        raise TrainingStateMismatchError(
            "Matchup index past the end of the schedule",
            context={"matchup_index": state.matchup_index, "schedule_length": len(schedule)},
        )
    if state.game_within_matchup >= config.games_per_matchup:
        raise TrainingStateMismatchError(
            "Game index past the end of the matchup",
            context={"game_within_matchup": state.game_within_matchup},
        )


def step(
    state: TrainingState | None,
    batch_budget: int,
    rng: np.random.Generator,
    *,
    config: TrainingConfig = SERVER_TRAINING_CONFIG,
    play_game: PlayGame = play_matchup_game,
) -> tuple[TrainingState, StepTelemetry]:
    """Advance training by at most ``batch_budget`` games.

    Never mutates ``state``. A missing state, or one whose shape does not
    fit ``config``, is replaced by a freshly initialised population which
    then plays in the same call.

    Returns:
        The new state and a summary of the invocation. When the generation
        completed with a better-than-ever best, ``telemetry.new_best`` holds
        the record to persist.
    """
    cold_start = False
    if state is not None:
        try:
            check_state_shape(state, config)
        except TrainingStateMismatchError as e:
            logger.warning(f"Discarding persisted training state: {e}")
            state = None
    if state is None:
        working = initial_training_state(config, rng)
        cold_start = True
        logger.info(f"Initialized population of {config.population_size}")
    else:
        working = state.model_copy(deep=True)
        working.config = config

    population = working.population
    schedule = working.matchup_schedule
    games = 0
    while games < batch_budget and working.matchup_index < len(schedule):
        first, second = matchup_seats(
            tuple(schedule[working.matchup_index]), working.game_within_matchup
        )
        result = play_game(population[first].genome, population[second].genome, config)
        record_game_result(population, first, second, result)
        games += 1
        working.games_completed_in_generation += 1
        working.game_within_matchup += 1
        if working.game_within_matchup >= config.games_per_matchup:
            working.matchup_index += 1
            working.game_within_matchup = 0

    logger.debug(
        f"Gen {working.current_generation}: played {games} games "
        f"({working.games_completed_in_generation} total in gen, "
        f"matchup {working.matchup_index}/{len(schedule)})"
    )

    telemetry = StepTelemetry(
        games_played=games,
        generation=working.current_generation,
        matchup_index=working.matchup_index,
        schedule_length=len(schedule),
        games_completed_in_generation=working.games_completed_in_generation,
        cold_start=cold_start,
        best_fitness=working.best_fitness,
    )

    if working.matchup_index < len(schedule):
        working.last_updated = time.time()
        return working, telemetry

    return _complete_generation(working, config, rng, telemetry)


def _complete_generation(
    working: TrainingState,
    config: TrainingConfig,
    rng: np.random.Generator,
    telemetry: StepTelemetry,
) -> tuple[TrainingState, StepTelemetry]:
    generation = working.current_generation
    summary = summarize_generation(working.population, generation)
    working.generation_history.append(summary)
    logger.info(
        f"Generation {generation} complete: best {summary.best_fitness:.1f}, "
        f"avg {summary.avg_fitness:.2f}"
    )

    new_best: BestGenomeRecord | None = None
    if working.best_fitness is None or summary.best_fitness > working.best_fitness:
        working.best_genome = summary.best_genome
        working.best_fitness = summary.best_fitness
        new_best = BestGenomeRecord(
            genome=summary.best_genome,
            generation=generation,
            fitness=summary.best_fitness,
        )
        logger.info(
            f"New best genome at gen {generation} with fitness {summary.best_fitness}"
        )

    working.population = evolve_generation(working.population, config, rng)
    working.matchup_schedule = build_matchup_schedule(config.population_size)
    working.matchup_index = 0
    working.game_within_matchup = 0
    working.games_completed_in_generation = 0

    cycle_completed = generation + 1 >= config.generations
    if cycle_completed:
        logger.info(f"Completed {config.generations} generations. Restarting cycle.")
        working.current_generation = 0
        working.generation_history = []
        working.cycles_completed += 1
    else:
        working.current_generation = generation + 1
    working.last_updated = time.time()

    return working, replace(
        telemetry,
        generation_completed=True,
        cycle_completed=cycle_completed,
        best_fitness=working.best_fitness,
        new_best=new_best,
    )


def derive_rng(seed: int, state: TrainingState | None) -> np.random.Generator:
    """Generator keyed on the persisted progress counters.

    Retrying an invocation whose save failed replays the same draws.
    """
    if state is None:
        return np.random.default_rng([seed, 0, 0, 0])
    return np.random.default_rng(
        [
            seed,
            state.cycles_completed,
            state.current_generation,
            state.games_completed_in_generation,
        ]
    )


class TrainingScheduler:
    """Binds :func:`step` to a :class:`TrainingStore`.

    Args:
        store: Persistence collaborator.
        config: Training parameters.
        games_per_batch: Per-invocation game budget.
        seed: Base seed for RNG derivation.
        play_game: Headless game player, injectable for tests.
        evolved_cache: Refreshed when a new best genome is persisted.
    """

    def __init__(
        self,
        store: TrainingStore,
        *,
        config: TrainingConfig = SERVER_TRAINING_CONFIG,
        games_per_batch: int = GAMES_PER_BATCH,
        seed: int = 0,
        play_game: PlayGame = play_matchup_game,
        evolved_cache: EvolvedGenomeCache | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.games_per_batch = games_per_batch
        self.seed = seed
        self.play_game = play_game
        self.evolved_cache = evolved_cache

    @classmethod
    def from_settings(
        cls,
        settings: ServiceSettings,
        *,
        evolved_cache: EvolvedGenomeCache | None = None,
    ) -> TrainingScheduler:
        return cls(
            JsonFileTrainingStore(settings.training_state_dir),
            config=TRAINING_CONFIG_PRESETS[settings.training_profile],
            games_per_batch=settings.games_per_batch,
            seed=settings.training_seed,
            evolved_cache=evolved_cache,
        )

    def run_once(self) -> StepTelemetry:
        """One scheduler invocation: load, play a batch, save."""
        state = self.store.load_training_state()
        rng = derive_rng(self.seed, state)
        new_state, telemetry = step(
            state,
            self.games_per_batch,
            rng,
            config=self.config,
            play_game=self.play_game,
        )

        try:
            if telemetry.new_best is not None:
                self.store.save_best_genome(telemetry.new_best)
            self.store.save_training_state(new_state)
        except StorageError as e:
            logger.warning(f"Training progress not saved; next run repeats this batch: {e}")
            return replace(telemetry, persisted=False)

        if telemetry.new_best is not None and self.evolved_cache is not None:
            self.evolved_cache.set(telemetry.new_best.genome)
        record_training_step(
            telemetry.games_played,
            1 if telemetry.generation_completed else 0,
            telemetry.best_fitness,
        )
        return telemetry

    def best_genome(self) -> BestGenomeRecord | None:
        return self.store.load_best_genome()
