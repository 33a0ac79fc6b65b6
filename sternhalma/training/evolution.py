"""Genetic search over evaluator genomes.

Individuals carry an immutable :class:`Genome` plus per-generation
statistics. Fitness comes from a round-robin of headless games: a win is
worth 3 points, a game that hits the move limit is worth 1 point to each
side.

All randomness flows through the ``numpy.random.Generator`` passed in by
the caller, drawn in :data:`GENOME_KEYS` order, so a seed fixes the whole
run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import numpy as np

from ..ai.heuristic_weights import DEFAULT_GENOME, GENE_RANGES, GENOME_KEYS, clamp_gene
from ..models import GenerationResult, Genome, Individual, TrainingConfig
from .runner import GameResult, run_headless_game

logger = logging.getLogger(__name__)

# Initial population spread as a fraction of each gene's range.
INITIAL_SPREAD = 0.3

WIN_POINTS = 3.0
DRAW_POINTS = 1.0

PlayGame = Callable[[Genome, Genome, TrainingConfig], GameResult]


def play_matchup_game(first: Genome, second: Genome, config: TrainingConfig) -> GameResult:
    """Default game player: a standard-board headless game at training depth."""
    return run_headless_game(
        first,
        second,
        config.max_moves_per_game,
        depth=config.search_depth,
        move_cap=config.search_move_cap,
    )


def _gene_span(key: str) -> float:
    low, high = GENE_RANGES[key]
    return high - low


def create_random_genome(rng: np.random.Generator) -> Genome:
    """Default genome with every gene jittered by ``N(0, 1) * range * 0.3``."""
    base = DEFAULT_GENOME.as_dict()
    values = {}
    for key in GENOME_KEYS:
        value = base[key] + rng.standard_normal() * _gene_span(key) * INITIAL_SPREAD
        values[key] = clamp_gene(key, float(value))
    return Genome(**values)


def create_initial_population(size: int, rng: np.random.Generator) -> list[Individual]:
    """The default genome followed by ``size - 1`` random variations."""
    population = [Individual(genome=DEFAULT_GENOME)]
    for _ in range(1, size):
        population.append(Individual(genome=create_random_genome(rng)))
    return population


def crossover(a: Genome, b: Genome, rng: np.random.Generator) -> Genome:
    """Uniform crossover: each gene from either parent with probability 0.5."""
    left, right = a.as_dict(), b.as_dict()
    return Genome(**{key: left[key] if rng.random() < 0.5 else right[key] for key in GENOME_KEYS})


def mutate(
    genome: Genome,
    rate: float,
    strength: float,
    rng: np.random.Generator,
) -> Genome:
    """Perturb each gene with probability ``rate`` by ``N(0, 1) * range * strength``."""
    values = genome.as_dict()
    for key in GENOME_KEYS:
        if rng.random() < rate:
            perturbation = rng.standard_normal() * _gene_span(key) * strength
            values[key] = clamp_gene(key, float(values[key] + perturbation))
    return Genome(**values)


def tournament_select(
    population: list[Individual],
    size: int,
    rng: np.random.Generator,
) -> Individual:
    """Fittest of ``size`` uniform draws (with replacement); earliest draw wins ties."""
    best: Individual | None = None
    for _ in range(size):
        candidate = population[int(rng.integers(0, len(population)))]
        if best is None or candidate.fitness > best.fitness:
            best = candidate
    assert best is not None
    return best


def build_matchup_schedule(population_size: int) -> list[tuple[int, int]]:
    """Every unordered pair ``(i, j)`` with ``i < j``, in lexicographic order."""
    return [
        (i, j)
        for i in range(population_size)
        for j in range(i + 1, population_size)
    ]


def reset_statistics(population: list[Individual]) -> list[Individual]:
    return [Individual(genome=ind.genome) for ind in population]


def matchup_seats(pair: tuple[int, int], game_index: int) -> tuple[int, int]:
    """``(first, second)`` population indices; ``i`` moves first on even games."""
    i, j = pair
    return (i, j) if game_index % 2 == 0 else (j, i)


def record_game_result(
    population: list[Individual],
    first: int,
    second: int,
    result: GameResult,
) -> None:
    """Apply one game's scoring to ``population`` in place."""
    a, b = population[first], population[second]
    a.games_played += 1
    b.games_played += 1
    if result.winner == 0:
        a.wins += 1
        a.fitness += WIN_POINTS
    elif result.winner == 1:
        b.wins += 1
        b.fitness += WIN_POINTS
    else:
        a.fitness += DRAW_POINTS
        b.fitness += DRAW_POINTS


def run_round_robin(
    population: list[Individual],
    config: TrainingConfig,
    *,
    play_game: PlayGame = play_matchup_game,
    on_game_complete: Callable[[], None] | None = None,
) -> tuple[list[Individual], int]:
    """Play a full generation in one go.

    Returns:
        A re-scored copy of ``population`` and the number of games played.
    """
    scored = reset_statistics(population)
    games = 0
    for pair in build_matchup_schedule(len(scored)):
        for g in range(config.games_per_matchup):
            first, second = matchup_seats(pair, g)
            result = play_game(scored[first].genome, scored[second].genome, config)
            record_game_result(scored, first, second, result)
            games += 1
            if on_game_complete is not None:
                on_game_complete()
    return scored, games


def best_individual(population: list[Individual]) -> Individual:
    """Max fitness; the lowest index wins ties."""
    best = population[0]
    for ind in population[1:]:
        if ind.fitness > best.fitness:
            best = ind
    return best


def summarize_generation(population: list[Individual], generation: int) -> GenerationResult:
    best = best_individual(population)
    avg = sum(ind.fitness for ind in population) / len(population)
    return GenerationResult(
        generation=generation,
        best_fitness=best.fitness,
        avg_fitness=avg,
        best_genome=best.genome,
    )


def evolve_generation(
    population: list[Individual],
    config: TrainingConfig,
    rng: np.random.Generator,
) -> list[Individual]:
    """Produce the next population.

    The ``elite_count`` fittest genomes carry over unchanged (statistics
    reset); every other slot is a mutated crossover of two tournament
    winners.
    """
    ranked = sorted(population, key=lambda ind: ind.fitness, reverse=True)
    next_population = [
        Individual(genome=ind.genome) for ind in ranked[: config.elite_count]
    ]
    while len(next_population) < config.population_size:
        parent_a = tournament_select(ranked, config.tournament_size, rng)
        parent_b = tournament_select(ranked, config.tournament_size, rng)
        child = crossover(parent_a.genome, parent_b.genome, rng)
        child = mutate(child, config.mutation_rate, config.mutation_strength, rng)
        next_population.append(Individual(genome=child))
    logger.debug(
        f"Evolved population: {config.elite_count} elites, "
        f"{config.population_size - config.elite_count} offspring"
    )
    return next_population
