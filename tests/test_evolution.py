"""Tests for the genetic algorithm over evaluator genomes."""

from __future__ import annotations

import numpy as np
import pytest

from conftest import FakeGamePlayer, small_training_config
from sternhalma.ai.heuristic_weights import DEFAULT_GENOME, GENE_RANGES, GENOME_KEYS
from sternhalma.models import Individual
from sternhalma.training.evolution import (
    DRAW_POINTS,
    WIN_POINTS,
    best_individual,
    build_matchup_schedule,
    create_initial_population,
    create_random_genome,
    crossover,
    evolve_generation,
    matchup_seats,
    mutate,
    record_game_result,
    run_round_robin,
    summarize_generation,
    tournament_select,
)
from sternhalma.training.runner import GameResult


def _within_ranges(genome) -> bool:
    values = genome.as_dict()
    return all(GENE_RANGES[k][0] <= values[k] <= GENE_RANGES[k][1] for k in GENOME_KEYS)


@pytest.mark.parametrize("n", [2, 3, 4, 7, 12])
def test_schedule_covers_every_pair_once(n):
    schedule = build_matchup_schedule(n)
    assert len(schedule) == n * (n - 1) // 2
    assert len(set(schedule)) == len(schedule)
    assert all(i < j for i, j in schedule)


def test_population_of_four_plays_twelve_games(fake_game_player):
    config = small_training_config(population_size=4, games_per_matchup=2)
    population = create_initial_population(4, np.random.default_rng(0))

    scored, games = run_round_robin(population, config, play_game=fake_game_player)

    assert len(build_matchup_schedule(4)) == 6
    assert games == 12
    assert len(fake_game_player.calls) == 12
    assert sum(ind.games_played for ind in scored) == 2 * 2 * 6
    assert all(ind.games_played == 0 for ind in population)


def test_seats_alternate_within_a_matchup():
    assert matchup_seats((1, 3), 0) == (1, 3)
    assert matchup_seats((1, 3), 1) == (3, 1)
    assert matchup_seats((1, 3), 2) == (1, 3)


def test_round_robin_reports_progress(fake_game_player, small_config):
    population = create_initial_population(3, np.random.default_rng(5))
    ticks = []
    run_round_robin(
        population,
        small_config,
        play_game=fake_game_player,
        on_game_complete=lambda: ticks.append(1),
    )
    assert len(ticks) == 3 * small_config.games_per_matchup


def test_scoring():
    population = [Individual(genome=DEFAULT_GENOME) for _ in range(3)]
    record_game_result(population, 0, 1, GameResult(winner=0, total_moves=40))
    record_game_result(population, 2, 1, GameResult(winner=1, total_moves=40))
    record_game_result(population, 0, 2, GameResult(winner=None, total_moves=300))

    assert population[0].fitness == WIN_POINTS + DRAW_POINTS
    assert population[1].fitness == WIN_POINTS
    assert population[2].fitness == DRAW_POINTS
    assert [ind.wins for ind in population] == [1, 1, 0]
    assert [ind.games_played for ind in population] == [2, 2, 2]


class TestOperators:
    def test_initial_population(self, rng):
        population = create_initial_population(6, rng)
        assert len(population) == 6
        assert population[0].genome == DEFAULT_GENOME
        assert all(_within_ranges(ind.genome) for ind in population)
        assert len({ind.genome for ind in population}) > 1

    def test_seed_fixes_population(self):
        a = create_initial_population(5, np.random.default_rng(99))
        b = create_initial_population(5, np.random.default_rng(99))
        assert [ind.genome for ind in a] == [ind.genome for ind in b]

    def test_crossover_takes_each_gene_from_a_parent(self, rng):
        a = create_random_genome(rng)
        b = create_random_genome(rng)
        child = crossover(a, b, rng).as_dict()
        for key in GENOME_KEYS:
            assert child[key] in (a.as_dict()[key], b.as_dict()[key])

    def test_mutation_rate_bounds(self, rng):
        assert mutate(DEFAULT_GENOME, 0.0, 0.5, rng) == DEFAULT_GENOME
        mutated = mutate(DEFAULT_GENOME, 1.0, 5.0, rng)
        assert mutated != DEFAULT_GENOME
        assert _within_ranges(mutated)

    def test_tournament_prefers_fitter(self, rng):
        population = [Individual(genome=DEFAULT_GENOME, fitness=f) for f in (0, 1, 2, 3)]
        winner = tournament_select(population, 64, rng)
        assert winner.fitness == 3
        assert tournament_select(population, 1, rng) in population


class TestGenerations:
    def test_best_individual_prefers_lowest_index_on_ties(self):
        population = [Individual(genome=DEFAULT_GENOME, fitness=f) for f in (1, 4, 4)]
        assert best_individual(population) is population[1]

    def test_summary(self):
        population = [Individual(genome=DEFAULT_GENOME, fitness=f) for f in (2, 4, 6)]
        summary = summarize_generation(population, 7)
        assert summary.generation == 7
        assert summary.best_fitness == 6
        assert summary.avg_fitness == pytest.approx(4.0)

    def test_evolution_keeps_size_and_elites(self, rng):
        config = small_training_config(population_size=5, elite_count=2)
        population = create_initial_population(5, rng)
        for index, ind in enumerate(population):
            ind.fitness = float(index)
            ind.games_played = 4

        next_population = evolve_generation(population, config, rng)

        assert len(next_population) == 5
        assert next_population[0].genome == population[4].genome
        assert next_population[1].genome == population[3].genome
        assert all(ind.fitness == 0 and ind.games_played == 0 for ind in next_population)
        assert all(_within_ranges(ind.genome) for ind in next_population)

    def test_size_invariant_over_many_generations(self, rng):
        config = small_training_config(population_size=4)
        population = create_initial_population(4, rng)
        player = FakeGamePlayer()
        for _ in range(3):
            scored, _ = run_round_robin(population, config, play_game=player)
            population = evolve_generation(scored, config, rng)
            assert len(population) == 4
