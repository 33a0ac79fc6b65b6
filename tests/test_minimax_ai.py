"""Tests for the minimax search engine and the AI factory."""

from __future__ import annotations

import math

import pytest

from sternhalma.ai.base import derive_training_seed
from sternhalma.ai.cache import EvolvedGenomeCache
from sternhalma.ai.evaluator import evaluate
from sternhalma.ai.factory import (
    DIFFICULTY_PROFILES,
    AIFactory,
    create_ai,
    get_difficulty_profile,
)
from sternhalma.ai.heuristic_weights import DEFAULT_GENOME, get_personality_genome
from sternhalma.ai.minimax_ai import MinimaxAI
from sternhalma.board import create_game
from sternhalma.errors import AIError, ConfigurationError
from sternhalma.game_engine import GameEngine
from sternhalma.learning import LearnedWeights, SharedInsights, genome_from_insights
from sternhalma.models import AIConfig, Difficulty, GameStateModel, Personality
from sternhalma.rules.move_generator import get_all_valid_moves, is_legal_move


class TestSearch:
    def test_depth_one_is_evaluator_argmax(self, standard_state, progress_only_genome):
        moves = get_all_valid_moves(standard_state, 0)
        ai = AIFactory.create_custom(
            0, genome=progress_only_genome, depth=1, move_cap=len(moves)
        )

        chosen = ai.select_move(standard_state)

        scores = [
            evaluate(GameEngine.apply_move(standard_state, m), 0, progress_only_genome)
            for m in moves
        ]
        expected = moves[scores.index(max(scores))]
        assert chosen == expected

    def test_same_seed_same_move(self, standard_state):
        first = AIFactory.create_custom(0, depth=2, move_cap=4, rng_seed=11)
        second = AIFactory.create_custom(0, depth=2, move_cap=4, rng_seed=11)
        assert first.select_move(standard_state) == second.select_move(standard_state)

    def test_easy_is_reproducible_and_picks_from_top_three(self, standard_state):
        picks = []
        for _ in range(2):
            ai = AIFactory.create(Difficulty.EASY, 0, rng_seed=7)
            move = ai.select_move(standard_state)
            ranked = sorted(ai.last_root_scores, key=lambda item: item[1], reverse=True)
            assert move in [m for m, _ in ranked[:3]]
            picks.append(move)
        assert picks[0] == picks[1]

    def test_result_is_legal(self, standard_state):
        ai = AIFactory.create_custom(0, depth=2, move_cap=5)
        move = ai.select_move(standard_state)
        assert move is not None
        assert is_legal_move(standard_state, move)
        assert ai.move_count == 1
        assert ai.nodes_searched > 0

    def test_three_player_search(self):
        state = create_game(3)
        ai = AIFactory.create_custom(state.current_player, depth=2, move_cap=3)
        move = ai.select_move(state)
        assert is_legal_move(state, move)

    def test_out_of_turn_raises(self, standard_state):
        ai = AIFactory.create_custom(2, depth=1, move_cap=5)
        with pytest.raises(AIError):
            ai.select_move(standard_state)

    def test_finished_player_gets_no_move(self, tiny_state):
        payload = GameStateModel.from_state(tiny_state).model_dump()
        payload.update(
            pieces={"3,0": 0, "-2,0": 2},
            finished_players=[{"player": 0, "move_count": 3}],
            winner=0,
        )
        state = GameStateModel.model_validate(payload).to_state()
        ai = AIFactory.create_custom(0, depth=1, move_cap=5)
        assert ai.select_move(state) is None

    def test_move_cap_limits_candidates(self, standard_state):
        ai = AIFactory.create_custom(0, depth=1, move_cap=3)
        top = ai.get_top_moves(standard_state, 0)
        assert len(top) == 3
        all_moves = get_all_valid_moves(standard_state, 0)
        assert all(m in all_moves for m in top)

    def test_under_cap_keeps_generation_order(self, standard_state):
        moves = get_all_valid_moves(standard_state, 0)
        ai = AIFactory.create_custom(0, depth=1, move_cap=len(moves) + 1)
        assert ai.get_top_moves(standard_state, 0) == moves

    def test_all_vetoed_falls_back_to_first(self, standard_state):
        a, b = get_all_valid_moves(standard_state, 0)[:2]
        assert MinimaxAI._pick_best([(a, -math.inf), (b, -math.inf)]) == a
        assert MinimaxAI._pick_best([(a, 1.0), (b, 1.0)]) == a
        assert MinimaxAI._pick_best([(a, 1.0), (b, 2.0)]) == b

    def test_invalid_parameters(self):
        config = AIConfig(difficulty=Difficulty.MEDIUM)
        with pytest.raises(AIError):
            MinimaxAI(0, config, depth=0)
        with pytest.raises(AIError):
            MinimaxAI(0, config, move_cap=0)

    def test_evaluation_breakdown(self, standard_state):
        ai = AIFactory.create(Difficulty.MEDIUM, 0)
        breakdown = ai.get_evaluation_breakdown(standard_state)
        assert breakdown["total"] == pytest.approx(ai.evaluate_position(standard_state))


class TestFactory:
    def test_profiles(self):
        assert get_difficulty_profile("easy")["randomize_top"] == 3
        assert get_difficulty_profile(Difficulty.HARD)["depth"] == 3
        assert set(DIFFICULTY_PROFILES) == set(Difficulty)
        with pytest.raises(ConfigurationError):
            get_difficulty_profile("impossible")

    def test_tier_parameters(self):
        ai = create_ai("hard", 0)
        assert (ai.depth, ai.move_cap, ai.randomize_top) == (3, 20, 0)
        assert ai.genome == DEFAULT_GENOME

    def test_personality(self):
        ai = AIFactory.create("medium", 0, personality=Personality.DEFENSIVE)
        assert ai.genome == get_personality_genome("defensive")
        with pytest.raises(ConfigurationError):
            AIFactory.create("medium", 0, personality="reckless")

    def test_evolved_uses_cached_genome(self):
        aggressive = get_personality_genome("aggressive")
        cache = EvolvedGenomeCache(lambda: aggressive)
        ai = AIFactory.create("evolved", 0, evolved_cache=cache)
        assert ai.genome == aggressive

    def test_evolved_falls_back_without_genome(self):
        cache = EvolvedGenomeCache(lambda: None)
        assert AIFactory.create("evolved", 0, evolved_cache=cache).genome == DEFAULT_GENOME
        assert AIFactory.create("evolved", 0).genome == DEFAULT_GENOME

    def test_explicit_genome_wins(self):
        aggressive = get_personality_genome("aggressive")
        cache = EvolvedGenomeCache(lambda: DEFAULT_GENOME)
        ai = AIFactory.create(
            "evolved", 0, genome=aggressive, personality="defensive", evolved_cache=cache
        )
        assert ai.genome == aggressive

    def test_insights_seed_the_default_genome(self):
        insights = SharedInsights(
            games_analyzed=3,
            weights=LearnedWeights(distance_weight=1.4, jump_preference=0.6),
        )
        ai = AIFactory.create("medium", 0, insights=insights)
        assert ai.genome == genome_from_insights(insights)
        assert ai.genome.goal_distance == pytest.approx(DEFAULT_GENOME.goal_distance * 1.4)

    def test_training_seat(self):
        ai = AIFactory.create_for_training(2, DEFAULT_GENOME, depth=1, move_cap=4)
        assert ai.player_number == 2
        assert ai.randomize_top == 0
        assert ai.rng_seed == 0


def test_rng_seed_resolution():
    config = AIConfig(difficulty=Difficulty.EASY)
    assert derive_training_seed(config, 3) == derive_training_seed(config, 3)
    assert derive_training_seed(config, 0) != derive_training_seed(config, 3)
    seeded = AIFactory.create("easy", 0, rng_seed=42)
    assert seeded.rng_seed == 42
