"""Tests for game pattern extraction and the shared-insights aggregate."""

from __future__ import annotations

from typing import Dict

import pytest

from sternhalma.ai.heuristic_weights import BASE_GENOME_WEIGHTS, DEFAULT_GENOME
from sternhalma.board import GameState
from sternhalma.game_engine import GameEngine
from sternhalma.learning import (
    SharedInsights,
    calculate_game_quality,
    extract_endgame_metrics,
    extract_game_patterns,
    genome_from_insights,
    score_goal_fill_order,
)
from sternhalma.models import GameStateModel
from sternhalma.rules.move_generator import get_all_valid_moves


def _with_pieces(state: GameState, pieces: Dict[str, int]) -> GameState:
    payload = GameStateModel.from_state(state).model_dump()
    payload["pieces"] = pieces
    return GameStateModel.model_validate(payload).to_state()


def _play(state: GameState, origin: str, dest: str) -> GameState:
    move = next(
        m
        for m in get_all_valid_moves(state, state.current_player)
        if m.from_pos.key == origin and m.to.key == dest
    )
    return GameEngine.apply_move(state, move)


@pytest.fixture
def won_game(tiny_state) -> GameState:
    """Player 0 wins the tiny game with a single step into its goal."""
    state = _with_pieces(tiny_state, {"2,0": 0, "-2,0": 2})
    return _play(state, "2,0", "3,0")


@pytest.fixture
def unfinished_game(standard_state) -> GameState:
    state = standard_state
    for _ in range(4):
        move = next(
            m for m in get_all_valid_moves(state, state.current_player) if not m.is_jump
        )
        state = GameEngine.apply_move(state, move)
    return state


class TestExtraction:
    def test_patterns_for_a_won_game(self, won_game):
        patterns = extract_game_patterns(won_game)

        assert patterns.winner == 0
        assert patterns.total_moves == 1
        assert patterns.winner_move_count == 1
        winner = patterns.player_metrics[0]
        assert winner.is_winner
        assert winner.step_moves == 1
        assert winner.jump_moves == 0
        assert winner.moves_to_first_goal_entry == 1
        assert winner.avg_distance_gained_per_move == pytest.approx(1.0)
        assert patterns.player_metrics[2].total_moves == 0
        assert not patterns.player_metrics[2].is_winner

    def test_patterns_for_an_unfinished_game(self, unfinished_game):
        patterns = extract_game_patterns(unfinished_game)
        assert patterns.winner is None
        assert patterns.endgame_metrics is None
        assert patterns.total_moves == 4
        assert patterns.winner_move_count == 4
        assert patterns.player_metrics[0].total_moves == 2
        assert patterns.player_metrics[2].total_moves == 2
        assert calculate_game_quality(patterns) == 0.1

    def test_endgame_metrics(self, won_game):
        endgame = extract_endgame_metrics(won_game, 0)
        assert endgame.goal_fill_order == [3]
        assert endgame.exit_and_reenter_count == 0
        assert endgame.shuffle_moves_in_endgame == 0
        # One piece never reaches the seven-piece milestone.
        assert endgame.moves_from_7_to_finish is None

    def test_game_quality_for_a_short_win(self, won_game):
        quality = calculate_game_quality(extract_game_patterns(won_game))
        assert quality == pytest.approx(0.5 + 0.0 + 0.125)

    def test_patterns_serialize_with_wire_names(self, won_game):
        payload = extract_game_patterns(won_game).model_dump(by_alias=True)
        assert payload["gameId"] == "tiny-game"
        assert payload["isCustomLayout"]
        assert "movesToFirstGoalEntry" in payload["playerMetrics"][0]


@pytest.mark.parametrize(
    "fill_order,expected",
    [
        ([], 0.5),
        ([4.0], 0.5),
        ([4.0, 3.0, 2.0], 1.0),
        ([2.0, 3.0, 4.0], 0.0),
        ([3.0, 2.0, 4.0], pytest.approx(1 / 3)),
    ],
)
def test_score_goal_fill_order(fill_order, expected):
    assert score_goal_fill_order(fill_order) == expected


class TestSharedInsights:
    def test_first_fold_adopts_game_weights(self, won_game):
        insights = SharedInsights().fold_game(won_game)

        assert insights.games_analyzed == 1
        weights = insights.weights
        assert weights.jump_preference == pytest.approx(0.8)
        assert weights.advancement_balance == pytest.approx(1.2)
        assert weights.distance_weight == pytest.approx(1.0)
        assert weights.avg_winning_move_count == 1
        assert insights.endgame_stats.games_analyzed == 1
        assert insights.endgame_stats.avg_moves_from_7 == 20.0
        assert insights.endgame_stats.avg_shuffle_moves == pytest.approx(0.0)

    def test_running_average(self, won_game):
        once = SharedInsights().fold_game(won_game)
        twice = once.fold_game(won_game)
        assert twice.games_analyzed == 2
        assert twice.weights.jump_preference == pytest.approx(0.8)
        assert twice.weights.avg_winning_move_count == pytest.approx(1.0)

    def test_drawn_games_are_ignored(self, unfinished_game):
        insights = SharedInsights()
        assert insights.fold_game(unfinished_game) is insights

    def test_fold_returns_a_new_aggregate(self, won_game):
        insights = SharedInsights()
        insights.fold_game(won_game)
        assert insights.games_analyzed == 0

    def test_genome_from_insights(self, won_game):
        assert genome_from_insights(None) == DEFAULT_GENOME
        assert genome_from_insights(SharedInsights()) == DEFAULT_GENOME

        genome = genome_from_insights(SharedInsights().fold_game(won_game))
        assert genome.jump_potential == pytest.approx(BASE_GENOME_WEIGHTS["jump_potential"] * 0.8)
        assert genome.goal_distance == pytest.approx(BASE_GENOME_WEIGHTS["goal_distance"])
        assert genome.blocking == BASE_GENOME_WEIGHTS["blocking"]
