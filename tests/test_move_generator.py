"""Tests for legal move generation: steps, chain jumps and goal swaps."""

from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from sternhalma.board import GameState, RuleSet
from sternhalma.errors import NoPieceError, NotYourPieceError
from sternhalma.game_engine import GameEngine
from sternhalma.geometry import CubeCoord, distance
from sternhalma.models import GameStateModel, RuleSetModel
from sternhalma.rules.move_generator import (
    get_all_valid_moves,
    get_jump_moves,
    get_swap_moves,
    get_valid_moves,
    has_player_left_home,
    is_legal_move,
)


def _row_state(
    pieces: Dict[str, int],
    *,
    q_range: range = range(-2, 7),
    walls: Optional[List[str]] = None,
    rules: Optional[RuleSet] = None,
    starting: Optional[Dict[int, List[str]]] = None,
    goals: Optional[Dict[int, List[str]]] = None,
) -> GameState:
    """Single-row custom board (r == 0) with pieces placed directly."""
    owners = sorted(set(pieces.values()))
    if starting is None:
        starting = {p: [k for k, o in pieces.items() if o == p] for p in owners}
    if goals is None:
        goals = {p: [] for p in owners}
    rules = rules or RuleSet()
    model = GameStateModel(
        game_id="row",
        player_count=2,
        active_players=owners,
        current_player=owners[0],
        is_custom_layout=True,
        cells=[f"{q},0" for q in q_range],
        pieces=pieces,
        walls=walls or [],
        starting_positions=starting,
        goal_positions=goals,
        rules=RuleSetModel(
            allow_swaps=rules.allow_swaps, jump_over_walls=rules.jump_over_walls
        ),
    )
    return model.to_state()


def _dest_keys(moves) -> List[str]:
    return [m.to.key for m in moves]


class TestJumps:
    def test_chain_jump_records_every_landing(self):
        state = _row_state({"0,0": 0, "1,0": 2, "3,0": 2})
        moves = get_valid_moves(state, CubeCoord(0, 0))
        # Steps come first, then jumps in discovery order.
        assert _dest_keys(moves) == ["-1,0", "2,0", "4,0"]
        chain = moves[2]
        assert chain.is_jump
        assert [c.key for c in chain.jump_path] == ["2,0", "4,0"]
        assert chain.jump_path[-1] == chain.to

    def test_origin_is_never_a_landing(self):
        state = _row_state({"0,0": 0, "1,0": 2, "3,0": 2})
        moves = get_jump_moves(state, CubeCoord(0, 0))
        assert all(m.to != CubeCoord(0, 0) for m in moves)

    def test_exclude_blocks_revisits(self):
        state = _row_state({"0,0": 0, "1,0": 2, "3,0": 2})
        moves = get_jump_moves(state, CubeCoord(0, 0), exclude=("4,0",))
        assert _dest_keys(moves) == ["2,0"]

    def test_walls_are_jumpable_when_enabled(self):
        state = _row_state({"0,0": 0, "5,0": 2}, walls=["1,0"])
        assert _dest_keys(get_jump_moves(state, CubeCoord(0, 0))) == ["2,0"]

    def test_walls_block_when_disabled(self):
        state = _row_state(
            {"0,0": 0, "5,0": 2},
            walls=["1,0"],
            rules=RuleSet(jump_over_walls=False),
        )
        assert get_jump_moves(state, CubeCoord(0, 0)) == []
        assert _dest_keys(get_valid_moves(state, CubeCoord(0, 0))) == ["-1,0"]


class TestSwaps:
    STARTING = {0: ["-2,0", "-1,0"], 2: ["2,0", "3,0"]}
    GOALS = {0: ["2,0", "3,0"], 2: ["-2,0", "-1,0"]}

    def _state(self, pieces, rules=None):
        return _row_state(
            pieces,
            q_range=range(-2, 4),
            starting=self.STARTING,
            goals=self.GOALS,
            rules=rules,
        )

    def test_swap_offered_once_home_is_empty(self):
        state = self._state({"0,0": 0, "1,0": 0, "2,0": 2, "3,0": 2})
        assert has_player_left_home(state, 0)
        swaps = get_swap_moves(state, CubeCoord(1, 0), 0)
        assert len(swaps) == 1
        assert swaps[0].is_swap and swaps[0].to == CubeCoord(2, 0)
        assert swaps[0] in get_valid_moves(state, CubeCoord(1, 0))

    def test_no_swap_while_home_occupied(self):
        state = self._state({"-1,0": 0, "1,0": 0, "2,0": 2, "3,0": 2})
        assert not has_player_left_home(state, 0)
        assert get_swap_moves(state, CubeCoord(1, 0), 0) == []

    def test_no_swap_when_rule_disabled(self):
        state = self._state(
            {"0,0": 0, "1,0": 0, "2,0": 2, "3,0": 2}, rules=RuleSet(allow_swaps=False)
        )
        assert get_swap_moves(state, CubeCoord(1, 0), 0) == []

    def test_swap_sends_displaced_piece_to_origin(self):
        state = self._state({"0,0": 0, "1,0": 0, "2,0": 2, "3,0": 2})
        swap = get_swap_moves(state, CubeCoord(1, 0), 0)[0]
        after = GameEngine.move_piece(state, swap)
        assert after.occupancy()["2,0"] == 0
        assert after.occupancy()["1,0"] == 2
        assert after.piece_counts() == state.piece_counts()


class TestStandardOpening:
    def test_steps_only_onto_empty_cells(self, standard_state):
        for move in get_all_valid_moves(standard_state, 0):
            if not move.is_jump and not move.is_swap:
                assert standard_state.is_empty(move.to)
                assert distance(move.from_pos, move.to) == 1

    def test_jump_paths_never_repeat(self, standard_state):
        jumps = [m for m in get_all_valid_moves(standard_state, 0) if m.is_jump]
        assert jumps
        for move in jumps:
            keys = [c.key for c in move.jump_path]
            assert len(keys) == len(set(keys))
            assert move.from_pos.key not in keys

    def test_moves_independent_of_board_insertion_order(self, standard_state):
        expected = get_all_valid_moves(standard_state, 0)
        shuffled = standard_state.copy()
        shuffled.board = dict(reversed(list(standard_state.board.items())))
        assert get_all_valid_moves(shuffled, 0) == expected

    def test_no_swaps_at_the_start(self, standard_state):
        assert not any(m.is_swap for m in get_all_valid_moves(standard_state, 0))

    def test_selection_errors(self, standard_state):
        with pytest.raises(NoPieceError):
            get_valid_moves(standard_state, CubeCoord(0, 0))
        opponent_piece = standard_state.piece_positions(2)[0]
        with pytest.raises(NotYourPieceError):
            get_valid_moves(standard_state, opponent_piece)

    def test_is_legal_move(self, standard_state):
        move = get_all_valid_moves(standard_state, 0)[0]
        assert is_legal_move(standard_state, move)
        opponent_move = get_all_valid_moves(standard_state, 2)[0]
        assert not is_legal_move(standard_state, opponent_move)
