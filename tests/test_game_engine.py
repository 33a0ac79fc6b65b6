"""Tests for turn primitives and the interactive turn state machine."""

from __future__ import annotations

from typing import Dict

import pytest

from sternhalma.board import GameState
from sternhalma.game_engine import GameEngine, TurnEngine, TurnFailure, TurnPhase
from sternhalma.geometry import CubeCoord
from sternhalma.models import GameStateModel
from sternhalma.rules.move_generator import get_all_valid_moves


def _with_pieces(state: GameState, pieces: Dict[str, int], **fields) -> GameState:
    payload = GameStateModel.from_state(state).model_dump()
    payload["pieces"] = pieces
    payload.update(fields)
    return GameStateModel.model_validate(payload).to_state()


def _first_step(state: GameState, player: int):
    return next(
        m for m in get_all_valid_moves(state, player) if not m.is_jump and not m.is_swap
    )


def _first_jump(state: GameState, player: int):
    return next(m for m in get_all_valid_moves(state, player) if m.is_jump)


def _move_between(state: GameState, origin: str, dest: str):
    return next(
        m
        for m in get_all_valid_moves(state, state.current_player)
        if m.from_pos.key == origin and m.to.key == dest
    )


class TestSingleStepTurn:
    def test_step_passes_the_turn(self, standard_state):
        move = _first_step(standard_state, 0)
        engine = TurnEngine(standard_state)

        result = engine.play(move)

        state = engine.state
        assert result.ok
        assert len(state.move_history) == 1
        assert state.move_history[0].player == 0
        assert state.move_history[0].turn_number == 1
        assert state.current_player == 2
        assert state.turn_number == 2
        assert state.winner is None
        assert move.from_pos.key not in state.occupancy()
        assert state.occupancy()[move.to.key] == 0

    def test_step_leaves_no_continuation(self, standard_state):
        move = _first_step(standard_state, 0)
        engine = TurnEngine(standard_state)
        engine.select(move.from_pos)
        assert engine.move(move.to).ok
        assert engine.phase is TurnPhase.PENDING_CONFIRMATION
        assert engine.candidates == []
        result = engine.move(move.from_pos)
        assert result.failure is TurnFailure.NOT_A_CANDIDATE

    def test_original_state_is_not_mutated(self, standard_state):
        before = dict(standard_state.board)
        engine = TurnEngine(standard_state)
        engine.play(_first_step(standard_state, 0))
        assert standard_state.board == before
        assert standard_state.move_history == []


class TestUndo:
    def test_undo_restores_pre_turn_board(self, standard_state):
        before = dict(standard_state.board)
        jump = _first_jump(standard_state, 0)
        engine = TurnEngine(standard_state)
        engine.select(jump.from_pos)
        engine.move(jump.to)
        for follow_up in engine.candidates[:1]:
            engine.move(follow_up.to)

        assert engine.undo().ok
        assert engine.state.board == before
        assert engine.state.current_player == 0
        assert engine.phase is TurnPhase.IDLE
        assert engine.turn_moves == []

    def test_undo_without_moves(self, standard_state):
        engine = TurnEngine(standard_state)
        assert engine.undo().failure is TurnFailure.NOT_PENDING


class TestChainJumps:
    def _row(self, tiny_state):
        # One opponent piece and a wall make a two-hop chain.
        return _with_pieces(tiny_state, {"-3,0": 0, "-2,0": 2}, walls=["0,0"])

    def test_continuation_offers_only_further_hops(self, tiny_state):
        engine = TurnEngine(self._row(tiny_state))
        assert engine.select(CubeCoord(-3, 0)).ok
        assert engine.move(CubeCoord(-1, 0)).ok
        assert [m.to.key for m in engine.candidates] == ["1,0"]

        assert engine.move(CubeCoord(1, 0)).ok
        assert engine.confirm().ok

        state = engine.state
        assert [(m.from_pos.key, m.to.key) for m in state.move_history] == [
            ("-3,0", "-1,0"),
            ("-1,0", "1,0"),
        ]
        assert {m.turn_number for m in state.move_history} == {1}
        assert state.current_player == 2
        assert state.turn_number == 2

    def test_continuation_never_returns_to_visited_cells(self, tiny_state):
        engine = TurnEngine(self._row(tiny_state))
        engine.select(CubeCoord(-3, 0))
        engine.move(CubeCoord(-1, 0))
        assert all(m.to.key != "-3,0" for m in engine.candidates)


class TestFailures:
    def test_selection_failures(self, standard_state):
        engine = TurnEngine(standard_state)
        assert engine.select(CubeCoord(0, 0)).failure is TurnFailure.NO_PIECE
        opponent = standard_state.piece_positions(2)[0]
        assert engine.select(opponent).failure is TurnFailure.NOT_YOUR_PIECE
        assert engine.phase is TurnPhase.IDLE

    def test_select_during_pending_turn(self, standard_state):
        move = _first_step(standard_state, 0)
        engine = TurnEngine(standard_state)
        engine.select(move.from_pos)
        engine.move(move.to)
        result = engine.select(standard_state.piece_positions(0)[-1])
        assert result.failure is TurnFailure.TURN_IN_PROGRESS

    def test_idle_transitions(self, standard_state):
        engine = TurnEngine(standard_state)
        assert engine.confirm().failure is TurnFailure.NOT_PENDING
        assert engine.deselect().failure is TurnFailure.NOTHING_SELECTED
        assert engine.move(CubeCoord(0, 0)).failure is TurnFailure.NOTHING_SELECTED

    def test_reselect_replaces_selection(self, standard_state):
        pieces = standard_state.piece_positions(0)
        engine = TurnEngine(standard_state)
        engine.select(pieces[0])
        assert engine.select(pieces[-1]).ok
        assert engine.selected == pieces[-1]
        assert engine.deselect().ok
        assert engine.selected is None


class TestFinishing:
    def test_reaching_the_goal_records_winner(self, tiny_state):
        state = _with_pieces(tiny_state, {"2,0": 0, "-2,0": 2})
        engine = TurnEngine(state)
        assert engine.play(_move_between(state, "2,0", "3,0")).ok

        after = engine.state
        assert after.winner == 0
        assert [f.player for f in after.finished_players] == [0]
        assert after.finished_players[0].move_count == 1
        assert after.current_player == 2
        assert not after.is_fully_over

    def test_finished_players_are_skipped(self, tiny_state):
        state = _with_pieces(tiny_state, {"2,0": 0, "-2,0": 2})
        engine = TurnEngine(state)
        engine.play(_move_between(state, "2,0", "3,0"))
        engine.play(_first_step(engine.state, 2))
        assert engine.state.current_player == 2

    def test_game_over_blocks_selection(self, tiny_state):
        state = _with_pieces(
            tiny_state,
            {"3,0": 0, "-3,0": 2},
            finished_players=[{"player": 0, "move_count": 5}, {"player": 2, "move_count": 6}],
            winner=0,
        )
        engine = TurnEngine(state)
        assert engine.state.is_fully_over
        assert engine.select(CubeCoord(3, 0)).failure is TurnFailure.GAME_OVER

    def test_has_player_won(self, tiny_state):
        assert not GameEngine.has_player_won(tiny_state, 0)
        done = _with_pieces(tiny_state, {"3,0": 0, "-2,0": 2})
        assert GameEngine.has_player_won(done, 0)
        assert not GameEngine.has_player_won(done, 2)


def test_apply_move_matches_turn_engine(standard_state):
    move = _first_jump(standard_state, 0)
    via_engine = TurnEngine(standard_state.copy())
    via_engine.play(move)
    direct = GameEngine.apply_move(standard_state, move)
    assert direct.board == via_engine.state.board
    assert direct.current_player == via_engine.state.current_player
    assert direct.turn_number == via_engine.state.turn_number


def test_fingerprint_changes_after_confirm(standard_state):
    engine = TurnEngine(standard_state)
    before = engine.fingerprint()
    engine.play(_first_step(standard_state, 0))
    assert engine.fingerprint() != before
    assert engine.fingerprint()[0] == "test-game"
