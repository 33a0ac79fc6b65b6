"""Core game engine: turn primitives and the interactive turn state machine.

Two layers live here:

* :class:`GameEngine` exposes pure, copy-returning primitives
  (``move_piece``, ``advance_turn``, ``apply_move``) used by search,
  headless training games and turn replay. None of them mutate their
  input state.
* :class:`TurnEngine` wraps one live game for interactive play. It runs the
  ``Idle -> Selected -> PendingConfirmation -> confirm/undo`` cycle,
  snapshots the board at the start of each turn, and reports every
  rejected transition as a :class:`TurnResult` instead of raising.

A player has finished once every one of its pieces stands on its goal
cells. The first finisher is the winner; the game is fully over once all
active players have finished.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum

from .board import EMPTY_CELL, CellKind, FinishedPlayer, GameState, Move
from .errors import InvalidStateError, NoPieceError, NotYourPieceError
from .geometry import CubeCoord
from .rules.move_generator import get_jump_moves, get_valid_moves

logger = logging.getLogger(__name__)

DEBUG_ENGINE = os.environ.get("STERNHALMA_DEBUG_ENGINE") == "1"


def _debug(msg: str) -> None:
    if DEBUG_ENGINE:
        logger.debug(msg)


class GameEngine:
    """Stateless turn primitives over :class:`GameState` snapshots."""

    @staticmethod
    def move_piece(state: GameState, move: Move) -> GameState:
        """Relocate a piece without touching history or turn order.

        A swap moves the displaced opponent piece onto ``move.from_pos``.

        Raises:
            InvalidStateError: ``from`` holds no piece, or ``to`` is not
                empty for an ordinary move.
        """
        mover = state.board.get(move.from_pos.key)
        if mover is None or mover.kind is not CellKind.PIECE:
            raise InvalidStateError(
                "Cannot move from a cell without a piece",
                context={"from": move.from_pos.key},
            )
        target = state.board.get(move.to.key)
        new_state = state.copy()
        if move.is_swap:
            if target is None or target.kind is not CellKind.PIECE:
                raise InvalidStateError(
                    "Swap target holds no piece", context={"to": move.to.key}
                )
            new_state.board[move.from_pos.key] = target
        else:
            if target is None or target.kind is not CellKind.EMPTY:
                raise InvalidStateError(
                    "Destination is not an empty board cell",
                    context={"to": move.to.key},
                )
            new_state.board[move.from_pos.key] = EMPTY_CELL
        new_state.board[move.to.key] = mover
        return new_state

    @staticmethod
    def has_player_won(state: GameState, player: int) -> bool:
        """Every piece of ``player`` stands on one of its goal cells.

        A player with no pieces or no goal cells can never win.
        """
        goal_keys = state.setup.goal_keys(player)
        if not goal_keys:
            return False
        pieces = 0
        for key, content in state.board.items():
            if content.kind is CellKind.PIECE and content.player == player:
                pieces += 1
                if key not in goal_keys:
                    return False
        return pieces > 0

    @staticmethod
    def record_finish(state: GameState, player: int) -> bool:
        """Append ``player`` to the finish order if it just finished.

        Mutates ``state`` in place; callers pass a state they own.

        Returns:
            True when ``player`` was newly recorded.
        """
        if state.is_player_finished(player):
            return False
        if not GameEngine.has_player_won(state, player):
            return False
        state.finished_players.append(
            FinishedPlayer(player=player, move_count=len(state.move_history))
        )
        if state.winner is None:
            state.winner = player
        logger.debug(
            f"Player {player} finished at move {len(state.move_history)} "
            f"(place {len(state.finished_players)})"
        )
        return True

    @staticmethod
    def next_player(state: GameState) -> tuple[int, bool]:
        """Next active, unfinished player after the current one.

        Returns:
            ``(player, wrapped)``; ``wrapped`` is True when the seating order
            wrapped around. When every player has finished the current
            player is returned unchanged.
        """
        seats = state.active_players
        current_index = seats.index(state.current_player)
        for offset in range(1, len(seats) + 1):
            index = (current_index + offset) % len(seats)
            candidate = seats[index]
            if not state.is_player_finished(candidate):
                return candidate, index <= current_index
        return state.current_player, False

    @staticmethod
    def advance_turn(state: GameState) -> GameState:
        """Pass the turn to the next unfinished player and bump the turn number."""
        new_state = state.copy()
        new_state.current_player, _ = GameEngine.next_player(state)
        new_state.turn_number = state.turn_number + 1
        return new_state

    @staticmethod
    def commit_turn(state: GameState, moves: list[Move]) -> GameState:
        """Record ``moves`` as the current player's turn and advance.

        ``state`` must already reflect the moves on its board (as the turn
        engine's working state does).
        """
        player = state.current_player
        new_state = state.copy()
        new_state.move_history.extend(
            m.tagged(player, state.turn_number) for m in moves
        )
        GameEngine.record_finish(new_state, player)
        new_state.current_player, _ = GameEngine.next_player(new_state)
        new_state.turn_number = state.turn_number + 1
        return new_state

    @staticmethod
    def apply_move(state: GameState, move: Move) -> GameState:
        """Play ``move`` as a complete single-move turn.

        Used by search and headless games, where a chain jump is always a
        single move carrying its whole landing path.
        """
        moved = GameEngine.move_piece(state, move)
        return GameEngine.commit_turn(moved, [move])

    @staticmethod
    def is_game_fully_over(state: GameState) -> bool:
        return state.is_fully_over


class TurnPhase(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    PENDING_CONFIRMATION = "pending_confirmation"


class TurnFailure(str, Enum):
    NO_PIECE = "NoPiece"
    NOT_YOUR_PIECE = "NotYourPiece"
    NOT_A_CANDIDATE = "NotACandidate"
    NOTHING_SELECTED = "NothingSelected"
    NOT_PENDING = "NotPending"
    TURN_IN_PROGRESS = "TurnInProgress"
    GAME_OVER = "GameOver"


@dataclass(frozen=True)
class TurnResult:
    ok: bool
    failure: TurnFailure | None = None
    message: str = ""

    @classmethod
    def success(cls, message: str = "") -> TurnResult:
        return cls(ok=True, message=message)

    @classmethod
    def fail(cls, failure: TurnFailure, message: str) -> TurnResult:
        return cls(ok=False, failure=failure, message=message)


class TurnEngine:
    """Interactive turn state machine over one game.

    Example:
        engine = TurnEngine(create_game(2))
        engine.select(CubeCoord(4, -5))
        engine.move(CubeCoord(4, -4))
        engine.confirm()
    """

    def __init__(self, state: GameState):
        state.validate()
        self._state = state
        self._phase = TurnPhase.IDLE
        self._selected: CubeCoord | None = None
        self._candidates: list[Move] = []
        self._snapshot: GameState | None = None
        self._turn_moves: list[Move] = []
        self._visited: list[str] = []

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def phase(self) -> TurnPhase:
        return self._phase

    @property
    def selected(self) -> CubeCoord | None:
        return self._selected

    @property
    def candidates(self) -> list[Move]:
        return list(self._candidates)

    @property
    def turn_moves(self) -> list[Move]:
        return list(self._turn_moves)

    def fingerprint(self) -> tuple[str, int, int]:
        return self._state.fingerprint()

    def reset(self, state: GameState) -> None:
        """Start over on a new game, dropping any turn in progress."""
        state.validate()
        self._state = state
        self._clear_turn()

    def _clear_turn(self) -> None:
        self._phase = TurnPhase.IDLE
        self._selected = None
        self._candidates = []
        self._snapshot = None
        self._turn_moves = []
        self._visited = []

    # --- transitions ------------------------------------------------------

    def select(self, coord: CubeCoord) -> TurnResult:
        if self._state.is_fully_over:
            return TurnResult.fail(TurnFailure.GAME_OVER, "The game is over")
        if self._phase is TurnPhase.PENDING_CONFIRMATION:
            return TurnResult.fail(
                TurnFailure.TURN_IN_PROGRESS,
                "Confirm or undo the current turn before selecting",
            )
        try:
            candidates = get_valid_moves(self._state, coord)
        except NoPieceError as e:
            return TurnResult.fail(TurnFailure.NO_PIECE, e.message)
        except NotYourPieceError as e:
            return TurnResult.fail(TurnFailure.NOT_YOUR_PIECE, e.message)
        self._selected = coord
        self._candidates = candidates
        self._phase = TurnPhase.SELECTED
        _debug(f"select {coord.key}: {len(candidates)} candidates")
        return TurnResult.success()

    def deselect(self) -> TurnResult:
        if self._phase is not TurnPhase.SELECTED:
            return TurnResult.fail(
                TurnFailure.NOTHING_SELECTED, "No selection to clear"
            )
        self._clear_turn()
        return TurnResult.success()

    def move(self, dest: CubeCoord) -> TurnResult:
        if self._phase is TurnPhase.IDLE:
            return TurnResult.fail(TurnFailure.NOTHING_SELECTED, "Select a piece first")
        if self._state.is_fully_over:
            return TurnResult.fail(TurnFailure.GAME_OVER, "The game is over")
        chosen = next((m for m in self._candidates if m.to == dest), None)
        if chosen is None:
            return TurnResult.fail(
                TurnFailure.NOT_A_CANDIDATE,
                f"{dest.key} is not a legal destination",
            )

        if self._snapshot is None:
            self._snapshot = self._state
            self._visited = [chosen.from_pos.key]
        self._state = GameEngine.move_piece(self._state, chosen)
        self._turn_moves.append(chosen)
        if chosen.jump_path:
            self._visited.extend(c.key for c in chosen.jump_path)
        else:
            self._visited.append(chosen.to.key)
        self._selected = chosen.to
        self._phase = TurnPhase.PENDING_CONFIRMATION

        if chosen.is_jump:
            self._candidates = get_jump_moves(
                self._state, chosen.to, exclude=self._visited
            )
        else:
            self._candidates = []
        _debug(
            f"move {chosen.from_pos.key}->{chosen.to.key} "
            f"({len(self._candidates)} continuations)"
        )
        return TurnResult.success()

    def confirm(self) -> TurnResult:
        # Terminal state can only be reached by a confirm, so a pending turn
        # always belongs to a game that was still running.
        if self._phase is not TurnPhase.PENDING_CONFIRMATION:
            return TurnResult.fail(TurnFailure.NOT_PENDING, "No moves to confirm")
        player = self._state.current_player
        self._state = GameEngine.commit_turn(self._state, self._turn_moves)
        logger.debug(
            f"Player {player} confirmed {len(self._turn_moves)} move(s); "
            f"turn {self._state.turn_number} to player {self._state.current_player}"
        )
        self._clear_turn()
        return TurnResult.success()

    def undo(self) -> TurnResult:
        if self._phase is not TurnPhase.PENDING_CONFIRMATION or self._snapshot is None:
            return TurnResult.fail(TurnFailure.NOT_PENDING, "No moves to undo")
        self._state = self._snapshot
        self._clear_turn()
        return TurnResult.success()

    def play(self, move: Move) -> TurnResult:
        """Select, move and confirm ``move`` as one turn."""
        for result in (self.select(move.from_pos), self.move(move.to)):
            if not result.ok:
                if self._phase is TurnPhase.PENDING_CONFIRMATION:
                    self.undo()
                elif self._phase is TurnPhase.SELECTED:
                    self.deselect()
                return result
        return self.confirm()
