"""Online play: turn serialization, replay and server reconciliation.

The server is the source of truth for turn order. A turn travels as the
list of moves the player confirmed::

    [{"from": "4,-5", "to": "4,-3", "jumpPath": ["4,-3"]}, ...]

:class:`OnlineGameSync` submits locally confirmed turns and, whenever the
authoritative turn count changes, rebuilds the game from the initial
position plus the server's turns. Local optimistic state is never trusted
once the server has spoken.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from .board import GameState, Move
from .errors import InvalidCoordinateError, InvalidMoveError, StorageError
from .game_engine import TurnEngine
from .geometry import parse_coord_key
from .models import SerializedMove

logger = logging.getLogger(__name__)

WireTurn = list[dict[str, Any]]


def serialize_turn(moves: Iterable[Move]) -> WireTurn:
    """Wire form of one confirmed turn."""
    return [m.to_wire() for m in moves]


def deserialize_move(payload: dict[str, Any] | SerializedMove) -> SerializedMove:
    """Validate one wire move.

    Raises:
        InvalidMoveError: Missing fields or malformed keys.
    """
    if isinstance(payload, SerializedMove):
        return payload
    try:
        move = SerializedMove.model_validate(payload)
    except ValidationError as e:
        raise InvalidMoveError(
            "Malformed move payload", context={"errors": e.error_count()}
        ) from e
    # Parse eagerly so malformed keys fail here, not mid-replay.
    try:
        parse_coord_key(move.from_pos)
        parse_coord_key(move.to)
        for key in move.jump_path or ():
            parse_coord_key(key)
    except InvalidCoordinateError as e:
        raise InvalidMoveError(
            "Malformed coordinate in move payload", context=e.context
        ) from e
    return move


def _apply_turn(engine: TurnEngine, turn: Sequence[dict[str, Any] | SerializedMove], index: int) -> None:
    if not turn:
        raise InvalidMoveError("Turn has no moves", context={"turn": index})
    for position, raw in enumerate(turn):
        wire = deserialize_move(raw)
        origin = parse_coord_key(wire.from_pos)
        dest = parse_coord_key(wire.to)
        if position == 0:
            result = engine.select(origin)
            if not result.ok:
                engine_state = engine.state
                raise InvalidMoveError(
                    result.message,
                    context={
                        "turn": index,
                        "from": wire.from_pos,
                        "failure": result.failure.value if result.failure else "",
                        "current_player": engine_state.current_player,
                    },
                )
        elif engine.selected != origin:
            engine.undo()
            raise InvalidMoveError(
                "Continuation does not start where the previous move ended",
                context={"turn": index, "from": wire.from_pos},
            )
        result = engine.move(dest)
        if not result.ok:
            if engine.turn_moves:
                engine.undo()
            else:
                engine.deselect()
            raise InvalidMoveError(
                result.message,
                context={"turn": index, "from": wire.from_pos, "to": wire.to},
            )
    engine.confirm()


def replay_turns(
    initial_state: GameState,
    turns: Iterable[Sequence[dict[str, Any] | SerializedMove]],
) -> GameState:
    """Re-apply serialized turns through the turn engine.

    Every move is validated exactly as an interactive move would be.

    Raises:
        InvalidMoveError: A turn contains an illegal move.
    """
    engine = TurnEngine(initial_state.copy())
    for index, turn in enumerate(turns):
        _apply_turn(engine, turn, index)
    return engine.state


class OnlineGameSync:
    """Keeps a local :class:`TurnEngine` in step with the server.

    Args:
        initial_state: The agreed starting position.
        submit: Transport callback sending one serialized turn; it may
            raise :class:`StorageError` or ``OSError`` on failure.
    """

    def __init__(
        self,
        initial_state: GameState,
        submit: Callable[[WireTurn], None] | None = None,
    ) -> None:
        self.initial_state = initial_state.copy()
        self.engine = TurnEngine(initial_state.copy())
        self._submit = submit
        self.synced_turn_count = -1
        self.history_base = 0
        self.submitting = False
        self.server_turns: list[WireTurn] = []

    @property
    def state(self) -> GameState:
        return self.engine.state

    def pending_local_moves(self) -> list[Move]:
        """Confirmed local moves the server has not acknowledged yet."""
        return self.engine.state.move_history[self.history_base:]

    def submit_local_turn(self) -> bool:
        """Send the locally confirmed turn to the server.

        Interaction stays locked (``submitting``) until the server's turn
        count changes. A transport failure unlocks so the player can retry.

        Returns:
            True when the turn was handed to the transport.
        """
        if self._submit is None or self.submitting:
            return False
        moves = self.pending_local_moves()
        if not moves:
            return False
        payload = serialize_turn(moves)
        self.submitting = True
        try:
            self._submit(payload)
        except (StorageError, OSError) as e:
            logger.warning(f"Failed to submit turn: {e}")
            self.submitting = False
            return False
        return True

    def apply_server_turns(self, turns: Sequence[Sequence[dict[str, Any]]]) -> bool:
        """Accept the server's authoritative turn list.

        Returns:
            True when the turn count changed and the local game was rebuilt.
        """
        if len(turns) == self.synced_turn_count:
            return False
        self.reconcile(turns)
        return True

    def reconcile(self, turns: Sequence[Sequence[dict[str, Any]]]) -> GameState:
        """Rebuild the local game from the initial position and ``turns``.

        Raises:
            InvalidMoveError: The server sent an illegal turn; local state is
                left untouched.
        """
        state = replay_turns(self.initial_state, turns)
        self.engine.reset(state)
        self.server_turns = [list(turn) for turn in turns]
        self.synced_turn_count = len(turns)
        self.history_base = len(state.move_history)
        self.submitting = False
        logger.debug(
            f"Reconciled {len(turns)} server turns; "
            f"player {state.current_player} to move on turn {state.turn_number}"
        )
        return state
