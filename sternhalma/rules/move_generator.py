"""Legal move generation: steps, chain jumps and goal swaps.

Moves are produced in a fixed order so that AI candidate enumeration is
deterministic: steps in direction order, then jumps in depth-first
discovery order, then swaps. Nothing here iterates the board mapping, so
the result does not depend on how occupancy was inserted.
"""

from __future__ import annotations

from collections.abc import Collection

from ..board import CellKind, GameState, Move
from ..errors import NoPieceError, NotYourPieceError
from ..geometry import DIRECTIONS, CubeCoord


def _is_jumpable(state: GameState, over: CubeCoord, origin_key: str) -> bool:
    # The moving piece has left its origin, so the origin is never a hurdle.
    if over.key == origin_key:
        return False
    content = state.board.get(over.key)
    if content is None:
        return False
    if content.kind is CellKind.PIECE:
        return True
    return content.kind is CellKind.WALL and state.rules.jump_over_walls


def get_step_moves(state: GameState, origin: CubeCoord) -> list[Move]:
    """Single steps onto adjacent on-board empty cells."""
    moves: list[Move] = []
    for d in DIRECTIONS:
        to = CubeCoord(origin.q + d.q, origin.r + d.r)
        if state.is_empty(to):
            moves.append(Move(origin, to))
    return moves


def get_jump_moves(
    state: GameState,
    origin: CubeCoord,
    *,
    exclude: Collection[str] = (),
) -> list[Move]:
    """Every cell reachable by a chain of hops from ``origin``.

    Depth-first search over the hop graph with one visited set for the
    whole search, so each destination is returned once together with the
    landing path that first reached it. Paths are immutable tuples, so
    sibling branches never share mutable state.

    Args:
        state: Position to search.
        origin: Cell of the moving piece.
        exclude: Cell keys that may not be landed on (cells already visited
            earlier in the same turn).
    """
    origin_key = origin.key
    visited: set[str] = {origin_key, *exclude}
    moves: list[Move] = []
    stack: list[tuple[CubeCoord, tuple[CubeCoord, ...]]] = [(origin, ())]

    while stack:
        current, path = stack.pop()
        branches: list[tuple[CubeCoord, tuple[CubeCoord, ...]]] = []
        for d in DIRECTIONS:
            over = CubeCoord(current.q + d.q, current.r + d.r)
            landing = CubeCoord(over.q + d.q, over.r + d.r)
            if landing.key in visited:
                continue
            if not _is_jumpable(state, over, origin_key):
                continue
            if not state.is_empty(landing):
                continue
            visited.add(landing.key)
            hop_path = path + (landing,)
            moves.append(Move(origin, landing, is_jump=True, jump_path=hop_path))
            branches.append((landing, hop_path))
        # Reverse so the first direction is explored first.
        stack.extend(reversed(branches))

    return moves


def has_player_left_home(state: GameState, player: int) -> bool:
    """True once none of ``player``'s pieces remain on its starting cells."""
    board = state.board
    for key in state.setup.home_keys(player):
        content = board.get(key)
        if (
            content is not None
            and content.kind is CellKind.PIECE
            and content.player == player
        ):
            return False
    return True


def get_swap_moves(state: GameState, origin: CubeCoord, player: int) -> list[Move]:
    """Steps onto an adjacent own-goal cell held by another player.

    The displaced piece moves to ``origin``. Only available when the
    variant allows it and ``player`` has cleared its home zone.
    """
    if not state.rules.allow_swaps:
        return []
    goal_keys = state.setup.goal_keys(player)
    if not goal_keys or not has_player_left_home(state, player):
        return []

    moves: list[Move] = []
    for d in DIRECTIONS:
        to = CubeCoord(origin.q + d.q, origin.r + d.r)
        if to.key not in goal_keys:
            continue
        content = state.board.get(to.key)
        if (
            content is None
            or content.kind is not CellKind.PIECE
            or content.player == player
        ):
            continue
        moves.append(Move(origin, to, is_swap=True))
    return moves


def get_piece_moves(state: GameState, origin: CubeCoord) -> list[Move]:
    """All legal moves of the piece at ``origin``, whoever owns it.

    Raises:
        NoPieceError: ``origin`` is off the board or holds no piece.
    """
    content = state.board.get(origin.key)
    if content is None or content.kind is not CellKind.PIECE:
        raise NoPieceError("No piece at the selected cell", coord_key=origin.key)
    assert content.player is not None
    return (
        get_step_moves(state, origin)
        + get_jump_moves(state, origin)
        + get_swap_moves(state, origin, content.player)
    )


def get_valid_moves(state: GameState, origin: CubeCoord) -> list[Move]:
    """Legal moves of the current player's piece at ``origin``.

    Raises:
        NoPieceError: ``origin`` holds no piece.
        NotYourPieceError: The piece belongs to another player.
    """
    content = state.board.get(origin.key)
    if content is None or content.kind is not CellKind.PIECE:
        raise NoPieceError("No piece at the selected cell", coord_key=origin.key)
    if content.player != state.current_player:
        raise NotYourPieceError(
            "Piece belongs to another player",
            coord_key=origin.key,
            context={"owner": content.player, "current": state.current_player},
        )
    return get_piece_moves(state, origin)


def get_all_valid_moves(state: GameState, player: int) -> list[Move]:
    """Legal moves of every piece of ``player`` in canonical board order."""
    moves: list[Move] = []
    for origin in state.piece_positions(player):
        moves.extend(get_piece_moves(state, origin))
    return moves


def count_jump_moves(state: GameState, player: int) -> int:
    """Number of distinct jump destinations over all of ``player``'s pieces."""
    return sum(
        len(get_jump_moves(state, origin)) for origin in state.piece_positions(player)
    )


def is_legal_move(state: GameState, move: Move) -> bool:
    """Whether ``move`` (compared by from/to/kind) is legal for the side to move."""
    try:
        candidates = get_valid_moves(state, move.from_pos)
    except (NoPieceError, NotYourPieceError):
        return False
    return any(
        c.to == move.to and c.is_jump == move.is_jump and c.is_swap == move.is_swap
        for c in candidates
    )
