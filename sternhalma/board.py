"""
Board and game state model for the star board.

This module provides a Pydantic-free internal representation used by move
generation, the turn engine, search and training. Wire-facing pydantic
models live in :mod:`sternhalma.models` and convert to and from these
dataclasses.

The standard board is a six-pointed star of 121 cells: a hexagon of radius
4 around the origin plus six triangular home zones of ten cells each. Each
player's goal is the home zone directly opposite its own.

Per-game layout facts that never change after creation (cells, homes,
goals, ruleset) live on the frozen :class:`GameSetup`, which is shared by
every copy of a :class:`GameState`. Only occupancy, history and turn data
are copied.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import lru_cache
from typing import Any

from .errors import InvalidStateError
from .geometry import ORIGIN, CubeCoord, distance, parse_coord_key

# Board dimensions
CENTER_RADIUS = 4
TRIANGLE_SIZE = 4
MAX_PLAYERS = 6

# Home zone index -> the home zone that player must reach.
OPPOSITE_PLAYER: dict[int, int] = {0: 2, 2: 0, 1: 4, 4: 1, 3: 5, 5: 3}

# Seating order per player count (turn order runs through this list).
ACTIVE_PLAYERS: dict[int, tuple[int, ...]] = {
    2: (0, 2),
    3: (0, 3, 1),
    4: (4, 3, 1, 5),
    6: (0, 4, 3, 2, 1, 5),
}


class CellKind(str, Enum):
    EMPTY = "empty"
    PIECE = "piece"
    WALL = "wall"


@dataclass(frozen=True, slots=True)
class CellContent:
    """Content of one board cell: empty, a player's piece, or a wall."""

    kind: CellKind
    player: int | None = None

    def __post_init__(self) -> None:
        if self.kind is CellKind.PIECE:
            if self.player is None or not 0 <= self.player < MAX_PLAYERS:
                raise InvalidStateError(
                    "Piece cell requires a player index in [0, 6)",
                    context={"player": self.player},
                )
        elif self.player is not None:
            raise InvalidStateError(
                f"{self.kind.value} cell cannot carry a player",
                context={"player": self.player},
            )

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def is_piece(self) -> bool:
        return self.kind is CellKind.PIECE

    @property
    def is_wall(self) -> bool:
        return self.kind is CellKind.WALL


EMPTY_CELL = CellContent(CellKind.EMPTY)
WALL_CELL = CellContent(CellKind.WALL)
_PIECE_CELLS = tuple(CellContent(CellKind.PIECE, p) for p in range(MAX_PLAYERS))


def piece_cell(player: int) -> CellContent:
    """Shared immutable piece content for ``player``."""
    if not 0 <= player < MAX_PLAYERS:
        raise InvalidStateError(
            "Player index out of range", context={"player": player}
        )
    return _PIECE_CELLS[player]


@dataclass(frozen=True, slots=True)
class Move:
    """A single piece relocation.

    ``jump_path`` lists every hop landing in order (so ``jump_path[-1] ==
    to`` for jumps). ``player`` and ``turn_number`` are filled in when the
    move is appended to history and do not take part in equality.
    """

    from_pos: CubeCoord
    to: CubeCoord
    is_jump: bool = False
    jump_path: tuple[CubeCoord, ...] = ()
    is_swap: bool = False
    player: int | None = field(default=None, compare=False)
    turn_number: int | None = field(default=None, compare=False)

    def tagged(self, player: int, turn_number: int) -> Move:
        return replace(self, player=player, turn_number=turn_number)

    def to_wire(self) -> dict[str, Any]:
        """Serialize as ``{"from": "q,r", "to": "q,r", "jumpPath": [...]}``."""
        payload: dict[str, Any] = {"from": self.from_pos.key, "to": self.to.key}
        if self.jump_path:
            payload["jumpPath"] = [c.key for c in self.jump_path]
        return payload


@dataclass(frozen=True, slots=True)
class FinishedPlayer:
    player: int
    move_count: int


@dataclass(frozen=True)
class RuleSet:
    """Variant switches.

    Attributes:
        allow_swaps: Permit stepping onto an own goal cell held by an
            opponent, displacing that piece to the mover's origin.
        jump_over_walls: Walls can be hopped over like pieces.
    """

    allow_swaps: bool = True
    jump_over_walls: bool = True


DEFAULT_RULES = RuleSet()


@dataclass(frozen=True)
class BoardLayout:
    """Custom layout description using ``"q,r"`` keys."""

    cells: tuple[str, ...]
    starting_positions: Mapping[int, tuple[str, ...]]
    goal_positions: Mapping[int, tuple[str, ...]] = field(default_factory=dict)
    walls: tuple[str, ...] = ()
    name: str = "custom"


def _canonical_order(coord: CubeCoord) -> tuple[int, int]:
    return (coord.r, coord.q)


def sort_canonical(coords: Iterable[CubeCoord]) -> tuple[CubeCoord, ...]:
    """Stable board order (row, then column) independent of storage order."""
    return tuple(sorted(coords, key=_canonical_order))


def _in_star(coord: CubeCoord) -> bool:
    q, r, s = coord.q, coord.r, coord.s
    low = -TRIANGLE_SIZE
    high = TRIANGLE_SIZE
    return (q >= low and r >= low and s >= low) or (
        q <= high and r <= high and s <= high
    )


@lru_cache(maxsize=1)
def standard_board_cells() -> tuple[CubeCoord, ...]:
    """All 121 cells of the standard star, in canonical order."""
    limit = CENTER_RADIUS + TRIANGLE_SIZE
    cells = [
        CubeCoord(q, r)
        for q in range(-limit, limit + 1)
        for r in range(-limit, limit + 1)
        if abs(q + r) <= limit and _in_star(CubeCoord(q, r))
    ]
    return sort_canonical(cells)


def triangle_for_position(coord: CubeCoord) -> int | None:
    """Home zone index of ``coord``, or ``None`` inside the center hexagon.

    Zones are identified by the dominant cube component: ``r`` for zones 0
    and 2, ``q`` for zones 1 and 4, ``s`` for zones 3 and 5.
    """
    if distance(coord, ORIGIN) <= CENTER_RADIUS:
        return None
    q, r, s = coord.q, coord.r, coord.s
    abs_q, abs_r, abs_s = abs(q), abs(r), abs(s)
    if abs_r >= abs_q and abs_r >= abs_s:
        return 0 if r < 0 else 2
    if abs_q >= abs_r and abs_q >= abs_s:
        return 1 if q < 0 else 4
    return 3 if s < 0 else 5


@lru_cache(maxsize=MAX_PLAYERS)
def home_positions(player: int) -> tuple[CubeCoord, ...]:
    """The ten starting cells of ``player`` on the standard board."""
    return tuple(
        c for c in standard_board_cells() if triangle_for_position(c) == player
    )


def goal_positions(player: int) -> tuple[CubeCoord, ...]:
    """Standard-board goal cells: the home zone opposite ``player``."""
    return home_positions(OPPOSITE_PLAYER[player])


@dataclass(frozen=True, eq=False)
class GameSetup:
    """Immutable per-game facts shared by every copy of a game state."""

    cells: tuple[CubeCoord, ...]
    active_players: tuple[int, ...]
    player_count: int
    starting_positions: Mapping[int, tuple[CubeCoord, ...]]
    goal_positions: Mapping[int, tuple[CubeCoord, ...]]
    is_custom_layout: bool = False
    rules: RuleSet = DEFAULT_RULES
    game_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    cell_keys: frozenset[str] = field(init=False, repr=False)
    goal_key_sets: Mapping[int, frozenset[str]] = field(init=False, repr=False)
    home_key_sets: Mapping[int, frozenset[str]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "cell_keys", frozenset(c.key for c in self.cells))
        object.__setattr__(
            self,
            "goal_key_sets",
            {p: frozenset(c.key for c in cs) for p, cs in self.goal_positions.items()},
        )
        object.__setattr__(
            self,
            "home_key_sets",
            {
                p: frozenset(c.key for c in cs)
                for p, cs in self.starting_positions.items()
            },
        )

    def goal_keys(self, player: int) -> frozenset[str]:
        return self.goal_key_sets.get(player, frozenset())

    def home_keys(self, player: int) -> frozenset[str]:
        return self.home_key_sets.get(player, frozenset())

    def goals(self, player: int) -> tuple[CubeCoord, ...]:
        return self.goal_positions.get(player, ())


@dataclass(eq=False)
class GameState:
    """Mutable occupancy, history and turn data on top of a :class:`GameSetup`.

    Callers never share a GameState across threads; every search branch and
    every turn snapshot works on its own :meth:`copy`.
    """

    setup: GameSetup
    board: dict[str, CellContent]
    current_player: int
    move_history: list[Move] = field(default_factory=list)
    winner: int | None = None
    finished_players: list[FinishedPlayer] = field(default_factory=list)
    turn_number: int = 1

    # --- layout shortcuts -------------------------------------------------

    @property
    def active_players(self) -> tuple[int, ...]:
        return self.setup.active_players

    @property
    def player_count(self) -> int:
        return self.setup.player_count

    @property
    def rules(self) -> RuleSet:
        return self.setup.rules

    @property
    def game_id(self) -> str:
        return self.setup.game_id

    @property
    def is_custom_layout(self) -> bool:
        return self.setup.is_custom_layout

    # --- occupancy --------------------------------------------------------

    def copy(self) -> GameState:
        return GameState(
            setup=self.setup,
            board=dict(self.board),
            current_player=self.current_player,
            move_history=list(self.move_history),
            winner=self.winner,
            finished_players=list(self.finished_players),
            turn_number=self.turn_number,
        )

    def cell(self, coord: CubeCoord) -> CellContent | None:
        """Content at ``coord``, or ``None`` when off the board."""
        return self.board.get(coord.key)

    def is_on_board(self, coord: CubeCoord) -> bool:
        return coord.key in self.board

    def is_empty(self, coord: CubeCoord) -> bool:
        content = self.board.get(coord.key)
        return content is not None and content.kind is CellKind.EMPTY

    def piece_positions(self, player: int) -> list[CubeCoord]:
        """Cells holding ``player``'s pieces, in canonical board order."""
        board = self.board
        return [
            c
            for c in self.setup.cells
            if (content := board[c.key]).kind is CellKind.PIECE
            and content.player == player
        ]

    def occupancy(self) -> dict[str, int]:
        """Key -> player for every occupied cell (walls excluded)."""
        return {
            key: content.player
            for key, content in self.board.items()
            if content.kind is CellKind.PIECE and content.player is not None
        }

    def piece_counts(self) -> dict[int, int]:
        counts = {p: 0 for p in self.active_players}
        for content in self.board.values():
            if content.kind is CellKind.PIECE and content.player is not None:
                counts[content.player] = counts.get(content.player, 0) + 1
        return counts

    # --- progress ---------------------------------------------------------

    def count_pieces_in_goal(self, player: int) -> int:
        board = self.board
        return sum(
            1
            for key in self.setup.goal_keys(player)
            if (content := board.get(key)) is not None
            and content.kind is CellKind.PIECE
            and content.player == player
        )

    def is_player_finished(self, player: int) -> bool:
        return any(f.player == player for f in self.finished_players)

    @property
    def is_fully_over(self) -> bool:
        return len(self.finished_players) >= len(self.active_players)

    def fingerprint(self) -> tuple[str, int, int]:
        """Identity of the position a search was dispatched against."""
        return (self.setup.game_id, self.current_player, self.turn_number)

    # --- invariants -------------------------------------------------------

    def validate(self) -> None:
        """Fail loudly when the state breaks a structural invariant."""
        setup = self.setup
        if self.current_player not in setup.active_players:
            raise InvalidStateError(
                "Current player is not an active player",
                context={"current_player": self.current_player},
            )
        for key, content in self.board.items():
            if key not in setup.cell_keys:
                raise InvalidStateError(
                    "Board holds a key outside the layout", context={"key": key}
                )
            if content.is_piece and content.player not in setup.active_players:
                raise InvalidStateError(
                    "Piece belongs to an inactive player",
                    context={"key": key, "player": content.player},
                )
        counts = self.piece_counts()
        for player in setup.active_players:
            expected = len(setup.starting_positions.get(player, ()))
            if counts.get(player, 0) != expected:
                raise InvalidStateError(
                    "Piece count changed during the game",
                    context={
                        "player": player,
                        "expected": expected,
                        "actual": counts.get(player, 0),
                    },
                )


def _place_pieces(
    board: dict[str, CellContent],
    starting_positions: Mapping[int, tuple[CubeCoord, ...]],
) -> None:
    for player, cells in starting_positions.items():
        for cell in cells:
            if board.get(cell.key) != EMPTY_CELL:
                raise InvalidStateError(
                    "Starting position is off the board or already occupied",
                    context={"key": cell.key, "player": player},
                )
            board[cell.key] = piece_cell(player)


def create_game(
    player_count: int = 2,
    *,
    active_players: Iterable[int] | None = None,
    rules: RuleSet | None = None,
    game_id: str | None = None,
) -> GameState:
    """Create a standard-board game.

    Args:
        player_count: 2, 3, 4 or 6.
        active_players: Explicit seating order; defaults to
            :data:`ACTIVE_PLAYERS` for ``player_count``.
        rules: Variant switches; defaults to :data:`DEFAULT_RULES`.
        game_id: Stable identifier; a random one is generated otherwise.

    Returns:
        A fresh state with player ``active_players[0]`` to move.
    """
    if active_players is None:
        if player_count not in ACTIVE_PLAYERS:
            raise InvalidStateError(
                "Unsupported player count for the standard board",
                context={"player_count": player_count},
            )
        seats = ACTIVE_PLAYERS[player_count]
    else:
        seats = tuple(active_players)
        if len(set(seats)) != len(seats) or any(
            not 0 <= p < MAX_PLAYERS for p in seats
        ):
            raise InvalidStateError(
                "Active players must be distinct zone indices",
                context={"active_players": seats},
            )

    setup_kwargs: dict[str, Any] = {}
    if game_id is not None:
        setup_kwargs["game_id"] = game_id
    setup = GameSetup(
        cells=standard_board_cells(),
        active_players=seats,
        player_count=player_count,
        starting_positions={p: home_positions(p) for p in seats},
        goal_positions={p: goal_positions(p) for p in seats},
        is_custom_layout=False,
        rules=rules or DEFAULT_RULES,
        **setup_kwargs,
    )
    board = {c.key: EMPTY_CELL for c in setup.cells}
    _place_pieces(board, setup.starting_positions)
    return GameState(setup=setup, board=board, current_player=seats[0])


def _player_count_for(seat_count: int) -> int:
    if seat_count <= 2:
        return 2
    if seat_count == 3:
        return 3
    if seat_count <= 4:
        return 4
    return 6


def create_game_from_layout(
    layout: BoardLayout,
    *,
    rules: RuleSet | None = None,
    game_id: str | None = None,
) -> GameState:
    """Create a game on a custom layout.

    Active players are those with at least one starting position, seated in
    zone order. A player without explicit goal cells falls back to the
    standard opposite zone.
    """
    cells = sort_canonical(parse_coord_key(k) for k in dict.fromkeys(layout.cells))
    starting: dict[int, tuple[CubeCoord, ...]] = {}
    for player in range(MAX_PLAYERS):
        keys = layout.starting_positions.get(player, ())
        if keys:
            starting[player] = sort_canonical(parse_coord_key(k) for k in keys)
    if not starting:
        raise InvalidStateError("Layout has no starting positions")

    goals: dict[int, tuple[CubeCoord, ...]] = {}
    for player in starting:
        keys = layout.goal_positions.get(player)
        if keys:
            goals[player] = sort_canonical(parse_coord_key(k) for k in keys)
        else:
            goals[player] = goal_positions(player)

    seats = tuple(starting)
    setup_kwargs: dict[str, Any] = {}
    if game_id is not None:
        setup_kwargs["game_id"] = game_id
    setup = GameSetup(
        cells=cells,
        active_players=seats,
        player_count=_player_count_for(len(seats)),
        starting_positions=starting,
        goal_positions=goals,
        is_custom_layout=True,
        rules=rules or DEFAULT_RULES,
        **setup_kwargs,
    )

    board = {c.key: EMPTY_CELL for c in cells}
    _place_pieces(board, starting)
    for key in layout.walls:
        if board.get(key) != EMPTY_CELL:
            raise InvalidStateError(
                "Wall is off the board or overlaps a piece", context={"key": key}
            )
        board[key] = WALL_CELL
    return GameState(setup=setup, board=board, current_player=seats[0])
