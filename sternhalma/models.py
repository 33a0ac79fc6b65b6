"""
Pydantic models for genomes, training records and wire payloads.

Field names are snake_case in Python and camelCase on the wire; every model
accepts either form on input (``populate_by_name``) and serializes with
aliases via ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .board import (
    BoardLayout,
    CellContent,
    CellKind,
    EMPTY_CELL,
    FinishedPlayer,
    GameSetup,
    GameState,
    Move,
    RuleSet,
    WALL_CELL,
    piece_cell,
    sort_canonical,
)
from .errors import InvalidStateError
from .geometry import parse_coord_key


class Difficulty(str, Enum):
    """AI difficulty tiers"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EVOLVED = "evolved"


class Personality(str, Enum):
    """Hand-tuned evaluation styles"""
    GENERALIST = "generalist"
    DEFENSIVE = "defensive"
    AGGRESSIVE = "aggressive"


class Genome(BaseModel):
    """Evaluation weights and tunable constants.

    Immutable: evolution produces new genomes through
    ``model_copy(update=...)`` and never edits one in place.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    progress: float = Field(ge=0)
    goal_distance: float = Field(ge=0, alias="goalDistance")
    center_control: float = Field(ge=0, alias="centerControl")
    blocking: float = Field(ge=0)
    jump_potential: float = Field(ge=0, alias="jumpPotential")
    straggler_divisor: float = Field(gt=0, alias="stragglerDivisor")
    center_piece_value: float = Field(ge=0, alias="centerPieceValue")
    blocking_base_value: float = Field(ge=0, alias="blockingBaseValue")
    jump_potential_multiplier: float = Field(ge=0, alias="jumpPotentialMultiplier")
    jump_potential_cap: float = Field(ge=0, alias="jumpPotentialCap")
    regression_multiplier: float = Field(ge=0, alias="regressionMultiplier")
    goal_leave_penalty: float = Field(ge=0, alias="goalLeavePenalty")
    repetition_penalty: float = Field(ge=0, alias="repetitionPenalty")
    cycle_penalty: float = Field(ge=0, alias="cyclePenalty")
    endgame_threshold: float = Field(ge=0, alias="endgameThreshold")

    def as_dict(self) -> dict[str, float]:
        return self.model_dump()


class Individual(BaseModel):
    """Population member; statistics are reset at every generation."""
    model_config = ConfigDict(populate_by_name=True)

    genome: Genome
    fitness: float = 0.0
    wins: int = 0
    games_played: int = Field(0, alias="gamesPlayed")


class TrainingConfig(BaseModel):
    """Genetic algorithm and self-play parameters."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    population_size: int = Field(ge=2, alias="populationSize")
    generations: int = Field(ge=1)
    games_per_matchup: int = Field(ge=1, alias="gamesPerMatchup")
    mutation_rate: float = Field(ge=0, le=1, alias="mutationRate")
    mutation_strength: float = Field(ge=0, alias="mutationStrength")
    elite_count: int = Field(ge=0, alias="eliteCount")
    tournament_size: int = Field(ge=1, alias="tournamentSize")
    max_moves_per_game: int = Field(ge=1, alias="maxMovesPerGame")
    search_depth: int = Field(2, ge=1, alias="searchDepth")
    search_move_cap: int = Field(12, ge=1, alias="searchMoveCap")

    @model_validator(mode="after")
    def _check_elites(self) -> "TrainingConfig":
        if self.elite_count > self.population_size:
            raise ValueError("eliteCount cannot exceed populationSize")
        return self


class GenerationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generation: int
    best_fitness: float = Field(alias="bestFitness")
    avg_fitness: float = Field(alias="avgFitness")
    best_genome: Genome = Field(alias="bestGenome")


class BestGenomeRecord(BaseModel):
    """The single persisted best-ever genome."""
    model_config = ConfigDict(populate_by_name=True)

    genome: Genome
    generation: int
    fitness: float
    updated_at: float = Field(default_factory=time.time, alias="updatedAt")


class TrainingState(BaseModel):
    """Resumable progress of the evolutionary trainer."""
    model_config = ConfigDict(populate_by_name=True)

    config: TrainingConfig
    current_generation: int = Field(0, ge=0, alias="currentGeneration")
    population: list[Individual]
    best_genome: Optional[Genome] = Field(None, alias="bestGenome")
    best_fitness: Optional[float] = Field(None, alias="bestFitness")
    generation_history: list[GenerationResult] = Field(
        default_factory=list, alias="generationHistory"
    )
    matchup_schedule: list[tuple[int, int]] = Field(alias="matchupSchedule")
    matchup_index: int = Field(0, ge=0, alias="matchupIndex")
    game_within_matchup: int = Field(0, ge=0, alias="gameWithinMatchup")
    games_completed_in_generation: int = Field(
        0, ge=0, alias="gamesCompletedInGeneration"
    )
    cycles_completed: int = Field(0, ge=0, alias="cyclesCompleted")
    last_updated: float = Field(default_factory=time.time, alias="lastUpdated")


class AIConfig(BaseModel):
    """Configuration for one AI seat."""
    model_config = ConfigDict(populate_by_name=True)

    difficulty: Difficulty = Difficulty.MEDIUM
    personality: Optional[Personality] = None
    genome: Optional[Genome] = None
    rng_seed: Optional[int] = Field(None, alias="rngSeed")


# =============================================================================
# Wire payloads for game states
# =============================================================================


class SerializedMove(BaseModel):
    """Transport form of one confirmed move."""
    model_config = ConfigDict(populate_by_name=True)

    from_pos: str = Field(alias="from")
    to: str
    jump_path: Optional[list[str]] = Field(None, alias="jumpPath")

    @classmethod
    def from_move(cls, move: Move) -> "SerializedMove":
        return cls.model_validate(move.to_wire())


class MoveModel(SerializedMove):
    is_jump: bool = Field(False, alias="isJump")
    is_swap: bool = Field(False, alias="isSwap")
    player: Optional[int] = None
    turn_number: Optional[int] = Field(None, alias="turnNumber")

    @classmethod
    def from_move(cls, move: Move) -> "MoveModel":
        return cls(
            from_pos=move.from_pos.key,
            to=move.to.key,
            jump_path=[c.key for c in move.jump_path] or None,
            is_jump=move.is_jump,
            is_swap=move.is_swap,
            player=move.player,
            turn_number=move.turn_number,
        )

    def to_move(self) -> Move:
        return Move(
            from_pos=parse_coord_key(self.from_pos),
            to=parse_coord_key(self.to),
            is_jump=self.is_jump,
            jump_path=tuple(parse_coord_key(k) for k in self.jump_path or ()),
            is_swap=self.is_swap,
            player=self.player,
            turn_number=self.turn_number,
        )


class FinishedPlayerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    player: int
    move_count: int = Field(alias="moveCount")


class RuleSetModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allow_swaps: bool = Field(True, alias="allowSwaps")
    jump_over_walls: bool = Field(True, alias="jumpOverWalls")

    def to_rules(self) -> RuleSet:
        return RuleSet(
            allow_swaps=self.allow_swaps, jump_over_walls=self.jump_over_walls
        )


class BoardLayoutModel(BaseModel):
    """Custom board layout keyed by ``"q,r"`` strings."""
    model_config = ConfigDict(populate_by_name=True)

    cells: list[str]
    starting_positions: dict[int, list[str]] = Field(alias="startingPositions")
    goal_positions: dict[int, list[str]] = Field(
        default_factory=dict, alias="goalPositions"
    )
    walls: list[str] = Field(default_factory=list)
    name: str = "custom"

    def to_layout(self) -> BoardLayout:
        return BoardLayout(
            cells=tuple(self.cells),
            starting_positions={p: tuple(v) for p, v in self.starting_positions.items()},
            goal_positions={p: tuple(v) for p, v in self.goal_positions.items()},
            walls=tuple(self.walls),
            name=self.name,
        )


class GameStateModel(BaseModel):
    """Complete, self-describing snapshot of a game for the HTTP surface."""
    model_config = ConfigDict(populate_by_name=True)

    game_id: str = Field(alias="gameId")
    player_count: int = Field(alias="playerCount")
    active_players: list[int] = Field(alias="activePlayers")
    current_player: int = Field(alias="currentPlayer")
    turn_number: int = Field(1, alias="turnNumber")
    winner: Optional[int] = None
    finished_players: list[FinishedPlayerModel] = Field(
        default_factory=list, alias="finishedPlayers"
    )
    move_history: list[MoveModel] = Field(default_factory=list, alias="moveHistory")
    is_custom_layout: bool = Field(False, alias="isCustomLayout")
    cells: list[str]
    pieces: dict[str, int]
    walls: list[str] = Field(default_factory=list)
    starting_positions: dict[int, list[str]] = Field(alias="startingPositions")
    goal_positions: dict[int, list[str]] = Field(alias="goalPositions")
    rules: RuleSetModel = Field(default_factory=RuleSetModel)

    @classmethod
    def from_state(cls, state: GameState) -> "GameStateModel":
        setup = state.setup
        walls = [k for k, c in state.board.items() if c.kind is CellKind.WALL]
        return cls(
            game_id=setup.game_id,
            player_count=setup.player_count,
            active_players=list(setup.active_players),
            current_player=state.current_player,
            turn_number=state.turn_number,
            winner=state.winner,
            finished_players=[
                FinishedPlayerModel(player=f.player, move_count=f.move_count)
                for f in state.finished_players
            ],
            move_history=[MoveModel.from_move(m) for m in state.move_history],
            is_custom_layout=setup.is_custom_layout,
            cells=[c.key for c in setup.cells],
            pieces=state.occupancy(),
            walls=walls,
            starting_positions={
                p: [c.key for c in cs] for p, cs in setup.starting_positions.items()
            },
            goal_positions={
                p: [c.key for c in cs] for p, cs in setup.goal_positions.items()
            },
            rules=RuleSetModel(
                allow_swaps=setup.rules.allow_swaps,
                jump_over_walls=setup.rules.jump_over_walls,
            ),
        )

    def to_state(self) -> GameState:
        """Rebuild the internal state, validating its invariants.

        Raises:
            InvalidStateError: Pieces or walls off the layout, overlapping
                pieces and walls, or a broken piece count.
        """
        cells = sort_canonical(parse_coord_key(k) for k in dict.fromkeys(self.cells))
        setup = GameSetup(
            cells=cells,
            active_players=tuple(self.active_players),
            player_count=self.player_count,
            starting_positions={
                p: sort_canonical(parse_coord_key(k) for k in keys)
                for p, keys in self.starting_positions.items()
            },
            goal_positions={
                p: sort_canonical(parse_coord_key(k) for k in keys)
                for p, keys in self.goal_positions.items()
            },
            is_custom_layout=self.is_custom_layout,
            rules=self.rules.to_rules(),
            game_id=self.game_id,
        )
        board: dict[str, CellContent] = {c.key: EMPTY_CELL for c in cells}
        for key in self.walls:
            if key not in board:
                raise InvalidStateError("Wall is off the board", context={"key": key})
            board[key] = WALL_CELL
        for key, player in self.pieces.items():
            if board.get(key) != EMPTY_CELL:
                raise InvalidStateError(
                    "Piece is off the board or overlaps a wall",
                    context={"key": key},
                )
            board[key] = piece_cell(player)
        state = GameState(
            setup=setup,
            board=board,
            current_player=self.current_player,
            move_history=[m.to_move() for m in self.move_history],
            winner=self.winner,
            finished_players=[
                FinishedPlayer(player=f.player, move_count=f.move_count)
                for f in self.finished_players
            ],
            turn_number=self.turn_number,
        )
        state.validate()
        return state


def dump(model: BaseModel) -> dict[str, Any]:
    """Serialize with wire (camelCase) names."""
    return model.model_dump(by_alias=True, mode="json")
