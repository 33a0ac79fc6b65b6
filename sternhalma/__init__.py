"""Sternhalma (Chinese Checkers) rules engine, AI opponents and genome trainer."""

from .board import (
    BoardLayout,
    GameState,
    Move,
    RuleSet,
    create_game,
    create_game_from_layout,
)
from .game_engine import GameEngine, TurnEngine, TurnPhase, TurnResult
from .geometry import CubeCoord, distance, parse_coord_key

__version__ = "1.0.0"

__all__ = [
    "BoardLayout",
    "CubeCoord",
    "GameEngine",
    "GameState",
    "Move",
    "RuleSet",
    "TurnEngine",
    "TurnPhase",
    "TurnResult",
    "create_game",
    "create_game_from_layout",
    "distance",
    "parse_coord_key",
]
