"""
Base AI player class for Sternhalma.
Abstract base class that all AI implementations inherit from.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod

from ..board import GameState, Move
from ..models import AIConfig, Difficulty
from ..rules.move_generator import get_all_valid_moves
from .cache import SearchCache

_DIFFICULTY_SALT = {
    Difficulty.EASY: 1,
    Difficulty.MEDIUM: 2,
    Difficulty.HARD: 3,
    Difficulty.EVOLVED: 4,
}


def derive_training_seed(config: AIConfig, player_number: int) -> int:
    """Deterministic fallback seed when ``AIConfig.rng_seed`` is not set.

    Mixes the difficulty tier and the seat into a 32-bit value so that
    offline experiments are reproducible without threading a seed through.
    Callers that care about experiment-level control pass ``rng_seed``.
    """
    base = (_DIFFICULTY_SALT[config.difficulty] * 1_000_003) ^ (player_number * 97_911)
    return int(base & 0xFFFFFFFF)


class BaseAI(ABC):
    """Abstract base class for all AI implementations"""

    def __init__(
        self,
        player_number: int,
        config: AIConfig,
        *,
        cache: SearchCache | None = None,
    ):
        """
        Initialize AI player

        Args:
            player_number: Home zone index (0-5) this AI controls
            config: AI configuration settings
            cache: Evaluation cache owned by the caller; a private one is
                created when omitted
        """
        self.player_number = player_number
        self.config = config
        self.move_count = 0
        self.cache = cache or SearchCache()

        # Per-instance RNG used for all stochastic behaviour (top-k move
        # randomisation on easy). Prefer an explicit seed from AIConfig.
        if self.config.rng_seed is not None:
            self.rng_seed: int = int(self.config.rng_seed)
        else:
            self.rng_seed = derive_training_seed(self.config, self.player_number)
        self.rng: random.Random = random.Random(self.rng_seed)

    @abstractmethod
    def select_move(self, game_state: GameState) -> Move | None:
        """
        Select the best move for the current game state

        Args:
            game_state: Current game state

        Returns:
            Selected move or None if no valid moves
        """

    @abstractmethod
    def evaluate_position(self, game_state: GameState) -> float:
        """
        Evaluate the current position from this AI's perspective

        Args:
            game_state: Current game state

        Returns:
            Evaluation score (higher is better for this AI)
        """

    def get_evaluation_breakdown(self, game_state: GameState) -> dict[str, float]:
        return {"total": self.evaluate_position(game_state)}

    def get_valid_moves(self, game_state: GameState) -> list[Move]:
        return get_all_valid_moves(game_state, self.player_number)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(player={self.player_number}, "
            f"difficulty={self.config.difficulty.value})"
        )
