"""
Shared pytest fixtures for the Sternhalma test suite.

Game state fixtures are function-scoped so tests can mutate freely; the
fake game player lets training tests run whole generations without any
search.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pytest

from sternhalma.ai.heuristic_weights import DEFAULT_GENOME
from sternhalma.board import BoardLayout, GameState, create_game, create_game_from_layout
from sternhalma.models import Genome, TrainingConfig
from sternhalma.training.runner import GameResult


# =============================================================================
# GAME STATE FIXTURES
# =============================================================================


@pytest.fixture
def standard_state() -> GameState:
    """Fresh two-player game on the standard star (players 0 and 2)."""
    return create_game(2, game_id="test-game")


def make_tiny_layout() -> BoardLayout:
    """Two parallel rows with one piece per side.

    Player 0 starts at the west end of the lower row and must reach the
    east end; player 2 the reverse. The upper row lets the pieces pass.
    """
    cells = tuple(f"{q},0" for q in range(-3, 4)) + tuple(f"{q},-1" for q in range(-2, 5))
    return BoardLayout(
        cells=cells,
        starting_positions={0: ("-3,0",), 2: ("3,0",)},
        goal_positions={0: ("3,0",), 2: ("-3,0",)},
        name="tiny",
    )


@pytest.fixture
def tiny_layout() -> BoardLayout:
    return make_tiny_layout()


@pytest.fixture
def tiny_state(tiny_layout: BoardLayout) -> GameState:
    return create_game_from_layout(tiny_layout, game_id="tiny-game")


# =============================================================================
# GENOME / RNG FIXTURES
# =============================================================================


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def progress_only_genome() -> Genome:
    """Genome scoring only progress, goal distance and stragglers, with no
    move penalties."""
    return DEFAULT_GENOME.model_copy(
        update={
            "center_control": 0.0,
            "blocking": 0.0,
            "jump_potential": 0.0,
            "regression_multiplier": 0.0,
            "goal_leave_penalty": 0.0,
            "repetition_penalty": 0.0,
            "cycle_penalty": 0.0,
        }
    )


def small_training_config(**overrides) -> TrainingConfig:
    values = dict(
        population_size=4,
        generations=3,
        games_per_matchup=2,
        mutation_rate=0.2,
        mutation_strength=0.3,
        elite_count=1,
        tournament_size=2,
        max_moves_per_game=50,
    )
    values.update(overrides)
    return TrainingConfig(**values)


@pytest.fixture
def small_config() -> TrainingConfig:
    return small_training_config()


# =============================================================================
# FAKE GAME PLAYER
# =============================================================================


class FakeGamePlayer:
    """Deterministic stand-in for a headless game.

    The genome with the higher ``progress`` weight wins; equal weights
    draw. Every call is recorded.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[Genome, Genome]] = []

    def __call__(self, first: Genome, second: Genome, config: TrainingConfig) -> GameResult:
        self.calls.append((first, second))
        winner: Optional[int]
        if first.progress > second.progress:
            winner = 0
        elif second.progress > first.progress:
            winner = 1
        else:
            winner = None
        return GameResult(winner=winner, total_moves=10, first_moves=5, second_moves=5)


@pytest.fixture
def fake_game_player() -> FakeGamePlayer:
    return FakeGamePlayer()
