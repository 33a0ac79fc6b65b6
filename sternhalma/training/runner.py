"""Headless two-player self-play games used as the fitness signal."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..ai.cache import SearchCache
from ..ai.factory import TRAINING_PROFILE, AIFactory
from ..board import BoardLayout, create_game, create_game_from_layout
from ..game_engine import GameEngine
from ..models import Genome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameResult:
    """Outcome of one headless game.

    ``winner`` is 0 when the genome that moved first won, 1 for the
    second genome, and None when the move limit ran out first.
    """
    winner: int | None
    total_moves: int
    first_moves: int = 0
    second_moves: int = 0


def run_headless_game(
    genome_first: Genome,
    genome_second: Genome,
    max_moves: int,
    *,
    depth: int = TRAINING_PROFILE["depth"],
    move_cap: int = TRAINING_PROFILE["move_cap"],
    layout: BoardLayout | None = None,
    cache: SearchCache | None = None,
) -> GameResult:
    """Play ``genome_first`` against ``genome_second`` until someone finishes.

    The first seat of the board moves first. The game stops as soon as a
    winner exists, after ``max_moves`` total moves, or when the side to
    move has no legal move.
    """
    if layout is None:
        state = create_game(2)
    else:
        state = create_game_from_layout(layout)
    seats = state.active_players[:2]
    cache = cache or SearchCache()
    ais = {
        seats[0]: AIFactory.create_for_training(
            seats[0], genome_first, depth=depth, move_cap=move_cap, cache=cache
        ),
        seats[1]: AIFactory.create_for_training(
            seats[1], genome_second, depth=depth, move_cap=move_cap, cache=cache
        ),
    }

    total = 0
    counts = {seats[0]: 0, seats[1]: 0}
    while state.winner is None and total < max_moves:
        player = state.current_player
        move = ais[player].select_move(state)
        if move is None:
            logger.debug(f"Player {player} has no move; ending game at {total} moves")
            break
        state = GameEngine.apply_move(state, move)
        counts[player] += 1
        total += 1

    winner: int | None = None
    if state.winner is not None:
        winner = 0 if state.winner == seats[0] else 1
    return GameResult(
        winner=winner,
        total_moves=total,
        first_moves=counts[seats[0]],
        second_moves=counts[seats[1]],
    )
