"""Movement rules for the star board."""

from .move_generator import (
    count_jump_moves,
    get_all_valid_moves,
    get_jump_moves,
    get_piece_moves,
    get_step_moves,
    get_swap_moves,
    get_valid_moves,
    has_player_left_home,
    is_legal_move,
)

__all__ = [
    "count_jump_moves",
    "get_all_valid_moves",
    "get_jump_moves",
    "get_piece_moves",
    "get_step_moves",
    "get_swap_moves",
    "get_valid_moves",
    "has_player_left_home",
    "is_legal_move",
]
