"""Genome-parameterised position evaluation.

``evaluate(state, player, genome)`` is a linear combination of six terms:

================  ==========================================================
progress          pieces already on goal cells, ten points each
goal distance     100 minus the summed piece distance to the goal centroid,
                  saturating at a total distance of 160
straggler         minus the squared distance of the furthest-behind piece,
                  divided by ``straggler_divisor``
center control    pieces within the central hexagon times
                  ``center_piece_value``
blocking          own pieces sitting on opponents' goal cells, doubled
                  against an opponent with more than five pieces home
jump potential    distinct jump destinations times
                  ``jump_potential_multiplier``, capped at
                  ``jump_potential_cap``
================  ==========================================================

Once ``endgame_threshold`` pieces are home (or someone has won) progress and
goal distance weigh double, stragglers weigh 3.0 instead of 1.5 and the
three tactical terms drop out.

Move penalties (regression, leaving the goal, repetition, cycling) are not
part of the static score; search subtracts them per candidate move.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

from ..board import CellKind, GameState, Move
from ..geometry import ORIGIN, distance
from ..models import Genome
from ..rules.move_generator import count_jump_moves
from .cache import SearchCache
from .heuristic_weights import DEFAULT_GENOME

CENTER_CONTROL_RADIUS = 4
GOAL_DISTANCE_SATURATION = 160.0
STRAGGLER_WEIGHT = 1.5
ENDGAME_STRAGGLER_WEIGHT = 3.0
LEADER_IN_GOAL = 5
REPETITION_LOOKBACK_PER_PLAYER = 6


@dataclass(frozen=True)
class EvaluationBreakdown:
    progress: float
    goal_distance: float
    straggler: float
    center_control: float
    blocking: float
    jump_potential: float
    endgame: bool
    total: float

    def as_dict(self) -> dict[str, float]:
        return {k: float(v) for k, v in asdict(self).items()}


def _breakdown(
    state: GameState,
    player: int,
    genome: Genome,
    cache: SearchCache | None,
) -> EvaluationBreakdown:
    cache = cache or SearchCache()
    pieces = state.piece_positions(player)
    goal_center = cache.goal_centroid(state, player)
    in_goal = state.count_pieces_in_goal(player)

    progress_score = in_goal * 10.0

    distances = [distance(p, goal_center) for p in pieces]
    sum_dist = sum(distances)
    goal_distance_score = (
        100.0 - min(sum_dist, GOAL_DISTANCE_SATURATION) / GOAL_DISTANCE_SATURATION * 100.0
    )

    max_dist = max(distances) if distances else 0.0
    straggler_score = -(max_dist * max_dist) / genome.straggler_divisor

    center_pieces = sum(
        1 for p in pieces if distance(p, ORIGIN) <= CENTER_CONTROL_RADIUS
    )
    center_score = center_pieces * genome.center_piece_value

    blocking_score = 0.0
    if genome.blocking > 0:
        board = state.board
        for opponent in state.active_players:
            if opponent == player:
                continue
            leader_weight = 2 if state.count_pieces_in_goal(opponent) > LEADER_IN_GOAL else 1
            for key in state.setup.goal_keys(opponent):
                content = board.get(key)
                if (
                    content is not None
                    and content.kind is CellKind.PIECE
                    and content.player == player
                ):
                    blocking_score += genome.blocking_base_value * leader_weight

    jump_score = 0.0
    if genome.jump_potential > 0:
        jump_score = min(
            count_jump_moves(state, player) * genome.jump_potential_multiplier,
            genome.jump_potential_cap,
        )

    endgame = in_goal >= genome.endgame_threshold or state.winner is not None
    if endgame:
        w_progress = genome.progress * 2
        w_goal_dist = genome.goal_distance * 2
        w_straggler = ENDGAME_STRAGGLER_WEIGHT
        w_center = w_blocking = w_jump = 0.0
    else:
        w_progress = genome.progress
        w_goal_dist = genome.goal_distance
        w_straggler = STRAGGLER_WEIGHT
        w_center = genome.center_control
        w_blocking = genome.blocking
        w_jump = genome.jump_potential

    total = (
        w_progress * progress_score
        + w_goal_dist * goal_distance_score
        + w_straggler * straggler_score
        + w_center * center_score
        + w_blocking * blocking_score
        + w_jump * jump_score
    )
    return EvaluationBreakdown(
        progress=progress_score,
        goal_distance=goal_distance_score,
        straggler=straggler_score,
        center_control=center_score,
        blocking=blocking_score,
        jump_potential=jump_score,
        endgame=endgame,
        total=total,
    )


def evaluate(
    state: GameState,
    player: int,
    genome: Genome | None = None,
    *,
    cache: SearchCache | None = None,
) -> float:
    """Static score of ``state`` from ``player``'s point of view."""
    return _breakdown(state, player, genome or DEFAULT_GENOME, cache).total


def evaluation_breakdown(
    state: GameState,
    player: int,
    genome: Genome | None = None,
    *,
    cache: SearchCache | None = None,
) -> EvaluationBreakdown:
    """Every term of :func:`evaluate` plus the total."""
    return _breakdown(state, player, genome or DEFAULT_GENOME, cache)


def regression_penalty(
    state: GameState,
    move: Move,
    player: int,
    genome: Genome,
    *,
    cache: SearchCache | None = None,
) -> float:
    """Cost of moving away from the goal centroid or off a goal cell."""
    cache = cache or SearchCache()
    goal_center = cache.goal_centroid(state, player)
    delta = distance(move.to, goal_center) - distance(move.from_pos, goal_center)
    penalty = delta * genome.regression_multiplier if delta > 0 else 0.0

    goal_keys = state.setup.goal_keys(player)
    if move.from_pos.key in goal_keys and move.to.key not in goal_keys:
        penalty += genome.goal_leave_penalty
    return penalty


def repetition_penalty(state: GameState, move: Move, genome: Genome) -> float:
    """Cost of sending a piece back to a cell it recently occupied.

    The moving piece is traced backwards through the last
    ``6 * player_count`` history entries. Returning to a recent cell costs
    ``cycle_penalty``; if the move also directly reverses an earlier move
    it costs ``repetition_penalty``; a second such reversal is vetoed with
    ``math.inf``.
    """
    history = state.move_history
    lookback = len(state.active_players) * REPETITION_LOOKBACK_PER_PLAYER
    start = max(0, len(history) - lookback)

    previous_positions: set[str] = set()
    trace = move.from_pos
    for past in reversed(history[start:]):
        if past.to == trace:
            previous_positions.add(past.from_pos.key)
            trace = past.from_pos

    if move.to.key not in previous_positions:
        return 0.0

    reversals = sum(
        1
        for past in history[start:]
        if past.from_pos == move.to and past.to == move.from_pos
    )
    if reversals >= 2:
        return math.inf
    if reversals == 1:
        return genome.repetition_penalty
    return genome.cycle_penalty


def move_penalty(
    state: GameState,
    move: Move,
    player: int,
    genome: Genome,
    *,
    cache: SearchCache | None = None,
) -> float:
    return regression_penalty(state, move, player, genome, cache=cache) + repetition_penalty(
        state, move, genome
    )


def player_progress(
    state: GameState,
    player: int,
    *,
    cache: SearchCache | None = None,
) -> float:
    """Percentage of the way from the starting layout to a filled goal.

    0 with every piece at home, 100 with every piece on the goal cells
    nearest the goal centroid; clamped to ``[0, 100]``.
    """
    cache = cache or SearchCache()
    start_total, finish_total = cache.progress_bounds(state, player)
    span = start_total - finish_total
    if span <= 0:
        return 100.0 if state.is_player_finished(player) else 0.0
    goal_center = cache.goal_centroid(state, player)
    current = sum(distance(p, goal_center) for p in state.piece_positions(player))
    return max(0.0, min(100.0, (start_total - current) / span * 100.0))
