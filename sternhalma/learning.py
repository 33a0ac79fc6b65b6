"""Pattern extraction from finished games and the shared-insights aggregate.

Finished games are distilled into per-player :class:`PlayerGameMetrics` and
the winner's :class:`EndgameMetrics`. :class:`SharedInsights` folds the
winner's numbers into running averages (``old + (new - old) / n``) which
:func:`genome_from_insights` turns into a default genome when no explicit
genome or personality is requested.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .ai.heuristic_weights import BASE_GENOME_WEIGHTS, _with_deltas, clamp_genome_weights
from .board import GameState, Move
from .geometry import ORIGIN, centroid, distance
from .models import Genome

logger = logging.getLogger(__name__)

HALF_GOAL_PIECES = 5
ENDGAME_MILESTONES = (7, 8, 9)


class PlayerGameMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_moves: int = Field(0, alias="totalMoves")
    jump_moves: int = Field(0, alias="jumpMoves")
    step_moves: int = Field(0, alias="stepMoves")
    swap_moves: int = Field(0, alias="swapMoves")
    avg_distance_gained_per_move: float = Field(0.0, alias="avgDistanceGainedPerMove")
    avg_jump_chain_length: float = Field(0.0, alias="avgJumpChainLength")
    max_jump_chain_length: int = Field(0, alias="maxJumpChainLength")
    moves_to_first_goal_entry: Optional[int] = Field(None, alias="movesToFirstGoalEntry")
    moves_to_half_goal_filled: Optional[int] = Field(None, alias="movesToHalfGoalFilled")
    avg_piece_cohesion: float = Field(0.5, alias="avgPieceCohesion")
    is_winner: bool = Field(False, alias="isWinner")


class EndgameMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    moves_from_7_to_finish: Optional[int] = Field(None, alias="movesFrom7ToFinish")
    moves_from_8_to_finish: Optional[int] = Field(None, alias="movesFrom8ToFinish")
    moves_from_9_to_finish: Optional[int] = Field(None, alias="movesFrom9ToFinish")
    goal_fill_order: list[float] = Field(default_factory=list, alias="goalFillOrder")
    shuffle_moves_in_endgame: int = Field(0, alias="shuffleMovesInEndgame")
    exit_and_reenter_count: int = Field(0, alias="exitAndReenterCount")


class GamePatterns(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_id: str = Field(alias="gameId")
    timestamp: float = Field(default_factory=time.time)
    is_custom_layout: bool = Field(False, alias="isCustomLayout")
    player_count: int = Field(alias="playerCount")
    winner: Optional[int] = None
    player_metrics: dict[int, PlayerGameMetrics] = Field(alias="playerMetrics")
    total_moves: int = Field(alias="totalMoves")
    winner_move_count: int = Field(alias="winnerMoveCount")
    endgame_metrics: Optional[EndgameMetrics] = Field(None, alias="endgameMetrics")


class LearnedWeights(BaseModel):
    """Running-average weight modifiers; 1.0 means "no change"."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    distance_weight: float = Field(1.0, alias="distanceWeight")
    cohesion_weight: float = Field(1.0, alias="cohesionWeight")
    mobility_weight: float = Field(1.0, alias="mobilityWeight")
    advancement_balance: float = Field(1.0, alias="advancementBalance")
    jump_preference: float = Field(1.0, alias="jumpPreference")
    goal_occupation_weight: float = Field(1.0, alias="goalOccupationWeight")
    avg_winning_move_count: float = Field(50.0, alias="avgWinningMoveCount")
    optimal_jump_chain_length: float = Field(3.0, alias="optimalJumpChainLength")
    optimal_cohesion_level: float = Field(0.5, alias="optimalCohesionLevel")


class EndgameStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    avg_moves_from_7: float = Field(20.0, alias="avgMovesFrom7")
    avg_moves_from_8: float = Field(12.0, alias="avgMovesFrom8")
    avg_moves_from_9: float = Field(5.0, alias="avgMovesFrom9")
    optimal_fill_order_score: float = Field(0.5, alias="optimalFillOrderScore")
    avg_shuffle_moves: float = Field(5.0, alias="avgShuffleMoves")
    games_analyzed: int = Field(0, alias="gamesAnalyzed")


# =============================================================================
# Extraction
# =============================================================================


def _estimate_cohesion(moves: list[Move]) -> float:
    """Jump-heavy play implies pieces travelling together."""
    if len(moves) < 2:
        return 0.5
    jump_ratio = sum(1 for m in moves if m.is_jump) / len(moves)
    return min(1.0, jump_ratio * 1.5)


def _player_metrics(
    state: GameState,
    player: int,
    moves: list[Move],
    is_winner: bool,
) -> PlayerGameMetrics:
    goal_center = centroid(state.setup.goals(player))
    goal_keys = state.setup.goal_keys(player)

    jumps = steps = swaps = 0
    gained = 0.0
    chain_total = 0
    chain_max = 0
    first_entry: int | None = None
    half_filled: int | None = None
    in_goal = 0

    for index, move in enumerate(moves, start=1):
        if move.is_swap:
            swaps += 1
        elif move.is_jump:
            jumps += 1
            chain = len(move.jump_path) or 1
            chain_total += chain
            chain_max = max(chain_max, chain)
        else:
            steps += 1
        gained += distance(move.from_pos, goal_center) - distance(move.to, goal_center)

        if move.to.key in goal_keys:
            if first_entry is None:
                first_entry = index
            in_goal += 1
            if in_goal >= HALF_GOAL_PIECES and half_filled is None:
                half_filled = index
        if move.from_pos.key in goal_keys:
            in_goal -= 1

    return PlayerGameMetrics(
        total_moves=len(moves),
        jump_moves=jumps,
        step_moves=steps,
        swap_moves=swaps,
        avg_distance_gained_per_move=gained / len(moves) if moves else 0.0,
        avg_jump_chain_length=chain_total / jumps if jumps else 0.0,
        max_jump_chain_length=chain_max,
        moves_to_first_goal_entry=first_entry,
        moves_to_half_goal_filled=half_filled,
        avg_piece_cohesion=_estimate_cohesion(moves),
        is_winner=is_winner,
    )


def extract_endgame_metrics(state: GameState, player: int) -> EndgameMetrics:
    """Replay ``player``'s moves to measure how it closed out the game.

    ``goal_fill_order`` lists the depth (distance from the board centre) of
    each goal cell as it was entered; milestone counts are only reported
    when the player actually finished.
    """
    goal_keys = state.setup.goal_keys(player)
    depths = {c.key: distance(c, ORIGIN) for c in state.setup.goals(player)}
    total_pieces = len(state.setup.starting_positions.get(player, ()))

    in_goal = 0
    index = 0
    reached: dict[int, int] = {}
    fill_order: list[float] = []
    shuffles = 0
    exits = 0

    for move in state.move_history:
        if move.player != player:
            continue
        index += 1
        from_in = move.from_pos.key in goal_keys
        to_in = move.to.key in goal_keys
        if from_in and to_in:
            if in_goal >= ENDGAME_MILESTONES[0]:
                shuffles += 1
        elif to_in:
            in_goal += 1
            fill_order.append(depths[move.to.key])
            if in_goal in ENDGAME_MILESTONES and in_goal not in reached:
                reached[in_goal] = index
        elif from_in:
            in_goal -= 1
            exits += 1

    finished = total_pieces > 0 and in_goal >= total_pieces
    remaining = {
        n: (index - reached[n]) if finished and n in reached else None
        for n in ENDGAME_MILESTONES
    }
    return EndgameMetrics(
        moves_from_7_to_finish=remaining[7],
        moves_from_8_to_finish=remaining[8],
        moves_from_9_to_finish=remaining[9],
        goal_fill_order=fill_order,
        shuffle_moves_in_endgame=shuffles,
        exit_and_reenter_count=exits,
    )


def extract_game_patterns(state: GameState) -> GamePatterns:
    """Summarise a finished (or abandoned) game from its final state."""
    by_player: dict[int, list[Move]] = {p: [] for p in state.active_players}
    for move in state.move_history:
        if move.player in by_player:
            by_player[move.player].append(move)

    metrics = {
        p: _player_metrics(state, p, moves, p == state.winner)
        for p, moves in by_player.items()
    }
    if state.winner is not None:
        winner_moves = len(by_player.get(state.winner, ()))
        endgame = extract_endgame_metrics(state, state.winner)
    else:
        winner_moves = len(state.move_history)
        endgame = None

    return GamePatterns(
        game_id=state.game_id,
        is_custom_layout=state.is_custom_layout,
        player_count=state.player_count,
        winner=state.winner,
        player_metrics=metrics,
        total_moves=len(state.move_history),
        winner_move_count=winner_moves,
        endgame_metrics=endgame,
    )


def calculate_game_quality(patterns: GamePatterns) -> float:
    """0.1 (draw or unknown) to 1.0 (short, jump-heavy win)."""
    if patterns.winner is None:
        return 0.1
    metrics = patterns.player_metrics.get(patterns.winner)
    if metrics is None:
        return 0.1
    move_efficiency = max(0.0, min(1.0, (100 - metrics.total_moves) / 70))
    jump_use = metrics.jump_moves / metrics.total_moves if metrics.total_moves else 0.0
    distance_efficiency = min(1.0, metrics.avg_distance_gained_per_move / 2)
    quality = move_efficiency * 0.5 + jump_use * 0.25 + distance_efficiency * 0.25
    return max(0.1, min(1.0, quality))


def score_goal_fill_order(fill_order: list[float]) -> float:
    """1.0 when goal cells were filled deepest-first, 0.0 when shallowest-first."""
    if len(fill_order) <= 1:
        return 0.5
    inversions = 0
    pairs = 0
    for i in range(len(fill_order)):
        for j in range(i + 1, len(fill_order)):
            pairs += 1
            if fill_order[i] < fill_order[j]:
                inversions += 1
    return 1 - inversions / pairs


# =============================================================================
# Aggregation
# =============================================================================


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _weights_from_metrics(metrics: PlayerGameMetrics) -> LearnedWeights:
    jump_ratio = metrics.jump_moves / metrics.total_moves if metrics.total_moves else 0.5
    if metrics.total_moves < 40:
        advancement = 1.2
    elif metrics.total_moves < 60:
        advancement = 1.0
    else:
        advancement = 0.9
    return LearnedWeights(
        distance_weight=_clamp(0.8 + metrics.avg_distance_gained_per_move / 2 * 0.4, 0.5, 1.5),
        cohesion_weight=_clamp(0.8 + metrics.avg_piece_cohesion * 0.4, 0.5, 1.5),
        mobility_weight=_clamp(1.2 - metrics.avg_piece_cohesion * 0.4, 0.5, 1.5),
        advancement_balance=advancement,
        jump_preference=_clamp(0.8 + jump_ratio * 0.4, 0.5, 1.5),
        goal_occupation_weight=1.0,
        avg_winning_move_count=metrics.total_moves,
        optimal_jump_chain_length=metrics.avg_jump_chain_length,
        optimal_cohesion_level=metrics.avg_piece_cohesion,
    )


class SharedInsights(BaseModel):
    """Aggregate over every finished game reported so far."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    games_analyzed: int = Field(0, alias="gamesAnalyzed")
    weights: LearnedWeights = Field(default_factory=LearnedWeights)
    endgame_stats: EndgameStats = Field(default_factory=EndgameStats, alias="endgameStats")
    last_updated: float = Field(0.0, alias="lastUpdated")

    def fold(
        self,
        winner_metrics: PlayerGameMetrics,
        endgame: EndgameMetrics | None = None,
    ) -> SharedInsights:
        """Return a new aggregate including one more game."""
        n = self.games_analyzed + 1
        fresh = _weights_from_metrics(winner_metrics)
        if self.games_analyzed == 0:
            weights = fresh
        else:
            old = self.weights

            def avg(old_value: float, new_value: float) -> float:
                return old_value + (new_value - old_value) / n

            weights = LearnedWeights(
                distance_weight=_clamp(avg(old.distance_weight, fresh.distance_weight), 0.5, 1.5),
                cohesion_weight=_clamp(avg(old.cohesion_weight, fresh.cohesion_weight), 0.5, 1.5),
                mobility_weight=_clamp(avg(old.mobility_weight, fresh.mobility_weight), 0.5, 1.5),
                advancement_balance=_clamp(
                    avg(old.advancement_balance, fresh.advancement_balance), 0.7, 1.3
                ),
                jump_preference=_clamp(avg(old.jump_preference, fresh.jump_preference), 0.5, 1.5),
                goal_occupation_weight=_clamp(avg(old.goal_occupation_weight, 1.0), 0.5, 1.5),
                avg_winning_move_count=avg(old.avg_winning_move_count, winner_metrics.total_moves),
                optimal_jump_chain_length=avg(
                    old.optimal_jump_chain_length, winner_metrics.avg_jump_chain_length
                ),
                optimal_cohesion_level=avg(
                    old.optimal_cohesion_level, winner_metrics.avg_piece_cohesion
                ),
            )

        endgame_stats = self.endgame_stats
        if endgame is not None:
            endgame_stats = self._fold_endgame(endgame)

        return SharedInsights(
            games_analyzed=n,
            weights=weights,
            endgame_stats=endgame_stats,
            last_updated=time.time(),
        )

    def _fold_endgame(self, endgame: EndgameMetrics) -> EndgameStats:
        old = self.endgame_stats
        n = old.games_analyzed + 1

        def avg(old_value: float, new_value: float | None) -> float:
            if new_value is None:
                return old_value
            return old_value + (new_value - old_value) / n

        return EndgameStats(
            avg_moves_from_7=avg(old.avg_moves_from_7, endgame.moves_from_7_to_finish),
            avg_moves_from_8=avg(old.avg_moves_from_8, endgame.moves_from_8_to_finish),
            avg_moves_from_9=avg(old.avg_moves_from_9, endgame.moves_from_9_to_finish),
            optimal_fill_order_score=avg(
                old.optimal_fill_order_score, score_goal_fill_order(endgame.goal_fill_order)
            ),
            avg_shuffle_moves=avg(old.avg_shuffle_moves, endgame.shuffle_moves_in_endgame),
            games_analyzed=n,
        )

    def fold_game(self, state: GameState) -> SharedInsights:
        """Fold a finished game; games without a winner are ignored."""
        patterns = extract_game_patterns(state)
        if patterns.winner is None:
            logger.debug(f"Skipping insights for drawn game {patterns.game_id}")
            return self
        return self.fold(patterns.player_metrics[patterns.winner], patterns.endgame_metrics)


def genome_from_insights(insights: SharedInsights | None) -> Genome:
    """Default genome nudged by the aggregate weight modifiers."""
    if insights is None or insights.games_analyzed == 0:
        return clamp_genome_weights(BASE_GENOME_WEIGHTS)
    w = insights.weights
    return clamp_genome_weights(
        _with_deltas(
            BASE_GENOME_WEIGHTS,
            scale={
                "goal_distance": w.distance_weight,
                "jump_potential": w.jump_preference,
                "progress": w.goal_occupation_weight,
            },
        )
    )
