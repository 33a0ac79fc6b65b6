"""Minimax AI implementation for Sternhalma.

This agent uses fixed-depth minimax with alpha-beta pruning over the legal
moves of the side to move, scoring leaves with the genome evaluator.

With more than two players the search is *paranoid*: every opponent is
assumed to minimise the root player's score, which keeps plain alpha-beta
valid for any seat count.

Branching is bounded by a per-node candidate cap. When a node has more
legal moves than the cap, moves are ordered by their 1-ply evaluation
minus move penalties (stable sort, so ties keep move-generation order) and
only the best ``move_cap`` are searched. Within the cap, generation order is
kept untouched.

At the root each candidate scores ``minimax(child, depth - 1)`` minus its
move penalty; the first strictly best candidate wins. The "easy" tier
instead picks uniformly among the best three using the AI's own seeded
``random.Random``.
"""

from __future__ import annotations

import logging
import math

from ..board import GameState, Move
from ..config import env_flag
from ..errors import AIError
from ..game_engine import GameEngine
from ..models import AIConfig, Genome
from ..rules.move_generator import get_all_valid_moves
from .base import BaseAI
from .cache import SearchCache
from .evaluator import evaluate, evaluation_breakdown, move_penalty
from .heuristic_weights import DEFAULT_GENOME

logger = logging.getLogger(__name__)

DEBUG_SEARCH = env_flag("STERNHALMA_DEBUG_SEARCH")


def _debug(msg: str) -> None:
    if DEBUG_SEARCH:
        logger.debug(msg)


class MinimaxAI(BaseAI):
    """AI that uses minimax with alpha-beta pruning.

    Args:
        player_number: Zone index this AI plays.
        config: Seat configuration (difficulty, seed).
        genome: Evaluation weights; defaults to :data:`DEFAULT_GENOME`.
        depth: Search depth in plies (>= 1).
        move_cap: Maximum candidates searched per node.
        randomize_top: When > 1, choose uniformly among this many best
            root moves instead of the single best.
        cache: Shared evaluation cache.
    """

    def __init__(
        self,
        player_number: int,
        config: AIConfig,
        *,
        genome: Genome | None = None,
        depth: int = 2,
        move_cap: int = 15,
        randomize_top: int = 0,
        cache: SearchCache | None = None,
    ) -> None:
        super().__init__(player_number, config, cache=cache)
        if depth < 1:
            raise AIError("Search depth must be at least 1", context={"depth": depth})
        if move_cap < 1:
            raise AIError("Move cap must be at least 1", context={"move_cap": move_cap})
        self.genome = genome or DEFAULT_GENOME
        self.depth = depth
        self.move_cap = move_cap
        self.randomize_top = randomize_top
        self.nodes_searched = 0
        self.last_root_scores: list[tuple[Move, float]] = []

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_position(self, game_state: GameState) -> float:
        return evaluate(game_state, self.player_number, self.genome, cache=self.cache)

    def get_evaluation_breakdown(self, game_state: GameState) -> dict[str, float]:
        return evaluation_breakdown(
            game_state, self.player_number, self.genome, cache=self.cache
        ).as_dict()

    # ------------------------------------------------------------------
    # Move ordering
    # ------------------------------------------------------------------

    def _order_score(self, state: GameState, move: Move, player: int) -> float:
        penalty = move_penalty(state, move, player, self.genome, cache=self.cache)
        if math.isinf(penalty):
            return -math.inf
        moved = GameEngine.move_piece(state, move)
        return evaluate(moved, player, self.genome, cache=self.cache) - penalty

    def get_top_moves(
        self,
        state: GameState,
        player: int,
        moves: list[Move] | None = None,
    ) -> list[Move]:
        """Legal moves of ``player``, capped to the best ``move_cap``.

        The cut is made on a stable descending sort, so equal scores keep
        move-generation order.
        """
        if moves is None:
            moves = get_all_valid_moves(state, player)
        if len(moves) <= self.move_cap:
            return moves
        scored = [(self._order_score(state, m, player), m) for m in moves]
        scored.sort(key=lambda item: item[0], reverse=True)
        return [m for _, m in scored[: self.move_cap]]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def select_move(self, game_state: GameState) -> Move | None:
        """Pick a move for ``player_number`` in ``game_state``.

        Returns:
            The chosen move, or None when the game is over, this player has
            finished, or no legal move exists.

        Raises:
            AIError: It is not this AI's turn.
        """
        player = self.player_number
        if game_state.current_player != player:
            raise AIError(
                "Asked to move out of turn",
                context={"player": player, "current_player": game_state.current_player},
            )
        if game_state.is_fully_over or game_state.is_player_finished(player):
            return None

        moves = get_all_valid_moves(game_state, player)
        if not moves:
            logger.warning(f"Player {player} has no legal moves")
            return None

        self.nodes_searched = 0
        candidates = self.get_top_moves(game_state, player, moves)

        scored: list[tuple[Move, float]] = []
        for move in candidates:
            penalty = move_penalty(game_state, move, player, self.genome, cache=self.cache)
            if math.isinf(penalty):
                scored.append((move, -math.inf))
                continue
            child = GameEngine.apply_move(game_state, move)
            value = self._minimax(child, self.depth - 1, -math.inf, math.inf)
            scored.append((move, value - penalty))
        self.last_root_scores = scored

        if self.randomize_top > 1:
            chosen = self._pick_among_best(scored)
        else:
            chosen = self._pick_best(scored)

        self.move_count += 1
        _debug(
            f"P{player} depth={self.depth} cap={self.move_cap} "
            f"candidates={len(candidates)}/{len(moves)} nodes={self.nodes_searched} "
            f"chose {chosen.from_pos.key}->{chosen.to.key}"
        )
        return chosen

    @staticmethod
    def _pick_best(scored: list[tuple[Move, float]]) -> Move:
        best_move: Move | None = None
        best_score = -math.inf
        for move, score in scored:
            if score > best_score:
                best_move, best_score = move, score
        # Every candidate was vetoed; fall back to the first one.
        return best_move if best_move is not None else scored[0][0]

    def _pick_among_best(self, scored: list[tuple[Move, float]]) -> Move:
        ranked = sorted(scored, key=lambda item: item[1], reverse=True)
        top = [m for m, s in ranked[: self.randomize_top] if not math.isinf(s)]
        if not top:
            return scored[0][0]
        return self.rng.choice(top)

    def _minimax(self, state: GameState, depth: int, alpha: float, beta: float) -> float:
        self.nodes_searched += 1
        root = self.player_number
        if depth <= 0 or state.is_fully_over:
            return evaluate(state, root, self.genome, cache=self.cache)

        mover = state.current_player
        moves = self.get_top_moves(state, mover)
        if not moves:
            return evaluate(state, root, self.genome, cache=self.cache)

        if mover == root:
            value = -math.inf
            for move in moves:
                child = GameEngine.apply_move(state, move)
                value = max(value, self._minimax(child, depth - 1, alpha, beta))
                alpha = max(alpha, value)
                if alpha >= beta:
                    break
            return value

        value = math.inf
        for move in moves:
            child = GameEngine.apply_move(state, move)
            value = min(value, self._minimax(child, depth - 1, alpha, beta))
            beta = min(beta, value)
            if alpha >= beta:
                break
        return value
