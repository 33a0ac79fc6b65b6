"""Background AI move search with stale-result protection.

Interactive clients must not block on search, and by the time a search
finishes the game may have moved on (a human confirmed a turn, the game
was reset, a move was undone). :class:`AIMoveDispatcher` runs each search
on a private snapshot in a worker thread and tags it with the snapshot's
fingerprint ``(game_id, current_player, turn_number)``.
:meth:`PendingSearch.apply_if_current` only plays the result when the live
engine still has the same fingerprint and no turn is in progress.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor

from ..board import GameState, Move
from ..config import ServiceSettings
from ..errors import AIError
from ..game_engine import TurnEngine, TurnPhase, TurnResult
from ..metrics import STALE_AI_RESULTS_DISCARDED
from .base import BaseAI

logger = logging.getLogger(__name__)


class PendingSearch:
    """Handle for one in-flight search."""

    def __init__(self, future: Future, fingerprint: tuple[str, int, int], player: int):
        self._future = future
        self.fingerprint = fingerprint
        self.player = player

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> bool:
        return self._future.cancel()

    def result(self, timeout: float | None = None) -> Move | None:
        """Block for the chosen move; re-raises errors from the search."""
        return self._future.result(timeout=timeout)

    def is_current(self, engine: TurnEngine) -> bool:
        return engine.fingerprint() == self.fingerprint and engine.phase is TurnPhase.IDLE

    def apply_if_current(
        self,
        engine: TurnEngine,
        timeout: float | None = None,
    ) -> TurnResult | None:
        """Play the result on ``engine`` unless it has gone stale.

        Returns:
            The turn result, or None when the result was discarded or the
            search found no move.
        """
        move = self.result(timeout)
        if not self.is_current(engine):
            STALE_AI_RESULTS_DISCARDED.inc()
            logger.warning(
                f"Discarding stale AI result for player {self.player}: "
                f"dispatched at {self.fingerprint}, game now at {engine.fingerprint()} "
                f"({engine.phase.value})"
            )
            return None
        if move is None:
            logger.warning(f"AI for player {self.player} returned no move")
            return None
        return engine.play(move)


class AIMoveDispatcher:
    """Runs AI searches on a thread pool.

    Example:
        with AIMoveDispatcher(max_workers=1) as dispatcher:
            pending = dispatcher.submit_for(engine, ai)
            pending.apply_if_current(engine)
    """

    def __init__(self, max_workers: int = 1):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="sternhalma-ai"
        )

    @classmethod
    def from_settings(cls, settings: ServiceSettings) -> AIMoveDispatcher:
        return cls(max_workers=settings.ai_workers)

    def submit(self, state: GameState, ai: BaseAI) -> PendingSearch:
        """Search a private copy of ``state`` in the background."""
        snapshot = state.copy()
        fingerprint = snapshot.fingerprint()
        future = self._executor.submit(ai.select_move, snapshot)
        logger.debug(f"Dispatched search for player {ai.player_number} at {fingerprint}")
        return PendingSearch(future, fingerprint, ai.player_number)

    def submit_for(self, engine: TurnEngine, ai: BaseAI) -> PendingSearch:
        """Search the engine's committed position.

        Raises:
            AIError: A turn is in progress on ``engine``.
        """
        if engine.phase is not TurnPhase.IDLE:
            raise AIError(
                "Cannot dispatch a search while a turn is in progress",
                context={"phase": engine.phase.value},
            )
        return self.submit(engine.state, ai)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> AIMoveDispatcher:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
