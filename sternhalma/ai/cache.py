"""Explicitly owned caches for search and evaluation.

Nothing here is module-global: a :class:`SearchCache` is created by whoever
owns a search (an AI instance, a headless training game) and handed to the
evaluator, so tests stay isolated and a cache can be dropped with
:meth:`SearchCache.clear`.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any

from ..board import GameState
from ..errors import StorageError
from ..geometry import FractionalCube, centroid, distance
from ..models import Genome

logger = logging.getLogger(__name__)


class BoundedCache:
    """LRU-evicting mapping with hit/miss statistics."""

    def __init__(self, max_entries: int = 10_000) -> None:
        self._table: OrderedDict[Hashable, Any] = OrderedDict()
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: Hashable) -> Any | None:
        """Get value, moving it to the most-recent end if found."""
        if key in self._table:
            self._table.move_to_end(key)
            self.hits += 1
            return self._table[key]
        self.misses += 1
        return None

    def put(self, key: Hashable, value: Any) -> None:
        """Add entry, evicting the oldest if at capacity."""
        if key in self._table:
            self._table.move_to_end(key)
        elif len(self._table) >= self.max_entries:
            self._table.popitem(last=False)
            self.evictions += 1
        self._table[key] = value

    def __contains__(self, key: Hashable) -> bool:
        return key in self._table

    def __len__(self) -> int:
        return len(self._table)

    def clear(self) -> None:
        """Clear all entries and reset stats."""
        self._table.clear()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def stats(self) -> dict[str, float]:
        total_lookups = self.hits + self.misses
        return {
            "entries": len(self._table),
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": self.hits / total_lookups if total_lookups > 0 else 0.0,
        }


class SearchCache:
    """Memoises per-layout goal geometry used by the evaluator.

    Entries are keyed by the goal cell set itself, so games on the same
    layout share entries and a different layout can never see stale data.
    """

    def __init__(self, max_entries: int = 256) -> None:
        self._centroids = BoundedCache(max_entries)
        self._progress_bounds = BoundedCache(max_entries)

    def goal_centroid(self, state: GameState, player: int) -> FractionalCube:
        key = state.setup.goal_keys(player)
        cached = self._centroids.get(key)
        if cached is None:
            cached = centroid(state.setup.goals(player))
            self._centroids.put(key, cached)
        return cached

    def progress_bounds(self, state: GameState, player: int) -> tuple[float, float]:
        """Total distance to the goal centroid at the start and when finished."""
        key = (state.setup.home_keys(player), state.setup.goal_keys(player))
        cached = self._progress_bounds.get(key)
        if cached is None:
            center = self.goal_centroid(state, player)
            start = sum(
                distance(c, center) for c in state.setup.starting_positions.get(player, ())
            )
            # A finished player fills the goal cells closest to the centroid.
            goal_dists = sorted(distance(c, center) for c in state.setup.goals(player))
            pieces = len(state.setup.starting_positions.get(player, ()))
            finish = sum(goal_dists[:pieces])
            cached = (start, finish)
            self._progress_bounds.put(key, cached)
        return cached

    def clear(self) -> None:
        self._centroids.clear()
        self._progress_bounds.clear()

    def stats(self) -> dict[str, dict[str, float]]:
        return {
            "centroids": self._centroids.stats(),
            "progress_bounds": self._progress_bounds.stats(),
        }


class EvolvedGenomeCache:
    """Holds the trainer-produced genome for the "evolved" difficulty.

    The value is refreshed from ``loader`` once ``ttl_seconds`` have passed.
    A failing loader keeps serving the previous value.
    """

    def __init__(
        self,
        loader: Callable[[], Genome | None],
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._genome: Genome | None = None
        self._loaded_at: float | None = None

    def get(self) -> Genome | None:
        now = self._clock()
        if self._loaded_at is not None and now - self._loaded_at < self.ttl_seconds:
            return self._genome
        try:
            self._genome = self._loader()
        except StorageError as e:
            logger.warning(f"Evolved genome refresh failed, serving cached value: {e}")
            return self._genome
        self._loaded_at = now
        return self._genome

    def set(self, genome: Genome | None) -> None:
        self._genome = genome
        self._loaded_at = self._clock()

    def invalidate(self) -> None:
        """Force the next :meth:`get` to reload."""
        self._loaded_at = None
