"""Prometheus metrics for the Sternhalma AI service.

Counters and histograms live here so that the HTTP handlers, the move
dispatcher and the training scheduler record telemetry without managing
their own metric instances.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Gauge, Histogram


AI_MOVE_REQUESTS: Final[Counter] = Counter(
    "ai_move_requests_total",
    "Total number of /ai/move requests, labeled by difficulty and outcome.",
    labelnames=("difficulty", "outcome"),
)

AI_MOVE_LATENCY: Final[Histogram] = Histogram(
    "ai_move_latency_seconds",
    "Latency of AI move selection in seconds, labeled by difficulty.",
    labelnames=("difficulty",),
    buckets=(
        0.01,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.0,
        5.0,
    ),
)

TRAINING_GAMES_PLAYED: Final[Counter] = Counter(
    "training_games_played_total",
    "Total headless self-play games played by the training scheduler.",
)

TRAINING_GENERATIONS_COMPLETED: Final[Counter] = Counter(
    "training_generations_completed_total",
    "Total evolution generations completed.",
)

TRAINING_BEST_FITNESS: Final[Gauge] = Gauge(
    "training_best_fitness",
    "Best-ever fitness recorded by the trainer.",
)

STALE_AI_RESULTS_DISCARDED: Final[Counter] = Counter(
    "stale_ai_results_discarded_total",
    "AI search results dropped because the game moved on before they arrived.",
)


def observe_ai_move_start(difficulty: str) -> str:
    """Normalise a difficulty into its metric label value."""
    return str(difficulty).lower()


def record_training_step(
    games_played: int,
    generations_completed: int,
    best_fitness: float | None,
) -> None:
    """Record the outcome of one scheduler invocation."""
    if games_played:
        TRAINING_GAMES_PLAYED.inc(games_played)
    if generations_completed:
        TRAINING_GENERATIONS_COMPLETED.inc(generations_completed)
    if best_fitness is not None:
        TRAINING_BEST_FITNESS.set(best_fitness)
