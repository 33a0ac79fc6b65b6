"""Genome presets for the Sternhalma evaluator.

This module is the single source of truth for evaluation weights:

* :data:`DEFAULT_GENOME` is the hand-tuned genome used by every difficulty
  tier except "evolved", and the seed individual of every fresh population.
* :data:`GENE_RANGES` bounds every field for random initialisation and
  mutation clamping.
* Personas (defensive / aggressive) are small, interpretable overrides of
  the five headline weights, built with :func:`_with_deltas`.

The ordered :data:`GENOME_KEYS` list fixes the order in which evolution
draws random numbers per field; changing it changes every seeded run.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping

from ..errors import ConfigurationError
from ..models import Genome, Personality

logger = logging.getLogger(__name__)

GenomeWeights = dict[str, float]


BASE_GENOME_WEIGHTS: GenomeWeights = {
    # Headline weights
    "progress": 3.0,
    "goal_distance": 2.5,
    "center_control": 1.0,
    "blocking": 1.0,
    "jump_potential": 0.5,
    # Tunable constants
    "straggler_divisor": 5.0,
    "center_piece_value": 3.0,
    "blocking_base_value": 5.0,
    "jump_potential_multiplier": 2.0,
    "jump_potential_cap": 40.0,
    "regression_multiplier": 5.0,
    "goal_leave_penalty": 60.0,
    "repetition_penalty": 80.0,
    "cycle_penalty": 50.0,
    "endgame_threshold": 7.0,
}

# Canonical ordered field list; must stay in lockstep with
# BASE_GENOME_WEIGHTS insertion order and the Genome model fields.
GENOME_KEYS: list[str] = list(BASE_GENOME_WEIGHTS)

GENE_RANGES: dict[str, tuple[float, float]] = {
    "progress": (0.5, 10.0),
    "goal_distance": (0.5, 10.0),
    "center_control": (0.0, 5.0),
    "blocking": (0.0, 8.0),
    "jump_potential": (0.0, 5.0),
    "straggler_divisor": (1.0, 20.0),
    "center_piece_value": (0.5, 10.0),
    "blocking_base_value": (1.0, 15.0),
    "jump_potential_multiplier": (0.5, 5.0),
    "jump_potential_cap": (10.0, 80.0),
    "regression_multiplier": (1.0, 15.0),
    "goal_leave_penalty": (10.0, 120.0),
    "repetition_penalty": (20.0, 150.0),
    "cycle_penalty": (10.0, 100.0),
    "endgame_threshold": (4.0, 9.0),
}

DEFAULT_GENOME: Genome = Genome(**BASE_GENOME_WEIGHTS)


def _with_deltas(
    base: Mapping[str, float],
    *,
    override: Mapping[str, float] | None = None,
    scale: Mapping[str, float] | None = None,
) -> GenomeWeights:
    """Create a new weight set from *base* by per-key override and scale.

    All keys in ``base`` are preserved so that the result always builds a
    complete :class:`Genome`.
    """
    override = override or {}
    scale = scale or {}
    out: GenomeWeights = {}
    for key, value in base.items():
        out[key] = override.get(key, value) * scale.get(key, 1.0)
    return out


# Generalist: identical to the default genome.
GENERALIST_GENOME: Genome = DEFAULT_GENOME

# Defensive: lean on blocking opponents' goal cells, play a quieter centre.
DEFENSIVE_GENOME: Genome = Genome(
    **_with_deltas(
        BASE_GENOME_WEIGHTS,
        override={
            "progress": 2.0,
            "goal_distance": 3.0,
            "center_control": 0.5,
            "blocking": 4.0,
            "jump_potential": 0.5,
        },
    )
)

# Aggressive: race forward through long jump chains and ignore blocking.
AGGRESSIVE_GENOME: Genome = Genome(
    **_with_deltas(
        BASE_GENOME_WEIGHTS,
        override={
            "progress": 2.5,
            "goal_distance": 4.0,
            "center_control": 1.5,
            "blocking": 0.0,
            "jump_potential": 3.0,
        },
    )
)

PERSONALITY_GENOMES: dict[Personality, Genome] = {
    Personality.GENERALIST: GENERALIST_GENOME,
    Personality.DEFENSIVE: DEFENSIVE_GENOME,
    Personality.AGGRESSIVE: AGGRESSIVE_GENOME,
}


def get_personality_genome(personality: Personality | str) -> Genome:
    try:
        return PERSONALITY_GENOMES[Personality(personality)]
    except ValueError as exc:
        raise ConfigurationError(
            "Unknown personality", context={"personality": personality}
        ) from exc


def clamp_gene(key: str, value: float) -> float:
    low, high = GENE_RANGES[key]
    return min(high, max(low, value))


def clamp_genome_weights(weights: Mapping[str, float]) -> Genome:
    """Build a genome with every field clamped into :data:`GENE_RANGES`."""
    return Genome(**{key: clamp_gene(key, float(weights[key])) for key in GENOME_KEYS})


EVOLVED_GENOME_ENV = "STERNHALMA_EVOLVED_GENOME_PATH"


def load_genome_file(path: str | None = None) -> Genome | None:
    """Load a genome from a JSON file written by the trainer.

    Accepts either a bare genome object or a best-genome record with a
    ``genome`` key. Falls back to ``STERNHALMA_EVOLVED_GENOME_PATH`` when
    ``path`` is omitted.

    Returns:
        The genome, or None when no file is configured or present.
    """
    if path is None:
        path = os.getenv(EVOLVED_GENOME_ENV)
    if not path or not os.path.exists(path):
        return None

    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    if isinstance(payload, dict) and "genome" in payload:
        payload = payload["genome"]
    genome = Genome.model_validate(payload)
    logger.info(f"Loaded evolved genome from {path}")
    return genome
