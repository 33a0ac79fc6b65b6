"""AI factory for Sternhalma.

All AI creation goes through this module so that every caller (HTTP
service, headless training games, tests) maps difficulty tiers onto the
same search parameters and resolves genomes the same way.

Usage:
    from sternhalma.ai.factory import AIFactory, get_difficulty_profile

    # Create AI from a difficulty tier
    ai = AIFactory.create(Difficulty.HARD, player_number=3)

    # Evolved tier backed by the trainer's best genome
    ai = AIFactory.create(
        Difficulty.EVOLVED, player_number=0, evolved_cache=genome_cache
    )

    # Training seat with a fixed genome
    ai = AIFactory.create_for_training(0, genome, depth=2, move_cap=12)

Genome resolution order: an explicit genome, then (for "evolved") the
cached trainer genome, then a personality preset, then shared insights,
then :data:`DEFAULT_GENOME`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypedDict

from ..errors import ConfigurationError
from ..models import AIConfig, Difficulty, Genome, Personality
from .cache import EvolvedGenomeCache, SearchCache
from .heuristic_weights import DEFAULT_GENOME, get_personality_genome
from .minimax_ai import MinimaxAI

if TYPE_CHECKING:
    from ..learning import SharedInsights

logger = logging.getLogger(__name__)


class DifficultyProfile(TypedDict):
    """Search parameters for one difficulty tier."""
    depth: int
    move_cap: int
    randomize_top: int
    description: str


DIFFICULTY_PROFILES: dict[Difficulty, DifficultyProfile] = {
    Difficulty.EASY: {
        "depth": 1,
        "move_cap": 10,
        "randomize_top": 3,
        "description": "One-ply search, picks among the best three moves",
    },
    Difficulty.MEDIUM: {
        "depth": 2,
        "move_cap": 15,
        "randomize_top": 0,
        "description": "Two-ply alpha-beta",
    },
    Difficulty.HARD: {
        "depth": 3,
        "move_cap": 20,
        "randomize_top": 0,
        "description": "Three-ply alpha-beta",
    },
    Difficulty.EVOLVED: {
        "depth": 3,
        "move_cap": 20,
        "randomize_top": 0,
        "description": "Hard search with the trainer's best genome",
    },
}

# Self-play seats during evolution.
TRAINING_PROFILE: DifficultyProfile = {
    "depth": 2,
    "move_cap": 12,
    "randomize_top": 0,
    "description": "Training self-play",
}


def get_difficulty_profile(difficulty: Difficulty | str) -> DifficultyProfile:
    """Return the search profile for ``difficulty``.

    Raises:
        ConfigurationError: Unknown difficulty name.
    """
    try:
        return DIFFICULTY_PROFILES[Difficulty(difficulty)]
    except ValueError as exc:
        raise ConfigurationError(
            "Unknown difficulty", context={"difficulty": difficulty}
        ) from exc


class AIFactory:
    """Creates configured :class:`MinimaxAI` instances."""

    @classmethod
    def resolve_genome(
        cls,
        difficulty: Difficulty,
        *,
        genome: Genome | None = None,
        personality: Personality | str | None = None,
        evolved_cache: EvolvedGenomeCache | None = None,
        insights: SharedInsights | None = None,
    ) -> Genome:
        if genome is not None:
            return genome
        if difficulty is Difficulty.EVOLVED:
            evolved = evolved_cache.get() if evolved_cache is not None else None
            if evolved is not None:
                return evolved
            logger.info("No evolved genome available; falling back to preset weights")
        if personality is not None:
            return get_personality_genome(personality)
        if insights is not None and insights.games_analyzed > 0:
            # Lazy import: learning depends on this package.
            from ..learning import genome_from_insights
            return genome_from_insights(insights)
        return DEFAULT_GENOME

    @classmethod
    def create(
        cls,
        difficulty: Difficulty | str,
        player_number: int,
        *,
        genome: Genome | None = None,
        personality: Personality | str | None = None,
        rng_seed: int | None = None,
        evolved_cache: EvolvedGenomeCache | None = None,
        insights: SharedInsights | None = None,
        cache: SearchCache | None = None,
    ) -> MinimaxAI:
        """Create an AI for one seat.

        Args:
            difficulty: Tier name or :class:`Difficulty`.
            player_number: Zone index the AI plays.
            genome: Explicit weights; overrides every other source.
            personality: Preset weight style.
            rng_seed: Seed for the AI's private RNG.
            evolved_cache: Source of the trainer genome for "evolved".
            insights: Shared insights used as default weights.
            cache: Evaluation cache to share between AIs.

        Raises:
            ConfigurationError: Unknown difficulty or personality.
        """
        profile = get_difficulty_profile(difficulty)
        difficulty = Difficulty(difficulty)
        if personality is not None:
            # Raises ConfigurationError for an unknown name.
            get_personality_genome(personality)
        resolved = cls.resolve_genome(
            difficulty,
            genome=genome,
            personality=personality,
            evolved_cache=evolved_cache,
            insights=insights,
        )
        config = AIConfig(
            difficulty=difficulty,
            personality=Personality(personality) if personality is not None else None,
            genome=resolved,
            rng_seed=rng_seed,
        )
        return MinimaxAI(
            player_number,
            config,
            genome=resolved,
            depth=profile["depth"],
            move_cap=profile["move_cap"],
            randomize_top=profile["randomize_top"],
            cache=cache,
        )

    @classmethod
    def create_for_training(
        cls,
        player_number: int,
        genome: Genome,
        *,
        depth: int = TRAINING_PROFILE["depth"],
        move_cap: int = TRAINING_PROFILE["move_cap"],
        cache: SearchCache | None = None,
    ) -> MinimaxAI:
        """Deterministic self-play seat: fixed depth, no randomisation."""
        config = AIConfig(difficulty=Difficulty.MEDIUM, genome=genome, rng_seed=0)
        return MinimaxAI(
            player_number,
            config,
            genome=genome,
            depth=depth,
            move_cap=move_cap,
            randomize_top=0,
            cache=cache,
        )

    @classmethod
    def create_custom(
        cls,
        player_number: int,
        *,
        genome: Genome | None = None,
        depth: int,
        move_cap: int,
        randomize_top: int = 0,
        rng_seed: int | None = None,
        cache: SearchCache | None = None,
    ) -> MinimaxAI:
        """AI with explicit search parameters, bypassing the tier table."""
        config = AIConfig(difficulty=Difficulty.MEDIUM, genome=genome, rng_seed=rng_seed)
        return MinimaxAI(
            player_number,
            config,
            genome=genome,
            depth=depth,
            move_cap=move_cap,
            randomize_top=randomize_top,
            cache=cache,
        )


def create_ai(
    difficulty: Difficulty | str,
    player_number: int,
    **kwargs,
) -> MinimaxAI:
    """Convenience wrapper around :meth:`AIFactory.create`."""
    return AIFactory.create(difficulty, player_number, **kwargs)
