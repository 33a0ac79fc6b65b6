"""AI players for Sternhalma.

Create AIs through the factory:

    from sternhalma.ai import AIFactory

    ai = AIFactory.create("hard", player_number=3)
    move = ai.select_move(state)

Modules:
- base.py: BaseAI abstract base class
- evaluator.py: genome-weighted static evaluation and move penalties
- heuristic_weights.py: default genome, gene ranges and personalities
- minimax_ai.py: fixed-depth alpha-beta search
- factory.py: difficulty tiers and genome resolution
- dispatch.py: background search with stale-result protection
- cache.py: explicitly owned evaluation and genome caches
"""

from .base import BaseAI
from .cache import EvolvedGenomeCache, SearchCache
from .factory import (
    DIFFICULTY_PROFILES,
    TRAINING_PROFILE,
    AIFactory,
    DifficultyProfile,
    create_ai,
    get_difficulty_profile,
)
from .minimax_ai import MinimaxAI

__all__ = [
    "AIFactory",
    "BaseAI",
    "DIFFICULTY_PROFILES",
    "DifficultyProfile",
    "EvolvedGenomeCache",
    "MinimaxAI",
    "SearchCache",
    "TRAINING_PROFILE",
    "create_ai",
    "get_difficulty_profile",
]
