"""Environment-driven service settings.

Every knob is read from a ``STERNHALMA_*`` environment variable so the same
package runs unchanged under the HTTP service, the training loop script and
tests (which override values with ``monkeypatch.setenv``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import ConfigurationError

_TRUTHY = {"1", "true", "yes", "on"}

TRAINING_PROFILES = ("server", "default")


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be an integer", context={"value": raw}
        ) from exc
    if minimum is not None and value < minimum:
        raise ConfigurationError(
            f"{name} must be >= {minimum}", context={"value": value}
        )
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{name} must be a number", context={"value": raw}
        ) from exc


@dataclass(frozen=True)
class ServiceSettings:
    training_state_dir: str = "./training_state"
    training_seed: int = 0
    games_per_batch: int = 20
    training_profile: str = "server"
    genome_cache_ttl_seconds: float = 300.0
    ai_workers: int = 1
    debug_search: bool = False


def load_settings() -> ServiceSettings:
    """Read :class:`ServiceSettings` from the environment.

    Raises:
        ConfigurationError: A variable is set to an unparseable or
            out-of-range value.
    """
    profile = os.getenv("STERNHALMA_TRAINING_PROFILE", "server").strip().lower()
    if profile not in TRAINING_PROFILES:
        raise ConfigurationError(
            "Unknown training profile",
            context={"profile": profile, "allowed": ",".join(TRAINING_PROFILES)},
        )
    return ServiceSettings(
        training_state_dir=os.getenv(
            "STERNHALMA_TRAINING_STATE_DIR", "./training_state"
        ),
        training_seed=_env_int("STERNHALMA_TRAINING_SEED", 0),
        games_per_batch=_env_int("STERNHALMA_GAMES_PER_BATCH", 20, minimum=1),
        training_profile=profile,
        genome_cache_ttl_seconds=_env_float(
            "STERNHALMA_GENOME_CACHE_TTL_SECONDS", 300.0
        ),
        ai_workers=_env_int("STERNHALMA_AI_WORKERS", 1, minimum=1),
        debug_search=env_flag("STERNHALMA_DEBUG_SEARCH"),
    )
