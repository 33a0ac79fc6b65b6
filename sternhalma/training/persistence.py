"""Storage for the trainer's two records: progress and best genome.

Each record is read and replaced atomically as a whole; nothing here keeps
a log. :class:`JsonFileTrainingStore` writes through a temp file and
``os.replace`` so a crash mid-write leaves the previous record intact.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from ..errors import StorageError
from ..models import BestGenomeRecord, TrainingState, dump

logger = logging.getLogger(__name__)

TRAINING_STATE_FILE = "training_state.json"
BEST_GENOME_FILE = "best_genome.json"


@runtime_checkable
class TrainingStore(Protocol):
    """Persistence collaborator for the training scheduler."""

    def load_training_state(self) -> TrainingState | None:
        ...

    def save_training_state(self, state: TrainingState) -> None:
        ...

    def load_best_genome(self) -> BestGenomeRecord | None:
        ...

    def save_best_genome(self, record: BestGenomeRecord) -> None:
        ...


class InMemoryTrainingStore:
    """Process-local store; records are deep-copied in and out."""

    def __init__(
        self,
        state: TrainingState | None = None,
        best: BestGenomeRecord | None = None,
    ) -> None:
        self._state = state.model_copy(deep=True) if state is not None else None
        self._best = best.model_copy(deep=True) if best is not None else None
        self.saves = 0

    def load_training_state(self) -> TrainingState | None:
        return self._state.model_copy(deep=True) if self._state is not None else None

    def save_training_state(self, state: TrainingState) -> None:
        self._state = state.model_copy(deep=True)
        self.saves += 1

    def load_best_genome(self) -> BestGenomeRecord | None:
        return self._best.model_copy(deep=True) if self._best is not None else None

    def save_best_genome(self, record: BestGenomeRecord) -> None:
        self._best = record.model_copy(deep=True)


def _write_json_atomic(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + f".tmp_{int(time.time() * 1e6)}")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    os.replace(tmp, path)


class JsonFileTrainingStore:
    """Both records as JSON files under one directory."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)
        self.state_path = self.directory / TRAINING_STATE_FILE
        self.best_path = self.directory / BEST_GENOME_FILE

    def _read(self, path: Path) -> dict | None:
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable record {path}: {e}")
            return None
        if not isinstance(payload, dict):
            logger.warning(f"Ignoring record {path}: expected a JSON object")
            return None
        return payload

    def _write(self, path: Path, payload: dict) -> None:
        try:
            _write_json_atomic(path, payload)
        except OSError as e:
            raise StorageError(
                "Failed to write training record", context={"path": str(path)}
            ) from e

    def load_training_state(self) -> TrainingState | None:
        payload = self._read(self.state_path)
        if payload is None:
            return None
        try:
            return TrainingState.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                f"Ignoring invalid training state {self.state_path}: "
                f"{e.error_count()} validation error(s)"
            )
            return None

    def save_training_state(self, state: TrainingState) -> None:
        self._write(self.state_path, dump(state))

    def load_best_genome(self) -> BestGenomeRecord | None:
        payload = self._read(self.best_path)
        if payload is None:
            return None
        try:
            return BestGenomeRecord.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                f"Ignoring invalid best genome {self.best_path}: "
                f"{e.error_count()} validation error(s)"
            )
            return None

    def save_best_genome(self, record: BestGenomeRecord) -> None:
        self._write(self.best_path, dump(record))
