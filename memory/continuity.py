"""Continuity stores: durable snapshots of the full cognitive state.

The engine only needs ``save(snapshot)`` and ``load() -> snapshot | None``.
Two backends are provided:

* ``JsonFileContinuityStore`` writes one JSON document, atomically, via a
  temporary file in the same directory followed by ``os.replace``.
* ``SQLContinuityStore`` appends each snapshot as a row in SQLite and loads
  the newest one, keeping a history of prior states.

Writes are retried with exponential backoff. After the last attempt a
``PersistenceWriteError`` is raised and the previous snapshot remains
authoritative.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, TypeVar

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from core.errors import PersistenceReadError, PersistenceWriteError
from memory.stores.sql_store import SQLStore
from memory.types import AbstractTruth, Emotion, Hypothesis, PhenomenologicalFrame, SelfConcept

logger = logging.getLogger("mw.continuity")

SNAPSHOT_VERSION = 3

T = TypeVar("T")


class ContinuitySnapshot(BaseModel):
    """Serialized image of a mind's state."""

    version: int = SNAPSHOT_VERSION
    saved_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    frames: list[PhenomenologicalFrame] = Field(default_factory=list)
    truths: list[AbstractTruth] = Field(default_factory=list)
    hypotheses: list[Hypothesis] = Field(default_factory=list)
    self_concept: SelfConcept
    emotions: dict[Emotion, float] = Field(default_factory=dict)
    cycle_count: int = 0


class ContinuityStore(Protocol):
    def save(self, snapshot: ContinuitySnapshot) -> None: ...

    def load(self) -> ContinuitySnapshot | None: ...


def with_retries(
    operation: Callable[[], T],
    attempts: int,
    base_wait_seconds: float,
    retry_on: tuple[type[BaseException], ...],
    label: str,
) -> T:
    """Run ``operation`` up to ``attempts`` times with exponential backoff."""
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt == attempts:
                raise
            wait = base_wait_seconds * (2 ** (attempt - 1))
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs",
                label,
                attempt,
                attempts,
                exc,
                wait,
            )
            time.sleep(wait)
    raise AssertionError("unreachable")


class JsonFileContinuityStore:
    """Snapshot persisted as a single JSON file."""

    def __init__(self, path: Path, write_retries: int = 3, retry_base_seconds: float = 0.1) -> None:
        self.path = path
        self.write_retries = write_retries
        self.retry_base_seconds = retry_base_seconds

    def _write_atomic(self, data: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(temp_path, self.path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    def save(self, snapshot: ContinuitySnapshot) -> None:
        data = snapshot.model_dump_json(indent=2)
        try:
            with_retries(
                lambda: self._write_atomic(data),
                attempts=self.write_retries,
                base_wait_seconds=self.retry_base_seconds,
                retry_on=(OSError,),
                label=f"Snapshot write to {self.path}",
            )
        except OSError as exc:
            raise PersistenceWriteError(f"Could not write snapshot to {self.path}: {exc}") from exc
        logger.info("State persisted to %s", self.path)

    def load(self) -> ContinuitySnapshot | None:
        if not self.path.exists():
            logger.info("No existing state file at %s; starting fresh", self.path)
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
            return ContinuitySnapshot.model_validate_json(raw)
        except (OSError, ValidationError, ValueError) as exc:
            raise PersistenceReadError(f"Could not read snapshot {self.path}: {exc}") from exc


class SQLContinuityStore:
    """Snapshot history kept in a SQLite table, newest row wins."""

    def __init__(
        self,
        sql_store: SQLStore,
        genesis_id: str,
        write_retries: int = 3,
        retry_base_seconds: float = 0.1,
    ) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()
        self.genesis_id = genesis_id
        self.write_retries = write_retries
        self.retry_base_seconds = retry_base_seconds

    def _insert(self, snapshot: ContinuitySnapshot) -> None:
        self.sql_store.append(
            genesis_id=self.genesis_id,
            version=snapshot.version,
            cycle_count=snapshot.cycle_count,
            saved_at=snapshot.saved_at,
            payload=json.loads(snapshot.model_dump_json()),
        )

    def save(self, snapshot: ContinuitySnapshot) -> None:
        try:
            with_retries(
                lambda: self._insert(snapshot),
                attempts=self.write_retries,
                base_wait_seconds=self.retry_base_seconds,
                retry_on=(SQLAlchemyError,),
                label=f"Snapshot insert into {self.sql_store.db_path}",
            )
        except SQLAlchemyError as exc:
            raise PersistenceWriteError(f"Could not store snapshot: {exc}") from exc
        logger.info("State persisted to %s (cycle %d)", self.sql_store.db_path, snapshot.cycle_count)

    def load(self) -> ContinuitySnapshot | None:
        try:
            payload = self.sql_store.latest_payload(self.genesis_id)
        except SQLAlchemyError as exc:
            raise PersistenceReadError(f"Could not query snapshots: {exc}") from exc
        if payload is None:
            logger.info("No stored snapshot for %s; starting fresh", self.genesis_id)
            return None
        try:
            return ContinuitySnapshot.model_validate(payload)
        except ValidationError as exc:
            raise PersistenceReadError(f"Stored snapshot is invalid: {exc}") from exc

    def history(self, limit: int = 20) -> list[dict[str, object]]:
        """Summaries of the most recent snapshots."""
        return [
            {
                "id": row.id,
                "version": row.version,
                "cycle_count": row.cycle_count,
                "saved_at": row.saved_at.isoformat(),
            }
            for row in self.sql_store.recent(self.genesis_id, limit)
        ]
