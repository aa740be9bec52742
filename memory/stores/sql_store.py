"""SQLite snapshot table access through SQLAlchemy."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from memory.schemas import Base, SnapshotRecord


class SQLStore:
    """Append-only snapshot rows keyed by genesis id."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite+pysqlite:///{self.db_path}", future=True)
        self._sessions = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Commit on success, roll back on any error."""
        sess = self._sessions()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()

    def append(
        self,
        genesis_id: str,
        version: int,
        cycle_count: int,
        saved_at: datetime,
        payload: dict[str, Any],
    ) -> int:
        record = SnapshotRecord(
            genesis_id=genesis_id,
            version=version,
            cycle_count=cycle_count,
            saved_at=saved_at,
            payload=payload,
        )
        with self.session() as sess:
            sess.add(record)
            sess.flush()
            return record.id

    def latest_payload(self, genesis_id: str) -> dict[str, Any] | None:
        stmt = (
            select(SnapshotRecord.payload)
            .where(SnapshotRecord.genesis_id == genesis_id)
            .order_by(SnapshotRecord.id.desc())
            .limit(1)
        )
        with self.session() as sess:
            payload = sess.scalars(stmt).first()
        return dict(payload) if payload is not None else None

    def recent(self, genesis_id: str, limit: int) -> list[SnapshotRecord]:
        """Newest rows first; payloads are loaded but callers usually ignore them."""
        stmt = (
            select(SnapshotRecord)
            .where(SnapshotRecord.genesis_id == genesis_id)
            .order_by(SnapshotRecord.id.desc())
            .limit(limit)
        )
        with self.session() as sess:
            return list(sess.scalars(stmt).all())
