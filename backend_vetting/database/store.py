"""
VettingStore: persistence of the latest verdict per token plus bounded history.

The store has no staleness opinion; it stores and returns verdicts with their
timestamps. save() is atomic per token: the latest-row upsert, the history
insert and the history prune share one transaction, so concurrent saves leave
exactly one complete verdict (last writer wins).

SqlVettingStore works on SQLite (default) and PostgreSQL; MemoryVettingStore
serves tests and one-off CLI runs.
"""

from __future__ import annotations

import json
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from backend_vetting.config.env import mask_url
from backend_vetting.core.exceptions import NotFound
from backend_vetting.database.models import Base, VerdictHistoryRow, VettingRecordRow
from backend_vetting.vetting.models import Verdict
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 20


def _dump(verdict: Verdict) -> str:
    return json.dumps(verdict.to_dict(), sort_keys=True)


def _load(raw: str) -> Verdict:
    return Verdict.from_dict(json.loads(raw))


class VettingStore(ABC):
    """Abstract verdict store; implement for a SQL database or in memory."""

    @abstractmethod
    def get_latest(self, token_id: str) -> Verdict:
        """Return the latest verdict for token_id. Raises NotFound."""
        ...

    @abstractmethod
    def save(self, token_id: str, verdict: Verdict) -> None:
        """Replace the latest verdict and append it to the bounded history."""
        ...

    @abstractmethod
    def history(self, token_id: str, limit: int | None = None) -> list[Verdict]:
        """Saved verdicts for token_id, newest first."""
        ...

    @abstractmethod
    def list_tokens(self) -> list[tuple[str, float]]:
        """(token_id, computed_at of latest verdict), oldest verdict first."""
        ...

    @abstractmethod
    def delete(self, token_id: str) -> bool:
        """Administrative removal of a token's record and history. Returns True if it existed."""
        ...

    def close(self) -> None:
        pass


class SqlVettingStore(VettingStore):
    def __init__(self, url: str, *, history_limit: int = DEFAULT_HISTORY_LIMIT, echo: bool = False) -> None:
        if history_limit < 0:
            raise ValueError("history_limit must be >= 0")
        self.url = url
        self.history_limit = history_limit

        kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": echo}
        if url.startswith("sqlite"):
            # timeout: wait on the SQLite write lock instead of failing concurrent saves
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        self._engine = create_engine(url, **kwargs)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        Base.metadata.create_all(self._engine)
        logger.info("vetting_store_ready", url=mask_url(url), history_limit=history_limit)

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        """Commits on success, rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _upsert_latest(self, session: Session, values: dict[str, Any]) -> None:
        dialect = self._engine.dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = insert(VettingRecordRow).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[VettingRecordRow.token_id],
                set_={k: stmt.excluded[k] for k in values if k != "token_id"},
            )
            session.execute(stmt)
        else:
            session.merge(VettingRecordRow(**values))

    def save(self, token_id: str, verdict: Verdict) -> None:
        if not verdict.checks:
            raise ValueError("refusing to store a verdict without check results")
        payload = _dump(verdict)
        now = time.time()
        with self._session_scope() as session:
            self._upsert_latest(
                session,
                {
                    "token_id": token_id,
                    "score": verdict.score,
                    "status": verdict.status.value,
                    "confidence": verdict.confidence,
                    "computed_at": verdict.computed_at,
                    "verdict_json": payload,
                    "updated_at": now,
                },
            )
            if self.history_limit > 0:
                session.add(
                    VerdictHistoryRow(
                        token_id=token_id,
                        score=verdict.score,
                        status=verdict.status.value,
                        computed_at=verdict.computed_at,
                        verdict_json=payload,
                        created_at=now,
                    )
                )
                session.flush()
                self._prune_history(session, token_id)
        logger.debug("verdict_saved", token_id=token_id, status=verdict.status.value, score=verdict.score)

    def _prune_history(self, session: Session, token_id: str) -> None:
        keep_ids = list(
            session.execute(
                select(VerdictHistoryRow.id)
                .where(VerdictHistoryRow.token_id == token_id)
                .order_by(VerdictHistoryRow.id.desc())
                .limit(self.history_limit)
            ).scalars()
        )
        session.execute(
            delete(VerdictHistoryRow)
            .where(VerdictHistoryRow.token_id == token_id)
            .where(VerdictHistoryRow.id.not_in(keep_ids))
        )

    def get_latest(self, token_id: str) -> Verdict:
        with self._session_scope() as session:
            row = session.get(VettingRecordRow, token_id)
            if row is None:
                raise NotFound(f"no verdict stored for {token_id}", token_id=token_id)
            return _load(row.verdict_json)

    def history(self, token_id: str, limit: int | None = None) -> list[Verdict]:
        with self._session_scope() as session:
            q = (
                select(VerdictHistoryRow.verdict_json)
                .where(VerdictHistoryRow.token_id == token_id)
                .order_by(VerdictHistoryRow.id.desc())
            )
            if limit is not None:
                q = q.limit(max(0, limit))
            return [_load(raw) for raw in session.execute(q).scalars()]

    def list_tokens(self) -> list[tuple[str, float]]:
        with self._session_scope() as session:
            rows = session.execute(
                select(VettingRecordRow.token_id, VettingRecordRow.computed_at).order_by(
                    VettingRecordRow.computed_at.asc(), VettingRecordRow.token_id.asc()
                )
            ).all()
            return [(r.token_id, r.computed_at) for r in rows]

    def count(self) -> int:
        with self._session_scope() as session:
            return session.execute(select(func.count()).select_from(VettingRecordRow)).scalar_one()

    def delete(self, token_id: str) -> bool:
        with self._session_scope() as session:
            session.execute(delete(VerdictHistoryRow).where(VerdictHistoryRow.token_id == token_id))
            deleted = session.execute(delete(VettingRecordRow).where(VettingRecordRow.token_id == token_id)).rowcount
        logger.info("vetting_record_deleted", token_id=token_id, existed=bool(deleted))
        return bool(deleted)

    def close(self) -> None:
        self._engine.dispose()


class MemoryVettingStore(VettingStore):
    """Process-local store; same semantics as SqlVettingStore."""

    def __init__(self, *, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if history_limit < 0:
            raise ValueError("history_limit must be >= 0")
        self.history_limit = history_limit
        self._lock = threading.Lock()
        self._latest: dict[str, Verdict] = {}
        self._history: dict[str, list[Verdict]] = {}

    def get_latest(self, token_id: str) -> Verdict:
        with self._lock:
            verdict = self._latest.get(token_id)
        if verdict is None:
            raise NotFound(f"no verdict stored for {token_id}", token_id=token_id)
        return verdict

    def save(self, token_id: str, verdict: Verdict) -> None:
        if not verdict.checks:
            raise ValueError("refusing to store a verdict without check results")
        with self._lock:
            self._latest[token_id] = verdict
            if self.history_limit > 0:
                trail = self._history.setdefault(token_id, [])
                trail.append(verdict)
                del trail[: -self.history_limit]

    def history(self, token_id: str, limit: int | None = None) -> list[Verdict]:
        with self._lock:
            trail = list(reversed(self._history.get(token_id, [])))
        return trail if limit is None else trail[: max(0, limit)]

    def list_tokens(self) -> list[tuple[str, float]]:
        with self._lock:
            items = [(t, v.computed_at) for t, v in self._latest.items()]
        return sorted(items, key=lambda item: (item[1], item[0]))

    def delete(self, token_id: str) -> bool:
        with self._lock:
            self._history.pop(token_id, None)
            return self._latest.pop(token_id, None) is not None


def get_store(url: str | None = None, *, history_limit: int = DEFAULT_HISTORY_LIMIT) -> VettingStore:
    """
    Return a store for url. "memory://" gives a MemoryVettingStore; anything
    else is treated as an SQLAlchemy database URL.
    """
    if url is None:
        from backend_vetting.config import get_settings

        settings = get_settings()
        url = settings.database_url
        history_limit = settings.history_limit
    if url == "memory://":
        return MemoryVettingStore(history_limit=history_limit)
    return SqlVettingStore(url, history_limit=history_limit)
