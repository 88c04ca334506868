"""
Keyword index store
cpe_guesser/services/index_store.py

All reads and writes of the persisted index go through IndexStore. Search
reads run inside a request-scoped session; the intersection or union is
built as a subquery of that session and disappears with it, whatever the
exit path. Every SQLAlchemy failure surfaces as StoreError.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, Iterator, Mapping, Optional, Set, Tuple
import logging

from sqlalchemy import select, func, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cpe_guesser.core.database import Base, create_session_factory
from cpe_guesser.core.exceptions import ImportLockedError, StoreError
from cpe_guesser.models.index import (
    TokenEntry,
    EntryRank,
    TokenScore,
    ImportLock,
    ImportRun,
    INDEX_TABLES,
)

logger = logging.getLogger(__name__)

IMPORT_LOCK_NAME = "import"
LIKE_ESCAPE = "\\"


def escape_like(fragment: str) -> str:
    """Escape LIKE wildcards so ``fragment`` matches literally"""
    return (
        fragment.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class IndexStore:
    """SQLAlchemy-backed inverted index and rank table"""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = create_session_factory(engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session committed on success, rolled back on error, always closed"""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Store command failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()

    # Schema and liveness

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create index tables: {e}") from e

    def ping(self) -> None:
        """Lightweight liveness probe; raises StoreError when the store is unreachable"""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to connect to store: {e}") from e

    def count_index_rows(self) -> int:
        """Total rows across the index tables; 0 means a fresh store"""
        with self.session_scope() as session:
            return sum(
                session.execute(select(func.count()).select_from(table)).scalar_one()
                for table in INDEX_TABLES
            )

    def clear_index(self) -> None:
        """Destroy all index and rank state in a single transaction"""
        try:
            with self.engine.begin() as conn:
                for table in INDEX_TABLES:
                    conn.execute(table.delete())
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to flush index: {e}") from e

    # Writes

    def _dialect_insert(self):
        dialect = self.engine.dialect.name
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        elif dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            raise StoreError(f"Unsupported database dialect for index writes: {dialect}")
        return insert

    def apply_batch(
        self,
        postings: Iterable[Tuple[str, str]],
        rank_deltas: Mapping[str, int],
        token_score_deltas: Optional[Mapping[Tuple[str, str], int]] = None,
    ) -> None:
        """
        Write one import batch in a single transaction.

        Postings are set members: existing (token, entry) pairs are left alone.
        Rank and token score deltas are added to existing values.
        """
        insert = self._dialect_insert()
        posting_rows = [{"token": token, "entry": entry} for token, entry in postings]
        rank_rows = [{"entry": entry, "score": float(delta)} for entry, delta in rank_deltas.items()]
        score_rows = [
            {"token": token, "entry": entry, "score": float(delta)}
            for (token, entry), delta in (token_score_deltas or {}).items()
        ]

        try:
            with self.engine.begin() as conn:
                if posting_rows:
                    stmt = insert(TokenEntry.__table__).on_conflict_do_nothing(
                        index_elements=["token", "entry"]
                    )
                    conn.execute(stmt, posting_rows)

                if rank_rows:
                    stmt = insert(EntryRank.__table__)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["entry"],
                        set_={"score": EntryRank.__table__.c.score + stmt.excluded.score},
                    )
                    conn.execute(stmt, rank_rows)

                if score_rows:
                    stmt = insert(TokenScore.__table__)
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["token", "entry"],
                        set_={"score": TokenScore.__table__.c.score + stmt.excluded.score},
                    )
                    conn.execute(stmt, score_rows)
        except SQLAlchemyError as e:
            raise StoreError(f"Batch write failed: {e}") from e

    # Reads

    def _with_ranks(self, session: Session, matched) -> Dict[str, float]:
        stmt = select(matched.c.entry, func.coalesce(EntryRank.score, 0.0)).outerjoin(
            EntryRank, EntryRank.entry == matched.c.entry
        )
        return {entry: float(score) for entry, score in session.execute(stmt)}

    def exact_matches(self, tokens: Iterable[str]) -> Dict[str, float]:
        """Entries indexed under every one of ``tokens``, with their rank"""
        distinct_tokens = sorted(set(tokens))
        if not distinct_tokens:
            return {}

        if len(distinct_tokens) == 1:
            matched = (
                select(TokenEntry.entry)
                .where(TokenEntry.token == distinct_tokens[0])
                .subquery()
            )
        else:
            matched = (
                select(TokenEntry.entry)
                .where(TokenEntry.token.in_(distinct_tokens))
                .group_by(TokenEntry.entry)
                .having(func.count(TokenEntry.token) == len(distinct_tokens))
                .subquery()
            )

        with self.session_scope() as session:
            return self._with_ranks(session, matched)

    def partial_matches(self, fragments: Iterable[str]) -> Dict[str, float]:
        """Entries indexed under any token containing any of ``fragments``"""
        conditions = [
            TokenEntry.token.like(f"%{escape_like(fragment)}%", escape=LIKE_ESCAPE)
            for fragment in sorted(set(fragments))
            if fragment
        ]
        if not conditions:
            return {}

        matched = select(TokenEntry.entry).where(or_(*conditions)).distinct().subquery()

        with self.session_scope() as session:
            return self._with_ranks(session, matched)

    def get_rank(self, entry: str) -> float:
        with self.session_scope() as session:
            score = session.execute(
                select(EntryRank.score).where(EntryRank.entry == entry)
            ).scalar_one_or_none()
            return float(score) if score is not None else 0.0

    def get_token_entries(self, token: str) -> Set[str]:
        with self.session_scope() as session:
            return set(
                session.execute(
                    select(TokenEntry.entry).where(TokenEntry.token == token)
                ).scalars()
            )

    def get_token_scores(self, token: str) -> Dict[str, float]:
        with self.session_scope() as session:
            rows = session.execute(
                select(TokenScore.entry, TokenScore.score).where(TokenScore.token == token)
            )
            return {entry: float(score) for entry, score in rows}

    # Import run bookkeeping

    def acquire_import_lock(self, holder: str) -> None:
        """Take the run-level import lock or raise ImportLockedError"""
        session = self._session_factory()
        try:
            session.add(ImportLock(name=IMPORT_LOCK_NAME, holder=holder, acquired_at=datetime.now()))
            session.commit()
            logger.debug(f"Import lock acquired by {holder}")
        except IntegrityError:
            try:
                session.rollback()
                current = session.get(ImportLock, IMPORT_LOCK_NAME)
            except SQLAlchemyError as e:
                raise StoreError(f"Failed to read import lock: {e}") from e
            if current is None:
                raise StoreError("Import lock conflict but no lock row found")
            raise ImportLockedError(current.holder, current.acquired_at)
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Failed to acquire import lock: {e}") from e
        finally:
            session.close()

    def release_import_lock(self, holder: str) -> None:
        with self.session_scope() as session:
            session.query(ImportLock).filter(
                ImportLock.name == IMPORT_LOCK_NAME,
                ImportLock.holder == holder,
            ).delete()
        logger.debug(f"Import lock released by {holder}")

    def break_import_lock(self) -> int:
        """Remove a stale lock left by a run that died; returns rows removed"""
        with self.session_scope() as session:
            removed = session.query(ImportLock).delete()
        if removed:
            logger.warning("Removed stale import lock")
        return removed

    def record_import_run(self, **fields) -> None:
        with self.session_scope() as session:
            session.add(ImportRun(**fields))

    def latest_import_run(self) -> Optional[dict]:
        with self.session_scope() as session:
            run = session.execute(
                select(ImportRun).order_by(ImportRun.id.desc()).limit(1)
            ).scalar_one_or_none()
            return run.to_dict() if run else None

    def get_stats(self) -> dict:
        with self.session_scope() as session:
            entries = session.execute(select(func.count()).select_from(EntryRank)).scalar_one()
            postings = session.execute(select(func.count()).select_from(TokenEntry)).scalar_one()
            tokens = session.execute(
                select(func.count(func.distinct(TokenEntry.token)))
            ).scalar_one()

        return {
            "entries": entries,
            "tokens": tokens,
            "postings": postings,
            "last_import": self.latest_import_run(),
        }
