"""
Index Models - cpe_guesser/models/index.py

Persisted layout of the keyword index. All tables share the ``cpe_guess_``
prefix so the index can live in a database used for other things.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float
from sqlalchemy.sql import func
from cpe_guesser.core.database import Base

TABLE_PREFIX = "cpe_guess_"


class TokenEntry(Base):
    """Inverted index: one row per (token, entry) pair"""
    __tablename__ = f"{TABLE_PREFIX}token_entries"

    token = Column(String(255), primary_key=True)
    entry = Column(String(512), primary_key=True, index=True)


class EntryRank(Base):
    """Popularity of an entry: number of dictionary records collapsed into it"""
    __tablename__ = f"{TABLE_PREFIX}entry_ranks"

    entry = Column(String(512), primary_key=True)
    score = Column(Float, nullable=False, default=0.0)


class TokenScore(Base):
    """Legacy per-token score, only written when INDEX_LEGACY_TOKEN_SCORES is on"""
    __tablename__ = f"{TABLE_PREFIX}token_scores"

    token = Column(String(255), primary_key=True)
    entry = Column(String(512), primary_key=True)
    score = Column(Float, nullable=False, default=0.0)


class ImportLock(Base):
    __tablename__ = f"{TABLE_PREFIX}import_lock"

    name = Column(String(50), primary_key=True)
    holder = Column(String(255), nullable=False)
    acquired_at = Column(DateTime, server_default=func.now())


class ImportRun(Base):
    """Audit row for every import run"""
    __tablename__ = f"{TABLE_PREFIX}import_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mode = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)  # completed, failed
    items = Column(Integer, default=0)
    words = Column(Integer, default=0)
    degraded = Column(Integer, default=0)
    error = Column(String(1000), nullable=True)
    started_at = Column(DateTime, nullable=False)
    finished_at = Column(DateTime, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "mode": self.mode,
            "status": self.status,
            "items": self.items,
            "words": self.words,
            "degraded": self.degraded,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


# Tables holding index data; import_lock and import_runs are bookkeeping
INDEX_TABLES = (TokenEntry.__table__, EntryRank.__table__, TokenScore.__table__)
