"""
Database engine and session factory
cpe_guesser/core/database.py
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_store_engine(url: str, pool_size: int = 20, timeout: int = 5, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine backing the index.

    ``timeout`` is applied at connection level: the SQLite busy timeout, or
    the PostgreSQL connect and statement timeouts.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise every checkout sees an empty database
            return create_engine(url, connect_args=connect_args, poolclass=StaticPool, echo=echo)
        return create_engine(url, connect_args=connect_args, echo=echo)

    connect_args = {}
    if url.startswith("postgresql"):
        connect_args = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }

    return create_engine(
        url,
        connect_args=connect_args,
        pool_size=pool_size,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
