"""
Process-wide application context
cpe_guesser/core/context.py

Holds the resolved settings and the store handle. Built once at process start
(CLI command or FastAPI lifespan) and passed into the components that need it.
"""

from dataclasses import dataclass
import logging

from cpe_guesser.core.config import Settings, get_database_config
from cpe_guesser.core.database import create_store_engine
from cpe_guesser.services.index_store import IndexStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    store: IndexStore

    def close(self) -> None:
        self.store.dispose()


def create_context(settings: Settings) -> AppContext:
    """Build the store handle for the configured database. No connection is opened yet."""
    db_config = get_database_config(settings)
    engine = create_store_engine(
        db_config['url'],
        pool_size=db_config['pool_size'],
        timeout=db_config['timeout'],
        echo=db_config['echo'],
    )
    store = IndexStore(engine)
    logger.info(f"Store connection: {engine.url.render_as_string(hide_password=True)}")
    return AppContext(settings=settings, store=store)
