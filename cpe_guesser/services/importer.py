"""
Import pipeline
cpe_guesser/services/importer.py

End-to-end import: check the store, fetch the dictionary if needed, then
stream it through the IndexBuilder. Runs to completion in one worker; any
error stops the run and leaves the store as of the last flushed batch.
"""

from datetime import datetime
import logging
import os
import socket

from cpe_guesser.core.config import get_cpe_path
from cpe_guesser.core.context import AppContext
from cpe_guesser.core.exceptions import IndexNotEmptyError
from cpe_guesser.services.dictionary_source import download_dictionary, iter_cpe23_names
from cpe_guesser.services.index_builder import (
    ImportMode,
    ImportStats,
    IndexBuilder,
    resolve_import_mode,
)

logger = logging.getLogger(__name__)


def _lock_holder() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


def run_import(context: AppContext, download: bool = False, replace: bool = False,
               update: bool = False, break_lock: bool = False) -> ImportStats:
    """
    Build or refresh the keyword index from the configured CPE dictionary.

    Args:
        context: Settings and store handle
        download: Fetch the dictionary even if a local copy exists
        replace: Flush existing index state before rebuilding
        update: Merge into existing index state
        break_lock: Remove a stale import lock before starting

    Raises:
        ImportModeError: replace and update both requested
        StoreError: Store unreachable or a batch write failed
        IndexNotEmptyError: Store is populated and neither replace nor update was requested
        ImportLockedError: Another import holds the lock
        DictionaryError: Download or parse failure
    """
    mode = resolve_import_mode(replace=replace, update=update)

    store = context.store
    store.ping()
    store.create_schema()

    if break_lock:
        store.break_import_lock()

    holder = _lock_holder()
    store.acquire_import_lock(holder)
    try:
        stats = _import_locked(context, mode, download)
    finally:
        store.release_import_lock(holder)

    logger.info(
        f"Done! {stats.items} items, {stats.words} words in {stats.elapsed_seconds:.1f}s. "
        f"Index rows: {store.count_index_rows()}"
    )
    return stats


def _import_locked(context: AppContext, mode: ImportMode, download: bool) -> ImportStats:
    """Body of run_import; the caller holds the import lock"""
    settings = context.settings
    store = context.store

    # Checked under the lock so an import that finished meanwhile is seen
    row_count = store.count_index_rows()
    if row_count > 0 and mode == ImportMode.FRESH:
        raise IndexNotEmptyError(row_count)

    started_at = datetime.now()
    builder = IndexBuilder(
        store,
        batch_size=settings.IMPORT_BATCH_SIZE,
        legacy_token_scores=settings.INDEX_LEGACY_TOKEN_SCORES,
    )

    try:
        cpe_path = get_cpe_path(settings)
        if download or not os.path.exists(cpe_path):
            download_dictionary(settings.CPE_SOURCE, cpe_path, timeout=settings.HTTP_TIMEOUT_SECONDS)
        else:
            logger.info(f"Using existing file {cpe_path}")

        if row_count > 0 and mode == ImportMode.REPLACE:
            logger.info(f"Flushing {row_count} index rows...")
            store.clear_index()

        logger.info(f"Populating the index in {mode.value} mode (this may take a while)...")
        stats = builder.build(iter_cpe23_names(cpe_path))
    except Exception as e:
        logger.error(f"Import failed after {builder.stats.items} items: {e}")
        _record_run(context, mode, builder.stats, started_at, status="failed", error=str(e))
        raise

    _record_run(context, mode, stats, started_at, status="completed")
    return stats


def _record_run(context: AppContext, mode: ImportMode, stats: ImportStats,
                started_at: datetime, status: str, error: str = None) -> None:
    try:
        context.store.record_import_run(
            mode=mode.value,
            status=status,
            items=stats.items,
            words=stats.words,
            degraded=stats.degraded,
            error=error[:1000] if error else None,
            started_at=started_at,
            finished_at=datetime.now(),
        )
    except Exception as e:
        # Bookkeeping must not hide the import outcome
        logger.warning(f"Could not record import run: {e}")
