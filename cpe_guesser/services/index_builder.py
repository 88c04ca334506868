"""
Keyword Index Builder
cpe_guesser/services/index_builder.py

Consumes a stream of full CPE 2.3 identifiers and writes the inverted index
and the rank table in fixed-size transactional batches. Flushes are
synchronous, so the parser never runs ahead of the store.
"""

from collections import Counter
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Iterable, List, Set, Tuple
import logging
import time

from cpe_guesser.core.exceptions import ImportModeError
from cpe_guesser.services.canonicalizer import extract_entry
from cpe_guesser.services.index_store import IndexStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5000


class ImportMode(str, Enum):
    FRESH = "fresh"        # store must be empty
    REPLACE = "replace"    # flush, then rebuild
    UPDATE = "update"      # merge into existing state


def resolve_import_mode(replace: bool = False, update: bool = False) -> ImportMode:
    if replace and update:
        raise ImportModeError("--replace and --update are mutually exclusive")
    if replace:
        return ImportMode.REPLACE
    if update:
        return ImportMode.UPDATE
    return ImportMode.FRESH


@dataclass
class ImportStats:
    items: int = 0
    words: int = 0
    degraded: int = 0
    batches: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class _Batch:
    postings: Set[Tuple[str, str]] = field(default_factory=set)
    ranks: Counter = field(default_factory=Counter)
    token_scores: Counter = field(default_factory=Counter)
    records: int = 0


class IndexBuilder:
    """Turns dictionary records into batched index writes"""

    def __init__(self, store: IndexStore, batch_size: int = DEFAULT_BATCH_SIZE,
                 legacy_token_scores: bool = False):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.batch_size = batch_size
        self.legacy_token_scores = legacy_token_scores
        self.stats = ImportStats()
        self._batch = _Batch()
        self._started = time.monotonic()

    def add(self, full_identifier: str) -> None:
        """Index one dictionary record, flushing when the batch is full"""
        extracted = extract_entry(full_identifier)
        if extracted.degraded:
            self.stats.degraded += 1
            logger.debug(f"Skipping malformed CPE identifier: {full_identifier!r}")
            return

        batch = self._batch
        tokens: List[str] = extracted.tokens
        for token in tokens:
            batch.postings.add((token, extracted.entry))
            if self.legacy_token_scores:
                batch.token_scores[(token, extracted.entry)] += 1
        self.stats.words += len(tokens)

        batch.ranks[extracted.entry] += 1
        batch.records += 1
        self.stats.items += 1

        if batch.records >= self.batch_size:
            self.flush()
            logger.info(
                f"... {self.stats.items} items ({self.stats.words} words) "
                f"in {time.monotonic() - self._started:.1f}s"
            )

    def flush(self) -> None:
        """Write the pending batch. A failure propagates; there is no retry."""
        batch = self._batch
        if not batch.records:
            return
        self.store.apply_batch(
            batch.postings,
            batch.ranks,
            batch.token_scores if self.legacy_token_scores else None,
        )
        self.stats.batches += 1
        self._batch = _Batch()

    def build(self, identifiers: Iterable[str]) -> ImportStats:
        """Index every identifier of the stream and flush the final partial batch"""
        self._started = time.monotonic()
        for full_identifier in identifiers:
            self.add(full_identifier)
        self.flush()
        self.stats.elapsed_seconds = round(time.monotonic() - self._started, 3)

        if self.stats.degraded:
            logger.warning(f"{self.stats.degraded} malformed CPE identifiers were skipped")
        return self.stats
