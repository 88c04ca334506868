"""
Services Package
cpe_guesser/services/__init__.py

Keyword indexing and ranked search over the CPE dictionary.
"""

from .canonicalizer import canonicalize, extract_entry, ExtractedEntry
from .index_builder import IndexBuilder, ImportMode, ImportStats, resolve_import_mode
from .index_store import IndexStore
from .ranking import RankedEntry, rank_entries
from .search_engine import CPESearchEngine

__all__ = [
    "canonicalize",
    "extract_entry",
    "ExtractedEntry",
    "IndexBuilder",
    "ImportMode",
    "ImportStats",
    "resolve_import_mode",
    "IndexStore",
    "RankedEntry",
    "rank_entries",
    "CPESearchEngine",
]
