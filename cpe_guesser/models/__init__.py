"""
Models Package
cpe_guesser/models/__init__.py
"""

from .index import TokenEntry, EntryRank, TokenScore, ImportLock, ImportRun, INDEX_TABLES

__all__ = [
    "TokenEntry",
    "EntryRank",
    "TokenScore",
    "ImportLock",
    "ImportRun",
    "INDEX_TABLES",
]
