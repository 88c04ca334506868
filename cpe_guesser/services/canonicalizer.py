"""
CPE name canonicalization
cpe_guesser/services/canonicalizer.py

Turns vendor/product names into index tokens and collapses full CPE 2.3
identifiers onto their ``cpe:2.3:part:vendor:product`` entry.
"""

from dataclasses import dataclass, field
from typing import List, Optional

TOKEN_SEPARATOR = "_"
ENTRY_FIELD_COUNT = 5
VENDOR_FIELD = 3
PRODUCT_FIELD = 4


@dataclass
class ExtractedEntry:
    """A dictionary record reduced to its entry and index tokens"""
    entry: str
    vendor_tokens: List[str] = field(default_factory=list)
    product_tokens: List[str] = field(default_factory=list)
    degraded: bool = False

    @property
    def tokens(self) -> List[str]:
        """Vendor tokens followed by product tokens, duplicates kept"""
        return self.vendor_tokens + self.product_tokens


def canonicalize(raw: str) -> List[str]:
    """
    Lowercase ``raw`` and split it on underscores.

    Tokens keep their split order. Empty fragments are dropped, so empty input
    gives an empty list and the result is stable when canonicalized again.
    Hyphens and dots are not separators: ``http_server`` gives two tokens,
    ``mod-ssl`` gives one.
    """
    if not raw:
        return []
    return [token for token in raw.lower().split(TOKEN_SEPARATOR) if token]


def extract_entry(full_identifier: str) -> ExtractedEntry:
    """
    Split a full CPE 2.3 identifier into vendor tokens, product tokens and entry.

    Identifiers with fewer than five colon-separated fields are not rejected:
    they come back ``degraded`` with the raw string as entry and no tokens,
    so callers can skip them without aborting an import.
    """
    parts = full_identifier.split(":")
    if len(parts) < ENTRY_FIELD_COUNT:
        return ExtractedEntry(entry=full_identifier, degraded=True)

    return ExtractedEntry(
        entry=":".join(parts[:ENTRY_FIELD_COUNT]),
        vendor_tokens=canonicalize(parts[VENDOR_FIELD]),
        product_tokens=canonicalize(parts[PRODUCT_FIELD]),
    )


def query_token(keyword: str) -> Optional[str]:
    """Index token looked up for a search keyword: its first canonical token"""
    tokens = canonicalize(keyword.strip()) if keyword else []
    return tokens[0] if tokens else None
