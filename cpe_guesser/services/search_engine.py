"""
CPE Search Engine
cpe_guesser/services/search_engine.py

Two-tier keyword search over the inverted index:

* exact: every keyword's token must index the entry (intersection)
* partial: any indexed token containing any keyword (union), used only
  when the exact tier finds nothing

Results are ranked by popularity (see ranking.rank_entries). Store failures
propagate as StoreError and are never reported as an empty result.
"""

from typing import List, Optional, Sequence
import logging

from cpe_guesser.services.canonicalizer import query_token
from cpe_guesser.services.index_store import IndexStore
from cpe_guesser.services.ranking import RankedEntry, rank_entries

logger = logging.getLogger(__name__)


class CPESearchEngine:
    """Answers keyword queries against the persisted index"""

    def __init__(self, store: IndexStore):
        self.store = store

    def exact_search(self, keywords: Sequence[str]) -> List[RankedEntry]:
        """Entries matched by every non-blank keyword"""
        keywords = [keyword for keyword in keywords if keyword and keyword.strip()]
        if not keywords:
            return []

        tokens = [query_token(keyword) for keyword in keywords]
        if any(token is None for token in tokens):
            # A keyword without a token can never be satisfied
            return []

        return rank_entries(self.store.exact_matches(tokens))

    def partial_search(self, keywords: Sequence[str]) -> List[RankedEntry]:
        """Entries indexed under a token containing any of the keywords"""
        fragments = [keyword.strip().lower() for keyword in keywords if keyword and keyword.strip()]
        if not fragments:
            return []

        return rank_entries(self.store.partial_matches(fragments))

    def search(self, keywords: Sequence[str]) -> List[RankedEntry]:
        """Exact search, falling back to partial search when it finds nothing"""
        results = self.exact_search(keywords)
        if results:
            logger.debug(f"Exact match for {list(keywords)}: {len(results)} entries")
            return results

        results = self.partial_search(keywords)
        logger.debug(f"Partial match for {list(keywords)}: {len(results)} entries")
        return results

    def unique(self, keywords: Sequence[str]) -> Optional[str]:
        """Best entry for the keywords, or None when nothing matches"""
        results = self.search(keywords)
        return results[0].entry if results else None
