"""
Result ordering
cpe_guesser/services/ranking.py
"""

from typing import List, Mapping, NamedTuple


class RankedEntry(NamedTuple):
    """One search result, serialized as ``[score, entry]``"""
    score: float
    entry: str


def rank_entries(scores: Mapping[str, float]) -> List[RankedEntry]:
    """
    Order entries by popularity score, highest first.

    Equal scores fall back to the entry string in ascending order so the
    output is reproducible.
    """
    ranked = [RankedEntry(float(score or 0.0), entry) for entry, score in scores.items()]
    ranked.sort(key=lambda item: (-item.score, item.entry))
    return ranked
