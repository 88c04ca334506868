"""
CPE Search API Endpoints
cpe_guesser/api/search.py

StoreError raised here is turned into a 500 response by the application's
exception handler, so a failed lookup is never reported as "no match".
"""

from fastapi import APIRouter, Depends, Request
import logging

from cpe_guesser.services.search_engine import CPESearchEngine
from cpe_guesser.utils.validators import SearchRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def get_search_engine(request: Request) -> CPESearchEngine:
    return CPESearchEngine(request.app.state.context.store)


@router.post("/search")
def search(request: SearchRequest, engine: CPESearchEngine = Depends(get_search_engine)):
    """
    Ranked CPE entries for the keywords, as ``[score, entry]`` pairs.

    Exact (all keywords) matches are returned when there are any, otherwise
    partial (substring, any keyword) matches. An empty list means no match.
    """
    results = engine.search(request.query)
    return [[result.score, result.entry] for result in results]


@router.post("/unique")
def unique(request: SearchRequest, engine: CPESearchEngine = Depends(get_search_engine)):
    """Best CPE entry for the keywords, or ``[]`` when nothing matches"""
    entry = engine.unique(request.query)
    return entry if entry is not None else []
