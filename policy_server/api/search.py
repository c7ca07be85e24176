"""
API - Search Routes

Web and extension search share one orchestrator; they differ only in how
the caller is resolved.
"""

import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends

from policy_server.api.deps import (
    ServiceContainer,
    api_key_user,
    get_container,
    session_user,
)
from policy_server.schemas import SearchHistoryItem, SearchRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])


@router.post("/search")
async def search(
    body: Optional[SearchRequest] = None,
    user_id: int = Depends(session_user),
    container: ServiceContainer = Depends(get_container),
):
    """
    Answer a question from the policies.

    Returns:
        {answer, policyId?, policyTitle?, confidence}
    """
    query = body.query if body else ""
    result = await container.search.search(query, user_id, channel="web")
    return result.to_payload()


@router.get("/searches", response_model=List[SearchHistoryItem])
async def search_history(
    user_id: int = Depends(session_user),
    container: ServiceContainer = Depends(get_container),
):
    """The caller's searches, newest first."""
    return [
        SearchHistoryItem(
            id=record.id,
            query=record.query.text,
            result=json.loads(record.result),
            timestamp=record.timestamp,
        )
        for record in container.search.history(user_id)
    ]


@router.post("/extension/search")
async def extension_search(
    body: Optional[SearchRequest] = None,
    user_id: int = Depends(api_key_user),
    container: ServiceContainer = Depends(get_container),
):
    """Same pipeline as /api/search, authenticated by API key."""
    query = body.query if body else ""
    result = await container.search.search(query, user_id, channel="extension")
    return result.to_payload()
