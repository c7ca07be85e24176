"""
Services - Search Orchestrator

Runs one question through the pipeline: candidate selection, model
invocation with fallback, normalization, then persistence. Nothing is
persisted unless a result exists.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional

from policy_server.config import get_settings
from policy_server.errors import CorpusUnavailable, InvalidQuery
from policy_server.schemas import AnswerResult, Query, SearchRecord
from policy_server.services.candidate_selector import CandidateSelector
from policy_server.services.model_client import ModelClient
from policy_server.services.response_normalizer import ResponseNormalizer
from policy_server.storage.base import ActivityLog, PolicyCorpus, SearchRepository

logger = logging.getLogger(__name__)


Channel = Literal["web", "extension"]


class SearchState(str, Enum):
    """Lifecycle of a single search call."""
    RECEIVED = "received"
    SELECTING = "selecting"
    INVOKING = "invoking"
    NORMALIZING = "normalizing"
    PERSISTED = "persisted"
    FAILED = "failed"


class SearchService:
    """
    Query-to-answer pipeline shared by the web and extension surfaces.

    Both callers arrive here with an already-resolved user id; the channel
    only affects logging and the activity details.
    """

    def __init__(
        self,
        corpus: PolicyCorpus,
        searches: SearchRepository,
        activities: ActivityLog,
        model_client: Optional[ModelClient] = None,
        settings=None,
    ):
        self.settings = settings or get_settings()
        self.corpus = corpus
        self.searches = searches
        self.activities = activities
        self.selector = CandidateSelector(self.settings)
        self.model_client = model_client or ModelClient(self.settings)
        self.normalizer = ResponseNormalizer()

    async def search(
        self,
        query_text: str,
        user_id: int,
        channel: Channel = "web",
    ) -> AnswerResult:
        """
        Answer a question from the policy corpus.

        Args:
            query_text: Free-text question
            user_id: Resolved caller
            channel: "web" or "extension"

        Returns:
            AnswerResult (possibly degraded with confidence 0)

        Raises:
            InvalidQuery: blank question
            CorpusUnavailable: policies could not be listed
            ModelUnavailable: every model endpoint failed
        """
        if not isinstance(query_text, str) or not query_text.strip():
            raise InvalidQuery("blank query")

        query = Query(
            id=uuid.uuid4().hex,
            text=query_text.strip(),
            issuer_user_id=user_id,
            issued_at=datetime.now(timezone.utc),
        )
        self._transition(query, SearchState.RECEIVED, channel)

        try:
            result = await self._answer(query, channel)
        except Exception as e:
            self._transition(query, SearchState.FAILED, f"{e.__class__.__name__}")
            raise

        self.searches.record_search(query, result)
        self.activities.record_activity(
            user_id=user_id,
            action="searched",
            resource_type="policy",
            resource_id=result.policy_id,
            details=f"Searched for: {query.text[:200]}"
            + (" (via extension)" if channel == "extension" else ""),
        )
        self._transition(query, SearchState.PERSISTED)

        logger.info(
            f"Search {query.id} for user {user_id} via {channel}: "
            f"policy={result.policy_id} confidence={result.confidence:.2f}"
        )
        return result

    async def _answer(self, query: Query, channel: str) -> AnswerResult:
        self._transition(query, SearchState.SELECTING)
        try:
            policies = self.corpus.list_policies()
        except Exception as e:
            logger.error(f"Policy corpus unavailable: {e}")
            raise CorpusUnavailable(str(e)) from e

        candidates = self.selector.select(query.text, policies)
        if not candidates:
            logger.info(f"Search {query.id}: no candidate policies")
            return self.normalizer.no_match(query.text)

        self._transition(query, SearchState.INVOKING, f"{len(candidates)} candidates")
        invocation = await self.model_client.invoke_with_trace(query.text, candidates)

        self._transition(query, SearchState.NORMALIZING, invocation.endpoint)
        # Only candidates that reached the prompt may be referenced
        return self.normalizer.normalize(invocation.output, invocation.candidates_sent)

    def history(self, user_id: int, limit: Optional[int] = None) -> List[SearchRecord]:
        """The user's search records, newest first."""
        limit = limit or self.settings.search.history_limit
        return self.searches.list_searches(user_id, limit=limit)

    @staticmethod
    def _transition(query: Query, state: SearchState, note: str = "") -> None:
        suffix = f" ({note})" if note else ""
        logger.debug(f"Search {query.id} -> {state.value}{suffix}")
