"""
Services - Model Client

Sends the policy prompt to the primary model endpoint and walks the ordered
fallback list on failure. Each endpoint gets exactly one attempt, bounded by
its own timeout; the invocation fails only when every endpoint has failed.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import httpx

from policy_server.config import get_settings
from policy_server.errors import ModelUnavailable
from policy_server.llm import BaseLLMProvider, get_provider
from policy_server.services.candidate_selector import Candidate

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are PolicyBot, an assistant that answers questions using a company's policies.

Rules:
1. Read each policy below and find the one that best answers the question.
2. Answer ONLY from the policy text. Quote it where possible.
3. Report the numeric policy id of the policy that contains the answer.
4. Rate your confidence from 0.0 to 1.0.
5. If no policy answers the question, say so, use null for policyId and 0 for confidence.

Respond with a single JSON object and nothing else:
{"answer": "<answer text>", "policyId": <policy id or null>, "confidence": <0.0-1.0>}"""


FAILURE_TIMEOUT = "timeout"
FAILURE_HTTP_STATUS = "http_status"
FAILURE_CONNECTION = "connection"
FAILURE_INVALID_RESPONSE = "invalid_response"


@dataclass
class EndpointFailure:
    """One failed endpoint attempt."""
    endpoint: str
    failure_class: str
    detail: str


@dataclass
class ModelInvocation:
    """Raw output plus the trace of how it was obtained."""
    output: str
    endpoint: str
    candidates_sent: List[Candidate] = field(default_factory=list)
    failures: List[EndpointFailure] = field(default_factory=list)


def classify_failure(error: BaseException) -> str:
    """Map an endpoint error to its failure class."""
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return FAILURE_TIMEOUT
    if isinstance(error, httpx.HTTPStatusError):
        return FAILURE_HTTP_STATUS
    if isinstance(error, httpx.TransportError):
        return FAILURE_CONNECTION
    return FAILURE_INVALID_RESPONSE


def _describe(error: BaseException) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return str(error) or error.__class__.__name__


class ModelClient:
    """Ordered-fallback client over the configured model endpoints."""

    def __init__(
        self,
        settings=None,
        providers: Optional[List[BaseLLMProvider]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        if providers is None:
            providers = [
                get_provider(endpoint, transport=transport)
                for endpoint in self.settings.llm.endpoints()
            ]
        if not providers:
            raise ValueError("At least one model endpoint must be configured")

        self.providers = providers
        self.max_tokens = self.settings.llm.max_tokens
        self.temperature = self.settings.llm.temperature
        self.context_budget = self.settings.search.context_budget_chars
        self._semaphore = asyncio.Semaphore(self.settings.llm.max_concurrent_calls)

    # ─────────────────────────────────────────────
    #  Prompt Construction
    # ─────────────────────────────────────────────

    def fit_to_budget(self, candidates: List[Candidate]) -> List[Candidate]:
        """
        Bound the summed excerpt size to the context budget.

        Lowest-ranked candidates are dropped first. A single remaining
        candidate that is still over budget has its excerpt truncated.
        """
        kept = list(candidates)
        while len(kept) > 1 and sum(len(c.excerpt) for c in kept) > self.context_budget:
            kept.pop()

        if kept and len(kept[0].excerpt) > self.context_budget:
            kept[0] = replace(kept[0], excerpt=kept[0].excerpt[:self.context_budget])

        return kept

    def build_messages(
        self,
        query: str,
        candidates: List[Candidate],
    ) -> List[Dict[str, str]]:
        """Chat messages for the policy question."""
        context = "".join(
            f"POLICY #{c.policy_id} - {c.title}:\n{c.excerpt}\n\n"
            for c in candidates
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Policies:\n\n{context}QUESTION: {query}",
            },
        ]

    # ─────────────────────────────────────────────
    #  Invocation
    # ─────────────────────────────────────────────

    async def invoke(self, query: str, candidates: List[Candidate]) -> str:
        """Raw model output for the question, or ModelUnavailable."""
        invocation = await self.invoke_with_trace(query, candidates)
        return invocation.output

    async def invoke_with_trace(
        self,
        query: str,
        candidates: List[Candidate],
    ) -> ModelInvocation:
        """Like invoke(), also reporting the endpoint used and the candidates sent."""
        sent = self.fit_to_budget(candidates)
        if len(sent) < len(candidates):
            logger.info(
                f"Context budget kept {len(sent)} of {len(candidates)} candidates"
            )

        invocation = await self.complete_messages(self.build_messages(query, sent))
        invocation.candidates_sent = sent
        return invocation

    async def complete_messages(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
    ) -> ModelInvocation:
        """
        Run the messages through the endpoint chain.

        Args:
            messages: Chat messages
            max_tokens: Override for the configured generation limit

        Returns:
            ModelInvocation from the first endpoint that succeeds

        Raises:
            ModelUnavailable: every endpoint failed
        """
        failures: List[EndpointFailure] = []

        async with self._semaphore:
            for provider in self.providers:
                name = provider.endpoint.name
                try:
                    output = await asyncio.wait_for(
                        provider.chat(
                            messages,
                            max_tokens=max_tokens or self.max_tokens,
                            temperature=self.temperature,
                        ),
                        timeout=provider.timeout,
                    )
                except Exception as e:
                    failure = EndpointFailure(
                        endpoint=name,
                        failure_class=classify_failure(e),
                        detail=_describe(e),
                    )
                    failures.append(failure)
                    logger.warning(
                        f"Model endpoint {name} failed "
                        f"({failure.failure_class}): {failure.detail}"
                    )
                    continue

                if failures:
                    logger.info(
                        f"Fallback endpoint {name} answered after "
                        f"{len(failures)} failure(s)"
                    )
                else:
                    logger.info(f"Model endpoint {name} answered")

                return ModelInvocation(output=output, endpoint=name, failures=failures)

        logger.error(f"All {len(self.providers)} model endpoints failed")
        raise ModelUnavailable(
            f"All {len(self.providers)} model endpoints failed", failures=failures
        )
