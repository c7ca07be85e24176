"""
Services - Candidate Selector

Lexical ranking of policies against a question. No index, no embeddings:
query terms are matched case-insensitively against each policy's title
and content tokens.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Set

from policy_server.config import get_settings
from policy_server.schemas import Policy


STOP_WORDS = {
    "the", "and", "for", "with", "that", "what", "when", "where", "why",
    "how", "are", "can", "does", "this", "from", "our", "your", "about",
    "which", "who", "there", "their", "have", "has", "was", "were", "will",
    "should", "would", "could", "into", "any", "all",
}

TITLE_TERM_BONUS = 0.5
EXACT_PHRASE_BONUS = 5.0

_TOKEN_RE = re.compile(r"\w+")


@dataclass(frozen=True)
class Candidate:
    """Policy provisionally relevant to a query. Never persisted."""
    policy_id: int
    title: str
    relevance_score: float
    excerpt: str
    updated_at: Optional[datetime] = None


def tokenize(text: str) -> List[str]:
    """Lower-cased word tokens."""
    return _TOKEN_RE.findall((text or "").lower())


def query_terms(query: str) -> List[str]:
    """Significant query terms, de-duplicated in order of appearance."""
    seen: Set[str] = set()
    terms = []
    for token in tokenize(query):
        if len(token) <= 2 or token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        terms.append(token)
    return terms


def clean_content(text: str) -> str:
    """Strip NUL bytes and collapse whitespace inside each paragraph."""
    text = (text or "").replace("\u0000", "")
    paragraphs = [
        " ".join(p.split())
        for p in re.split(r"\n\s*\n|\r?\n", text)
    ]
    return "\n".join(p for p in paragraphs if p)


class CandidateSelector:
    """Ranks policies by term overlap and returns the top K as candidates."""

    def __init__(self, settings=None):
        self.settings = settings or get_settings()
        self.max_candidates = self.settings.search.max_candidates
        self.excerpt_chars = self.settings.search.excerpt_chars

    def select(self, query: str, policies: Sequence[Policy]) -> List[Candidate]:
        """
        Rank policies against the query.

        Args:
            query: Free-text question
            policies: Corpus snapshot

        Returns:
            At most K candidates, best first. Empty when nothing overlaps.
        """
        terms = query_terms(query)
        if not terms:
            return []

        phrase = " ".join(tokenize(query))
        scored = []

        for policy in policies:
            content = clean_content(policy.content)
            if not content:
                continue

            score = self._score(terms, phrase, policy.title, content)
            if score <= 0:
                continue

            scored.append((score, policy, content))

        # Highest score, then most recently updated, then lowest id
        scored.sort(
            key=lambda item: (
                -item[0],
                -self._timestamp(item[1].updated_at),
                item[1].id,
            )
        )

        return [
            Candidate(
                policy_id=policy.id,
                title=policy.title,
                relevance_score=round(score, 4),
                excerpt=self._excerpt(terms, content),
                updated_at=policy.updated_at,
            )
            for score, policy, content in scored[:self.max_candidates]
        ]

    def _score(
        self,
        terms: List[str],
        phrase: str,
        title: str,
        content: str,
    ) -> float:
        """Content coverage + title bonus + exact phrase bonus (0 = no overlap)."""
        content_tokens = set(tokenize(content))
        title_tokens = set(tokenize(title))

        content_hits = sum(1 for t in terms if t in content_tokens)
        title_hits = sum(1 for t in terms if t in title_tokens)

        if content_hits == 0 and title_hits == 0:
            return 0.0

        score = content_hits / len(terms) + title_hits * TITLE_TERM_BONUS

        if phrase and phrase in " ".join(tokenize(content)):
            score += EXACT_PHRASE_BONUS

        return score

    def _excerpt(self, terms: List[str], content: str) -> str:
        """Content bounded to the excerpt budget, anchored on the best paragraph."""
        if len(content) <= self.excerpt_chars:
            return content

        best_offset = 0
        best_hits = 0
        offset = 0
        for paragraph in content.split("\n"):
            tokens = set(tokenize(paragraph))
            hits = sum(1 for t in terms if t in tokens)
            if hits > best_hits:
                best_hits = hits
                best_offset = offset
            offset += len(paragraph) + 1

        start = min(best_offset, max(0, len(content) - self.excerpt_chars))
        return content[start:start + self.excerpt_chars].strip()

    @staticmethod
    def _timestamp(value: Optional[datetime]) -> float:
        if value is None:
            return 0.0
        try:
            return value.timestamp()
        except (OverflowError, OSError, ValueError):
            return 0.0
