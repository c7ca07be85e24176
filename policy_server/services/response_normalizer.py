"""
Services - Response Normalizer

Turns raw model output into a canonical AnswerResult. The output is
untrusted: every field is read and validated individually, and nothing
here raises on malformed input.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from policy_server.errors import MalformedModelOutput
from policy_server.schemas import AnswerResult
from policy_server.services.candidate_selector import Candidate

logger = logging.getLogger(__name__)


GENERIC_ANSWER = "Sorry, I could not extract an answer from the policies for that question."
NO_MATCH_ANSWER = "No policy directly addresses '{query}'. Try a different search query."
DEFAULT_CONFIDENCE = 0.5
MAX_ANSWER_CHARS = 2000

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_WORD_RE = re.compile(r"[A-Za-z]{2,}")


@dataclass(frozen=True)
class StructuredOutput:
    """Model output that parsed into an object with a usable answer."""
    fields: Dict[str, Any]


@dataclass(frozen=True)
class FallbackOutput:
    """Model output that could not be parsed; kept as raw text."""
    raw_text: str


ParsedOutput = Union[StructuredOutput, FallbackOutput]


class ResponseNormalizer:
    """Normalizes untrusted model output into an AnswerResult."""

    def normalize(
        self,
        raw_output: Any,
        candidates: Sequence[Candidate],
    ) -> AnswerResult:
        """
        Build the canonical result for one model response.

        Args:
            raw_output: Text returned by the model client
            candidates: Candidates that were sent to the model

        Returns:
            AnswerResult; degraded (confidence 0) when the output is unusable
        """
        parsed = self.parse(raw_output)

        if isinstance(parsed, FallbackOutput):
            return self._from_fallback(parsed)

        fields = parsed.fields
        by_id = {c.policy_id: c for c in candidates}

        policy_id = self._read_policy_id(fields)
        matched = by_id.get(policy_id) if policy_id is not None else None
        if policy_id is not None and matched is None:
            logger.warning(
                f"Dropping policy reference {policy_id!r} absent from candidates"
            )

        return AnswerResult(
            answer=self._read_answer(fields),
            policy_id=matched.policy_id if matched else None,
            policy_title=matched.title if matched else None,
            confidence=self._read_confidence(fields),
        )

    def no_match(self, query: str) -> AnswerResult:
        """Degraded result for a query that matched no policy."""
        snippet = " ".join(query.split())[:200]
        return AnswerResult(answer=NO_MATCH_ANSWER.format(query=snippet), confidence=0.0)

    # ─────────────────────────────────────────────
    #  Parsing
    # ─────────────────────────────────────────────

    def parse(self, raw_output: Any) -> ParsedOutput:
        """Tag the raw output as structured or fallback."""
        text = raw_output if isinstance(raw_output, str) else ""
        try:
            return StructuredOutput(fields=self._parse_structured(text))
        except MalformedModelOutput as e:
            logger.info(f"Model output not structured: {e}")
            return FallbackOutput(raw_text=text)

    def _parse_structured(self, text: str) -> Dict[str, Any]:
        """
        Find a JSON object with a non-blank string answer.

        Tries, in order: the whole text, a fenced ```json block, the
        outermost {...} span.

        Raises:
            MalformedModelOutput: no usable object found
        """
        stripped = text.strip()
        if not stripped:
            raise MalformedModelOutput("empty output")

        attempts = [stripped]
        fenced = _FENCE_RE.search(stripped)
        if fenced:
            attempts.append(fenced.group(1).strip())
        braced = _OBJECT_RE.search(stripped)
        if braced:
            attempts.append(braced.group(0))

        for candidate in attempts:
            try:
                value = json.loads(candidate)
            except (ValueError, RecursionError):
                continue
            if not isinstance(value, dict):
                continue
            answer = value.get("answer")
            if isinstance(answer, str) and answer.strip():
                return value
            raise MalformedModelOutput("object has no usable answer field")

        raise MalformedModelOutput("no JSON object found")

    # ─────────────────────────────────────────────
    #  Field Validation
    # ─────────────────────────────────────────────

    def _read_answer(self, fields: Dict[str, Any]) -> str:
        answer = " ".join(str(fields.get("answer", "")).split())
        return answer[:MAX_ANSWER_CHARS] or GENERIC_ANSWER

    def _read_policy_id(self, fields: Dict[str, Any]) -> Optional[int]:
        value = next(
            (fields[key] for key in ("policyId", "policy_id") if fields.get(key) is not None),
            None,
        )

        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        if isinstance(value, str):
            text = value.strip().lstrip("#")
            if text.isdigit():
                return int(text)
        return None

    def _read_confidence(self, fields: Dict[str, Any]) -> float:
        if "confidence" not in fields:
            return DEFAULT_CONFIDENCE

        value = fields["confidence"]
        if isinstance(value, bool):
            return 0.0
        if isinstance(value, int):
            return clamp_confidence(1.0 if value >= 1 else 0.0)
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return 0.0
        if not isinstance(value, (int, float)):
            return 0.0
        if math.isnan(value):
            return 0.0

        return clamp_confidence(float(value))

    def _from_fallback(self, parsed: FallbackOutput) -> AnswerResult:
        """Plain prose becomes the answer; anything else gets the generic text."""
        text = " ".join(parsed.raw_text.split())
        if self._looks_like_prose(text):
            return AnswerResult(answer=text[:MAX_ANSWER_CHARS], confidence=0.0)
        return AnswerResult(answer=GENERIC_ANSWER, confidence=0.0)

    @staticmethod
    def _looks_like_prose(text: str) -> bool:
        if not text or text[0] in "{[" or "```" in text:
            return False
        if "{" in text and "}" not in text:
            # Truncated JSON
            return False
        words: List[str] = _WORD_RE.findall(text)
        if len(words) < 2:
            return False
        readable = sum(1 for ch in text if ch.isalnum() or ch.isspace() or ch in ".,;:'\"!?()-%/")
        return readable / len(text) >= 0.8


def clamp_confidence(value: float) -> float:
    """Clamp to [0.0, 1.0]."""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))
