"""
Services - Policy Analyzer

Summary and key points for a single policy. The model is asked first;
when every endpoint fails or the output cannot be read, a keyword and
formatting heuristic produces the analysis instead.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from policy_server.errors import ModelUnavailable
from policy_server.schemas import Policy, PolicyAnalysis
from policy_server.services.model_client import ModelClient

logger = logging.getLogger(__name__)


ANALYSIS_PROMPT = """You are PolicyBot, an assistant that analyzes company policies and procedures.

Tasks:
1. Provide a concise summary of the policy (3 sentences maximum).
2. Extract 3-5 key points that represent the most important aspects of the policy.

Respond with a single JSON object and nothing else:
{"summary": "<summary>", "keyPoints": ["<point>", "..."]}"""


class PolicyAnalyzer:
    """
    Model-backed policy analysis with a heuristic fallback.

    Heuristic:
    - Summary: first paragraph (over 10 chars), cut at 200 chars
    - Key points: paragraphs scored by obligation keywords, bullets,
      numbering and ALL-CAPS headers; top 5, cut at 120 chars
    """

    SUMMARY_CHARS = 200
    KEY_POINT_CHARS = 120
    MAX_KEY_POINTS = 5
    MAX_PROMPT_CHARS = 6000
    ANALYSIS_MAX_TOKENS = 500

    KEYWORDS = (
        "must", "required", "prohibited", "important", "never", "always",
        "policy", "procedure", "regulation", "rule", "law", "mandatory",
        "compliance", "consequences", "violation", "penalty", "fine", "legal",
        "deadline", "critical", "safety", "security", "privacy", "confidential",
        "liability", "responsible", "requirement", "obligated", "obligation",
    )

    def __init__(self, model_client: Optional[ModelClient] = None):
        self.model_client = model_client

    async def analyze(self, policy: Policy) -> PolicyAnalysis:
        """
        Analyze one policy.

        Args:
            policy: Policy from the corpus

        Returns:
            PolicyAnalysis with source "model" or "heuristic"
        """
        if self.model_client is not None and policy.content.strip():
            try:
                invocation = await self.model_client.complete_messages(
                    self._build_messages(policy),
                    max_tokens=self.ANALYSIS_MAX_TOKENS,
                )
            except ModelUnavailable:
                logger.warning(f"Model unavailable for analysis of policy {policy.id}")
            else:
                parsed = self._parse(invocation.output)
                if parsed is not None:
                    summary, key_points = parsed
                    return PolicyAnalysis(
                        policy_id=policy.id,
                        summary=summary,
                        key_points=key_points,
                        source="model",
                    )
                logger.info(f"Unreadable analysis for policy {policy.id}; using heuristic")

        summary, key_points = self.heuristic_analysis(policy.content)
        return PolicyAnalysis(
            policy_id=policy.id,
            summary=summary,
            key_points=key_points,
            source="heuristic",
        )

    def _build_messages(self, policy: Policy) -> List[Dict[str, str]]:
        content = policy.content.replace("\u0000", "")[:self.MAX_PROMPT_CHARS]
        return [
            {"role": "system", "content": ANALYSIS_PROMPT},
            {
                "role": "user",
                "content": f"POLICY #{policy.id} - {policy.title}:\n\"\"\"\n{content}\n\"\"\"",
            },
        ]

    def _parse(self, raw_output: Any) -> Optional[Tuple[str, List[str]]]:
        """Summary and key points from model output, or None."""
        if not isinstance(raw_output, str):
            return None
        match = re.search(r"\{[\s\S]*\}", raw_output)
        if not match:
            return None
        try:
            data = json.loads(match.group(0))
        except (ValueError, RecursionError):
            return None
        if not isinstance(data, dict):
            return None

        summary = data.get("summary")
        points = data.get("keyPoints", data.get("key_points"))
        if not isinstance(summary, str) or not summary.strip():
            return None
        if not isinstance(points, list):
            return None

        key_points = [" ".join(p.split()) for p in points if isinstance(p, str) and p.strip()]
        if not key_points:
            return None
        return " ".join(summary.split()), key_points[:self.MAX_KEY_POINTS]

    # ─────────────────────────────────────────────
    #  Heuristic Analysis
    # ─────────────────────────────────────────────

    def heuristic_analysis(self, content: str) -> Tuple[str, List[str]]:
        """Summary and key points without a model."""
        content = (content or "").replace("\u0000", "").strip()
        if not content:
            return (
                "No content provided for analysis.",
                ["Empty document detected", "Please provide content to analyze"],
            )

        paragraphs = [
            p.strip() for p in re.split(r"\n+", content) if len(p.strip()) > 10
        ]
        summary = self._truncate(paragraphs[0] if paragraphs else content, self.SUMMARY_CHARS)

        # Stable sort keeps document order among equal scores
        ranked = sorted(paragraphs, key=self._score_paragraph, reverse=True)
        key_points = [
            self._truncate(p, self.KEY_POINT_CHARS)
            for p in ranked[:self.MAX_KEY_POINTS]
        ]

        if not key_points:
            words = content.split()
            size = max(10, len(words) // 5)
            key_points = [
                " ".join(words[i:i + size])
                for i in range(0, min(len(words), size * self.MAX_KEY_POINTS), size)
            ]

        return summary, key_points

    def _score_paragraph(self, paragraph: str) -> int:
        lower = paragraph.lower()
        score = sum(1 for keyword in self.KEYWORDS if keyword in lower)

        if "•" in paragraph or "*" in paragraph or re.match(r"^\s*[\d#\-•]+\s+", paragraph):
            score += 3
        if re.match(r"^\s*\d+[.)]\s+", paragraph):
            score += 2
        if re.match(r"^[A-Z][A-Z\s]+:", paragraph):
            score += 2

        return score

    @staticmethod
    def _truncate(text: str, limit: int) -> str:
        return text if len(text) <= limit else text[:limit] + "..."
