"""
Tests for the Policy Analyzer
"""

from datetime import datetime, timezone

import httpx
import pytest

from policy_server.schemas import Policy
from policy_server.services import ModelClient, PolicyAnalyzer
from tests.conftest import ScriptedProvider, make_settings


CONTENT = """Travel Policy overview for all staff members.

Employees must book flights through the approved travel portal.

1. Receipts are required for every expense over $25.

* Personal upgrades are prohibited.

Hotels near the office are preferred when available."""


def _policy(content=CONTENT):
    return Policy(
        id=4,
        title="Travel Policy",
        content=content,
        category_id=1,
        updated_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _analyzer(reply):
    client = ModelClient(make_settings(), providers=[ScriptedProvider("p", reply)])
    return PolicyAnalyzer(client)


class TestPolicyAnalyzer:
    """Tests for model-backed analysis and its fallback."""

    @pytest.mark.asyncio
    async def test_model_analysis(self):
        analyzer = _analyzer(
            'Here you go: {"summary": "Book travel via the portal.", '
            '"keyPoints": ["Use the portal", "Keep receipts"]}'
        )

        analysis = await analyzer.analyze(_policy())

        assert analysis.source == "model"
        assert analysis.summary == "Book travel via the portal."
        assert analysis.key_points == ["Use the portal", "Keep receipts"]

    @pytest.mark.asyncio
    async def test_unparsable_output_uses_heuristic(self):
        analysis = await _analyzer("I cannot help with that.").analyze(_policy())

        assert analysis.source == "heuristic"

    @pytest.mark.asyncio
    async def test_model_unavailable_uses_heuristic(self):
        request = httpx.Request("POST", "http://model.test")
        analyzer = _analyzer(httpx.ConnectError("refused", request=request))

        analysis = await analyzer.analyze(_policy())

        assert analysis.source == "heuristic"
        assert analysis.summary == "Travel Policy overview for all staff members."


class TestHeuristicAnalysis:
    """Tests for keyword and formatting scoring."""

    def setup_method(self):
        self.analyzer = PolicyAnalyzer()

    def test_key_points_ranked_by_cues(self):
        summary, key_points = self.analyzer.heuristic_analysis(CONTENT)

        assert summary == "Travel Policy overview for all staff members."
        # bullet (+3) and prohibited (+1) outrank the rest
        assert key_points[0] == "* Personal upgrades are prohibited."
        assert key_points[1] == "1. Receipts are required for every expense over $25."
        assert len(key_points) <= 5

    def test_empty_content(self):
        summary, key_points = self.analyzer.heuristic_analysis("   ")

        assert summary == "No content provided for analysis."
        assert key_points == ["Empty document detected", "Please provide content to analyze"]

    def test_long_paragraphs_truncated(self):
        summary, key_points = self.analyzer.heuristic_analysis("must " * 100)

        assert len(summary) == 203
        assert summary.endswith("...")
        assert all(len(p) <= 123 for p in key_points)
