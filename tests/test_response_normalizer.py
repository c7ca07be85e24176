"""
Tests for the Response Normalizer
"""

import pytest

from policy_server.services.candidate_selector import Candidate
from policy_server.services.response_normalizer import (
    DEFAULT_CONFIDENCE,
    GENERIC_ANSWER,
    FallbackOutput,
    ResponseNormalizer,
    StructuredOutput,
)


CANDIDATES = [
    Candidate(policy_id=7, title="Remote Work Policy", relevance_score=1.8, excerpt="..."),
    Candidate(policy_id=3, title="Expense Reimbursement", relevance_score=0.5, excerpt="..."),
]


class TestStructuredOutput:
    """Tests for well-formed and near-well-formed model output."""

    def setup_method(self):
        self.normalizer = ResponseNormalizer()

    def test_plain_json(self):
        result = self.normalizer.normalize(
            '{"answer": "Up to 3 days per week.", "policyId": 7, "confidence": 0.92}',
            CANDIDATES,
        )

        assert result.to_payload() == {
            "answer": "Up to 3 days per week.",
            "policyId": 7,
            "policyTitle": "Remote Work Policy",
            "confidence": 0.92,
        }

    def test_json_wrapped_in_prose_and_fence(self):
        raw = 'Sure! Here it is:\n```json\n{"answer": "Receipts required.", "policyId": "3"}\n```'

        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.answer == "Receipts required."
        assert result.policy_id == 3
        assert result.policy_title == "Expense Reimbursement"

    def test_title_comes_from_candidate_not_model(self):
        raw = '{"answer": "Yes.", "policyId": 7, "policyTitle": "Made Up Title", "confidence": 1}'

        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.policy_title == "Remote Work Policy"

    def test_unknown_policy_id_is_dropped(self):
        """A reference outside the candidate set never survives."""
        raw = '{"answer": "See policy 99.", "policyId": 99, "confidence": 0.8}'

        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.policy_id is None
        assert result.policy_title is None
        assert result.answer == "See policy 99."
        assert result.confidence == 0.8

    def test_missing_confidence_defaults(self):
        result = self.normalizer.normalize('{"answer": "Yes."}', CANDIDATES)

        assert result.confidence == DEFAULT_CONFIDENCE

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1.7", 1.0),
            ("-0.3", 0.0),
            ("2", 1.0),
            ("0", 0.0),
            ('"0.75"', 0.75),
            ("true", 0.0),
            ('"high"', 0.0),
            ("null", 0.0),
            ("NaN", 0.0),
            ("1e400", 1.0),
        ],
    )
    def test_confidence_is_clamped(self, value, expected):
        raw = f'{{"answer": "Yes.", "confidence": {value}}}'

        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.confidence == expected

    def test_null_policy_id_does_not_hide_snake_case_key(self):
        raw = '{"answer": "Receipts required.", "policyId": null, "policy_id": 3}'

        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.policy_id == 3
        assert result.policy_title == "Expense Reimbursement"

    def test_boolean_policy_id_rejected(self):
        result = self.normalizer.normalize('{"answer": "Yes.", "policyId": true}', CANDIDATES)

        assert result.policy_id is None


class TestFallbackOutput:
    """Tests for output that does not parse into an answer object."""

    def setup_method(self):
        self.normalizer = ResponseNormalizer()

    def test_parse_tags_variants(self):
        assert isinstance(self.normalizer.parse('{"answer": "x"}'), StructuredOutput)
        assert isinstance(self.normalizer.parse("no json here"), FallbackOutput)

    def test_prose_becomes_answer_with_zero_confidence(self):
        raw = "Employees can work from home up to three days each week."

        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.answer == raw
        assert result.confidence == 0.0
        assert result.policy_id is None

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            '{"answer": "Up to 3 da',
            "{}",
            '{"answer": ""}',
            "[1, 2, 3]",
            "@@##$$%%^^&&**",
            None,
            12345,
        ],
    )
    def test_garbage_gets_generic_answer(self, raw):
        """Nothing unusable raises; everything degrades to confidence 0."""
        result = self.normalizer.normalize(raw, CANDIDATES)

        assert result.answer == GENERIC_ANSWER
        assert result.confidence == 0.0
        assert result.policy_id is None

    def test_no_match_result(self):
        result = self.normalizer.no_match("parking   permits")

        assert "parking permits" in result.answer
        assert result.confidence == 0.0
        assert result.policy_id is None
