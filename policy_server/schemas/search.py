"""
Schemas - Search Models

Pydantic models for search queries, answers and persisted search records.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


class SearchRequest(BaseModel):
    """Search request body (web and extension)."""
    query: str = Field(default="", max_length=2000)

    @field_validator("query", mode="before")
    @classmethod
    def _coerce_query(cls, value):
        # Non-string queries are treated as blank and rejected downstream
        return value if isinstance(value, str) else ""


class Query(BaseModel):
    """A submitted question. Immutable once created."""
    id: str
    text: str
    issuer_user_id: int
    issued_at: datetime

    model_config = {"frozen": True}


class AnswerResult(BaseModel):
    """Canonical answer produced once per query."""
    answer: str
    policy_id: Optional[int] = Field(None, alias="policyId")
    policy_title: Optional[str] = Field(None, alias="policyTitle")
    confidence: float = Field(ge=0.0, le=1.0)

    model_config = {"frozen": True, "populate_by_name": True}

    def to_payload(self) -> dict:
        """Wire shape: {answer, policyId?, policyTitle?, confidence}."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SearchRecord(BaseModel):
    """Append-only record of a query and its serialized result."""
    id: int
    query: Query
    result: str
    timestamp: datetime

    model_config = {"frozen": True}

    def answer(self) -> AnswerResult:
        return AnswerResult.model_validate_json(self.result)


class SearchHistoryItem(BaseModel):
    """Search history entry returned to the web client."""
    id: int
    query: str
    result: dict
    timestamp: datetime
