"""
Schemas - Policy Models

Pydantic models for policy records and policy analysis.
"""

from pydantic import BaseModel, Field
from typing import List, Literal, Optional
from datetime import datetime


class Policy(BaseModel):
    """Policy record as exposed by the corpus."""
    id: int
    title: str
    content: str
    category_id: int
    updated_at: datetime
    description: Optional[str] = None
    policy_ref: Optional[str] = None


class PolicyAnalysis(BaseModel):
    """Summary and key points for one policy."""
    policy_id: int = Field(alias="policyId")
    summary: str
    key_points: List[str] = Field(alias="keyPoints")
    source: Literal["model", "heuristic"]

    model_config = {"populate_by_name": True}
