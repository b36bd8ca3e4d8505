from typing import Optional

from pydantic import BaseModel, Field


class Candidate(BaseModel):
    product_id: str
    product_name: str
    score: float
    reason: str


class NameSuggestions(BaseModel):
    raw_name: str
    candidates: list[Candidate]


class AutoMatchRequest(BaseModel):
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0)


class AutoMatchOut(BaseModel):
    product_id: str
    score: float
    reason: str


class AutoMatchResult(BaseModel):
    report_id: str
    threshold: float
    mapped: dict[str, AutoMatchOut]
    remaining: list[str]                 # names still without a mapping
    triggered: bool                      # a processing run was started
