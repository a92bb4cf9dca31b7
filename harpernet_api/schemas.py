from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_ANSWERS = 500


class AnswerSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question_id: Union[str, int]
    answer: Any = None
    correct: Optional[bool] = None


class QuizResultSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    quiz_id: str = Field(..., min_length=1, max_length=100)
    quiz_title: Optional[str] = Field(None, max_length=255)
    result_type: Optional[str] = Field(None, min_length=1, max_length=100)
    score: int = Field(..., ge=0)
    max_score: int = Field(..., ge=1)
    answers: List[AnswerSubmission] = Field(default_factory=list, max_length=MAX_ANSWERS)
    time_taken_seconds: Optional[int] = Field(None, ge=0, le=86400)
    session_id: Optional[str] = Field(None, max_length=100)
    referrer: Optional[str] = Field(None, max_length=500)

    @field_validator("quiz_id")
    @classmethod
    def quiz_id_is_slug(cls, value: str) -> str:
        if not all(ch.isalnum() or ch in "-_." for ch in value):
            raise ValueError("may only contain letters, digits, '-', '_' and '.'")
        return value

    @model_validator(mode="after")
    def score_within_max(self) -> "QuizResultSubmission":
        if self.score > self.max_score:
            raise ValueError("score must not exceed max_score")
        return self

    @property
    def percentage(self) -> float:
        return round(self.score / self.max_score * 100, 2)


class ClientInfo(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
