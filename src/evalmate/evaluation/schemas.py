"""Strict Pydantic schemas for model-produced evaluations."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SCORE_MIN = 1
SCORE_MAX = 10


class StrictModel(BaseModel):
    """No type coercion; unknown keys emitted by the model are dropped."""

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("must be a number, not a boolean")
    return value


class ExpertRecommendations(StrictModel):
    immediate: list[str] = Field(default_factory=list)
    future: list[str] = Field(default_factory=list)


class LearningPath(StrictModel):
    next_skills: list[str] = Field(default_factory=list, alias="nextSkills")
    resources: list[str] = Field(default_factory=list)


class PremiumInsights(StrictModel):
    architecture: str
    performance: str
    security: str
    code_quality: int | float = Field(alias="codeQuality")
    industry_average: int | float = Field(alias="industryAverage")
    top_performers: int | float = Field(alias="topPerformers")
    expert_recommendations: ExpertRecommendations = Field(
        default_factory=ExpertRecommendations, alias="expertRecommendations"
    )
    learning_path: LearningPath = Field(default_factory=LearningPath, alias="learningPath")
    corrected_code: str = Field(alias="correctedCode")

    @field_validator("code_quality", "industry_average", "top_performers", mode="before")
    @classmethod
    def _percent_is_number(cls, value: Any) -> Any:
        return _reject_bool(value)

    @field_validator("code_quality", "industry_average", "top_performers")
    @classmethod
    def _clamp_percent(cls, value: int | float) -> int | float:
        return max(0, min(100, value))


class Evaluation(StrictModel):
    score: int | float
    strengths: list[str]
    improvements: list[str]
    feedback: str
    suggestions: list[str]
    premium_insights: PremiumInsights | None = Field(default=None, alias="premiumInsights")

    @field_validator("score", mode="before")
    @classmethod
    def _score_is_number(cls, value: Any) -> Any:
        return _reject_bool(value)

    @field_validator("score")
    @classmethod
    def _clamp_score(cls, value: int | float) -> int | float:
        return max(SCORE_MIN, min(SCORE_MAX, value))

    def to_record(self) -> dict[str, Any]:
        """Stored/served shape: frontend keys, ``premiumInsights`` omitted when absent."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
