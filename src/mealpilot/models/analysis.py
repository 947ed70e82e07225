"""Order history analysis output."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CalorieSample(BaseModel):
    date: str
    calories: float = Field(default=0, ge=0)


class CuisineShare(BaseModel):
    name: str
    value: float = Field(default=0, ge=0)


class AnalysisResult(BaseModel):
    """Diet analysis produced by the LLM for recent orders."""

    summary: str = ""
    score: float = Field(default=0, ge=0, le=100)
    suggestions: list[str] = Field(default_factory=list)
    calorie_trend: list[CalorieSample] = Field(default_factory=list, alias="calorieTrend")
    cuisine_distribution: list[CuisineShare] = Field(
        default_factory=list, alias="cuisineDistribution"
    )
    model_name: Optional[str] = Field(default=None, alias="modelName")

    model_config = ConfigDict(frozen=True, populate_by_name=True)
