"""User planning preferences."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

PlanningMode = Literal["balanced", "health", "preference"]
AIProvider = Literal["gemini", "custom"]


class UserPreferences(BaseModel):
    """Immutable per-user configuration handed to a planning session."""

    username: Optional[str] = None
    proxy_url: Optional[str] = None
    session_id: Optional[str] = None
    use_mock_data: bool = False
    excluded_keywords: list[str] = Field(default_factory=list)
    vendor_weights: dict[str, float] = Field(default_factory=dict)
    planning_mode: PlanningMode = "balanced"
    default_address_id: Optional[str] = None
    enable_breakfast: bool = False
    enable_weekends: bool = False

    ai_provider: AIProvider = "gemini"
    gemini_api_key: Optional[str] = None
    custom_ai_base_url: Optional[str] = None
    custom_ai_api_key: Optional[str] = None
    custom_ai_model: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def coerce_keywords(cls, data):
        """Accept comma separated exclusion keywords."""
        if isinstance(data, dict) and isinstance(data.get("excluded_keywords"), str):
            data = dict(data)
            data["excluded_keywords"] = [
                entry.strip() for entry in data["excluded_keywords"].split(",") if entry.strip()
            ]
        return data

    def ai_config_complete(self) -> bool:
        """Return True when the selected provider has its mandatory fields."""

        if self.ai_provider == "custom":
            return bool(self.custom_ai_base_url and self.custom_ai_api_key)
        return bool(self.gemini_api_key)

    def secrets(self) -> list[str]:
        return [
            value
            for value in (
                self.session_id,
                self.gemini_api_key,
                self.custom_ai_api_key,
            )
            if value
        ]
