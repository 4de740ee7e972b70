from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PreferencesModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_districts: List[str] = Field(default_factory=list)
    max_commute_minutes: Optional[float] = None
    university: Optional[str] = None
    preferred_bedrooms: Optional[int] = None
    must_have_furnished: bool = False
    preferred_amenities: List[str] = Field(default_factory=list)


class RankContextModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    user_id: Optional[str] = None
    experiment_id: Optional[str] = None
    variant_id: Optional[str] = None
    log_top_n: Optional[int] = Field(default=None, ge=0)


class RankRequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: str
    apartment_ids: List[str] = Field(default_factory=list)
    preferences: PreferencesModel = Field(default_factory=PreferencesModel)
    context: Optional[RankContextModel] = None
