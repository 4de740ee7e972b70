from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from marketplace.common.enums import SearchMode


class SearchRequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: str
    query: Optional[str] = None
    mode: SearchMode = SearchMode.hybrid
    filters: Dict[str, Any] = Field(default_factory=dict)
