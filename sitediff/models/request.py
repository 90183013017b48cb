"""Input data structures: the analyzer's route list and the diff request."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .config import ViewportConfig

BaselineMode = Literal["recrawl", "cached"]


class RouteDescriptor(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore",
    )

    route: str
    source_url: str


class Analysis(BaseModel):
    """Subset of the analyzer's analysis.json that the diff engine reads."""
    model_config = ConfigDict(extra="ignore")

    routes: list[RouteDescriptor] = Field(default_factory=list)


class DiffRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    generation_id: str
    baselines: BaselineMode = "cached"
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    threshold: float = Field(default=0.01, ge=0.0, le=1.0)
    render_report: bool = False
