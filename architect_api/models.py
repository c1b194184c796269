"""Data models using Pydantic."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError


class CamelModel(BaseModel):
    """Model whose wire format uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


class ServiceLine(CamelModel):
    """One AWS service in a recommendation."""

    name: str
    type: str = ""
    monthly_cost: float = 0.0
    description: str = ""
    configuration: dict[str, Any] = Field(default_factory=dict)


class Tier(CamelModel):
    """A named grouping of architecture components."""

    name: str
    components: list[str] = Field(default_factory=list)


class ArchitectureLayout(CamelModel):
    tiers: list[Tier] = Field(default_factory=list)


class Optimization(CamelModel):
    """Suggested saving, with savings expressed as a percentage."""

    type: str
    description: str = ""
    savings: float = 0.0


class ArchitectureRecommendation(CamelModel):
    """Structured recommendation produced by the language model."""

    services: list[ServiceLine]
    total_monthly_cost: float
    architecture: ArchitectureLayout
    optimizations: list[Optimization] = Field(default_factory=list)
    cloud_formation_template: str = ""

    @field_validator("cloud_formation_template", mode="before")
    @classmethod
    def coerce_template(cls, value: Any) -> str:
        """Models sometimes send null or a parsed object instead of text."""
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, indent=2)

    @property
    def line_item_total(self) -> float:
        """Sum of the service monthly costs."""
        return round(sum(service.monthly_cost for service in self.services), 2)


class CreateSessionRequest(BaseModel):
    """Body of POST /chat-sessions."""

    title: str | None = Field(None, max_length=200)


class SendMessageRequest(BaseModel):
    """Body of POST /chat-sessions/{id}/messages."""

    content: str = Field(..., max_length=10000)

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            raise PydanticCustomError(
                "empty_content", "Message content is required", {"input": value}
            )
        return value


class OptimizeRequest(BaseModel):
    """Body of POST /architectures/{message_id}/optimize."""

    goals: str | None = Field(None, max_length=2000)


class CostEstimateRequest(BaseModel):
    """Body of POST /pricing/estimate."""

    service: str = Field(..., min_length=1)
    configuration: str = Field(..., min_length=1)
    usage: float = Field(730, ge=0, allow_inf_nan=False)
