"""Base classes for API payloads: unknown fields are rejected, not ignored."""

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Response DTO base; builds from ORM rows and service dataclasses."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True, from_attributes=True)


class StrictRequestModel(BaseModel):
    """Request DTO base; a misspelt field is a 422, never silently dropped."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
