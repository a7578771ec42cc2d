"""Response models for the World Engine endpoints the client reads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WorldInfo(BaseModel):
    """Response body of GET /world.

    Only the namespace is needed for signing; the remaining fields
    (components, messages, queries, ...) are kept as extras.
    """

    model_config = ConfigDict(extra="allow")

    namespace: str = Field(..., description="Namespace signed messages are valid for")
