from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, StrictInt, StrictStr

from pastebin.domain.lifecycle import MAX_LIMIT


class PasteCreateRequest(BaseModel):
    content: StrictStr = Field(..., description="Paste content")
    ttl_seconds: Optional[StrictInt] = Field(
        default=None,
        ge=1,
        le=MAX_LIMIT,
        description="Optional time-to-live in seconds",
    )
    max_views: Optional[StrictInt] = Field(
        default=None,
        ge=1,
        le=MAX_LIMIT,
        description="Optional maximum number of views",
    )


class PasteCreatedResponse(BaseModel):
    id: str
    url: str


class PasteViewResponse(BaseModel):
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str]


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool = True
