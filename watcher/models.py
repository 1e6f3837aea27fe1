"""
Pydantic models for monitored sources and fetched pages.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


class Source(BaseModel):
    """
    One monitored changelog page.

    Sources are immutable: they are built once at startup from static
    configuration and live for the whole process.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Unique, stable source identifier")
    url: HttpUrl = Field(..., description="Changelog or release page URL")
    extraction_strategy: Optional[str] = Field(
        default=None,
        description="Registered extraction strategy; raw content is used when unset or unknown"
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Names are used in store keys, so surrounding whitespace is not allowed."""
        if v != v.strip():
            raise ValueError('source name must not have leading or trailing whitespace')
        return v


class FetchResponse(BaseModel):
    """Raw result of fetching a source URL."""
    url: str = Field(..., description="Requested URL")
    status_code: int = Field(..., description="HTTP status code")
    text: str = Field(default="", description="Decoded response body")
    fetched_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def ok(self) -> bool:
        """Whether the response has a 2xx status."""
        return 200 <= self.status_code < 300
