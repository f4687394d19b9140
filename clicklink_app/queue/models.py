"""
Data models for queue messages.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class AggregateIncrement(BaseModel):
    """
    A pending +1 for a URL's aggregate row.

    Published when the redirect path could not (or chose not to) update
    url_analytics inline. The click itself is already in url_clicks.
    """

    url_id: int = Field(..., description="URL whose aggregate must be incremented")
    click_id: Optional[int] = Field(None, description="Click event this increment accounts for")
    clicked_at: datetime = Field(..., description="When the click occurred (UTC)")

    # Set by the queue on consume; used for acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = {
        "json_schema_extra": {
            "example": {
                "url_id": 42,
                "click_id": 1337,
                "clicked_at": "2026-10-19T10:30:00Z",
            }
        }
    }
