"""Calendar sync Pydantic schemas."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, HttpUrl


class SyncStatus(str, Enum):
    """iCal feed sync status enumeration."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class AddFeedRequest(BaseModel):
    """Request schema for subscribing a property to an external iCal feed."""

    property_id: int = Field(..., description="Property")
    feed_url: HttpUrl = Field(..., description="External iCal URL")
    platform: str = Field("unknown", min_length=1, max_length=50, description="Source platform, e.g. airbnb")


class CalendarFeed(BaseModel):
    """iCal feed response schema."""

    id: int = Field(..., description="Unique feed ID")
    property_id: int = Field(..., description="Property")
    feed_url: str = Field(..., description="External iCal URL")
    platform: Optional[str] = Field(None, description="Source platform")
    sync_status: SyncStatus = Field(..., description="Last sync status")
    sync_message: Optional[str] = Field(None, description="Last sync error")
    last_synced: Optional[datetime] = Field(None, description="Last successful sync (ISO 8601)")

    class Config:
        from_attributes = True


class SyncRequest(BaseModel):
    """Request schema for importing a property's feeds now."""

    property_id: int = Field(..., description="Property whose feeds to import")


class SyncResponse(BaseModel):
    """Calendar sync response schema."""

    property_id: int = Field(..., description="Property")
    feeds_processed: int = Field(..., description="Number of feeds imported")
    feeds: List[CalendarFeed] = Field(..., description="Feed states after the import")
