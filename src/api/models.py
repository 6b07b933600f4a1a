"""
Guest Review Hub API Models
===========================

Pydantic models for request validation and the response envelope.
Field names follow the dashboard's camelCase; snake_case is accepted too.
"""

from pydantic import BaseModel, Field
from typing import Any, List, Optional

from ..reviews.review_models import ReviewStatus


class ReviewStatusUpdate(BaseModel):
    """Moderation decision; omitted fields stay unchanged."""
    isApproved: Optional[bool] = Field(None, alias="is_approved")
    isPublic: Optional[bool] = Field(None, alias="is_public")
    managerNotes: Optional[str] = Field(None, alias="manager_notes", max_length=500)
    status: Optional[ReviewStatus] = None

    class Config:
        populate_by_name = True


class AnalyzeRequest(BaseModel):
    """Text analysis over stored reviews."""
    reviewIds: List[str] = Field(..., alias="review_ids", min_length=1)
    includeSentiment: bool = Field(True, alias="include_sentiment")
    includeKeywords: bool = Field(True, alias="include_keywords")

    class Config:
        populate_by_name = True


class ConnectPlaceRequest(BaseModel):
    """Attach a Google place to a listing."""
    listingId: str = Field(..., alias="listing_id", min_length=1)
    placeId: str = Field(..., alias="place_id", min_length=1)

    class Config:
        populate_by_name = True


class Envelope(BaseModel):
    """Standard success wrapper."""
    status: str = "success"
    data: Any = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    environment: str
    store: str
    storeBackend: str
    hostaway: str
    google: str
