"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable. Fields whose validation produces
a specific error message (reorder ids, move direction, target
position) are typed `Any` and checked by the services instead.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginIn(BaseModel):
    """Payload for the dashboard login endpoint."""
    email: str
    password: str


class SliderIn(BaseModel):
    title: Optional[str] = None
    image_url: str
    is_published: bool = False


class SliderUpdateIn(BaseModel):
    """Full slide update; `position` is applied through the ordering engine."""
    title: Optional[str] = None
    image_url: Optional[str] = None
    position: Optional[Any] = None
    is_published: bool = False
    status: Optional[str] = None


class PublishIn(BaseModel):
    is_published: Any = None


class ReorderIn(BaseModel):
    """Full ordering: every slide id exactly once, first id gets position 1."""
    ids: Any = None


class MoveIn(BaseModel):
    direction: Any = None


class PositionIn(BaseModel):
    position: Any = None


class UploadTicketIn(BaseModel):
    """Request for a pre-signed upload URL."""
    type: Optional[str] = None
    size: Optional[int] = None
    filename: Optional[str] = None


class BlobUrlIn(BaseModel):
    url: Optional[str] = None


class ImagesIn(BaseModel):
    images: Any = None


class CoverIn(BaseModel):
    cover_url: Optional[str] = None


class RestaurantIn(BaseModel):
    """Restaurant create/update payload; required fields are checked by the service."""
    name: Optional[str] = None
    cuisine: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    image_url: Optional[List[str]] = None
    cover_url: Optional[str] = None
    is_sponsor: bool = False
    is_published: bool = False


class TransportRouteIn(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    title: Optional[str] = None
    description: Optional[str] = None
    pdf_url: Optional[str] = None
    image_url: Optional[str] = None
    series: Optional[str] = None
    is_published: bool = False


class SeriesIn(BaseModel):
    name: Optional[str] = None


class ExplorePlaceIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=200)
    category: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    map_url: Optional[str] = Field(default=None, alias="mapUrl")
    cover_url: Optional[str] = None
    image_url: Optional[List[str]] = None
    is_published: bool = False


class FeedbackIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    message: Any = None


class FeedbackUpdateIn(BaseModel):
    handled: bool = False
