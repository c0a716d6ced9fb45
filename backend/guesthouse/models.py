"""SQLModel data models.

This module defines the portal's database tables using SQLModel. Every
content row carries an opaque UUID string id assigned at creation.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

ROLES = ("viewer", "editor", "admin")
STATUSES = ("draft", "review", "published")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """An admin dashboard account.

    Fields:
    - `email`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `viewer`, `editor`, `admin`
    """
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    email: str = Field(index=True, nullable=False, unique=True, max_length=255)
    password_hash: str
    role: str = Field(default="viewer", max_length=50)
    created_at: datetime = Field(default_factory=utcnow)


class Slider(SQLModel, table=True):
    """A homepage slide.

    `position` is unique across all slides and forms the gap-free order
    1..N. It is only ever written through `guesthouse.ordering`.
    """
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    title: Optional[str] = Field(default=None, max_length=200)
    image_url: str = Field(max_length=1000)
    position: int = Field(index=True, unique=True)
    is_published: bool = True
    status: str = Field(default="draft", max_length=20)
    created_at: datetime = Field(default_factory=utcnow)


class Restaurant(SQLModel, table=True):
    """A restaurant listing with an image gallery.

    `image_url` holds the gallery as a JSON list of blob URLs and
    `cover_url` the image shown on cards.
    """
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(index=True, max_length=200)
    cuisine: Optional[str] = Field(default=None, max_length=120)
    phone: Optional[str] = Field(default=None, max_length=40)
    address: Optional[str] = Field(default=None, max_length=400)
    lat: Optional[float] = None
    lng: Optional[float] = None
    image_url: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    cover_url: Optional[str] = Field(default=None, max_length=1000)
    is_sponsor: bool = False
    is_published: bool = True
    status: str = Field(default="draft", max_length=20)
    created_at: datetime = Field(default_factory=utcnow)


class TransportRoute(SQLModel, table=True):
    """A public transport line with its timetable PDF."""
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    code: str = Field(index=True, unique=True, max_length=20)
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    pdf_url: Optional[str] = Field(default=None, max_length=1000)
    image_url: Optional[str] = Field(default=None, max_length=1000)
    series: Optional[str] = Field(default=None, index=True, max_length=20)
    is_published: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class RouteSeries(SQLModel, table=True):
    """Catalog entry for the series a transport route can belong to."""
    name: str = Field(primary_key=True, max_length=20)
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class ExplorePlace(SQLModel, table=True):
    """A point of interest shown in the explore section."""
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: str = Field(index=True, max_length=200)
    category: Optional[str] = Field(default=None, index=True, max_length=80)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=400)
    lat: Optional[float] = None
    lng: Optional[float] = None
    map_url: Optional[str] = Field(default=None, max_length=1000)
    image_url: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    cover_url: Optional[str] = Field(default=None, max_length=1000)
    is_published: bool = True
    status: str = Field(default="draft", max_length=20)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None


class Feedback(SQLModel, table=True):
    """A visitor message sent from the mobile app contact form."""
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[str] = Field(default=None, max_length=255)
    message: str
    handled: bool = False
    created_at: datetime = Field(default_factory=utcnow)
