"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
storage and validation for each content type. Services are intentionally
thin: they validate input, apply domain rules and persist through
repositories. Slider positions are delegated to `guesthouse.ordering`.
"""

import io
import json
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import jwt
from passlib.context import CryptContext
from PIL import Image, UnidentifiedImageError
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import ConflictError, NotFoundError, TransientStoreError, UnsupportedMediaError, ValidationError
from .ordering import SliderOrderService, normalize_id
from .schemas import (
    ExplorePlaceIn,
    FeedbackIn,
    RestaurantIn,
    SliderIn,
    SliderUpdateIn,
    TransportRouteIn,
    UploadTicketIn,
)
from .utils.phone import last10, normalize_phone_strict
from .utils.storage import StorageClient, detect_content_type

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ROLE_RANK = {"viewer": 1, "editor": 2, "admin": 3}
IMAGE_EXTS = ("png", "jpg", "jpeg", "webp")
GOOGLE_MAPS_URL = re.compile(r"^(https://www\.google\.com/maps|https://goo\.gl/maps)", re.IGNORECASE)

logger = logging.getLogger("guesthouse.services")


def parse_flag(raw: Optional[str], default: Optional[bool] = None) -> Optional[bool]:
    """Interpret a `published`/`handled` query value.

    `true`/`1` and `false`/`0` filter; `all`/`hepsi` disable the filter;
    a missing value yields `default`.
    """
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    return None


def role_allows(role: Optional[str], min_role: str) -> bool:
    return ROLE_RANK.get(role or "viewer", 0) >= ROLE_RANK[min_role]


def user_out(user: models.User) -> dict:
    return {"id": user.id, "email": user.email, "role": user.role}


class AuthService:
    """Dashboard accounts: password checks, token issuing and upserts."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def upsert_user(self, email: str, password: str, role: str = "viewer") -> models.User:
        """Create the account or reset its password and role."""
        if role not in models.ROLES:
            raise ValidationError(f"role must be one of {', '.join(models.ROLES)}")
        hashed = PWD_CTX.hash(password)
        user = self.user_repo.get_by_email(email)
        if user:
            user.password_hash = hashed
            user.role = role
            self.session.add(user)
            self.session.commit()
            self.session.refresh(user)
            return user
        return self.user_repo.create(models.User(email=email.strip().lower(), password_hash=hashed, role=role))

    def issue_token(self, user: models.User) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"sub": user.id, "email": user.email, "role": user.role, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def authenticate(self, email: str, password: str) -> Optional[dict]:
        """Verify credentials and return `{token, user}`, or `None` on failure."""
        user = self.user_repo.get_by_email(email)
        if not user or not PWD_CTX.verify(password, user.password_hash):
            return None
        return {"token": self.issue_token(user), "user": user_out(user)}


class AssetService:
    """Upload tickets, direct image uploads and blob removal."""
    def __init__(self, storage: StorageClient):
        self.storage = storage

    def upload_ticket(self, folder: str, payload: UploadTicketIn, kinds=("image",)) -> dict:
        """Validate an upload request and return a pre-signed PUT URL.

        The client PUTs the file to `uploadUrl` and stores `blobUrl` on the
        content row.
        """
        kind = payload.type
        if kind not in kinds:
            raise ValidationError("Invalid type")
        limit = settings.MAX_PDF_BYTES if kind == "pdf" else settings.MAX_IMAGE_BYTES
        if payload.size is not None and payload.size > limit:
            raise ValidationError(f"Max size {limit} bytes")
        default_ext = "pdf" if kind == "pdf" else "png"
        safe = re.sub(r"[^a-z0-9_.-]+", "-", (payload.filename or "").lower())
        if not safe:
            safe = f"{kind}-{uuid.uuid4().hex[:10]}.{default_ext}"
        ext = safe.rsplit(".", 1)[-1] if "." in safe else default_ext
        if kind == "pdf" and ext != "pdf":
            raise ValidationError("Expected PDF")
        if kind == "image" and ext not in IMAGE_EXTS:
            raise ValidationError("Unsupported image type")
        blob_name = f"{folder}/{uuid.uuid4()}-{safe}"
        expires_on = datetime.now(timezone.utc) + timedelta(minutes=settings.SAS_EXPIRE_MINUTES)
        try:
            upload_url = self.storage.presign_put(blob_name, detect_content_type(safe), settings.SAS_EXPIRE_MINUTES * 60)
        except Exception as exc:
            logger.exception("upload_ticket_failed %s", json.dumps({"folder": folder, "blob": blob_name}))
            raise TransientStoreError("SAS generation failed") from exc
        return {"uploadUrl": upload_url, "blobUrl": self.storage.public_url(blob_name), "expiresOn": expires_on.isoformat()}

    def delete_blob(self, url: Optional[str]) -> dict:
        """Delete a blob by its public URL; missing blobs count as deleted."""
        if not url or not isinstance(url, str):
            raise ValidationError("url required")
        try:
            self.storage.delete_url(url)
        except ValueError as exc:
            raise ValidationError("invalid url") from exc
        except Exception as exc:
            logger.exception("blob_delete_failed %s", json.dumps({"url": url}))
            raise TransientStoreError("Blob delete failed") from exc
        return {"ok": True}

    def try_delete(self, url: Optional[str]) -> None:
        """Best-effort removal used when content rows are deleted."""
        if not url:
            return
        try:
            self.storage.delete_url(url)
        except Exception as exc:
            logger.warning("blob_delete_skipped %s", json.dumps({"url": url, "error": str(exc)}))

    def store_image(self, payload: bytes, filename: str, folder: str) -> str:
        """Check that `payload` is a decodable image and store it under `folder`."""
        if not filename or len(filename) > 200 or "/" in filename or "\\" in filename:
            raise ValidationError("invalid filename")
        if len(payload) > settings.MAX_IMAGE_BYTES:
            raise ValidationError("file too large")
        try:
            with Image.open(io.BytesIO(payload)) as img:
                fmt = (img.format or "").lower()
                img.verify()
        except (UnidentifiedImageError, OSError) as exc:
            raise UnsupportedMediaError("unsupported file content; expected an image") from exc
        ext = "jpg" if fmt == "jpeg" else fmt
        if ext not in IMAGE_EXTS:
            raise UnsupportedMediaError("Unsupported image type")
        blob_name = f"{folder}/{uuid.uuid4()}.{ext}"
        return self.storage.upload_bytes(blob_name, payload, detect_content_type(blob_name))


class SliderService:
    """Homepage slider CRUD around the ordering engine."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SliderRepository(session)
        self.ordering = SliderOrderService(session)

    def _get(self, slider_id: str) -> models.Slider:
        sid = normalize_id(slider_id)
        slider = self.repo.get(sid) if sid else None
        if not slider:
            raise NotFoundError()
        return slider

    def list(self, published: Optional[bool] = None, status: Optional[str] = None) -> List[models.Slider]:
        if status not in models.STATUSES:
            status = None
        return self.repo.list_ordered(published=published, status=status)

    def create(self, payload: SliderIn) -> models.Slider:
        if not payload.image_url:
            raise ValidationError("image_url required")
        slider = models.Slider(
            title=payload.title or None,
            image_url=payload.image_url,
            is_published=payload.is_published,
            status="published" if payload.is_published else "draft",
            position=0,
        )
        return self.ordering.append(slider)

    def update(self, slider_id: str, payload: SliderUpdateIn) -> models.Slider:
        """Apply a full update; a supplied `position` goes through SetPosition."""
        slider = self._get(slider_id)
        with self.ordering.transaction("update"):
            slider.title = payload.title or None
            if payload.image_url:
                slider.image_url = payload.image_url
            slider.is_published = payload.is_published
            if payload.status in models.STATUSES:
                slider.status = payload.status
            self.session.add(slider)
            if payload.position is not None:
                self.ordering.set_position(slider.id, payload.position, commit=False)
        self.session.refresh(slider)
        return slider

    def publish(self, slider_id: str, is_published: Any) -> models.Slider:
        if not isinstance(is_published, bool):
            raise ValidationError("is_published required")
        slider = self._get(slider_id)
        slider.is_published = is_published
        slider.status = "published" if is_published else "draft"
        self.session.add(slider)
        self.session.commit()
        self.session.refresh(slider)
        logger.info("slider_publish %s", json.dumps({"id": slider.id, "is_published": is_published}))
        return slider


def _touch(row) -> None:
    if hasattr(row, "updated_at"):
        row.updated_at = models.utcnow()


class GalleryMixin:
    """Image gallery operations shared by restaurants and explore places.

    Subclasses provide `repo` with `get` and `save`.
    """
    repo: Any

    def _get(self, item_id: str):
        iid = normalize_id(item_id)
        row = self.repo.get(iid) if iid else None
        if not row:
            raise NotFoundError()
        return row

    def images(self, item_id: str) -> dict:
        return {"images": list(self._get(item_id).image_url or [])}

    def replace_images(self, item_id: str, images: Any) -> dict:
        if not isinstance(images, list) or not all(isinstance(u, str) for u in images):
            raise ValidationError("images must be array")
        row = self._get(item_id)
        row.image_url = list(images)
        _touch(row)
        self.repo.save(row)
        return {"images": list(images)}

    def add_image(self, item_id: str, url: Optional[str]) -> dict:
        """Append `url` once; the first image also becomes the cover if none is set."""
        if not url or not isinstance(url, str):
            raise ValidationError("url required")
        row = self._get(item_id)
        images = list(row.image_url or [])
        if url not in images:
            images.append(url)
        row.image_url = images
        row.cover_url = row.cover_url or url
        _touch(row)
        self.repo.save(row)
        return {"images": images, "cover_url": row.cover_url}

    def remove_image(self, item_id: str, url: Optional[str]) -> dict:
        """Drop `url`; if it was the cover, the next image (or nothing) becomes the cover."""
        if not url or not isinstance(url, str):
            raise ValidationError("url required")
        row = self._get(item_id)
        images = [u for u in (row.image_url or []) if u != url]
        row.image_url = images
        if row.cover_url == url:
            row.cover_url = images[0] if images else None
        _touch(row)
        self.repo.save(row)
        return {"images": images, "cover_url": row.cover_url}

    def set_cover(self, item_id: str, cover_url: Optional[str]):
        row = self._get(item_id)
        row.cover_url = cover_url or None
        _touch(row)
        return self.repo.save(row)


def restaurant_out(row: models.Restaurant) -> dict:
    data = row.model_dump()
    data["image_url"] = list(row.image_url or [])
    data["cover_image"] = row.cover_url
    return data


class RestaurantService(GalleryMixin):
    """Restaurant listings with phone/name uniqueness rules."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.RestaurantRepository(session)

    def list(self, published: Optional[bool], cuisine: str = "", q: str = "") -> List[models.Restaurant]:
        return self.repo.search(published, cuisine=cuisine, q=q)

    def get(self, restaurant_id: str) -> models.Restaurant:
        return self._get(restaurant_id)

    def _validate(self, payload: RestaurantIn, exclude_id: Optional[str] = None) -> str:
        """Check required fields and uniqueness; return the normalized phone."""
        required = (payload.name, payload.cuisine, payload.phone, payload.address)
        if not all(required) or payload.lat is None or payload.lng is None:
            raise ValidationError("required fields missing", code="REQUIRED_FIELDS")
        normalized = normalize_phone_strict(payload.phone)
        if not normalized:
            raise ValidationError("a valid phone number is required", code="INVALID_PHONE")
        if self.repo.name_taken(payload.name, exclude_id):
            raise ConflictError("a restaurant with this name already exists", code="DUPLICATE_NAME")
        tail = last10(normalized)
        if any(last10(p) == tail for p in self.repo.phones(exclude_id)):
            raise ConflictError("this phone number is already in use", code="phone_taken")
        return normalized

    def create(self, payload: RestaurantIn) -> models.Restaurant:
        phone = self._validate(payload)
        row = models.Restaurant(
            name=payload.name.strip(),
            cuisine=payload.cuisine,
            phone=phone,
            address=payload.address,
            lat=payload.lat,
            lng=payload.lng,
            image_url=list(payload.image_url or []),
            cover_url=payload.cover_url or None,
            is_sponsor=payload.is_sponsor,
            is_published=payload.is_published,
            status="published" if payload.is_published else "draft",
        )
        return self.repo.save(row)

    def update(self, restaurant_id: str, payload: RestaurantIn) -> models.Restaurant:
        """Update fields; gallery and cover change only when present in the body."""
        row = self._get(restaurant_id)
        phone = self._validate(payload, exclude_id=row.id)
        row.name = payload.name.strip()
        row.cuisine = payload.cuisine
        row.phone = phone
        row.address = payload.address
        row.lat = payload.lat
        row.lng = payload.lng
        if "image_url" in payload.model_fields_set:
            row.image_url = list(payload.image_url or [])
        if "cover_url" in payload.model_fields_set:
            row.cover_url = payload.cover_url or None
        row.is_sponsor = payload.is_sponsor
        row.is_published = payload.is_published
        row.status = "published" if payload.is_published else "draft"
        return self.repo.save(row)

    def delete(self, restaurant_id: str) -> None:
        self.repo.delete(self._get(restaurant_id))

    def upload_image(self, restaurant_id: str, assets: AssetService, payload: bytes, filename: str) -> dict:
        """Store an uploaded image and add it to the gallery."""
        self._get(restaurant_id)
        url = assets.store_image(payload, filename, "food")
        return self.add_image(restaurant_id, url)


class TransportRouteService:
    """Transport lines and the series catalog."""
    def __init__(self, session: Session, assets: Optional[AssetService] = None):
        self.session = session
        self.repo = repositories.TransportRouteRepository(session)
        self.assets = assets

    def _get(self, route_id: str) -> models.TransportRoute:
        rid = normalize_id(route_id)
        route = self.repo.get(rid) if rid else None
        if not route:
            raise NotFoundError()
        return route

    def list(self, published: Optional[bool], series: str = "", query: str = "") -> List[models.TransportRoute]:
        return self.repo.search(published, series=series, query=query)

    def get_by_code(self, code: str) -> models.TransportRoute:
        route = self.repo.get_published_by_code(code)
        if not route:
            raise NotFoundError()
        return route

    def _apply(self, route: models.TransportRoute, payload: TransportRouteIn):
        route.code = payload.code.strip()
        route.title = payload.title or None
        route.description = payload.description or None
        route.pdf_url = payload.pdf_url or None
        route.image_url = payload.image_url or None
        route.series = payload.series or None
        route.is_published = payload.is_published
        if route.series:
            self._activate_series(route.series)

    def create(self, payload: TransportRouteIn) -> models.TransportRoute:
        if self.repo.code_taken(payload.code.strip()):
            raise ConflictError("route code already exists", code="DUPLICATE_CODE")
        route = models.TransportRoute(code=payload.code.strip())
        self._apply(route, payload)
        return self.repo.save(route)

    def update(self, route_id: str, payload: TransportRouteIn) -> models.TransportRoute:
        route = self._get(route_id)
        if self.repo.code_taken(payload.code.strip(), exclude_id=route.id):
            raise ConflictError("route code already exists", code="DUPLICATE_CODE")
        self._apply(route, payload)
        _touch(route)
        return self.repo.save(route)

    def _drop_assets(self, route: models.TransportRoute):
        if settings.DELETE_BLOBS_ON_ROUTE_DELETE and self.assets:
            self.assets.try_delete(route.pdf_url)
            self.assets.try_delete(route.image_url)

    def delete(self, route_id: str) -> None:
        route = self._get(route_id)
        self._drop_assets(route)
        self.session.delete(route)
        self.session.commit()

    def series_list(self) -> List[str]:
        """Active catalog names; distinct route series when the catalog is empty."""
        return self.repo.active_catalog() or self.repo.distinct_series()

    def _activate_series(self, name: str):
        entry = self.repo.get_series(name)
        if entry is None:
            entry = models.RouteSeries(name=name)
        entry.active = True
        self.session.add(entry)

    def add_series(self, name: Optional[str]) -> dict:
        if not name or not name.strip():
            raise ValidationError("name required")
        self._activate_series(name.strip())
        self.session.commit()
        return {"ok": True}

    def delete_series(self, name: str) -> None:
        """Delete every route in the series and deactivate its catalog entry."""
        for route in self.repo.list_by_series(name):
            self._drop_assets(route)
            self.session.delete(route)
        entry = self.repo.get_series(name)
        if entry is not None:
            entry.active = False
            self.session.add(entry)
        self.session.commit()
        logger.info("route_series_delete %s", json.dumps({"name": name}))


def explore_out(row: models.ExplorePlace) -> dict:
    data = row.model_dump()
    data["image_url"] = list(row.image_url or [])
    data["cover_image"] = row.cover_url
    return data


class ExploreService(GalleryMixin):
    """Points of interest for the explore section."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ExplorePlaceRepository(session)

    def list(self, published: Optional[bool], category: str = "", q: str = "") -> List[models.ExplorePlace]:
        return self.repo.search(published, category=category, q=q)

    def get(self, place_id: str, published_only: bool = True) -> models.ExplorePlace:
        place = self._get(place_id)
        if published_only and not place.is_published:
            raise NotFoundError()
        return place

    def categories(self) -> List[str]:
        return self.repo.categories()

    @staticmethod
    def map_url_for(payload: ExplorePlaceIn) -> Optional[str]:
        """Keep Google Maps links; otherwise derive directions from coordinates."""
        if payload.map_url and GOOGLE_MAPS_URL.match(payload.map_url):
            return payload.map_url
        if payload.lat is not None and payload.lng is not None:
            return f"https://www.google.com/maps/dir/?api=1&destination={payload.lat},{payload.lng}"
        return None

    def _apply(self, place: models.ExplorePlace, payload: ExplorePlaceIn):
        place.name = payload.name.strip()
        place.category = payload.category or None
        place.description = payload.description or None
        place.address = payload.address or None
        place.lat = payload.lat
        place.lng = payload.lng
        place.map_url = self.map_url_for(payload)
        place.cover_url = payload.cover_url or None
        place.image_url = list(payload.image_url or [])
        place.is_published = payload.is_published
        place.status = "published" if payload.is_published else "draft"

    def create(self, payload: ExplorePlaceIn) -> models.ExplorePlace:
        if self.repo.name_taken(payload.name.strip()):
            raise ConflictError("a place with this name already exists", code="DUPLICATE_NAME")
        place = models.ExplorePlace(name=payload.name.strip())
        self._apply(place, payload)
        return self.repo.save(place)

    def update(self, place_id: str, payload: ExplorePlaceIn) -> models.ExplorePlace:
        place = self._get(place_id)
        if self.repo.name_taken(payload.name.strip(), exclude_id=place.id):
            raise ConflictError("a place with this name already exists", code="DUPLICATE_NAME")
        self._apply(place, payload)
        _touch(place)
        return self.repo.save(place)

    def clear_cover(self, place_id: str) -> None:
        """Remove the cover; unknown ids are ignored so the call stays idempotent."""
        pid = normalize_id(place_id)
        place = self.repo.get(pid) if pid else None
        if place and place.cover_url is not None:
            place.cover_url = None
            _touch(place)
            self.repo.save(place)

    def delete(self, place_id: str) -> None:
        self.repo.delete(self._get(place_id))


class FeedbackService:
    """Visitor feedback intake and triage."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.FeedbackRepository(session)

    def create(self, payload: FeedbackIn) -> models.Feedback:
        if not isinstance(payload.message, str) or not payload.message.strip():
            raise ValidationError("message is required")
        row = models.Feedback(name=payload.name or None, email=payload.email or None, message=payload.message)
        return self.repo.create(row)

    def list(self, handled: Optional[bool] = None, q: str = "") -> List[models.Feedback]:
        return self.repo.search(handled=handled, q=q)

    def set_handled(self, feedback_id: str, handled: bool) -> models.Feedback:
        fid = normalize_id(feedback_id)
        row = self.repo.get(fid) if fid else None
        if not row:
            raise NotFoundError()
        row.handled = handled
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row
