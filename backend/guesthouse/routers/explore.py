from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from ..auth import require_role
from ..database import get_session
from ..schemas import BlobUrlIn, CoverIn, ExplorePlaceIn, ImagesIn, UploadTicketIn
from ..services import AssetService, ExploreService, explore_out, parse_flag
from ..utils.storage import get_storage_client

router = APIRouter()

editor = [Depends(require_role("editor"))]


@router.get("")
def list_places(published: Optional[str] = None, category: str = "", q: str = "", db: Session = Depends(get_session)):
    rows = ExploreService(db).list(parse_flag(published), category=category, q=q)
    return [explore_out(r) for r in rows]


@router.get("/meta/categories")
def list_categories(db: Session = Depends(get_session)):
    return ExploreService(db).categories()


@router.post("", status_code=201, dependencies=editor)
def create_place(payload: ExplorePlaceIn, db: Session = Depends(get_session)):
    return explore_out(ExploreService(db).create(payload))


@router.post("/upload-sas", dependencies=editor)
def place_upload_ticket(payload: UploadTicketIn):
    return AssetService(get_storage_client()).upload_ticket("explore", payload, kinds=("image",))


@router.get("/admin/{place_id}", dependencies=editor)
def get_place_admin(place_id: str, db: Session = Depends(get_session)):
    return explore_out(ExploreService(db).get(place_id, published_only=False))


@router.get("/{place_id}")
def get_place(place_id: str, db: Session = Depends(get_session)):
    return explore_out(ExploreService(db).get(place_id))


@router.put("/{place_id}", dependencies=editor)
def update_place(place_id: str, payload: ExplorePlaceIn, db: Session = Depends(get_session)):
    return explore_out(ExploreService(db).update(place_id, payload))


@router.delete("/{place_id}", status_code=204, dependencies=[Depends(require_role("admin"))])
def delete_place(place_id: str, db: Session = Depends(get_session)):
    ExploreService(db).delete(place_id)
    return Response(status_code=204)


@router.get("/{place_id}/images")
def list_place_images(place_id: str, db: Session = Depends(get_session)):
    return ExploreService(db).images(place_id)


@router.put("/{place_id}/images", dependencies=editor)
def replace_place_images(place_id: str, payload: ImagesIn, db: Session = Depends(get_session)):
    return ExploreService(db).replace_images(place_id, payload.images)


@router.post("/{place_id}/images", status_code=201, dependencies=editor)
def add_place_image(place_id: str, payload: BlobUrlIn, db: Session = Depends(get_session)):
    return ExploreService(db).add_image(place_id, payload.url)


@router.delete("/{place_id}/images", dependencies=editor)
def remove_place_image(place_id: str, payload: BlobUrlIn, db: Session = Depends(get_session)):
    return ExploreService(db).remove_image(place_id, payload.url)


@router.put("/{place_id}/cover", dependencies=editor)
def set_place_cover(place_id: str, payload: CoverIn, db: Session = Depends(get_session)):
    return explore_out(ExploreService(db).set_cover(place_id, payload.cover_url))


@router.delete("/{place_id}/cover", status_code=204, dependencies=editor)
def clear_place_cover(place_id: str, db: Session = Depends(get_session)):
    ExploreService(db).clear_cover(place_id)
    return Response(status_code=204)
