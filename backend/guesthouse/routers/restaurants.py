from typing import Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlmodel import Session

from ..auth import require_role
from ..database import get_session
from ..schemas import BlobUrlIn, CoverIn, ImagesIn, RestaurantIn, UploadTicketIn
from ..services import AssetService, RestaurantService, parse_flag, restaurant_out
from ..utils.storage import get_storage_client

router = APIRouter()

editor = [Depends(require_role("editor"))]


@router.get("")
def list_restaurants(published: Optional[str] = None, cuisine: str = "", q: str = "", db: Session = Depends(get_session)):
    rows = RestaurantService(db).list(parse_flag(published, default=True), cuisine=cuisine, q=q)
    return [restaurant_out(r) for r in rows]


@router.post("", status_code=201, dependencies=editor)
def create_restaurant(payload: RestaurantIn, db: Session = Depends(get_session)):
    return restaurant_out(RestaurantService(db).create(payload))


@router.post("/upload-sas", dependencies=editor)
def restaurant_upload_ticket(payload: UploadTicketIn):
    return AssetService(get_storage_client()).upload_ticket("food", payload, kinds=("image",))


@router.post("/delete-blob", dependencies=editor)
def restaurant_delete_blob(payload: BlobUrlIn):
    return AssetService(get_storage_client()).delete_blob(payload.url)


@router.get("/{restaurant_id}")
def get_restaurant(restaurant_id: str, db: Session = Depends(get_session)):
    return restaurant_out(RestaurantService(db).get(restaurant_id))


@router.put("/{restaurant_id}", dependencies=editor)
def update_restaurant(restaurant_id: str, payload: RestaurantIn, db: Session = Depends(get_session)):
    return restaurant_out(RestaurantService(db).update(restaurant_id, payload))


@router.delete("/{restaurant_id}", status_code=204, dependencies=[Depends(require_role("admin"))])
def delete_restaurant(restaurant_id: str, db: Session = Depends(get_session)):
    RestaurantService(db).delete(restaurant_id)
    return Response(status_code=204)


@router.get("/{restaurant_id}/images")
def list_restaurant_images(restaurant_id: str, db: Session = Depends(get_session)):
    return RestaurantService(db).images(restaurant_id)


@router.put("/{restaurant_id}/images", dependencies=editor)
def replace_restaurant_images(restaurant_id: str, payload: ImagesIn, db: Session = Depends(get_session)):
    return RestaurantService(db).replace_images(restaurant_id, payload.images)


@router.post("/{restaurant_id}/images", status_code=201, dependencies=editor)
def add_restaurant_image(restaurant_id: str, payload: BlobUrlIn, db: Session = Depends(get_session)):
    return RestaurantService(db).add_image(restaurant_id, payload.url)


@router.delete("/{restaurant_id}/images", dependencies=editor)
def remove_restaurant_image(restaurant_id: str, payload: BlobUrlIn, db: Session = Depends(get_session)):
    return RestaurantService(db).remove_image(restaurant_id, payload.url)


@router.put("/{restaurant_id}/cover", dependencies=editor)
def set_restaurant_cover(restaurant_id: str, payload: CoverIn, db: Session = Depends(get_session)):
    return restaurant_out(RestaurantService(db).set_cover(restaurant_id, payload.cover_url))


@router.post("/{restaurant_id}/upload", status_code=201, dependencies=editor)
def upload_restaurant_image(restaurant_id: str, file: UploadFile = File(...), db: Session = Depends(get_session)):
    """Accept a multipart image, store it and add it to the gallery."""
    payload = file.file.read()
    assets = AssetService(get_storage_client())
    return RestaurantService(db).upload_image(restaurant_id, assets, payload, file.filename or "")
