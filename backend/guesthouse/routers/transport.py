"""Transport route endpoints and the route series catalog."""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from ..auth import require_role
from ..database import get_session
from ..schemas import BlobUrlIn, SeriesIn, TransportRouteIn, UploadTicketIn
from ..services import AssetService, TransportRouteService, parse_flag
from ..utils.storage import get_storage_client

router = APIRouter()

editor = [Depends(require_role("editor"))]
admin = [Depends(require_role("admin"))]


def _service(db: Session) -> TransportRouteService:
    return TransportRouteService(db, AssetService(get_storage_client()))


@router.get("")
def list_routes(published: Optional[str] = None, series: str = "", query: str = "", db: Session = Depends(get_session)):
    return _service(db).list(parse_flag(published, default=True), series=series, query=query)


@router.post("", status_code=201, dependencies=editor)
def create_route(payload: TransportRouteIn, db: Session = Depends(get_session)):
    return _service(db).create(payload)


@router.post("/upload-sas", dependencies=editor)
def route_upload_ticket(payload: UploadTicketIn):
    return AssetService(get_storage_client()).upload_ticket("transport", payload, kinds=("pdf", "image"))


@router.post("/delete-blob", dependencies=editor)
def route_delete_blob(payload: BlobUrlIn):
    return AssetService(get_storage_client()).delete_blob(payload.url)


@router.get("/series/list")
def list_series(db: Session = Depends(get_session)):
    return _service(db).series_list()


@router.post("/series", status_code=201, dependencies=editor)
def add_series(payload: SeriesIn, db: Session = Depends(get_session)):
    return _service(db).add_series(payload.name)


@router.delete("/series/{name}", status_code=204, dependencies=admin)
def delete_series(name: str, db: Session = Depends(get_session)):
    _service(db).delete_series(name)
    return Response(status_code=204)


@router.get("/{code}")
def get_route(code: str, db: Session = Depends(get_session)):
    return _service(db).get_by_code(code)


@router.put("/{route_id}", dependencies=editor)
def update_route(route_id: str, payload: TransportRouteIn, db: Session = Depends(get_session)):
    return _service(db).update(route_id, payload)


@router.delete("/{route_id}", status_code=204, dependencies=admin)
def delete_route(route_id: str, db: Session = Depends(get_session)):
    _service(db).delete(route_id)
    return Response(status_code=204)
