"""Homepage slider endpoints.

Static paths (`/reorder`, `/upload-sas`) are declared before the
`/{slider_id}` routes so they are not captured as ids.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from ..auth import require_role
from ..database import get_session
from ..ordering import SliderOrderService
from ..schemas import MoveIn, PositionIn, PublishIn, ReorderIn, SliderIn, SliderUpdateIn, UploadTicketIn
from ..services import AssetService, SliderService, parse_flag
from ..utils.storage import get_storage_client

router = APIRouter()


@router.get("")
def list_sliders(published: Optional[str] = None, status: Optional[str] = None, db: Session = Depends(get_session)):
    return SliderService(db).list(published=parse_flag(published), status=status)


@router.post("", status_code=201, dependencies=[Depends(require_role("editor"))])
def create_slider(payload: SliderIn, db: Session = Depends(get_session)):
    return SliderService(db).create(payload)


@router.put("/reorder", status_code=204, dependencies=[Depends(require_role("editor"))])
def reorder_sliders(payload: ReorderIn, db: Session = Depends(get_session)):
    SliderOrderService(db).replace_order(payload.ids)
    return Response(status_code=204)


@router.post("/upload-sas", dependencies=[Depends(require_role("editor"))])
def slider_upload_ticket(payload: UploadTicketIn):
    return AssetService(get_storage_client()).upload_ticket("home", payload, kinds=("image",))


@router.put("/{slider_id}", dependencies=[Depends(require_role("editor"))])
def update_slider(slider_id: str, payload: SliderUpdateIn, db: Session = Depends(get_session)):
    return SliderService(db).update(slider_id, payload)


@router.put("/{slider_id}/publish", dependencies=[Depends(require_role("editor"))])
def publish_slider(slider_id: str, payload: PublishIn, db: Session = Depends(get_session)):
    return SliderService(db).publish(slider_id, payload.is_published)


@router.patch("/{slider_id}/move", dependencies=[Depends(require_role("editor"))])
def move_slider(slider_id: str, payload: MoveIn, db: Session = Depends(get_session)):
    return SliderOrderService(db).move(slider_id, payload.direction)


@router.put("/{slider_id}/update-position", dependencies=[Depends(require_role("editor"))])
def update_slider_position(slider_id: str, payload: PositionIn, db: Session = Depends(get_session)):
    return SliderOrderService(db).set_position(slider_id, payload.position)


@router.delete("/{slider_id}", status_code=204, dependencies=[Depends(require_role("admin"))])
def delete_slider(slider_id: str, db: Session = Depends(get_session)):
    SliderOrderService(db).delete(slider_id)
    return Response(status_code=204)
