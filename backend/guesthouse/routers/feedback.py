from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session

from ..auth import require_role
from ..config import settings
from ..database import get_session
from ..schemas import FeedbackIn, FeedbackUpdateIn
from ..services import FeedbackService, parse_flag
from ..utils.rate_limit import InMemoryRateLimiter

router = APIRouter()

feedback_rate_limiter = InMemoryRateLimiter(settings.FEEDBACK_RATE_LIMIT_PER_MIN)


def _enforce_feedback_rate_limit(request: Request) -> None:
    key = f"{request.client.host if request.client else 'unknown'}:{request.url.path}"
    allowed, retry_after = feedback_rate_limiter.allow(key)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


@router.post("", status_code=201, dependencies=[Depends(_enforce_feedback_rate_limit)])
def submit_feedback(payload: FeedbackIn, db: Session = Depends(get_session)):
    row = FeedbackService(db).create(payload)
    return {"id": row.id}


@router.get("", dependencies=[Depends(require_role("viewer"))])
def list_feedback(handled: Optional[str] = None, q: str = "", db: Session = Depends(get_session)):
    return FeedbackService(db).list(handled=parse_flag(handled), q=q)


@router.put("/{feedback_id}", dependencies=[Depends(require_role("editor"))])
def update_feedback(feedback_id: str, payload: FeedbackUpdateIn, db: Session = Depends(get_session)):
    return FeedbackService(db).set_handled(feedback_id, payload.handled)
