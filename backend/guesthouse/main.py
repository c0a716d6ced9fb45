"""FastAPI application entrypoint.

This module builds the guesthouse portal API: it configures logging,
CORS and the request-id middleware, maps service errors to HTTP
responses and mounts one router per content type.

Endpoints implemented here:
- POST /api/auth/login
- GET /api/auth/me
- GET /api/health

Content endpoints live in `guesthouse.routers` under `/api/sliders`,
`/api/restaurants`, `/api/routes`, `/api/explore` and `/api/feedback`.
"""

import json
import logging
import time
import uuid

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import models
from .auth import get_current_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import ServiceError
from .routers import explore, feedback, restaurants, sliders, transport
from .schemas import LoginIn
from .services import AuthService, user_out

app = FastAPI(title="Guesthouse Portal API")
logger = logging.getLogger("guesthouse.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

create_db_and_tables()


def _request_fields(request: Request, req_id: str, started: float) -> dict:
    return {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", json.dumps(_request_fields(request, req_id, started), ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    fields = _request_fields(request, req_id, started)
    fields["status_code"] = response.status_code
    logger.info("request_done %s", json.dumps(fields, ensure_ascii=True))
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    body = {"detail": exc.message}
    if exc.code:
        body["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "invalid request")
    return JSONResponse(status_code=400, content={"detail": f"{field}: {message}" if field else message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error %s", json.dumps({"path": request.url.path, "method": request.method}))
    return JSONResponse(status_code=500, content={"detail": "internal error"})


@app.post("/api/auth/login")
def login(payload: LoginIn, db: Session = Depends(get_session)):
    result = AuthService(db).authenticate(payload.email, payload.password)
    if not result:
        raise HTTPException(status_code=401, detail="invalid credentials")
    return result


@app.get("/api/auth/me")
def me(user: models.User = Depends(get_current_user)):
    return user_out(user)


@app.get("/api/health")
def health():
    return {"status": "ok"}


app.include_router(sliders.router, prefix="/api/sliders", tags=["sliders"])
app.include_router(restaurants.router, prefix="/api/restaurants", tags=["restaurants"])
app.include_router(transport.router, prefix="/api/routes", tags=["routes"])
app.include_router(explore.router, prefix="/api/explore", tags=["explore"])
app.include_router(feedback.router, prefix="/api/feedback", tags=["feedback"])
