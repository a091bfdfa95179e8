"""FastAPI application for the Home Item Status Board."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Annotated

import logfire
from fastapi import Depends, FastAPI, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.requests import Request

from .board import list_board
from .config import CORS_ORIGINS, LOGFIRE_TOKEN
from .database import get_db, init_db
from .errors import NotFoundError, StatusBoardError
from .inference import compute_statuses
from .models import Property
from .overrides import list_item_events, patch_item_status
from .reconciler import ensure_home_items
from .schemas import (
    BoardQuery,
    BoardResponse,
    EventRead,
    RecomputeResponse,
    StatusPatch,
    StatusRead,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Home Status Board API",
    description="Health board for the possessions and building systems of a home",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure Logfire for observability (after app creation)
if LOGFIRE_TOKEN:
    logfire.configure()
    logfire.instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StatusBoardError)
async def status_board_error_handler(request: Request, exc: StatusBoardError):
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def get_property(property_id: uuid.UUID, db: Session = Depends(get_db)) -> Property:
    """Resolve the property scope of a request."""
    prop = db.get(Property, property_id)
    if prop is None:
        raise NotFoundError("Property not found", code="PROPERTY_NOT_FOUND")
    return prop


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Home Status Board API"}


@app.get("/api/properties/{property_id}/status-board", response_model=BoardResponse)
def get_status_board(
    query: Annotated[BoardQuery, Query()],
    prop: Property = Depends(get_property),
    db: Session = Depends(get_db),
):
    """Return one page of the status board, optionally grouped."""
    return list_board(db, prop.id, query)


@app.post(
    "/api/properties/{property_id}/status-board/recompute",
    response_model=RecomputeResponse,
)
def recompute_status_board(
    prop: Property = Depends(get_property),
    db: Session = Depends(get_db),
):
    """Force a registry sync and a full status recomputation."""
    ensure_home_items(db, prop.id)
    evaluated, changed = compute_statuses(db, prop.id)
    return RecomputeResponse(items_evaluated=evaluated, items_changed=changed)


@app.patch(
    "/api/properties/{property_id}/status-board/{home_item_id}",
    response_model=StatusRead,
)
def patch_status(
    home_item_id: uuid.UUID,
    patch: StatusPatch,
    x_user_id: Annotated[str, Header()],
    prop: Property = Depends(get_property),
    db: Session = Depends(get_db),
):
    """Apply a partial user override to one item's status."""
    return patch_item_status(db, home_item_id, prop.id, x_user_id, patch)


@app.get(
    "/api/properties/{property_id}/status-board/{home_item_id}/events",
    response_model=list[EventRead],
)
def get_status_events(
    home_item_id: uuid.UUID,
    prop: Property = Depends(get_property),
    db: Session = Depends(get_db),
):
    """Audit trail of one item, newest first."""
    return list_item_events(db, home_item_id, prop.id)
