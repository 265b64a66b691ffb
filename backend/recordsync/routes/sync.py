"""
Sync API Routes
Push (single and batch), pull snapshot and diagnostic endpoints
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies.auth import AuthContext, get_current_user
from ..services.sync import PullService, PushService
from ..services.sync.errors import PayloadValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])

NO_STORE_HEADERS = {"Cache-Control": "no-store"}


async def read_json_body(request: Request) -> Any:
    """Decode the request body; unparseable JSON is a validation failure"""
    raw = await request.body()
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError):
        raise PayloadValidationError(
            [{"path": "body", "message": "Request body is not valid JSON"}],
            message="Invalid JSON body",
        )


@router.post("")
async def push_mutation(
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Apply one queued client mutation

    Body: ``{entityType, entityId, operation, data?}``. ``data`` is required
    for create and update and ignored for delete.
    """
    body = await read_json_body(request)
    result = PushService(db).push(auth.user_id, body)
    return JSONResponse(content=result, headers=NO_STORE_HEADERS)


@router.post("/batch")
async def push_batch(
    request: Request,
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Apply up to 100 mutations in order; per-item outcomes are reported"""
    body = await read_json_body(request)
    result = PushService(db).push_batch(auth.user_id, body)
    return JSONResponse(content=result, headers=NO_STORE_HEADERS)


@router.get("/pull")
async def pull_snapshot(
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Return every live entity the caller owns, in client wire shape"""
    result = PullService(db).pull(auth.user_id)
    return JSONResponse(content=result, headers=NO_STORE_HEADERS)


@router.get("/debug")
async def sync_diagnostics(
    auth: AuthContext = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-kind counts and latest update timestamps for troubleshooting"""
    result = PullService(db).diagnostics(auth.user_id)
    return JSONResponse(content=result, headers=NO_STORE_HEADERS)
