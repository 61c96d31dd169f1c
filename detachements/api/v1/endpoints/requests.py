"""Détachement request endpoints: public submission and admin lifecycle actions."""

import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from detachements.constants.constants import CSV_EXPORT_FILENAME, RequestStatus
from detachements.core.config import settings
from detachements.core.database import aget_db
from detachements.core.limiter import limiter
from detachements.core.security import get_current_admin
from detachements.models.admin import AdminUser
from detachements.schemas.leaveRequestSchema import (
    DecisionRequest,
    DecisionResponse,
    LeaveRequestCreate,
    LeaveRequestCreated,
    LeaveRequestList,
    ValidateResponse,
)
from detachements.services.LeaveRequestExport import build_csv
from detachements.services.LeaveRequestStore import LeaveRequestStore
from detachements.services.LeaveRequestValidator import validate_submission
from detachements.services.LifecycleManager import LifecycleManager
from detachements.services.NotificationSink import NotificationSink, get_notification_sink

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/requests",
    tags=["requests"]
)


def get_lifecycle_manager(
    db: AsyncSession = Depends(aget_db),
    sink: NotificationSink = Depends(get_notification_sink),
) -> LifecycleManager:
    return LifecycleManager(LeaveRequestStore(db), sink, settings.notification_cc_emails)


@router.post("", response_model=LeaveRequestCreated)
@limiter.limit(settings.SUBMISSION_RATE_LIMIT)
async def create_request(
    request: Request,
    payload: LeaveRequestCreate,
    db: AsyncSession = Depends(aget_db)
):
    """
    Submit a new détachement request (public).

    The request is stored as ``pending`` with its duration computed from the
    dates and half-day markers. Returns 400 with the offending field when the
    submission is invalid.
    """
    record = validate_submission(payload.model_dump())
    await LeaveRequestStore(db).insert(record)
    return LeaveRequestCreated(id=record.id, days=record.days, status=record.status)


@router.get("", response_model=LeaveRequestList)
async def list_requests(
    status: Optional[RequestStatus] = Query(None),
    entity: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    current_admin: AdminUser = Depends(get_current_admin),
    db: AsyncSession = Depends(aget_db)
):
    """List requests, newest first, optionally filtered by status, entity and type (admin)."""
    items = await LeaveRequestStore(db).list_requests(status=status, entity=entity, leave_type=type)
    return {"items": items}


@router.get("/export.csv")
async def export_requests(
    current_admin: AdminUser = Depends(get_current_admin),
    db: AsyncSession = Depends(aget_db)
):
    """Full CSV export of every request (admin)."""
    items = await LeaveRequestStore(db).list_requests()
    logger.info(f"📤 CSV export of {len(items)} request(s) by {current_admin.email}")
    return Response(
        content=build_csv(items),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{CSV_EXPORT_FILENAME}"'},
    )


@router.post("/{request_id}/validate", response_model=ValidateResponse)
async def validate_request(
    request_id: str,
    current_admin: AdminUser = Depends(get_current_admin),
    manager: LifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Validate a pending request and email the manager and HR (admin).

    Validating an already validated request succeeds with ``already: true``
    and sends nothing.
    """
    result = await manager.validate(request_id, current_admin)
    return ValidateResponse(ok=True, already=result.already)


@router.post("/{request_id}/refuse", response_model=DecisionResponse)
async def refuse_request(
    request_id: str,
    body: Optional[DecisionRequest] = Body(None),
    current_admin: AdminUser = Depends(get_current_admin),
    manager: LifecycleManager = Depends(get_lifecycle_manager)
):
    """Refuse a pending request and notify the applicant with the reason (admin)."""
    await manager.refuse(request_id, body.reason if body else None, current_admin)
    return DecisionResponse(ok=True)


@router.post("/{request_id}/cancel", response_model=DecisionResponse)
async def cancel_request(
    request_id: str,
    body: Optional[DecisionRequest] = Body(None),
    current_admin: AdminUser = Depends(get_current_admin),
    manager: LifecycleManager = Depends(get_lifecycle_manager)
):
    """Cancel a pending request and notify the applicant with the reason (admin)."""
    await manager.cancel(request_id, body.reason if body else None, current_admin)
    return DecisionResponse(ok=True)
