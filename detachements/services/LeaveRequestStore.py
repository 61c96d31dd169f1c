"""Persistence of leave requests on top of an async SQLAlchemy session."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from detachements.constants.constants import RequestStatus
from detachements.core.errors import NotFound
from detachements.models.leave import LeaveRequest

logger = logging.getLogger(__name__)


class LeaveRequestStore:
    """Insert, look up, list and update requests. Records are never deleted."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, record: LeaveRequest) -> LeaveRequest:
        try:
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to insert request {record.id}: {e}")
            raise
        logger.info(f"📝 Request {record.id} created ({record.days} day(s))")
        return record

    async def find(self, request_id: str) -> Optional[LeaveRequest]:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get(self, request_id: str) -> LeaveRequest:
        """Same as ``find`` but raises NotFound."""
        record = await self.find(request_id)
        if record is None:
            raise NotFound("Request", request_id)
        return record

    async def list_requests(
        self,
        status: Optional[RequestStatus] = None,
        entity: Optional[str] = None,
        leave_type: Optional[str] = None,
    ) -> List[LeaveRequest]:
        """Requests matching every given filter, newest first."""
        query = select(LeaveRequest)
        if status:
            query = query.where(LeaveRequest.status == status)
        if entity:
            query = query.where(LeaveRequest.entity == entity)
        if leave_type:
            query = query.where(func.upper(LeaveRequest.type) == leave_type.upper())
        query = query.order_by(LeaveRequest.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_if_status(
        self,
        request_id: str,
        expected: RequestStatus,
        changes: Dict[str, Any],
    ) -> bool:
        """
        Apply ``changes`` only if the request is still in ``expected`` status.

        The check and the write are a single UPDATE statement, so of two
        concurrent transitions on the same request exactly one succeeds.

        Returns:
            True when the row was updated and committed.
        """
        try:
            result = await self.db.execute(
                update(LeaveRequest)
                .where(LeaveRequest.id == request_id, LeaveRequest.status == expected)
                .values(**changes)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"❌ Failed to update request {request_id} to {changes.get('status')}: {e}")
            raise
        return result.rowcount == 1
