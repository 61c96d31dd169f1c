"""Leave ("détachement") request model."""

import uuid
from datetime import datetime
from sqlalchemy import Column, Date, DateTime, Enum, Float, Index, String, Text
from detachements.constants.constants import PeriodMarker, RequestStatus
from detachements.models.base import Base


class LeaveRequest(Base):
    """Model representing a détachement request submitted by an applicant."""

    __tablename__ = "leave_requests"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = Column(String, nullable=False)
    applicant_email = Column(String, nullable=False)
    entity = Column(String, nullable=False)
    place = Column(String, nullable=False)
    date_from = Column(Date, nullable=False)
    date_to = Column(Date, nullable=False)
    start_period = Column(Enum(PeriodMarker), nullable=False, default=PeriodMarker.FULL)
    end_period = Column(Enum(PeriodMarker), nullable=False, default=PeriodMarker.FULL)
    type = Column(String, nullable=False)
    manager_email = Column(String, nullable=False)
    hr_email = Column(String, nullable=False)
    comment = Column(Text, nullable=True)
    days = Column(Float, nullable=False, default=1)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.pending)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    validated_at = Column(DateTime, nullable=True)
    decision_at = Column(DateTime, nullable=True)
    decision_reason = Column(Text, nullable=True)
    decided_by = Column(String, nullable=True)

    __table_args__ = (
        Index("idx_leave_requests_status", "status"),
        Index("idx_leave_requests_created_at", "created_at"),
    )
