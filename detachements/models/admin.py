"""Admin accounts allowed to list and decide on requests."""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, String
from detachements.models.base import Base


class AdminUser(Base):
    __tablename__ = "admin_users"
    admin_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    title = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)
