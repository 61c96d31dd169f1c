"""Admin accounts: lookup, creation and startup seeding."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from detachements.core.config import Settings, settings
from detachements.core.security import hash_password
from detachements.models.admin import AdminUser

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Normalize email by converting to lowercase and stripping whitespace."""
    return (email or "").strip().lower()


class AdminUserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[AdminUser]:
        result = await self.db.execute(
            select(AdminUser).where(AdminUser.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, admin_id: str) -> Optional[AdminUser]:
        result = await self.db.execute(
            select(AdminUser).where(AdminUser.admin_id == admin_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        password: str,
        full_name: str,
        title: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> AdminUser:
        admin = AdminUser(
            email=normalize_email(email),
            password_hash=hash_password(password),
            full_name=full_name,
            title=title or None,
            phone=phone or None,
        )
        self.db.add(admin)
        await self.db.commit()
        return admin

    async def touch_last_login(self, admin: AdminUser) -> None:
        await self.db.execute(
            update(AdminUser)
            .where(AdminUser.admin_id == admin.admin_id)
            .values(last_login=datetime.utcnow())
        )
        await self.db.commit()


async def seed_admin_from_settings(db: AsyncSession, config: Settings = settings) -> Optional[AdminUser]:
    """
    Create the admin described by ``ADMIN_*`` settings if it does not exist yet.

    Returns the created admin, or None when nothing was seeded.
    """
    if not (config.ADMIN_EMAIL and config.ADMIN_PASSWORD):
        logger.info("ℹ️ No ADMIN_EMAIL/ADMIN_PASSWORD configured, skipping admin seeding")
        return None

    store = AdminUserStore(db)
    if await store.get_by_email(config.ADMIN_EMAIL):
        return None

    admin = await store.create(
        email=config.ADMIN_EMAIL,
        password=config.ADMIN_PASSWORD,
        full_name=config.ADMIN_FULL_NAME or config.ADMIN_EMAIL,
        title=config.ADMIN_TITLE,
        phone=config.ADMIN_PHONE,
    )
    logger.info(f"👤 Seeded admin {admin.email}")
    return admin
