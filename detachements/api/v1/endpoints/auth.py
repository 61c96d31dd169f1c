import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from detachements.core.database import aget_db
from detachements.core.errors import Unauthorized
from detachements.core.security import create_jwt_token, get_current_admin, verify_password
from detachements.models.admin import AdminUser
from detachements.schemas.authSchema import AdminResponse, LoginRequest, TokenResponse
from detachements.services.AdminUserStore import AdminUserStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

# -----------------------------
# Login
# -----------------------------
@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest, db: AsyncSession = Depends(aget_db)):
    """
    Exchange admin credentials for a bearer token.
    """
    store = AdminUserStore(db)
    admin = await store.get_by_email(credentials.email)
    if not admin or not admin.is_active or not verify_password(credentials.password, admin.password_hash):
        logger.warning(f"⚠️ Failed login for {credentials.email}")
        raise Unauthorized("Invalid credentials")

    await store.touch_last_login(admin)
    token = create_jwt_token({"sub": admin.admin_id, "email": admin.email, "role": "admin"})
    logger.info(f"🔑 Admin {admin.email} logged in")
    return TokenResponse(token=token)

# -----------------------------
# Get Current Admin
# -----------------------------
@router.get("/me", response_model=AdminResponse)
async def me(current_admin: AdminUser = Depends(get_current_admin)):
    """
    Return current authenticated admin info
    """
    return current_admin
