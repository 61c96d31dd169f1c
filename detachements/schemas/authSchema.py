from typing import Optional
from pydantic import BaseModel, EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


class AdminResponse(BaseModel):
    admin_id: str
    email: str
    full_name: str
    title: Optional[str]
    phone: Optional[str]

    class Config:
        from_attributes = True
