from pydantic import BaseModel, EmailStr, constr, Field
from typing import Optional
from datetime import datetime

from models.user import UserRole


# ---------- create (admin) ----------
class UserCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=200)
    password: constr(min_length=8)
    role: UserRole = UserRole.CLIENT
    language: str = "en"

    class Config:
        json_schema_extra = {
            "example": {
                "email": "client@example.com",
                "name": "Client Contact",
                "password": "StrongPass123!",
                "role": "CLIENT"
            }
        }


class UserRead(BaseModel):
    id: int
    uuid: str
    email: EmailStr
    name: Optional[str] = None
    image: Optional[str] = None
    language: Optional[str] = None
    # raw value: a role outside the enum is still shown as stored
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------- own profile ----------
class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    image: Optional[str] = Field(None, max_length=500)
    language: Optional[str] = Field(None, max_length=10)


class RoleUpdate(BaseModel):
    role: UserRole


# ---------- auth ----------
class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead
    redirect_to: str


class SessionRead(BaseModel):
    authenticated: bool
    user: Optional[UserRead] = None


class MessageResponse(BaseModel):
    detail: str
