from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer

from app.enums.user_role import UserRole


# --------- USERS ----------
class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    full_name: str = Field(..., min_length=1, max_length=255)


class UserUpdate(BaseModel):
    username: str = Field(..., min_length=3, max_length=150)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)


class UserResponse(BaseModel):
    id: UUID
    username: str
    email: str
    full_name: str
    role: UserRole
    mfa_enabled: bool
    last_login: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    # UUID -> str
    @field_serializer("id")
    def serialize_id(self, v: UUID, _info):
        return str(v)


class UserListResponse(BaseModel):
    total: int
    users: list[UserResponse]


# --------- LOGIN ----------
class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    requires_mfa: bool = False
    temp_token: Optional[str] = None
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    user: Optional[UserResponse] = None
    message: str = "Welcome"


class MfaSetupResponse(BaseModel):
    secret: str
    otpauth_url: str
    qr_code_url: str


class RegisterResponse(BaseModel):
    message: str = "User registered successfully"
    user: UserResponse
    mfa_setup: MfaSetupResponse


# --------- RECOVERY ----------
class RecoveryRequest(BaseModel):
    username: str


class RecoveryMethods(BaseModel):
    email: bool


class RecoveryRequestResponse(BaseModel):
    message: str = "A recovery code has been sent"
    methods_available: RecoveryMethods


class RecoveryVerifyRequest(BaseModel):
    username: str
    token: str


class RecoveryVerifyResponse(BaseModel):
    message: str = "Code verified"
    token: str


class PasswordResetRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=8, max_length=72)


class MessageResponse(BaseModel):
    message: str
