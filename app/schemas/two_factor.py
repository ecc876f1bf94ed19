from pydantic import BaseModel, Field


class MfaVerifyRequest(BaseModel):
    """Schema for activating MFA after registration"""
    username: str
    code: str = Field(..., min_length=6, max_length=6, description="6-digit verification code")


class MfaLoginRequest(BaseModel):
    """Schema for the second login step"""
    temp_token: str
    code: str = Field(..., min_length=6, max_length=6, description="6-digit verification code")


class MfaVerifyResponse(BaseModel):
    success: bool
    message: str
