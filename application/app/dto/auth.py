from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.dto.users import PublicUser


def _coerce_to_str(v):
    """JSON clients sometimes send numeric codes and phones."""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class SendOTPRequest(BaseModel):
    """Request model for sending an email OTP"""
    email: Optional[str] = Field(None, description="Recipient email address")


class VerifyOTPRequest(BaseModel):
    """Request model for verifying an email OTP"""
    email: Optional[str] = Field(None, description="Email the OTP was sent to")
    otp: Optional[str] = Field(None, description="6-digit OTP code")

    @field_validator('otp', mode='before')
    @classmethod
    def coerce_otp(cls, v):
        return _coerce_to_str(v)


class RegisterRequest(BaseModel):
    """Request model for user registration"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    otp_verified_token: Optional[str] = Field(
        None,
        alias="otpVerifiedToken",
        description="Token returned by /verify-otp for the same email",
    )

    @field_validator('phone', mode='before')
    @classmethod
    def coerce_phone(cls, v):
        return _coerce_to_str(v)


class LoginRequest(BaseModel):
    """Request model for login by email or phone"""
    model_config = ConfigDict(populate_by_name=True)

    email_or_phone: Optional[str] = Field(None, alias="emailOrPhone")
    password: Optional[str] = None

    @field_validator('email_or_phone', mode='before')
    @classmethod
    def coerce_identifier(cls, v):
        return _coerce_to_str(v)


class MessageResponse(BaseModel):
    message: str


class VerifyOTPResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    otp_verified_token: str = Field(..., alias="otpVerifiedToken")


class AuthResponse(BaseModel):
    """Response model for register and login"""
    message: str
    token: str
    user: PublicUser


class ProfileResponse(BaseModel):
    message: str
    user: PublicUser
