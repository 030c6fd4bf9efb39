from pydantic import BaseModel, Field


class OTPRecord(BaseModel):
    """Stored OTP state for one email. Only the SHA-256 digest of the code is kept."""
    otp_id: str
    otp_hash: str
    expires_at: float = Field(..., description="Absolute expiry, epoch seconds")
    attempts: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at
