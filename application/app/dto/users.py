from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class UserRecord(BaseModel):
    """User document as stored under `users/<phone>`. `password` holds the bcrypt hash."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    email: str
    phone: str
    password: str
    created_at: int = Field(..., alias="createdAt", description="Epoch milliseconds")
    online: bool = False

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class PublicUser(BaseModel):
    """User view that crosses the HTTP boundary; never carries the password hash."""
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    name: str
    email: str
    phone: str
    created_at: Optional[int] = Field(None, alias="createdAt")
    online: Optional[bool] = None

    @classmethod
    def from_record(cls, record: UserRecord) -> "PublicUser":
        return cls(
            uid=record.phone,
            name=record.name,
            email=record.email,
            phone=record.phone,
            created_at=record.created_at,
            online=record.online,
        )
