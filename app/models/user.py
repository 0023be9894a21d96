from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from uuid import UUID, uuid4

from app.models.business import Permission


class BusinessSnapshot(BaseModel):
    """
    Denormalized copy of the user's affiliation, read on every request.
    The Business document stays authoritative; this copy may lag it.
    """
    business_id: UUID
    business_name: str
    business_code: str
    is_business_owner: bool = False
    role: str
    role_id: Optional[str] = None
    role_version: int = 0
    permissions: List[Permission] = []
    synced_at: datetime = Field(default_factory=datetime.utcnow)


class User(Document):
    user_id: UUID = Field(default_factory=uuid4)
    # Stored lower-cased so uniqueness is case-insensitive
    email: Indexed(str, unique=True)
    name: str
    hashed_password: str

    # None until the user creates or joins a business
    business: Optional[BusinessSnapshot] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    class Settings:
        name = "users"
