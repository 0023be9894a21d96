from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from uuid import UUID

from app.models.user import BusinessSnapshot

# --- 1. INCOMING ---
class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)

# --- 2. OUTGOING ---
# Never exposes hashed_password
class UserResponse(BaseModel):
    user_id: UUID
    name: str
    email: str
    business: Optional[BusinessSnapshot] = None
    created_at: datetime

    class Config:
        from_attributes = True

# --- 3. TOKEN SCHEMAS ---
class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse

class TokenData(BaseModel):
    user_id: Optional[UUID] = None
