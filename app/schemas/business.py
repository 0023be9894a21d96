from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from uuid import UUID

from app.models.business import Business, Permission, Staff

# --- 1. INCOMING ---
class BusinessCreate(BaseModel):
    business_name: str
    business_code: Optional[str] = None   # generated when omitted

class JoinBusinessRequest(BaseModel):
    role_code: str
    business_code: Optional[str] = None   # optional cross-check
    phone: str = ""

class RoleUpsert(BaseModel):
    id: Optional[str] = None              # present = update in place
    role_name: str
    permissions: List[Permission] = []

class StaffCreate(BaseModel):
    name: str
    email: EmailStr
    phone: str = ""
    role: str                             # role id or role name
    salary: float = Field(default=0, ge=0)

class StaffUpdate(BaseModel):
    role: Optional[str] = None
    salary: Optional[float] = Field(default=None, ge=0)
    name: Optional[str] = None
    phone: Optional[str] = None

class StaffRoleUpdate(BaseModel):
    role: str

# --- 2. OUTGOING ---
class RoleResponse(BaseModel):
    id: str
    role_name: str
    role_code: Optional[str] = None       # hidden from non-owners
    permissions: List[Permission]
    role_version: int
    is_default: bool
    created_at: datetime

    class Config:
        from_attributes = True

class BusinessResponse(BaseModel):
    id: UUID
    business_code: str
    business_name: str
    owner_email: str
    owner_id: UUID
    roles: List[RoleResponse]
    staff: List[Staff]
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_business(cls, business: Business, include_role_codes: bool = True) -> "BusinessResponse":
        response = cls.model_validate(business)
        if not include_role_codes:
            for role in response.roles:
                role.role_code = None
        return response
