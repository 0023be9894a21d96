from typing import List, Optional
from uuid import UUID, uuid4
from datetime import datetime
from enum import Enum
from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator


class PermissionModule(str, Enum):
    DASHBOARD = "dashboard"
    ORDERS = "orders"
    INVENTORY = "inventory"
    STAFF = "staff"
    RATES = "rates"
    SUPPLIERS = "suppliers"
    CUSTOMERS = "customers"


class PermissionAction(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Permission(BaseModel):
    """A (module, allowed actions) grant. Actions behave as a set."""
    module: PermissionModule
    actions: List[PermissionAction] = []

    @field_validator("actions")
    @classmethod
    def dedupe_actions(cls, v: List[PermissionAction]) -> List[PermissionAction]:
        return [action for action in PermissionAction if action in v]


class Role(BaseModel):
    id: str                              # role_owner, role_manager, role_<hex> ...
    role_name: str
    role_code: str                       # join token, never changes once minted
    permissions: List[Permission] = []
    role_version: int = 1                # bumped on every edit
    is_default: bool = False             # minted at business setup, undeletable
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class Staff(BaseModel):
    id: str
    staff_id: str                        # e.g. ACME12001
    name: str
    email: str
    phone: str = ""
    role: str                            # display name, refreshed from the role
    role_id: Optional[str] = None
    role_version: int = 0                # version of the role the permissions were copied from
    permissions: List[Permission] = []   # copy, not a live reference
    salary: float = 0
    user_id: Optional[UUID] = None       # set once a registered user is bound to this entry
    joined_at: datetime = Field(default_factory=datetime.utcnow)
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class Business(Document):
    """
    Tenant aggregate: the source of truth for roles and staff.
    Every mutation is a whole-document replace guarded by the revision id.
    """
    id: UUID = Field(default_factory=uuid4)

    business_code: Indexed(str, unique=True)
    business_name: str
    owner_email: str
    owner_id: UUID

    roles: List[Role] = []
    staff: List[Staff] = []

    # Monotonic, so staff ids are never reused after a removal
    staff_sequence: int = 0

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "businesses"
        use_revision = True

    # --- Lookups (linear scans over the embedded arrays) ---
    def find_role(self, role_id: str) -> Optional[Role]:
        return next((r for r in self.roles if r.id == role_id), None)

    def find_role_by_name(self, role_name: str) -> Optional[Role]:
        return next((r for r in self.roles if r.role_name == role_name), None)

    def find_role_by_code(self, role_code: str) -> Optional[Role]:
        return next((r for r in self.roles if r.role_code == role_code), None)

    def find_staff(self, staff_id: str) -> Optional[Staff]:
        """Accepts either the internal id or the human staff_id."""
        return next(
            (s for s in self.staff if s.id == staff_id or s.staff_id == staff_id),
            None
        )

    def find_staff_by_email(self, email: str) -> Optional[Staff]:
        email = email.strip().lower()
        return next((s for s in self.staff if s.email == email), None)

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.owner_id == user_id
