"""
Business membership operations: create a business, join it with a role
code, manage roles and staff, leave, and the read-triggered repair that
keeps each user's cached BusinessSnapshot in line with the Business record.

Write ordering: the Business document is always persisted first (it is the
durability point); the User snapshot is updated afterwards as a cache
refresh. If the second write is lost, the next details fetch repairs it.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple
from uuid import uuid4

from beanie.exceptions import RevisionIdWasChanged
from pymongo.errors import DuplicateKeyError

from app.core.config import settings
from app.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    DefaultRoleProtectedError,
    ForbiddenError,
    NotFoundError,
    RoleInUseError,
)
from app.core.logging_config import logger
from app.models.business import Business, Permission, Role, Staff
from app.models.user import BusinessSnapshot, User
from app.services.permissions import (
    DEFAULT_ROLE_TEMPLATES,
    OWNER_ROLE_ID,
    OWNER_ROLE_NAME,
    all_permissions,
    copy_permissions,
    format_staff_id,
    generate_business_code,
    generate_role_code,
    normalize_permissions,
)

BUSINESS_CODE_MIN_LENGTH = 4
BUSINESS_CODE_MAX_LENGTH = 12


@dataclass
class JoinResult:
    business: Business
    role: Role
    staff: Staff
    user: User
    already_member: bool
    message: str


# ---------------------------------------------------------
# 1. PERSISTENCE HELPERS
# ---------------------------------------------------------
async def _save_business(business: Business) -> None:
    business.updated_at = datetime.utcnow()
    try:
        await business.replace()
    except RevisionIdWasChanged:
        logger.warning(f"Concurrent write rejected for business {business.business_code}")
        raise ConflictError("Business was modified by another request, please retry")


async def _save_user(user: User) -> None:
    user.updated_at = datetime.utcnow()
    await user.save()


async def _clear_snapshot(user: User) -> None:
    user.business = None
    await _save_user(user)


async def _verified_affiliation(user: User) -> Optional[Business]:
    """
    The business the user's snapshot points at, if the affiliation is still
    real. A stale snapshot (business gone, ownership lost, staff entry
    removed) is cleared and None returned.
    """
    snapshot = user.business
    if snapshot is None:
        return None

    business = await Business.get(snapshot.business_id)
    if business is not None:
        if snapshot.is_business_owner and business.is_owned_by(user.user_id):
            return business
        if not snapshot.is_business_owner and business.find_staff_by_email(user.email) is not None:
            return business

    logger.info(f"Clearing stale affiliation of {user.email} with {snapshot.business_code}")
    await _clear_snapshot(user)
    return None


async def _load_owned_business(user: User, action: str) -> Business:
    """The owner check runs against the Business record, not just the cached flag."""
    snapshot = user.business
    if snapshot is None or not snapshot.is_business_owner:
        raise ForbiddenError(f"Only business owners can {action}")

    business = await Business.get(snapshot.business_id)
    if business is None:
        raise NotFoundError("Business not found")
    if not business.is_owned_by(user.user_id):
        raise ForbiddenError(f"Only business owners can {action}")
    return business


async def get_affiliated_business(user: User) -> Business:
    if user.business is None:
        raise NotFoundError("You are not part of any business")
    business = await Business.get(user.business.business_id)
    if business is None:
        raise NotFoundError("Business not found")
    return business


# ---------------------------------------------------------
# 2. CODE MINTING
# ---------------------------------------------------------
async def _resolve_business_code(requested: Optional[str]) -> str:
    if requested:
        code = requested.strip().upper()
        if not (
            BUSINESS_CODE_MIN_LENGTH <= len(code) <= BUSINESS_CODE_MAX_LENGTH
            and code.isascii()
            and code.isalnum()
        ):
            raise BusinessValidationError(
                f"Business code must be {BUSINESS_CODE_MIN_LENGTH}-{BUSINESS_CODE_MAX_LENGTH} letters or digits"
            )
        if await Business.find_one(Business.business_code == code):
            raise ConflictError(f"Business code '{code}' is already taken")
        return code

    for _ in range(settings.CODE_GENERATION_RETRIES):
        code = generate_business_code()
        if not await Business.find_one(Business.business_code == code):
            return code

    logger.error("Business code generation exhausted its retries")
    raise ConflictError("Could not generate a unique business code, please retry")


async def _mint_role_code(business_code: str, role_name: str, taken: Set[str]) -> str:
    """Unique within the business (`taken`) and across every stored business."""
    for _ in range(settings.CODE_GENERATION_RETRIES):
        code = generate_role_code(business_code, role_name)
        if code in taken:
            continue
        if await Business.find_one({"roles.role_code": code}):
            continue
        taken.add(code)
        return code

    logger.error(f"Role code generation exhausted its retries for {business_code}")
    raise ConflictError("Could not generate a unique role code, please retry")


# ---------------------------------------------------------
# 3. SNAPSHOTS
# ---------------------------------------------------------
def _owner_snapshot(business: Business) -> BusinessSnapshot:
    return BusinessSnapshot(
        business_id=business.id,
        business_name=business.business_name,
        business_code=business.business_code,
        is_business_owner=True,
        role=OWNER_ROLE_NAME,
        role_id=OWNER_ROLE_ID,
        permissions=all_permissions(),
    )


def _staff_snapshot(business: Business, staff: Staff) -> BusinessSnapshot:
    return BusinessSnapshot(
        business_id=business.id,
        business_name=business.business_name,
        business_code=business.business_code,
        is_business_owner=False,
        role=staff.role,
        role_id=staff.role_id,
        role_version=staff.role_version,
        permissions=copy_permissions(staff.permissions),
    )


def snapshot_is_current(snapshot: BusinessSnapshot, business: Business, staff: Staff) -> bool:
    """Version comparison instead of a field-by-field diff."""
    return (
        not snapshot.is_business_owner
        and snapshot.business_id == business.id
        and snapshot.role_id == staff.role_id
        and snapshot.role_version == staff.role_version
    )


def _assign_role(staff: Staff, role: Role) -> None:
    # Exact fresh copy; any previous grant on the staff entry is discarded
    staff.role = role.role_name
    staff.role_id = role.id
    staff.role_version = role.role_version
    staff.permissions = copy_permissions(role.permissions)


def sync_staff_with_roles(business: Business) -> bool:
    """Refresh staff entries whose copied role version lags the role. Returns True if any changed."""
    changed = False
    for staff in business.staff:
        if staff.role_id:
            role = business.find_role(staff.role_id)
        else:
            role = business.find_role_by_name(staff.role)
        if role is None:
            continue
        if staff.role_id != role.id or staff.role_version != role.role_version:
            _assign_role(staff, role)
            changed = True
    return changed


def _resolve_role(business: Business, role_ref: str) -> Role:
    role = business.find_role(role_ref) or business.find_role_by_name(role_ref)
    if role is None:
        raise NotFoundError("Role not found")
    return role


def _new_staff(
    business: Business,
    role: Role,
    name: str,
    email: str,
    phone: str = "",
    salary: float = 0,
    user_id=None,
) -> Staff:
    business.staff_sequence = max(business.staff_sequence, len(business.staff)) + 1
    staff = Staff(
        id=f"staff_{uuid4().hex[:12]}",
        staff_id=format_staff_id(business.business_code, business.staff_sequence),
        name=name,
        email=email,
        phone=phone or "",
        role=role.role_name,
        salary=salary,
        user_id=user_id,
    )
    _assign_role(staff, role)
    return staff


# ---------------------------------------------------------
# 4. BUSINESS CREATION
# ---------------------------------------------------------
async def create_business(owner: User, business_name: str, business_code: Optional[str] = None) -> Business:
    """
    Create a business owned by `owner` and mint the six default roles.
    The Business is inserted before the owner's snapshot is written, so a
    failure in between leaves a harmless orphan and a business-less user
    who can simply retry.
    """
    if owner.business is not None and await _verified_affiliation(owner) is not None:
        raise ConflictError("You are already part of a business")

    business_name = (business_name or "").strip()
    if not business_name:
        raise BusinessValidationError("Business name is required")

    code = await _resolve_business_code(business_code)

    taken: Set[str] = set()
    roles = []
    for role_id, role_name, prefix_source, permissions in DEFAULT_ROLE_TEMPLATES:
        roles.append(Role(
            id=role_id,
            role_name=role_name,
            role_code=await _mint_role_code(code, prefix_source, taken),
            permissions=copy_permissions(permissions),
            is_default=True,
        ))

    business = Business(
        business_code=code,
        business_name=business_name,
        owner_email=owner.email,
        owner_id=owner.user_id,
        roles=roles,
    )
    try:
        await business.insert()
    except DuplicateKeyError:
        raise ConflictError(f"Business code '{code}' is already taken")

    owner.business = _owner_snapshot(business)
    await _save_user(owner)

    logger.info(f"Created business {business.business_name} ({code}) for {owner.email}")
    return business


# ---------------------------------------------------------
# 5. JOIN / LEAVE
# ---------------------------------------------------------
async def join_business(
    user: User,
    role_code: str,
    phone: str = "",
    business_code: Optional[str] = None,
) -> JoinResult:
    """
    Join the business that issued `role_code`. Safe to repeat: a second
    call with the same email refreshes the existing staff entry instead of
    adding a duplicate.
    """
    role_code = (role_code or "").strip()
    if not role_code:
        raise BusinessValidationError("Role code is required")

    business = await Business.find_one({"roles.role_code": role_code})
    if business is None:
        raise NotFoundError("Invalid role code")
    if business_code and business_code.strip().upper() != business.business_code:
        raise NotFoundError("Business not found with this code")

    role = business.find_role_by_code(role_code)

    if business.is_owned_by(user.user_id) or business.owner_email == user.email:
        raise ConflictError("Business owners cannot join their own business as staff")
    if (
        user.business is not None
        and user.business.business_id != business.id
        and await _verified_affiliation(user) is not None
    ):
        raise ConflictError("You already belong to another business. Leave it before joining a new one")

    staff = business.find_staff_by_email(user.email)
    already_member = staff is not None

    if already_member:
        _assign_role(staff, role)
        staff.user_id = user.user_id
        staff.is_active = True
        if phone:
            staff.phone = phone
        message = "You are already part of this business. Your permissions have been refreshed."
    else:
        staff = _new_staff(business, role, user.name, user.email, phone, user_id=user.user_id)
        business.staff.append(staff)
        message = "Successfully joined business"

    await _save_business(business)

    user.business = _staff_snapshot(business, staff)
    await _save_user(user)

    logger.info(
        f"User {user.email} joined business {business.business_code} as {role.role_name}"
        f"{' (refresh)' if already_member else ''}"
    )
    return JoinResult(
        business=business,
        role=role,
        staff=staff,
        user=user,
        already_member=already_member,
        message=message,
    )


async def leave_business(user: User) -> User:
    snapshot = user.business
    if snapshot is None:
        raise NotFoundError("You are not part of any business")
    if snapshot.is_business_owner:
        raise ConflictError("Business owners cannot leave their own business")

    business = await Business.get(snapshot.business_id)
    if business is not None:
        staff = business.find_staff_by_email(user.email)
        if staff is not None:
            business.staff = [s for s in business.staff if s.id != staff.id]
            await _save_business(business)

    await _clear_snapshot(user)
    logger.info(f"User {user.email} left business {snapshot.business_code}")
    return user


# ---------------------------------------------------------
# 6. DETAILS + SNAPSHOT REPAIR
# ---------------------------------------------------------
async def get_business_details(user: User) -> Optional[Business]:
    """
    Return the user's business, repairing drift on the way.

    Staleness window: after a role or staff edit, the affected user's
    cached permissions stay stale until they call this (typically on the
    next login or page load).
    """
    snapshot = user.business
    if snapshot is None:
        return None

    business = await Business.get(snapshot.business_id)
    if business is None:
        logger.warning(f"User {user.email} points at missing business {snapshot.business_code}; clearing")
        await _clear_snapshot(user)
        return None

    if sync_staff_with_roles(business):
        try:
            await _save_business(business)
        except ConflictError:
            # The in-memory copy is still derived from the current roles;
            # the next read persists it.
            logger.warning(f"Deferred staff role sync for business {business.business_code}")

    if snapshot.is_business_owner:
        if not business.is_owned_by(user.user_id):
            logger.warning(f"User {user.email} claims ownership of {business.business_code}; clearing")
            await _clear_snapshot(user)
            return None
        return business

    staff = business.find_staff_by_email(user.email)
    if staff is None:
        logger.info(f"User {user.email} is no longer staff of {business.business_code}; clearing")
        await _clear_snapshot(user)
        return None

    if not snapshot_is_current(snapshot, business, staff):
        user.business = _staff_snapshot(business, staff)
        await _save_user(user)
        logger.info(f"Repaired snapshot for {user.email}: role {staff.role} v{staff.role_version}")

    return business


async def list_staff(user: User) -> List[Staff]:
    business = await get_affiliated_business(user)
    return business.staff


# ---------------------------------------------------------
# 7. ROLES (owner only)
# ---------------------------------------------------------
async def create_or_update_role(
    owner: User,
    role_name: str,
    permissions: Iterable[Permission],
    role_id: Optional[str] = None,
) -> Tuple[Business, Role]:
    business = await _load_owned_business(owner, "manage roles")

    role_name = (role_name or "").strip()
    if not role_name:
        raise BusinessValidationError("Role name is required")
    permissions = normalize_permissions(permissions)

    if role_id:
        role = business.find_role(role_id)
        if role is None:
            raise NotFoundError("Role not found")
        # role_code is never re-minted, so codes already handed out keep working
        role.role_name = role_name
        role.permissions = permissions
        role.role_version += 1
        role.updated_at = datetime.utcnow()
        sync_staff_with_roles(business)
    else:
        taken = {r.role_code for r in business.roles}
        role = Role(
            id=f"role_{uuid4().hex[:12]}",
            role_name=role_name,
            role_code=await _mint_role_code(business.business_code, role_name, taken),
            permissions=permissions,
        )
        business.roles.append(role)

    await _save_business(business)
    logger.info(
        f"{'Updated' if role_id else 'Created'} role {role.role_name} (v{role.role_version}) "
        f"in business {business.business_code}"
    )
    return business, role


async def delete_role(owner: User, role_id: str) -> Business:
    business = await _load_owned_business(owner, "manage roles")

    role = business.find_role(role_id)
    if role is None:
        raise NotFoundError("Role not found")
    if role.is_default:
        raise DefaultRoleProtectedError("Cannot delete default roles")
    # Matched by id, so renaming a role cannot hide its assignments
    if any(s.role_id == role.id for s in business.staff):
        raise RoleInUseError("Cannot delete role that is assigned to staff members")

    business.roles = [r for r in business.roles if r.id != role.id]
    await _save_business(business)

    logger.info(f"Deleted role {role.role_name} from business {business.business_code}")
    return business


# ---------------------------------------------------------
# 8. STAFF (owner only)
# ---------------------------------------------------------
async def add_staff(
    owner: User,
    name: str,
    email: str,
    role: str,
    phone: str = "",
    salary: float = 0,
) -> Tuple[Business, Staff]:
    business = await _load_owned_business(owner, "add staff members")

    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name:
        raise BusinessValidationError("Staff name is required")
    if not email:
        raise BusinessValidationError("Staff email is required")
    if not role:
        raise BusinessValidationError("Staff role is required")
    if salary is not None and salary < 0:
        raise BusinessValidationError("Salary cannot be negative")

    if email == business.owner_email:
        raise ConflictError("The business owner cannot be added as staff")
    if business.find_staff_by_email(email):
        raise ConflictError("Staff member with this email already exists")

    selected_role = _resolve_role(business, role)
    staff = _new_staff(business, selected_role, name, email, phone, salary or 0)
    business.staff.append(staff)
    await _save_business(business)

    logger.info(f"Added staff {staff.staff_id} ({email}) to business {business.business_code}")
    return business, staff


async def update_staff(
    owner: User,
    staff_id: str,
    role: Optional[str] = None,
    salary: Optional[float] = None,
    name: Optional[str] = None,
    phone: Optional[str] = None,
) -> Tuple[Business, Staff]:
    business = await _load_owned_business(owner, "update staff")

    staff = business.find_staff(staff_id)
    if staff is None:
        raise NotFoundError("Staff member not found")

    if role:
        _assign_role(staff, _resolve_role(business, role))
    if salary is not None:
        if salary < 0:
            raise BusinessValidationError("Salary cannot be negative")
        staff.salary = salary
    if name and name.strip():
        staff.name = name.strip()
    if phone:
        staff.phone = phone

    await _save_business(business)
    logger.info(f"Updated staff {staff.staff_id} in business {business.business_code}")
    return business, staff


async def update_staff_role(owner: User, staff_id: str, role: str) -> Tuple[Business, Staff]:
    """Reassign a staff member; the affected user's snapshot catches up on their next details fetch."""
    if not role:
        raise BusinessValidationError("Role is required")
    return await update_staff(owner, staff_id, role=role)


async def remove_staff(owner: User, staff_id: str) -> Business:
    business = await _load_owned_business(owner, "remove staff members")

    staff = business.find_staff(staff_id)
    if staff is None:
        raise NotFoundError("Staff member not found")

    business.staff = [s for s in business.staff if s.id != staff.id]
    await _save_business(business)

    # Push the removal to the user's snapshot; read repair would also catch it
    if staff.user_id is not None:
        member = await User.find_one(User.user_id == staff.user_id)
    else:
        member = await User.find_one(User.email == staff.email)
    if member is not None and member.business is not None and member.business.business_id == business.id:
        await _clear_snapshot(member)

    logger.info(f"Removed staff {staff.staff_id} from business {business.business_code}")
    return business
