from fastapi import APIRouter, Depends, status
from typing import List

from app.dependencies.auth import get_current_user, require_permission
from app.models.business import Business, PermissionAction, PermissionModule, Staff
from app.models.user import User
from app.schemas.business import (
    BusinessCreate,
    BusinessResponse,
    JoinBusinessRequest,
    RoleUpsert,
    StaffCreate,
    StaffRoleUpdate,
    StaffUpdate,
)
from app.schemas.user import UserResponse
from app.services import membership

router = APIRouter()


def _business_out(business: Business, user: User) -> BusinessResponse:
    # Role codes are join tokens; only the owner may see them
    is_owner = business.is_owned_by(user.user_id)
    return BusinessResponse.from_business(business, include_role_codes=is_owner)


# ---------------------------------------------------------
# 1. CREATE BUSINESS
# ---------------------------------------------------------
@router.post("/", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_business(
    business_in: BusinessCreate,
    current_user: User = Depends(get_current_user)
):
    """
    The caller becomes the owner. Six default roles are minted,
    each with its own join code.
    """
    business = await membership.create_business(
        current_user, business_in.business_name, business_in.business_code
    )
    return {
        "message": "Business created successfully",
        "business": _business_out(business, current_user),
        "user": UserResponse.model_validate(current_user),
    }


# ---------------------------------------------------------
# 2. BUSINESS DETAILS (repairs the caller's snapshot)
# ---------------------------------------------------------
@router.get("/details", response_model=dict)
async def get_business_details(current_user: User = Depends(get_current_user)):
    business = await membership.get_business_details(current_user)

    if business is None:
        return {
            "business": {"staff": [], "roles": []},
            "user": UserResponse.model_validate(current_user),
        }

    return {
        "business": _business_out(business, current_user),
        "user": UserResponse.model_validate(current_user),
    }


# ---------------------------------------------------------
# 3. JOIN / LEAVE
# ---------------------------------------------------------
@router.post("/join", response_model=dict)
async def join_business(
    join_in: JoinBusinessRequest,
    current_user: User = Depends(get_current_user)
):
    result = await membership.join_business(
        current_user,
        join_in.role_code,
        phone=join_in.phone,
        business_code=join_in.business_code,
    )
    return {
        "message": result.message,
        "already_member": result.already_member,
        "staff_id": result.staff.staff_id,
        "role": result.role.role_name,
        "business": _business_out(result.business, current_user),
        "user": UserResponse.model_validate(result.user),
    }


@router.post("/leave", response_model=dict)
async def leave_business(current_user: User = Depends(get_current_user)):
    user = await membership.leave_business(current_user)
    return {
        "message": "You have left the business",
        "user": UserResponse.model_validate(user),
    }


# ---------------------------------------------------------
# 4. ROLES (Owner Only)
# ---------------------------------------------------------
@router.post("/roles", response_model=dict)
async def create_or_update_role(
    role_in: RoleUpsert,
    current_user: User = Depends(get_current_user)
):
    business, role = await membership.create_or_update_role(
        current_user, role_in.role_name, role_in.permissions, role_id=role_in.id
    )
    return {
        "role_id": role.id,
        "business": _business_out(business, current_user),
    }


@router.delete("/roles/{role_id}", response_model=dict)
async def delete_role(role_id: str, current_user: User = Depends(get_current_user)):
    business = await membership.delete_role(current_user, role_id)
    return {
        "message": "Role deleted successfully",
        "business": _business_out(business, current_user),
    }


# ---------------------------------------------------------
# 5. STAFF
# ---------------------------------------------------------
@router.get("/staff", response_model=List[Staff])
async def list_staff(
    current_user: User = Depends(require_permission(PermissionModule.STAFF, PermissionAction.READ))
):
    """
    The staff:read gate checks the caller's cached snapshot, not the live role.
    After a role change it takes effect once the caller fetches /business/details.
    """
    return await membership.list_staff(current_user)


@router.post("/staff", response_model=dict, status_code=status.HTTP_201_CREATED)
async def add_staff(
    staff_in: StaffCreate,
    current_user: User = Depends(get_current_user)
):
    business, staff = await membership.add_staff(
        current_user,
        name=staff_in.name,
        email=staff_in.email,
        role=staff_in.role,
        phone=staff_in.phone,
        salary=staff_in.salary,
    )
    return {"staff": staff, "business": _business_out(business, current_user)}


@router.put("/staff/{staff_id}", response_model=dict)
async def update_staff(
    staff_id: str,
    staff_in: StaffUpdate,
    current_user: User = Depends(get_current_user)
):
    business, staff = await membership.update_staff(
        current_user,
        staff_id,
        role=staff_in.role,
        salary=staff_in.salary,
        name=staff_in.name,
        phone=staff_in.phone,
    )
    return {"staff": staff, "business": _business_out(business, current_user)}


# Older clients still call this path
@router.put("/staff/{staff_id}/role", response_model=dict)
async def update_staff_role(
    staff_id: str,
    role_in: StaffRoleUpdate,
    current_user: User = Depends(get_current_user)
):
    business, staff = await membership.update_staff_role(current_user, staff_id, role_in.role)
    return {"staff": staff, "business": _business_out(business, current_user)}


@router.delete("/staff/{staff_id}", response_model=dict)
async def remove_staff(staff_id: str, current_user: User = Depends(get_current_user)):
    business = await membership.remove_staff(current_user, staff_id)
    return {
        "message": "Staff member removed successfully",
        "business": _business_out(business, current_user),
    }
