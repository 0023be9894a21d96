"""
Permission primitives shared by the membership operations and the
request-level authorization dependency.

Permissions are flat (module, actions) grants. There is no hierarchy,
no wildcard and no inheritance between modules.
"""
import secrets
import string
from collections.abc import Iterable
from enum import Enum
from typing import Any, Dict, List

from app.models.business import Permission, PermissionAction, PermissionModule

BASE36_ALPHABET = string.digits + string.ascii_uppercase
BUSINESS_CODE_LENGTH = 6
ROLE_CODE_SUFFIX_LENGTH = 3

OWNER_ROLE_ID = "role_owner"
OWNER_ROLE_NAME = "Business Owner"


def _value(item: Any) -> Any:
    return item.value if isinstance(item, Enum) else item


# ---------------------------------------------------------
# 1. PERMISSION CHECK
# ---------------------------------------------------------
def has_permission(permissions: Any, module: Any, action: Any) -> bool:
    """
    True iff some entry grants `action` on `module`.

    Accepts Permission models or plain dicts (as stored in Mongo).
    Never raises: empty, None or malformed input simply grants nothing.
    """
    if not isinstance(permissions, (list, tuple)):
        return False

    module = _value(module)
    action = _value(action)

    for entry in permissions:
        if isinstance(entry, Permission):
            entry_module, actions = entry.module, entry.actions
        elif isinstance(entry, dict):
            entry_module, actions = entry.get("module"), entry.get("actions")
        else:
            continue

        if _value(entry_module) != module:
            continue
        if not isinstance(actions, (list, tuple, set, frozenset)):
            continue
        # Equality scan: action elements may be unhashable junk
        if any(_value(a) == action for a in actions):
            return True

    return False


def normalize_permissions(permissions: Iterable[Permission]) -> List[Permission]:
    """Union of actions per module, empty grants dropped, modules in enum order."""
    granted: Dict[PermissionModule, set] = {}
    for permission in permissions:
        granted.setdefault(permission.module, set()).update(permission.actions)

    return [
        Permission(module=module, actions=list(granted[module]))
        for module in PermissionModule
        if granted.get(module)
    ]


def copy_permissions(permissions: Iterable[Permission]) -> List[Permission]:
    # Staff and user snapshots must never share objects with the role
    return [p.model_copy(deep=True) for p in permissions]


def all_permissions() -> List[Permission]:
    return [Permission(module=m, actions=list(PermissionAction)) for m in PermissionModule]


def _grant(**modules: str) -> List[Permission]:
    return [
        Permission(module=PermissionModule(module), actions=[PermissionAction(a) for a in actions.split()])
        for module, actions in modules.items()
    ]


# ---------------------------------------------------------
# 2. DEFAULT ROLES
# ---------------------------------------------------------
# (role id, role name, code prefix source, permissions)
DEFAULT_ROLE_TEMPLATES = [
    (OWNER_ROLE_ID, OWNER_ROLE_NAME, "Owner", all_permissions()),
    ("role_manager", "Manager", "Manager", _grant(
        dashboard="read",
        orders="read create update",
        inventory="read create update",
        staff="read",
        rates="read update",
        suppliers="read create update",
        customers="read create update",
    )),
    ("role_accountant", "Accountant", "Accountant", _grant(
        dashboard="read",
        orders="read update",
        inventory="read",
        rates="read",
        suppliers="read create update",
        customers="read",
    )),
    ("role_delivery", "Delivery Boy", "Delivery", _grant(
        dashboard="read",
        orders="read",
        inventory="read",
        rates="read",
        customers="read",
    )),
    ("role_sales", "Sales Person", "Sales", _grant(
        dashboard="read",
        orders="read create update",
        inventory="read",
        rates="read",
        customers="read create update",
    )),
    ("role_inventory", "Inventory Manager", "Inventory", _grant(
        dashboard="read",
        orders="read",
        inventory="read create update delete",
        rates="read update",
        suppliers="read create update",
    )),
]


# ---------------------------------------------------------
# 3. CODE GENERATION
# ---------------------------------------------------------
def _random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_business_code() -> str:
    return _random_base36(BUSINESS_CODE_LENGTH)


def generate_role_code(business_code: str, role_name: str) -> str:
    """{business_code}-{first 3 letters of the role, upper}{3 random base36 chars}"""
    prefix = "".join(role_name.split())[:3].upper()
    return f"{business_code}-{prefix}{_random_base36(ROLE_CODE_SUFFIX_LENGTH)}"


def format_staff_id(business_code: str, sequence: int) -> str:
    return f"{business_code}{sequence:03d}"
