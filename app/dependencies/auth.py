from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from app.core.exceptions import ForbiddenError, NotFoundError
from app.core.security import decode_access_token
from app.models.business import PermissionAction, PermissionModule
from app.models.user import User
from app.schemas.user import TokenData
from app.services.permissions import has_permission

# 1. SETUP OAUTH2
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

# 2. GET CURRENT USER (Base Dependency)
async def get_current_user(token: str = Depends(oauth2_scheme)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        subject = payload.get("sub")
        if subject is None or payload.get("type") != "access":
            raise credentials_exception
        token_data = TokenData(user_id=UUID(subject))
    except (JWTError, ValueError):
        raise credentials_exception

    # Valid token, deleted account
    user = await User.find_one(User.user_id == token_data.user_id)
    if user is None:
        raise NotFoundError("User not found")

    return user

# 3. PERMISSION GATE
def require_permission(module: PermissionModule, action: PermissionAction):
    """
    Checks the cached snapshot on the user, not the Business document,
    so it costs no extra query. Owners pass every check.
    """
    async def permission_checker(current_user: User = Depends(get_current_user)) -> User:
        snapshot = current_user.business
        if snapshot is None:
            raise ForbiddenError("You are not part of any business")
        if snapshot.is_business_owner or has_permission(snapshot.permissions, module, action):
            return current_user
        raise ForbiddenError(
            f"Access Denied: requires '{action.value}' permission on '{module.value}'"
        )

    return permission_checker
