from fastapi import Request, status
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from app.core.logging_config import logger


# ---------------------------------------------------------
# 1. DOMAIN ERRORS
# ---------------------------------------------------------
class MembershipError(Exception):
    """
    Base class for every error a business/role/staff operation can raise.
    The message is safe to show to the end user.
    """
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MembershipError):
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(MembershipError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(MembershipError):
    status_code = status.HTTP_409_CONFLICT


class RoleInUseError(MembershipError):
    status_code = status.HTTP_400_BAD_REQUEST


class DefaultRoleProtectedError(MembershipError):
    status_code = status.HTTP_400_BAD_REQUEST


class BusinessValidationError(MembershipError):
    status_code = status.HTTP_400_BAD_REQUEST


# ---------------------------------------------------------
# 2. FASTAPI HANDLERS
# ---------------------------------------------------------
async def membership_error_handler(request: Request, exc: MembershipError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def database_error_handler(request: Request, exc: PyMongoError):
    # Full context stays in the server log; the client gets a generic message.
    logger.exception(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Server error"},
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(MembershipError, membership_error_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
