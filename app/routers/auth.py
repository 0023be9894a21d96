from fastapi import APIRouter, HTTPException, status, Depends
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.errors import DuplicateKeyError
from app.core.exceptions import ConflictError
from app.core.logging_config import logger
from app.core.security import get_password_hash, verify_password, create_access_token
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.schemas.user import Token, UserCreate, UserResponse

router = APIRouter()


def _token_payload(user: User) -> Token:
    return Token(
        access_token=create_access_token(data={"sub": str(user.user_id)}),
        token_type="bearer",
        user=UserResponse.model_validate(user),
    )


# ---------------------------------------------------------
# 1. REGISTER
# ---------------------------------------------------------
@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user_in: UserCreate):
    """
    New accounts start with no business affiliation.
    Emails are compared case-insensitively.
    """
    email = user_in.email.strip().lower()
    if await User.find_one(User.email == email):
        raise ConflictError("User already exists")

    user = User(
        email=email,
        name=user_in.name.strip(),
        hashed_password=get_password_hash(user_in.password),
    )
    try:
        await user.insert()
    except DuplicateKeyError:
        raise ConflictError("User already exists")

    logger.info(f"Registered user {user.email}")
    return _token_payload(user)


# ---------------------------------------------------------
# 2. LOGIN ENDPOINT (Get Token)
# ---------------------------------------------------------
@router.post("/login", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
    user = await User.find_one(User.email == form_data.username.strip().lower())

    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _token_payload(user)


# ---------------------------------------------------------
# 3. CURRENT USER
# ---------------------------------------------------------
@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)):
    return current_user
