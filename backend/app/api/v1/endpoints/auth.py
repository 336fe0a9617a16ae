from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.database import get_db
from app.core.exceptions import InvalidCredentialsError, UserAlreadyExistsError
from app.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
)
from app.core.logging_config import logger, set_user_id
from app.models.user import User
from app.schemas.auth import (
    UserRegister,
    UserLogin,
    PasswordChange,
    UserResponse,
    AuthResponse,
)
from app.schemas.work import SuccessResponse
from app.modules.auth.dependencies import get_current_user


router = APIRouter()


def _issue_token(user: User) -> str:
    return create_access_token({"sub": str(user.id), "username": user.username})


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """Register new user and return a token for it"""
    client_ip = request.client.host if request.client else "unknown"

    result = await db.execute(
        select(User).where(User.username == user_data.username)
    )
    if result.scalar_one_or_none():
        logger.log_auth_event(
            event="register",
            success=False,
            username=user_data.username,
            reason="Username already exists",
            client_ip=client_ip
        )
        raise UserAlreadyExistsError(user_data.username)

    user = User(
        username=user_data.username,
        password_hash=get_password_hash(user_data.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    set_user_id(str(user.id))
    logger.log_auth_event(event="register", success=True, username=user.username, client_ip=client_ip)

    return AuthResponse(
        message="User registered successfully",
        token=_issue_token(user),
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login user"""
    client_ip = request.client.host if request.client else "unknown"

    result = await db.execute(
        select(User).where(User.username == credentials.username.strip())
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        logger.log_auth_event(
            event="login",
            success=False,
            username=credentials.username,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        raise InvalidCredentialsError()

    # Set user context for downstream logging
    set_user_id(str(user.id))
    logger.log_auth_event(event="login", success=True, username=user.username, client_ip=client_ip)

    return AuthResponse(
        message="Login successful",
        token=_issue_token(user),
        user=UserResponse.model_validate(user),
    )


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
    data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change the password of the authenticated user"""
    if not verify_password(data.old_password, current_user.password_hash):
        logger.log_auth_event(
            event="change_password",
            success=False,
            username=current_user.username,
            reason="Current password is incorrect"
        )
        raise InvalidCredentialsError("Current password is incorrect")

    current_user.password_hash = get_password_hash(data.new_password)
    db.add(current_user)
    await db.commit()

    logger.log_auth_event(event="change_password", success=True, username=current_user.username)
    return SuccessResponse(message="Password changed successfully")


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user
