"""
Authentication Router for the StockDash API.

Endpoints:
- POST /signup - Create account, returns profile + token
- POST /login - Email/password login, returns profile + token
- POST /token - OAuth2 password flow (username = email)
- GET /profile - Current user's profile and account
- GET /users - All customer profiles (admin)
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.security import OAuth2PasswordRequestForm

from stockdash.api.auth import (
    create_access_token,
    get_password_hash,
    resolve_role,
    verify_password,
)
from stockdash.api.deps import AdminUser, CurrentUser, get_settings, get_user_service
from stockdash.api.schemas import (
    AuthResponse,
    LoginRequest,
    ProfileResponse,
    SignupRequest,
    Token,
)
from stockdash.config import Settings
from stockdash.core.errors import AuthenticationError
from stockdash.core.users import User, UserService


logger = logging.getLogger(__name__)

router = APIRouter()

SettingsDep = Annotated[Settings, Depends(get_settings)]
UsersDep = Annotated[UserService, Depends(get_user_service)]


def _authenticate(users: UserService, email: str, password: str) -> User:
    user = users.find_by_email(email)
    if user is None or not verify_password(password, user.hashed_password):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is disabled")
    return user


def _auth_response(user: User, users: UserService, settings: Settings) -> AuthResponse:
    return AuthResponse.from_user(
        user,
        users.account(user.id),
        access_token=create_access_token(user.id, settings, role=user.role),
        expires_in=settings.token_expire_minutes * 60,
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(body: SignupRequest, users: UsersDep, settings: SettingsDep) -> AuthResponse:
    """
    Create a user with the starting balance.

    The admin role is granted when email and password equal the configured
    ADMIN_EMAIL / ADMIN_PASSWORD.
    """
    role = resolve_role(body.email, body.password, settings)
    user = users.register(body.name, body.email, get_password_hash(body.password), role=role)
    return _auth_response(user, users, settings)


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, users: UsersDep, settings: SettingsDep) -> AuthResponse:
    """Log in with email and password."""
    user = _authenticate(users, body.email, body.password)
    return _auth_response(user, users, settings)


@router.post("/token", response_model=Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    users: UsersDep,
    settings: SettingsDep,
) -> Token:
    """
    OAuth2 compatible token login.

    Use the account email as ``username``.
    """
    user = await run_in_threadpool(_authenticate, users, form_data.username, form_data.password)
    return Token(
        access_token=create_access_token(user.id, settings, role=user.role),
        token_type="bearer",
        expires_in=settings.token_expire_minutes * 60,
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(current_user: CurrentUser, users: UsersDep) -> ProfileResponse:
    """Get the current user's profile, balance and holdings."""
    return ProfileResponse.from_user(current_user, users.account(current_user.id))


@router.get("/users", response_model=list[ProfileResponse])
def list_users(_admin: AdminUser, users: UsersDep) -> list[ProfileResponse]:
    """List all non-admin users with their accounts."""
    return [ProfileResponse.from_user(u, users.account(u.id)) for u in users.list_customers()]
