from typing import Annotated

from fastapi import APIRouter, Body, Depends, status
from fastapi.security import OAuth2PasswordRequestForm

from logger import logger
from ..dependencies import get_user_service
from ..models import User
from ..schemas import LoginRequest, RegisterRequest, envelope
from ..security import Token, get_current_active_user
from ..services import UserService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a new account")
async def register(
        payload: Annotated[RegisterRequest, Body(...)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    """
    Create a USER account and return it with a signed token.
    """
    return envelope(users.register(payload))


@router.post("/login", summary="Log in with email and password")
async def login(
        credentials: Annotated[LoginRequest, Body(...)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    logger.info(f"Login attempt for user: {credentials.email}")
    return envelope(users.login(credentials.email, credentials.password))


@router.post("/token", response_model=Token, summary="Create access token")
async def login_for_access_token(
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        users: Annotated[UserService, Depends(get_user_service)],
) -> Token:
    """
    OAuth2 password flow for interactive API docs; the username is the email.
    """
    auth = users.login(form_data.username, form_data.password)
    return Token(access_token=auth.token, token_type="bearer")


@router.post("/logout", summary="Log out")
async def logout(current_user: Annotated[User, Depends(get_current_active_user)]):
    # Tokens are stateless; the client discards its copy
    logger.info(f"User {current_user.id} logged out")
    return envelope({"message": "Logged out successfully"})


@router.get("/me", summary="Get current user with activity stats")
async def read_me(
        current_user: Annotated[User, Depends(get_current_active_user)],
        users: Annotated[UserService, Depends(get_user_service)],
):
    return envelope(users.profile(current_user))
