"""
Account endpoints: signup and email verification, login/logout, password
recovery and account deletion. Cognito does the identity work; the service
keeps the local profile and the Redis session in step with it.
"""
import logging
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.dependencies import current_user_id, get_current_token, validate_session
from app.core.exceptions import SessionExpired
from app.schema.auth import (
    ChangePassword,
    ForgotPassword,
    LoginResponse,
    MessageResponse,
    ResendCode,
    ResetPassword,
    UserInfo,
    UserLogin,
    UserRegister,
    VerifyEmail,
)
from app.service.auth_service import AuthService
from app.service.user_service import to_user_info

router = APIRouter()
logger = logging.getLogger(__name__)

# Shared by resend-code and forgot-password so unknown emails look the same
NEUTRAL_EMAIL_REPLY = "If the email is registered, a code has been sent"


def get_auth_service(db: Session = Depends(get_db)) -> AuthService:
    return AuthService(db)


# Registration

@router.post("/signup", response_model=UserInfo, status_code=status.HTTP_201_CREATED)
async def signup(payload: UserRegister, service: AuthService = Depends(get_auth_service)):
    """Create the Cognito identity and the local profile; vets also get a vet profile.

    The account cannot log in until the emailed code is confirmed.
    """
    return to_user_info(service.register_user(payload))


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(payload: VerifyEmail, service: AuthService = Depends(get_auth_service)):
    service.verify_email(payload.email, payload.code)
    return MessageResponse(message="Email verified")


@router.post("/resend-code", response_model=MessageResponse)
async def resend_code(payload: ResendCode, service: AuthService = Depends(get_auth_service)):
    service.resend_verification_code(payload.email)
    return MessageResponse(message=NEUTRAL_EMAIL_REPLY)


# Session

@router.post("/login", response_model=LoginResponse)
async def login(payload: UserLogin, service: AuthService = Depends(get_auth_service)):
    """Returns the bearer token and the caller's profile."""
    return service.login(payload)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    session: Dict[str, Any] = Depends(validate_session),
    service: AuthService = Depends(get_auth_service),
):
    """Drops the Redis session, signs out of Cognito and takes the user offline."""
    service.logout(get_current_token(request), session)
    logger.info(f"Logout for user {session['user_id']}")
    return MessageResponse(message="Logged out")


# Passwords

@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(payload: ForgotPassword, service: AuthService = Depends(get_auth_service)):
    service.forgot_password(payload.email)
    return MessageResponse(message=NEUTRAL_EMAIL_REPLY)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(payload: ResetPassword, service: AuthService = Depends(get_auth_service)):
    service.reset_password(payload.email, payload.code, payload.new_password)
    return MessageResponse(message="Password updated")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePassword,
    session: Dict[str, Any] = Depends(validate_session),
    service: AuthService = Depends(get_auth_service),
):
    # Sessions created before access tokens were stored cannot change passwords
    if not session.get("access_token"):
        raise SessionExpired()
    service.change_password(session["access_token"], payload.current_password, payload.new_password)
    return MessageResponse(message="Password updated")


# Account

@router.delete("/account", response_model=MessageResponse)
async def delete_account(
    user_id: uuid.UUID = Depends(current_user_id),
    service: AuthService = Depends(get_auth_service),
):
    """Permanently removes the Cognito identity, the profile, its posts, stored images and all sessions."""
    service.delete_account(user_id)
    return MessageResponse(message="Account deleted")
