"""
Authentication service.
"""
from typing import Optional
import uuid
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from botocore.exceptions import ClientError
from app.aws import CognitoIdentityProviderWrapper, cognito_from_settings
from app.chat.connection_manager import connection_manager
from app.core.exceptions import (
    AccountDisabled,
    EmailAlreadyExists,
    Forbidden,
    InvalidCredentials,
    NotFound,
    ServiceUnavailable,
    WeakPassword,
)
from app.session import create_session, remove_session, remove_user_sessions
from app.crud import pulse_reaction_crud, user_crud
from app.model.user import User
from app.schema.auth import UserRegister, UserLogin, LoginResponse
from app.service.presence_service import PresenceService
from app.service.user_service import to_user_info
from app.utils.storage import delete_media
import logging

logger = logging.getLogger(__name__)


def _error_code(e: ClientError) -> str:
    return e.response['Error']['Code']


def _error_message(e: ClientError) -> str:
    return e.response['Error']['Message']


class AuthService:
    """Handles user authentication operations."""

    def __init__(self, db: Session, cognito: Optional[CognitoIdentityProviderWrapper] = None):
        self.db = db
        self.cognito = cognito or cognito_from_settings()

    def register_user(self, user_data: UserRegister) -> User:
        """Register in Cognito, then create the local profile (plus vet profile for vets)."""
        if user_data.role == "admin":
            raise Forbidden("Admin accounts cannot be self-registered")
        if user_crud.get_by_email(self.db, user_data.email):
            raise EmailAlreadyExists()

        try:
            cognito_response = self.cognito.sign_up(
                email=user_data.email,
                password=user_data.password,
                name=user_data.full_name,
            )
        except ClientError as e:
            code = _error_code(e)
            if code == 'UsernameExistsException':
                raise EmailAlreadyExists()
            if code in ('InvalidPasswordException', 'InvalidParameterException'):
                raise WeakPassword(_error_message(e))
            raise ServiceUnavailable("Sign up failed. Please try again.")

        user = user_crud.create_with_vet_profile(
            self.db,
            obj_in={
                "email": user_data.email,
                "cognito_username": cognito_response['username'],
                "full_name": user_data.full_name.strip(),
                "role": user_data.role,
                "created_by": "self",
            },
            vet_profile=user_data.vet_profile.model_dump() if user_data.vet_profile else None,
        )
        logger.info(f"User registered: {user.email} as {user.role}, Cognito Username: {user.cognito_username}")
        return user

    def _profile_from_cognito(self, email: str, access_token: str) -> User:
        """Local profile for a Cognito user who has none yet (defaults to farmer)."""
        try:
            info = self.cognito.get_user(access_token)
        except ClientError:
            raise InvalidCredentials(message="User not found in local database")
        user = user_crud.create_with_vet_profile(
            self.db,
            obj_in={
                "email": email,
                "cognito_username": info['username'],
                "full_name": info['attributes'].get('name', ''),
                "role": "farmer",
                "created_by": "self",
            },
        )
        logger.info(f"Created missing profile for {email}")
        return user

    def login(self, login_data: UserLogin) -> LoginResponse:
        """Authenticate via Cognito, create session, return token and user."""
        try:
            tokens = self.cognito.initiate_auth(
                email=login_data.email,
                password=login_data.password
            )
        except ClientError as e:
            if _error_code(e) == 'UserNotConfirmedException':
                raise InvalidCredentials(message="Email not verified", code="EMAIL_NOT_VERIFIED")
            raise InvalidCredentials()

        user = user_crud.get_by_email(self.db, login_data.email)
        if not user:
            user = self._profile_from_cognito(login_data.email, tokens['access_token'])
        if user.is_banned or not user.is_active:
            raise AccountDisabled()

        # IdToken is the bearer token; access_token kept for sign out / password change
        id_token = tokens['id_token']
        create_session(id_token, {
            "user_id": str(user.id),
            "email": user.email,
            "role": user.role,
            "is_active": user.is_active,
            "access_token": tokens['access_token'],
        })
        logger.info(f"User logged in: {user.email}")

        return LoginResponse(
            message="Login successful",
            access_token=id_token,
            user=to_user_info(user),
        )

    def logout(self, token: str, user_data: dict) -> bool:
        """Sign out from Cognito, mark offline, remove local session."""
        access_token = user_data.get('access_token')
        if access_token:
            try:
                self.cognito.global_sign_out(access_token)
            except ClientError as e:
                logger.warning(f"Cognito sign out failed: {_error_message(e)}")

        PresenceService(self.db, notifier=connection_manager).go_offline(
            uuid.UUID(user_data["user_id"]), force=True
        )
        return remove_session(token)

    def verify_email(self, email: str, code: str) -> None:
        """Confirm user signup with verification code."""
        user = user_crud.get_by_email(self.db, email)
        if not user:
            raise InvalidCredentials(message="Invalid verification code")
        try:
            self.cognito.confirm_sign_up(user.cognito_username, code)
            logger.info(f"Email verified: {email}")
        except ClientError as e:
            raise InvalidCredentials(message=_error_message(e))

    def resend_verification_code(self, email: str) -> None:
        user = user_crud.get_by_email(self.db, email)
        if not user:
            logger.info(f"Resend code requested for unknown email: {email}")
            return
        try:
            self.cognito.resend_confirmation_code(user.cognito_username)
            logger.info(f"Verification code resent to: {email}")
        except ClientError as e:
            raise InvalidCredentials(message=_error_message(e))

    def forgot_password(self, email: str) -> None:
        """Send a reset code. Unknown emails succeed silently (no account enumeration)."""
        user = user_crud.get_by_email(self.db, email)
        if not user:
            logger.info(f"Password reset requested for unknown email: {email}")
            return
        try:
            self.cognito.forgot_password(user.cognito_username)
            logger.info(f"Password reset initiated for: {email}")
        except ClientError as e:
            if _error_code(e) == 'LimitExceededException':
                raise InvalidCredentials(message=_error_message(e), status_code=429)
            logger.warning(f"Password reset failed for {email}: {_error_message(e)}")

    def reset_password(self, email: str, code: str, new_password: str) -> None:
        """Confirm forgot password with code and set new password."""
        user = user_crud.get_by_email(self.db, email)
        if not user:
            raise InvalidCredentials(message="Invalid or expired code")
        try:
            self.cognito.confirm_forgot_password(user.cognito_username, code, new_password)
            logger.info(f"Password reset completed for: {email}")
        except ClientError as e:
            if _error_code(e) == 'InvalidPasswordException':
                raise WeakPassword(_error_message(e))
            raise InvalidCredentials(message="Invalid or expired code")

    def change_password(self, access_token: str, current_password: str, new_password: str) -> None:
        try:
            self.cognito.change_password(access_token, current_password, new_password)
            logger.info("Password changed successfully")
        except ClientError as e:
            if _error_code(e) == 'InvalidPasswordException':
                raise WeakPassword(_error_message(e))
            raise InvalidCredentials(message=_error_message(e))

    def delete_account(self, user_id: uuid.UUID) -> None:
        """
        Remove the profile (vet profile, presence, memberships and pulse posts
        cascade), the user's pulses on other posts, the Cognito identity,
        stored images and every session.

        The profile delete is flushed first and only committed once Cognito
        has accepted the delete, so a Cognito failure leaves both intact.
        """
        user = user_crud.get(self.db, user_id)
        if not user:
            raise NotFound("User")
        media = [user.profile_image_url] + [p.photo_url for p in user.pulse_posts]
        cognito_username = user.cognito_username

        # Commits on its own, so it runs before the delete is staged
        PresenceService(self.db, notifier=connection_manager).go_offline(user.id, force=True)

        try:
            released = pulse_reaction_crud.release_all_for_user(self.db, user_id=user.id)
            # Bulk statements bypass the identity map
            self.db.expire_all()
            self.db.delete(user)
            self.db.flush()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to delete profile {user_id}")
            raise ServiceUnavailable("Failed to delete account. Please try again.")

        try:
            self.cognito.admin_delete_user(cognito_username)
        except ClientError as e:
            if _error_code(e) != 'UserNotFoundException':
                self.db.rollback()
                logger.error(f"Cognito delete failed for {user_id}: {_error_code(e)}")
                raise ServiceUnavailable("Failed to delete account. Please try again.")
            logger.warning(f"Cognito user {cognito_username} already gone")

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to commit deletion of {user_id} after Cognito delete")
            raise ServiceUnavailable("Failed to delete account. Please try again.")

        for url in media:
            delete_media(url)
        remove_user_sessions(str(user_id))
        logger.info(f"Account deleted: {user_id} ({released} pulses released)")
