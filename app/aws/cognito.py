"""
Amazon Cognito user pool client used for VetLink identities.

Every call goes through `_call`, which logs the Cognito error message and
re-raises the botocore ClientError; AuthService maps error codes to
application exceptions.
"""
import base64
import hashlib
import hmac
import logging
import uuid
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class CognitoIdentityProviderWrapper:
    """
    Encapsulates the user pool actions VetLink needs: sign up and confirmation,
    password login, sign out, password recovery and account deletion.
    """

    def __init__(
        self,
        cognito_client,
        user_pool_id: str,
        client_id: str,
        client_secret: Optional[str] = None
    ):
        self.cognito_client = cognito_client
        self.user_pool_id = user_pool_id
        self.client_id = client_id
        self.client_secret = client_secret

    def _secret_hash(self, username: str) -> Optional[str]:
        """HMAC-SHA256 of username + client id; None when the app client has no secret."""
        if not self.client_secret:
            return None
        digest = hmac.new(
            self.client_secret.encode('utf-8'),
            (username + self.client_id).encode('utf-8'),
            digestmod=hashlib.sha256,
        ).digest()
        return base64.b64encode(digest).decode()

    def _client_kwargs(self, username: str, **extra) -> Dict[str, Any]:
        kwargs = {'ClientId': self.client_id, 'Username': username, **extra}
        if self.client_secret:
            kwargs['SecretHash'] = self._secret_hash(username)
        return kwargs

    def _call(self, operation: str, subject: str, **kwargs) -> Dict[str, Any]:
        try:
            return getattr(self.cognito_client, operation)(**kwargs)
        except ClientError as e:
            logger.error(f"Cognito {operation} failed for {subject}: {e.response['Error']['Message']}")
            raise

    def sign_up(self, email: str, password: str, **user_attributes) -> Dict[str, Any]:
        """
        Register a new user in the pool.

        The pool signs in by email alias, so the Cognito username is a random
        UUID that is stored on the local profile.

        Returns:
            Dict with user_sub, username and user_confirmed
        """
        username = str(uuid.uuid4())
        attributes = [{'Name': 'email', 'Value': email}]
        attributes += [{'Name': name, 'Value': str(value)} for name, value in user_attributes.items()]

        response = self._call(
            'sign_up', email,
            **self._client_kwargs(username, Password=password, UserAttributes=attributes)
        )
        logger.info(f"Cognito sign up: {email} as {username}")
        return {
            'user_sub': response['UserSub'],
            'username': username,
            'user_confirmed': response['UserConfirmed'],
        }

    def initiate_auth(self, email: str, password: str) -> Dict[str, Any]:
        """
        Password login with ADMIN_USER_PASSWORD_AUTH (email alias plus client secret).

        Returns:
            Dict with id_token, access_token, refresh_token, expires_in, token_type
        """
        params = {'USERNAME': email, 'PASSWORD': password}
        if self.client_secret:
            params['SECRET_HASH'] = self._secret_hash(email)

        result = self._call(
            'admin_initiate_auth', email,
            UserPoolId=self.user_pool_id,
            ClientId=self.client_id,
            AuthFlow='ADMIN_USER_PASSWORD_AUTH',
            AuthParameters=params,
        )['AuthenticationResult']
        return {
            'id_token': result['IdToken'],
            'access_token': result['AccessToken'],
            'refresh_token': result.get('RefreshToken'),
            'expires_in': result['ExpiresIn'],
            'token_type': result['TokenType'],
        }

    def global_sign_out(self, access_token: str) -> bool:
        self._call('global_sign_out', 'session', AccessToken=access_token)
        return True

    def confirm_sign_up(self, username: str, confirmation_code: str) -> bool:
        self._call('confirm_sign_up', username, **self._client_kwargs(username, ConfirmationCode=confirmation_code))
        logger.info(f"Cognito user confirmed: {username}")
        return True

    def resend_confirmation_code(self, username: str) -> Dict[str, Any]:
        response = self._call('resend_confirmation_code', username, **self._client_kwargs(username))
        return response.get('CodeDeliveryDetails', {})

    def forgot_password(self, username: str) -> Dict[str, Any]:
        response = self._call('forgot_password', username, **self._client_kwargs(username))
        return response.get('CodeDeliveryDetails', {})

    def confirm_forgot_password(self, username: str, confirmation_code: str, new_password: str) -> bool:
        self._call(
            'confirm_forgot_password', username,
            **self._client_kwargs(username, ConfirmationCode=confirmation_code, Password=new_password)
        )
        return True

    def change_password(self, access_token: str, previous_password: str, proposed_password: str) -> bool:
        self._call(
            'change_password', 'session',
            AccessToken=access_token,
            PreviousPassword=previous_password,
            ProposedPassword=proposed_password,
        )
        return True

    def admin_delete_user(self, username: str) -> bool:
        self._call('admin_delete_user', username, UserPoolId=self.user_pool_id, Username=username)
        logger.info(f"Cognito user deleted: {username}")
        return True

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Username and attributes (name -> value) of the token's owner."""
        response = self._call('get_user', 'session', AccessToken=access_token)
        return {
            'username': response['Username'],
            'attributes': {a['Name']: a['Value'] for a in response.get('UserAttributes', [])},
        }
