"""
AWS integrations: boto3 client factory, Cognito user pool, S3 media and
Secrets Manager.
"""
from app.aws.client import get_aws_client
from app.aws.cognito import CognitoIdentityProviderWrapper


def cognito_from_settings() -> CognitoIdentityProviderWrapper:
    """Cognito wrapper for the configured user pool and app client."""
    from app.core.config import settings

    return CognitoIdentityProviderWrapper(
        cognito_client=get_aws_client('cognito-idp', region_name=settings.COGNITO_REGION),
        user_pool_id=settings.COGNITO_USER_POOL_ID,
        client_id=settings.COGNITO_CLIENT_ID,
        client_secret=settings.COGNITO_CLIENT_SECRET,
    )


__all__ = [
    "get_aws_client",
    "CognitoIdentityProviderWrapper",
    "cognito_from_settings",
]
