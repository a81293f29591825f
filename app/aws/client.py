"""
AWS client factory - centralized boto3 client creation.
"""
from functools import lru_cache
from typing import Optional

import boto3

from app.core.config import settings


@lru_cache(maxsize=None)
def _cached_client(service_name: str, region: str):
    return boto3.client(service_name, region_name=region)


def get_aws_client(service_name: str, region_name: Optional[str] = None):
    """
    Boto3 client for an AWS service, one instance per (service, region).

    boto3 clients are thread-safe, so the cached instance is shared by all
    requests.

    Examples:
        >>> cognito_client = get_aws_client('cognito-idp', region_name=settings.COGNITO_REGION)
        >>> s3_client = get_aws_client('s3', region_name=settings.s3_region)
    """
    return _cached_client(service_name, region_name or settings.AWS_REGION)
