"""
AWS Secrets Manager lookup for DB and Cognito credentials.
"""
import json
import logging

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


def get_secret(secret_name: str, region_name: str = "us-east-1") -> dict:
    """
    Fetch a JSON secret and return it as a dict.

    Runs while settings are still loading, so it builds its own session
    instead of going through get_aws_client.

    Raises:
        ClientError: secret missing or not readable
    """
    client = boto3.session.Session().client(service_name="secretsmanager", region_name=region_name)
    try:
        response = client.get_secret_value(SecretId=secret_name)
    except ClientError as e:
        code = e.response["Error"]["Code"]
        if code == "ResourceNotFoundException":
            logger.error(f"The requested secret {secret_name} was not found.")
        else:
            logger.error(f"Failed to read secret {secret_name}: {code}")
        raise
    logger.info(f"Secret {secret_name} retrieved.")
    return json.loads(response["SecretString"])
