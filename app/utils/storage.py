"""
Media storage: S3 when S3_BUCKET_NAME is set, else files under UPLOAD_DIR
(served by the /uploads static mount).
"""
import logging
import os
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from app.aws.s3 import delete_from_s3, key_from_url, upload_to_s3
from app.core.config import settings

logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/uploads/"


class StorageError(Exception):
    """Upload to the object store failed."""


def save_media(key: str, body: bytes, content_type: str) -> str:
    """
    Store bytes under key (e.g. chat_images/<conversation_id>/<message_id>.jpg)
    and return the URL clients should use.

    Raises:
        StorageError: upload failed
    """
    if settings.use_s3:
        try:
            return upload_to_s3(key=key, body=body, content_type=content_type)
        except (BotoCoreError, ClientError, ValueError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageError(str(e)) from e

    path = os.path.join(settings.UPLOAD_DIR, *key.split("/"))
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(body)
    except OSError as e:
        logger.error(f"Local upload failed for {key}: {e}")
        raise StorageError(str(e)) from e
    logger.info(f"Stored {key} locally ({len(body)} bytes)")
    return LOCAL_URL_PREFIX + key


def _local_key(url: str) -> Optional[str]:
    if url and url.startswith(LOCAL_URL_PREFIX):
        return url[len(LOCAL_URL_PREFIX):]
    return None


def delete_media(url: Optional[str]) -> bool:
    """
    Best-effort delete of a stored object by its URL. Missing objects and
    foreign URLs are ignored; returns True only when something was removed.
    """
    if not url:
        return False
    local_key = _local_key(url)
    if local_key is not None:
        path = os.path.join(settings.UPLOAD_DIR, *local_key.split("/"))
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete local media {path}: {e}")
            return False

    key = key_from_url(url) if settings.use_s3 else None
    if key is None:
        logger.warning(f"Not deleting media outside our storage: {url}")
        return False
    try:
        delete_from_s3(key)
        return True
    except (BotoCoreError, ClientError) as e:
        logger.warning(f"Failed to delete S3 key {key}: {e}")
        return False
