import logging
from typing import Dict

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.config import (
    AWS_ACCESS_KEY_ID,
    AWS_REGION,
    AWS_S3_ENDPOINT_URL,
    AWS_SECRET_ACCESS_KEY,
    STORAGE_PUBLIC_BASE_URL,
)

logger = logging.getLogger(__name__)

_s3_clients: Dict[str, object] = {}


class StorageError(Exception):
    """Object storage rejected or failed an operation."""


def _get_s3_client(region: str = AWS_REGION):
    """Get or create the S3 client for a region (cached)."""
    if region in _s3_clients:
        return _s3_clients[region]

    if not AWS_ACCESS_KEY_ID or not AWS_SECRET_ACCESS_KEY:
        raise StorageError("AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set")

    session = boto3.session.Session()
    client = session.client(
        "s3",
        region_name=region,
        endpoint_url=AWS_S3_ENDPOINT_URL,
        aws_access_key_id=AWS_ACCESS_KEY_ID,
        aws_secret_access_key=AWS_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4", s3={"addressing_style": "virtual"}),
    )
    _s3_clients[region] = client
    logger.debug(f"Created S3 client for region: {region}")
    return client


def public_url(bucket: str, key: str) -> str:
    if STORAGE_PUBLIC_BASE_URL:
        return f"{STORAGE_PUBLIC_BASE_URL}/{bucket}/{key}"
    if AWS_S3_ENDPOINT_URL:
        return f"{AWS_S3_ENDPOINT_URL.rstrip('/')}/{bucket}/{key}"
    return f"https://{bucket}.s3.{AWS_REGION}.amazonaws.com/{key}"


def upload_bytes(bucket: str, key: str, data: bytes, content_type: str) -> str:
    """
    Store `data` at bucket/key and return its public URL.

    Raises:
        StorageError: credentials missing or the upload failed
    """
    s3 = _get_s3_client()
    try:
        s3.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Upload failed for bucket={bucket}, key={key}: {e}", exc_info=True)
        raise StorageError(str(e)) from e

    logger.info(f"Uploaded {len(data)} bytes to bucket={bucket}, key={key}")
    return public_url(bucket, key)
