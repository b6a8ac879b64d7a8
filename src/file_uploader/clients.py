# src/file_uploader/clients.py

"""
Client wrappers for the storage and download side of the service.

These classes provide a clean, abstracted interface over a raw boto3 S3 client
and an aiohttp session, so the upload pipeline only deals with namespaces,
names and bytes. boto3 is synchronous; ``ObjectStorage`` runs it in a worker
thread so the event loop keeps serving other transfers while S3 is busy.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from .exceptions import (
    DownloadFailedError,
    S3AccessDeniedError,
    S3ThrottlingError,
    S3TimeoutError,
    StorageError,
    get_error_context,
)

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client as S3ClientType

logger = logging.getLogger(__name__)


class S3Client:
    """
    A wrapper for S3 client operations used to store uploaded files.
    """

    def __init__(self, s3_client: "S3ClientType", kms_key_id: str | None = None):
        """
        Initializes the S3Client.

        Args:
            s3_client: A typed boto3 S3 client.
            kms_key_id: Optional KMS key ID for server-side encryption.
        """
        self._client = s3_client
        self._kms_key_id = kms_key_id
        if self._kms_key_id:
            logger.debug(
                "S3Client initialized with SSE-KMS enabled.",
                extra={"kms_key_id": self._kms_key_id},
            )

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> bool:
        """
        Stores *body* under *key*. Returns True on success and raises a
        StorageError subclass otherwise.
        """
        extra_args = {"ContentType": content_type}
        if self._kms_key_id:
            extra_args.update(
                {"ServerSideEncryption": "aws:kms", "SSEKMSKeyId": self._kms_key_id}
            )
        logger.debug(
            "Uploading object",
            extra={"bucket": bucket, "key": key, "size": len(body)},
        )

        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=body, **extra_args)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]
            aws_context = {
                "aws_error_code": error_code,
                "aws_error_message": error_message,
            }

            # Map boto3 error codes to our specific exception types
            if error_code == "AccessDenied":
                raise S3AccessDeniedError(bucket=bucket, key=key, context=aws_context) from e
            elif error_code in [
                "Throttling",
                "ThrottlingException",
                "RequestLimitExceeded",
                "SlowDown",
            ]:
                raise S3ThrottlingError(
                    "PutObject", context={"bucket": bucket, "key": key, **aws_context}
                ) from e
            elif error_code in ["RequestTimeout", "RequestTimeoutException"]:
                raise S3TimeoutError(
                    "PutObject", context={"bucket": bucket, "key": key, **aws_context}
                ) from e
            else:
                raise StorageError(
                    f"Failed to upload object to S3: {error_message}",
                    error_code="S3_UPLOAD_ERROR",
                    context={"bucket": bucket, "key": key, **aws_context},
                ) from e
        except ReadTimeoutError as e:
            raise S3TimeoutError(
                "PutObject",
                context={"bucket": bucket, "key": key, "timeout_error": str(e)},
            ) from e
        except EndpointConnectionError as e:
            raise S3TimeoutError(
                "PutObject",
                context={"bucket": bucket, "key": key, "connection_error": str(e)},
            ) from e

        logger.debug(
            "Upload (PUT) completed successfully",
            extra={"bucket": bucket, "key": key},
        )
        return True


class ObjectStorage:
    """
    Namespaced object storage with public URLs, backed by one S3 bucket.

    Objects live under ``{namespace}/{name}`` and are served from
    ``{public_base_url}/{namespace}/{name}``.
    """

    def __init__(self, s3_client: S3Client, bucket: str, public_base_url: str):
        self._s3 = s3_client
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")

    async def put_object(
        self, namespace: str, name: str, data: bytes, content_type: str
    ) -> bool:
        """Returns False when storage refuses the object."""
        key = f"{namespace}/{name}"
        try:
            return await asyncio.to_thread(
                self._s3.put_object, self._bucket, key, data, content_type
            )
        except StorageError as e:
            logger.warning(
                f"Storage rejected object: {e}", extra=get_error_context(e)
            )
            return False

    def public_url(self, namespace: str, name: str) -> str:
        return f"{self._public_base_url}/{namespace}/{name}"


@dataclass(frozen=True)
class DownloadedFile:
    data: bytes
    content_type: str | None

    @property
    def size(self) -> int:
        return len(self.data)


class RemoteFileSource:
    """Single-attempt HTTP downloads over a shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession):
        self._session = session

    async def fetch(self, url: str, authorization: str | None = None) -> DownloadedFile:
        """
        GET *url*, sending *authorization* verbatim as the Authorization
        header when given. Any non-2xx status or transport error raises
        DownloadFailedError.
        """
        headers = {"Authorization": authorization} if authorization else {}
        logger.debug("Starting download", extra={"url": url})
        try:
            async with self._session.get(url, headers=headers) as response:
                if not 200 <= response.status < 300:
                    raise DownloadFailedError(
                        url,
                        f"HTTP {response.status} {response.reason or ''}".strip(),
                        status_code=response.status,
                    )
                data = await response.read()
                content_type = response.headers.get("Content-Type")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DownloadFailedError(url, str(e) or type(e).__name__) from e

        logger.debug("Download finished", extra={"url": url, "size": len(data)})
        return DownloadedFile(data=data, content_type=content_type)
