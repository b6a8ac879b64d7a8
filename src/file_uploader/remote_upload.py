# src/file_uploader/remote_upload.py

"""
Single-URL ingestion: fetch one remote file and store it under a
content-addressed name in the shared ``s/v3`` namespace.

Unlike the Slack path, the name is derived from the SHA-1 of the bytes, so the
same content always maps to the same object.
"""

import logging
from typing import Any, Mapping
from urllib.parse import urlparse

from .core import UploadServices
from .exceptions import (
    DownloadFailedError,
    RemoteUploadError,
    UploadFailedError,
    get_error_context,
)
from .naming import content_hash_file_name
from .schemas import RemoteUploadResult

logger = logging.getLogger(__name__)

REMOTE_UPLOAD_NAMESPACE = "s/v3"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


async def ingest_remote_url(
    url: str, authorization: str | None, services: UploadServices
) -> RemoteUploadResult:
    """
    Downloads *url* (forwarding *authorization* when given) and uploads it.

    Raises:
        RemoteUploadError: With the source's HTTP status for download
            failures and 500 for everything else.
    """
    try:
        downloaded = await services.source.fetch(url, authorization=authorization)
        sha, file_name = content_hash_file_name(downloaded.data, url)

        logger.debug(f"Uploading: {file_name}")
        stored = await services.storage.put_object(
            REMOTE_UPLOAD_NAMESPACE,
            file_name,
            downloaded.data,
            downloaded.content_type or DEFAULT_CONTENT_TYPE,
        )
        if not stored:
            raise UploadFailedError(
                REMOTE_UPLOAD_NAMESPACE, file_name, reason="Storage upload failed"
            )

        return RemoteUploadResult(
            url=services.storage.public_url(REMOTE_UPLOAD_NAMESPACE, file_name),
            sha=sha,
            size=downloaded.size,
            type=downloaded.content_type,
        )

    except DownloadFailedError as e:
        logger.error("Upload process failed", extra={"url": url, **get_error_context(e)})
        raise RemoteUploadError(e.message, status_code=e.status_code or 500) from e
    except UploadFailedError as e:
        logger.error("Upload process failed", extra={"url": url, **get_error_context(e)})
        raise RemoteUploadError(e.message, status_code=500) from e
    except Exception as e:
        logger.exception("Upload process failed", extra={"url": url})
        raise RemoteUploadError(str(e) or "Internal server error", status_code=500) from e


def _header(headers: Mapping[str, str] | None, name: str) -> str | None:
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value
    return None


async def handle_upload_request(
    body: str | None,
    headers: Mapping[str, str] | None,
    services: UploadServices,
) -> tuple[int, dict[str, Any]]:
    """
    Request-level wrapper around `ingest_remote_url`. The body is the URL to
    fetch. Never raises; returns ``(status_code, response_body)``.
    """
    url = (body or "").strip()
    if urlparse(url).scheme not in ("http", "https"):
        error = RemoteUploadError(
            "Request body must be an http(s) URL",
            status_code=400,
            error_code="INVALID_URL",
        )
        return error.status_code, error.to_response_body()

    try:
        result = await ingest_remote_url(url, _header(headers, "authorization"), services)
    except RemoteUploadError as e:
        return e.status_code, e.to_response_body()
    return 200, result.model_dump()
