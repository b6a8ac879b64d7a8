# src/file_uploader/core.py

"""
Core business logic for moving files shared in Slack into object storage.

This module contains the File Transfer Unit (`transfer_file`), which moves one
file from Slack to storage, and the Batch Orchestrator (`process_files`),
which fans every file of a message out over the upload limiter and collects
the outcomes.

Failures are isolated per file: an oversized file, a failed download or a
rejected upload becomes an `UploadFailed` outcome and never touches sibling
transfers. Only faults outside that boundary (an unusable limiter, for
example) escape `process_files`.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass

from .clients import ObjectStorage, RemoteFileSource
from .exceptions import (
    DownloadFailedError,
    ErrorKind,
    FileTransferError,
    LimiterNotInitializedError,
    OrchestrationFaultError,
    OversizedFileError,
    UploadFailedError,
    get_error_context,
)
from .ledger import EventAdmissionLedger
from .limiter import ConcurrencyLimiter, get_upload_limiter
from .naming import generate_unique_file_name
from .schemas import (
    BatchResult,
    FileMessage,
    FileRef,
    UploadFailed,
    UploadOutcome,
    UploadSucceeded,
)
from .slack import SlackClient

logger = logging.getLogger(__name__)

USER_NAMESPACE_PREFIX = "s"
DEFAULT_MAX_FILE_SIZE_BYTES = 2 * 1024 * 1024 * 1024  # 2 GiB


@dataclass(frozen=True)
class UploadServices:
    """
    Collaborators of the upload pipeline, constructed once per process.

    ``limiter`` may be left as None to use the process-wide upload limiter.
    """

    slack: SlackClient
    storage: ObjectStorage
    source: RemoteFileSource
    ledger: EventAdmissionLedger
    bot_token: str
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES
    limiter: ConcurrencyLimiter | None = None


def user_namespace(user_id: str) -> str:
    return f"{USER_NAMESPACE_PREFIX}/{user_id}"


# --- File Transfer Unit ---
async def _download_and_store(
    file_ref: FileRef, owner_user_id: str, services: UploadServices
) -> UploadSucceeded:
    """Runs one transfer, raising a FileTransferError subclass on failure."""
    if file_ref.declared_size > services.max_file_size_bytes:
        raise OversizedFileError(
            file_ref.display_name, file_ref.declared_size, services.max_file_size_bytes
        )

    if not file_ref.remote_url:
        raise DownloadFailedError("", "file has no download URL")

    try:
        downloaded = await services.source.fetch(
            file_ref.remote_url, authorization=f"Bearer {services.bot_token}"
        )
    except DownloadFailedError:
        raise
    except Exception as e:
        raise DownloadFailedError(file_ref.remote_url, str(e) or type(e).__name__) from e

    stored_name = generate_unique_file_name(file_ref.display_name)
    namespace = user_namespace(owner_user_id)

    try:
        stored = await services.storage.put_object(
            namespace, stored_name, downloaded.data, file_ref.declared_mime_type
        )
    except Exception as e:
        raise UploadFailedError(namespace, stored_name, reason=str(e) or type(e).__name__) from e
    if not stored:
        raise UploadFailedError(namespace, stored_name)

    return UploadSucceeded(
        original_name=file_ref.display_name,
        stored_name=stored_name,
        stored_url=services.storage.public_url(namespace, stored_name),
        content_type=file_ref.declared_mime_type,
    )


async def transfer_file(
    file_ref: FileRef, owner_user_id: str, services: UploadServices
) -> UploadOutcome:
    """
    Downloads one file and uploads it under the owner's namespace.

    Never raises for per-file problems; they are returned as `UploadFailed`.
    """
    try:
        return await _download_and_store(file_ref, owner_user_id, services)
    except FileTransferError as e:
        logger.error(
            f"Failed: {file_ref.display_name} - {e.message}",
            extra=get_error_context(e),
        )
        return UploadFailed(
            original_name=file_ref.display_name, error_kind=e.kind, reason=e.message
        )
    except Exception as e:
        logger.exception(
            "Unexpected error transferring file.",
            extra={"file_name": file_ref.display_name, "error_type": type(e).__name__},
        )
        return UploadFailed(
            original_name=file_ref.display_name,
            error_kind=ErrorKind.UPLOAD_FAILED,
            reason=str(e),
        )


# --- Batch Orchestrator ---
async def process_files(
    file_message: FileMessage, services: UploadServices
) -> BatchResult:
    """
    Runs one transfer per attached file under the upload limiter and returns
    the partitioned outcomes in input order.
    """
    files = file_message.files
    logger.info(
        f"Processing {len(files)} files",
        extra={"message_ts": file_message.ts, "user": file_message.user},
    )

    try:
        limiter = services.limiter or get_upload_limiter()
        outcomes = await asyncio.gather(
            *(
                limiter.schedule(
                    functools.partial(transfer_file, file_ref, file_message.user, services)
                )
                for file_ref in files
            )
        )
    except LimiterNotInitializedError:
        raise
    except Exception as e:
        raise OrchestrationFaultError(
            str(e) or type(e).__name__,
            context={"message_ts": file_message.ts, "files_count": len(files)},
        ) from e

    result = BatchResult.from_outcomes(list(outcomes))
    logger.info(
        f"Completed: {len(result.succeeded)} ok, {len(result.failed)} failed",
        extra={"message_ts": file_message.ts},
    )
    return result
