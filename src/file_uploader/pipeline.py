# src/file_uploader/pipeline.py

"""
Entry point for `file_shared` events.

    stale? -> resolve message -> admit once -> processing marker
           -> upload batch -> threaded summary -> terminal marker

Stale, duplicate and unresolvable events are dropped without touching the
message. Once the message is admitted, any exception triggers the compensating
marker cleanup and is then re-raised to the caller.
"""

import logging

import pydantic

from .core import UploadServices, process_files
from .exceptions import ResolutionFailedError, SlackApiError, get_error_context
from .reporter import report
from .schemas import BatchResult, FileMessage, FileSharedEvent
from .slack import SlackClient
from .status import StatusSignaler

logger = logging.getLogger(__name__)


async def find_file_message(event: FileSharedEvent, slack: SlackClient) -> FileMessage:
    """
    Locates the message that attached the shared file in the event's channel.

    Raises:
        ResolutionFailedError: If the file, its share in this channel, or the
            message itself cannot be found.
    """
    context = {"file_id": event.file_id, "channel_id": event.channel_id}
    try:
        file_info = await slack.get_file_info(event.file_id)
    except SlackApiError as e:
        raise ResolutionFailedError("could not get file info", context=context) from e

    shares = file_info.get("shares") or {}
    channel_share = (shares.get("public") or {}).get(event.channel_id) or (
        shares.get("private") or {}
    ).get(event.channel_id)
    if not channel_share or not channel_share[0].get("ts"):
        raise ResolutionFailedError("no share info found for this channel", context=context)

    # The share entry carries the ts of the exact message that attached the file.
    message_ts = channel_share[0]["ts"]
    try:
        message = await slack.get_message_at(event.channel_id, message_ts)
    except SlackApiError as e:
        raise ResolutionFailedError(
            "could not fetch original message", context={**context, "message_ts": message_ts}
        ) from e
    if not message:
        raise ResolutionFailedError(
            "could not find original message", context={**context, "message_ts": message_ts}
        )

    try:
        return FileMessage.model_validate({**message, "channel": event.channel_id})
    except pydantic.ValidationError as e:
        raise ResolutionFailedError(
            "original message is malformed",
            context={**context, "message_ts": message_ts, "errors": e.errors()},
        ) from e


async def handle_file_upload_event(
    event: FileSharedEvent, services: UploadServices
) -> BatchResult | None:
    """
    Processes one `file_shared` event end to end.

    Returns the BatchResult when the event was processed and None when it was
    dropped. Raises only when something fails after the message was admitted,
    after the compensating marker cleanup has run.
    """
    if services.ledger.is_stale(event.event_ts):
        logger.debug("Dropping stale event", extra={"event_ts": event.event_ts})
        return None

    try:
        file_message = await find_file_message(event, services.slack)
    except ResolutionFailedError as e:
        logger.error(f"Error finding file message: {e}", extra=get_error_context(e))
        return None

    if not services.ledger.try_admit(file_message.ts):
        logger.info(
            "Skipping already processed message.",
            extra={"message_ts": file_message.ts, "file_id": event.file_id},
        )
        return None

    signaler = StatusSignaler(services.slack, event.channel_id, file_message.ts)
    try:
        await signaler.mark_processing()
        batch_result = await process_files(file_message, services)
        await report(services.slack, event.channel_id, file_message, batch_result)
        await signaler.mark_completed(batch_result.all_succeeded)
    except Exception as e:
        logger.error(f"Upload failed: {e}", extra=get_error_context(e))
        await signaler.abort()
        raise

    return batch_result
