# src/file_uploader/reporter.py

"""Threaded summary message: the authoritative outcome of a batch."""

import logging

from .schemas import BatchResult, FileMessage
from .slack import SlackClient

logger = logging.getLogger(__name__)


def compose_results_message(file_message: FileMessage, batch_result: BatchResult) -> str:
    message = f"Hey <@{file_message.user}>, "
    if batch_result.succeeded:
        phrase = "is your link" if len(batch_result.succeeded) == 1 else "are your links"
        message += f"here {phrase}:\n"
        message += "\n".join(
            f"• {f.stored_name}: {f.stored_url}" for f in batch_result.succeeded
        )
    if batch_result.failed:
        message += f"\n\nFailed to process: {', '.join(batch_result.failed_names)}"
    return message


async def report(
    slack: SlackClient,
    channel_id: str,
    file_message: FileMessage,
    batch_result: BatchResult,
) -> None:
    """Posts the summary as a reply in the thread of the original message."""
    await slack.post_message(
        channel_id,
        compose_results_message(file_message, batch_result),
        thread_ts=file_message.ts,
    )
    logger.info(
        "Sent results message",
        extra={
            "channel": channel_id,
            "message_ts": file_message.ts,
            "succeeded": len(batch_result.succeeded),
            "failed": len(batch_result.failed),
        },
    )
