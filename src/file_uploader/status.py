# src/file_uploader/status.py

"""
Reaction markers that show the progress of a batch on the original message.

    IDLE -> PROCESSING -> SUCCEEDED | FAILED
                       -> ABORTED (an exception escaped the pipeline)

Markers are a visual cue only; the threaded results message is the
authoritative outcome. Every Slack call made here is best effort: a failure
is logged and swallowed, and nothing is retried.
"""

import logging
from enum import Enum
from typing import Awaitable, Callable

from .exceptions import SlackApiError, get_error_context
from .slack import SlackClient

logger = logging.getLogger(__name__)

PROCESSING_MARKER = "beachball"
SUCCESS_MARKER = "white_check_mark"
FAILURE_MARKER = "x"


class SignalState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


async def _best_effort(
    step: str,
    action: Callable[[], Awaitable[None]],
    ignored_errors: frozenset[str] = frozenset(),
) -> bool:
    """
    Run a marker update without letting it fail the caller. Returns whether
    the step succeeded; Slack errors listed in *ignored_errors* count as
    success and are not logged.
    """
    try:
        await action()
        return True
    except SlackApiError as e:
        if e.error in ignored_errors:
            return True
        logger.error(f"Failed to {step}: {e.error}", extra=get_error_context(e))
    except Exception as e:
        logger.error(f"Failed to {step}: {e}", extra=get_error_context(e))
    return False


class StatusSignaler:
    """Drives the marker state machine for one file message."""

    def __init__(self, slack: SlackClient, channel_id: str, message_ts: str):
        self._slack = slack
        self._channel_id = channel_id
        self._message_ts = message_ts
        self._state = SignalState.IDLE

    @property
    def state(self) -> SignalState:
        return self._state

    def _add(self, name: str) -> Callable[[], Awaitable[None]]:
        return lambda: self._slack.add_reaction(self._channel_id, self._message_ts, name)

    def _remove(self, name: str) -> Callable[[], Awaitable[None]]:
        return lambda: self._slack.remove_reaction(self._channel_id, self._message_ts, name)

    async def mark_processing(self) -> None:
        if self._state is not SignalState.IDLE:
            logger.debug("Ignoring mark_processing", extra={"state": self._state.value})
            return
        # Processing is entered even if the marker could not be set.
        self._state = SignalState.PROCESSING
        await _best_effort("add processing reaction", self._add(PROCESSING_MARKER))

    async def mark_completed(self, success: bool) -> None:
        if self._state is not SignalState.PROCESSING:
            logger.debug("Ignoring mark_completed", extra={"state": self._state.value})
            return
        self._state = SignalState.SUCCEEDED if success else SignalState.FAILED
        await _best_effort("remove processing reaction", self._remove(PROCESSING_MARKER))
        await _best_effort(
            "add result reaction",
            self._add(SUCCESS_MARKER if success else FAILURE_MARKER),
        )

    async def abort(self) -> None:
        """Compensating cleanup after an exception; only acts while PROCESSING."""
        if self._state is not SignalState.PROCESSING:
            logger.debug("Ignoring abort", extra={"state": self._state.value})
            return
        self._state = SignalState.ABORTED
        await _best_effort(
            "remove processing reaction during cleanup",
            self._remove(PROCESSING_MARKER),
            ignored_errors=frozenset({"no_reaction"}),
        )
        await _best_effort("add failure reaction during cleanup", self._add(FAILURE_MARKER))
