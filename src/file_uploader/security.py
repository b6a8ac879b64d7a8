"""
Security utilities for the File Uploader service.

This module provides the functions that decide what an uploaded object may be
called and whether an inbound request really came from Slack.

The primary focus is preventing:
- Storage keys containing path separators, whitespace or control characters
- Forged or replayed Slack Events API requests
"""

import hashlib
import hmac
import re
import time

from .exceptions import SignatureVerificationError

# Module-level constants for improved performance
_UNSAFE_FILE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")

# Replay window recommended by Slack.
SLACK_SIGNATURE_MAX_AGE_SECONDS = 60 * 5
SLACK_SIGNATURE_VERSION = "v0"


def sanitize_file_name(file_name: str, now_ms: int | None = None) -> str:
    """
    Make a user-supplied file name safe to use as the last segment of a
    storage key.

    Every character outside ``[A-Za-z0-9.-]`` is replaced with ``_``. Since
    the substitution is one-for-one, the result is only empty when the input
    was; in that case ``upload_{now_ms}`` is returned instead.

    Args:
        file_name: The name as it was declared by the source.
        now_ms: Milliseconds since the epoch used for the fallback name.
            Defaults to the current time.

    Returns:
        A non-empty name containing only ``[A-Za-z0-9._-]``.

    Examples:
        >>> sanitize_file_name("Quarterly report (v2).pdf")
        "Quarterly_report__v2_.pdf"

        >>> sanitize_file_name("../../etc/passwd")
        ".._.._etc_passwd"
    """
    sanitized = _UNSAFE_FILE_NAME_CHARS.sub("_", file_name or "")
    if sanitized:
        return sanitized
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"upload_{now_ms}"


def verify_slack_signature(
    signing_secret: str,
    timestamp: str | None,
    body: str,
    signature: str | None,
    now: float | None = None,
) -> None:
    """
    Verify the ``X-Slack-Signature`` header of an Events API request.

    Raises:
        SignatureVerificationError: If a header is missing, the timestamp is
            outside the replay window, or the HMAC does not match.
    """
    if not timestamp or not signature:
        raise SignatureVerificationError("missing signature headers")

    try:
        request_time = int(timestamp)
    except ValueError as e:
        raise SignatureVerificationError(
            "malformed timestamp header", context={"timestamp": timestamp}
        ) from e

    current_time = time.time() if now is None else now
    if abs(current_time - request_time) > SLACK_SIGNATURE_MAX_AGE_SECONDS:
        raise SignatureVerificationError(
            "request timestamp outside the replay window",
            context={"timestamp": timestamp},
        )

    basestring = f"{SLACK_SIGNATURE_VERSION}:{timestamp}:{body}".encode("utf-8")
    expected = (
        f"{SLACK_SIGNATURE_VERSION}="
        + hmac.new(signing_secret.encode("utf-8"), basestring, hashlib.sha256).hexdigest()
    )

    if not hmac.compare_digest(expected, signature):
        raise SignatureVerificationError("signature mismatch")
