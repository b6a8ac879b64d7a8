# src/file_uploader/naming.py

"""
Deterministic storage names for uploaded files.

Two schemes are used:

* ``generate_unique_file_name`` for files shared in Slack: a millisecond
  timestamp plus 128 bits of entropy in front of the sanitized name, so two
  uploads of the same file never collide.
* ``content_hash_file_name`` for the single-URL ingestion path: the SHA-1 of
  the content in front of the sanitized name, so re-uploading identical bytes
  lands on the same key.
"""

import hashlib
import secrets
import time
from urllib.parse import urlparse

from .security import sanitize_file_name

ENTROPY_BYTES = 16


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_unique_file_name(
    file_name: str,
    now_ms: int | None = None,
    entropy: bytes | None = None,
) -> str:
    """Return ``{now_ms}-{hex entropy}-{sanitized name}``."""
    if now_ms is None:
        now_ms = _now_ms()
    if entropy is None:
        entropy = secrets.token_bytes(ENTROPY_BYTES)
    return f"{now_ms}-{entropy.hex()}-{sanitize_file_name(file_name, now_ms=now_ms)}"


def file_name_from_url(url: str) -> str:
    """Last path segment of *url*, or an empty string when there is none."""
    path = urlparse(url).path
    return path.rsplit("/", 1)[-1]


def content_hash_file_name(data: bytes, source_url: str) -> tuple[str, str]:
    """
    Returns ``(sha1_hex, name)`` where name is ``{sha1_hex}_{sanitized name}``.
    """
    sha = hashlib.sha1(data).hexdigest()
    return sha, f"{sha}_{sanitize_file_name(file_name_from_url(source_url))}"
