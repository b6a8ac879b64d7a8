# src/file_uploader/slack.py

"""
Thin async wrapper over the handful of Slack Web API methods the service uses.

Every call returns the decoded JSON payload of a successful response and raises
SlackApiError for transport failures, non-200 statuses and ``ok: false``
answers. The Slack error string (``no_reaction``, ``ratelimited`` ...) is kept
on the exception so callers can tell expected races from real failures.
"""

import asyncio
import logging
from typing import Any

import aiohttp

from .exceptions import SlackApiError

logger = logging.getLogger(__name__)

DEFAULT_SLACK_API_BASE_URL = "https://slack.com/api"


class SlackClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        token: str,
        base_url: str = DEFAULT_SLACK_API_BASE_URL,
    ):
        self._session = session
        self._token = token
        self._base_url = base_url.rstrip("/")

    @property
    def token(self) -> str:
        return self._token

    async def _call(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/{method}"
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            if payload is not None:
                request = self._session.post(url, json=payload, headers=headers)
            else:
                request = self._session.get(url, params=params, headers=headers)
            async with request as response:
                if response.status != 200:
                    raise SlackApiError(method, f"http_{response.status}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SlackApiError(method, f"transport_error: {e}") from e

        if not isinstance(data, dict) or not data.get("ok"):
            error = data.get("error", "unknown_error") if isinstance(data, dict) else "invalid_response"
            raise SlackApiError(method, error)
        return data

    async def get_file_info(self, file_id: str) -> dict[str, Any]:
        """files.info; returns the ``file`` object including its shares."""
        data = await self._call(
            "files.info", params={"file": file_id, "include_shares": "true"}
        )
        file_info = data.get("file")
        if not file_info:
            raise SlackApiError("files.info", "missing_file")
        return file_info

    async def get_message_at(self, channel: str, ts: str) -> dict[str, Any] | None:
        """The message posted at exactly *ts* in *channel*, if any."""
        data = await self._call(
            "conversations.history",
            params={"channel": channel, "latest": ts, "limit": "1", "inclusive": "true"},
        )
        messages = data.get("messages") or []
        # History falls back to the nearest earlier message when ts itself is
        # not a top-level message in the channel.
        if not messages or messages[0].get("ts") != ts:
            return None
        return messages[0]

    async def add_reaction(self, channel: str, ts: str, name: str) -> None:
        await self._call(
            "reactions.add", payload={"channel": channel, "timestamp": ts, "name": name}
        )

    async def remove_reaction(self, channel: str, ts: str, name: str) -> None:
        await self._call(
            "reactions.remove", payload={"channel": channel, "timestamp": ts, "name": name}
        )

    async def post_message(
        self, channel: str, text: str, thread_ts: str | None = None
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        data = await self._call("chat.postMessage", payload=payload)
        logger.debug(
            "Posted message", extra={"channel": channel, "thread_ts": thread_ts}
        )
        return data
