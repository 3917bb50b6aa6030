"""Thin Slack Web API wrapper used by the outbound dispatcher."""

from __future__ import annotations

from typing import Any

from slack_sdk import WebClient


class SlackNotifier:
    """Posts hand-off notices to Slack as the coordinator's bot user.

    Errors from ``chat.postMessage`` are not caught here: the dispatcher
    turns ``SlackApiError`` and transport failures into dispatch results.

    Args:
        bot_token: Bot token (``xoxb-...``).
        timeout: Seconds to wait for each Web API call.
    """

    def __init__(self, bot_token: str, timeout: int = 10) -> None:
        self._client = WebClient(token=bot_token, timeout=timeout)

    def post_message(self, channel: str, blocks: list[dict[str, Any]], fallback_text: str) -> str:
        """Post *blocks* to *channel* and return the message ``ts``.

        Portal links in hand-off notices are not unfurled, so each message
        stays one compact card in busy center channels.
        """
        response = self._client.chat_postMessage(
            channel=channel,
            blocks=blocks,
            text=fallback_text,
            unfurl_links=False,
            unfurl_media=False,
        )
        return str(response["ts"])
