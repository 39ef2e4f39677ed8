"""Utility helpers for Slack interactions."""
from __future__ import annotations

import logging
from typing import Iterable, List

from slack_sdk.errors import SlackApiError
from slack_sdk.web import WebClient

logger = logging.getLogger(__name__)

CONVERSATION_ID_SEPARATOR = ":"


def conversation_id_for(event_id: str, user_id: str) -> str:
    """Return the conversation id of *user_id*'s feedback session for *event_id*."""
    return f"{event_id}{CONVERSATION_ID_SEPARATOR}{user_id}"


def parse_event_id(command_text: str | None) -> str | None:
    """Return the first word of a slash command's text, or ``None`` when empty."""
    parts = (command_text or "").split()
    return parts[0] if parts else None


def get_channel_members(
    client: WebClient,
    channel_id: str | None,
    exclude: Iterable[str] = (),
) -> List[str]:
    """Return the *active human* user IDs in ``channel_id``.

    Pages through ``conversations.members`` and drops bots, deactivated users
    and anyone listed in *exclude*.

    Args:
        client: Slack WebClient with ``conversations:read`` and ``users:read``.
        channel_id: The Slack channel ID to inspect.
        exclude: User IDs to leave out, e.g. the command's caller.
    """

    if not channel_id:
        logger.debug("get_channel_members called with empty channel_id; returning []")
        return []

    skipped = set(exclude)
    members: List[str] = []
    cursor: str | None = None

    while True:
        try:
            resp = client.conversations_members(
                channel=channel_id,  # type: ignore[arg-type]
                limit=1000,
                cursor=cursor or "",
            )
        except SlackApiError as exc:
            logger.error("Failed to fetch members for %s: %s", channel_id, exc)
            raise

        members.extend(m for m in resp.get("members", []) if m not in skipped)
        cursor = resp.get("response_metadata", {}).get("next_cursor") or None
        if not cursor:
            break

    humans: List[str] = []
    for uid in members:
        try:
            user_data = client.users_info(user=uid).get("user", {})
        except SlackApiError as exc:
            logger.warning(
                "users.info failed for %s: %s", uid, exc.response.get("error")
            )
            continue
        if user_data.get("deleted") or user_data.get("is_bot"):
            continue
        humans.append(uid)

    return humans
