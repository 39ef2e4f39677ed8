"""Tests for slack_bot.utils helper functions."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from src.slack_bot.utils import conversation_id_for, get_channel_members, parse_event_id


def _client_with_members(pages, users):
    client = MagicMock()
    client.conversations_members.side_effect = pages
    client.users_info.side_effect = lambda user: {"user": users[user]}
    return client


def test_get_channel_members_filters_and_paginates():
    client = _client_with_members(
        [
            {"members": ["U1", "U2", "U3"], "response_metadata": {"next_cursor": "CUR"}},
            {"members": ["U4"], "response_metadata": {"next_cursor": ""}},
        ],
        {
            "U1": {"id": "U1", "is_bot": False, "deleted": False},
            "U2": {"id": "U2", "is_bot": True, "deleted": False},
            "U3": {"id": "U3", "is_bot": False, "deleted": True},
            "U4": {"id": "U4"},
        },
    )

    out = get_channel_members(client, "C123")

    assert out == ["U1", "U4"]
    assert client.conversations_members.call_count == 2
    assert client.conversations_members.call_args_list[1].kwargs["cursor"] == "CUR"
    assert client.users_info.call_count == 4


def test_get_channel_members_excludes_ids():
    client = _client_with_members(
        [{"members": ["U1", "U2"], "response_metadata": {}}],
        {"U1": {"id": "U1"}, "U2": {"id": "U2"}},
    )

    assert get_channel_members(client, "C1", exclude=["U1"]) == ["U2"]
    client.users_info.assert_called_once_with(user="U2")


def test_users_info_failure_skips_user():
    client = MagicMock()
    client.conversations_members.return_value = {"members": ["U1", "U2"]}

    def users_info(user):
        if user == "U1":
            raise SlackApiError(message="fail", response={"error": "user_not_found"})
        return {"user": {"id": user}}

    client.users_info.side_effect = users_info

    assert get_channel_members(client, "C1") == ["U2"]


def test_get_channel_members_empty_channel_id():
    client = MagicMock()
    assert get_channel_members(client, None) == []
    client.conversations_members.assert_not_called()


def test_get_channel_members_propagates_error():
    client = MagicMock()
    client.conversations_members.side_effect = SlackApiError(
        message="fail", response={"error": "unknown"}
    )

    with pytest.raises(SlackApiError):
        get_channel_members(client, "C123")


@pytest.mark.parametrize(
    "text, expected",
    [("evt-1", "evt-1"), ("  evt-2 extra words", "evt-2"), ("", None), (None, None)],
)
def test_parse_event_id(text, expected):
    assert parse_event_id(text) == expected


def test_conversation_id_for():
    assert conversation_id_for("evt-1", "U1") == "evt-1:U1"
