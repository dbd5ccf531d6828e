"""Unit tests for event classification and bound event actions.

Covers:
- Category paths for every push variant
- Notice remapping (flat wire types to scoped paths)
- Emission order, general channel first
- Reply, recall and request answers sent through the connection
"""

from __future__ import annotations

from typing import Any

import pytest

from napcat_runtime.protocol import parse_push_frame, segment
from napcat_runtime.sdk import (
    BridgeEvent,
    GroupMessageEvent,
    MessageSentEvent,
    NoticeEvent,
    PrivateMessageEvent,
    RequestEvent,
    UnrecognizedEvent,
    classify,
    create_test_connection,
    remap_notice,
)


def group_message(**overrides: Any) -> dict[str, Any]:
    payload = {
        "post_type": "message",
        "message_type": "group",
        "sub_type": "normal",
        "group_id": 100,
        "user_id": 200,
        "message_id": 55,
        "raw_message": "hello",
        "message": [segment.text("hello")],
        "sender": {"nickname": "alice"},
        "time": 1718000000,
        "self_id": 1001,
    }
    payload.update(overrides)
    return payload


def notice(**fields: Any) -> dict[str, Any]:
    return {"post_type": "notice", "time": 1718000000, "self_id": 1001, **fields}


# =============================================================================
# Classification Tests
# =============================================================================


class TestClassify:
    """Tests for category paths."""

    def test_group_message(self) -> None:
        event = classify(parse_push_frame(group_message()))

        assert isinstance(event, GroupMessageEvent)
        assert event.path == "message.group.normal"
        assert event.channels == ["message", "message.group", "message.group.normal"]

    def test_message_elements_are_flattened(self) -> None:
        """Handlers see flat elements."""
        event = classify(parse_push_frame(group_message()))
        assert event["message"] == [{"type": "text", "text": "hello"}]

    def test_private_message(self) -> None:
        event = classify(
            parse_push_frame(
                group_message(message_type="private", sub_type="friend", group_id=None)
            )
        )

        assert isinstance(event, PrivateMessageEvent)
        assert event.path == "message.private.friend"

    def test_message_sent(self) -> None:
        event = classify(parse_push_frame(group_message(post_type="message_sent")))

        assert isinstance(event, MessageSentEvent)
        assert event.path == "message_sent.group.normal"

    def test_meta_event(self) -> None:
        event = classify(
            parse_push_frame({"post_type": "meta_event", "meta_event_type": "heartbeat"})
        )
        assert event.path == "meta_event.heartbeat"

    def test_friend_request(self) -> None:
        """Friend requests have no sub-type segment."""
        event = classify(
            parse_push_frame({"post_type": "request", "request_type": "friend", "flag": "f"})
        )

        assert isinstance(event, RequestEvent)
        assert event.path == "request.friend"

    def test_group_request(self) -> None:
        event = classify(
            parse_push_frame(
                {"post_type": "request", "request_type": "group", "sub_type": "invite"}
            )
        )
        assert event.path == "request.group.invite"

    def test_unknown_post_type(self) -> None:
        """Unknown categories use the raw post_type as their only channel."""
        event = classify(parse_push_frame({"post_type": "custom.thing", "x": 1}))

        assert isinstance(event, UnrecognizedEvent)
        assert event.channels == ["custom.thing"]
        assert event["x"] == 1

    def test_fields_are_read_only(self) -> None:
        event = classify(parse_push_frame(group_message()))

        with pytest.raises(TypeError):
            event.fields["group_id"] = 1  # type: ignore[index]

    def test_attribute_access(self) -> None:
        event = classify(parse_push_frame(group_message()))

        assert event.group_id == 100
        with pytest.raises(AttributeError):
            _ = event.not_a_field


# =============================================================================
# Notice Remapping Tests
# =============================================================================


class TestNoticeRemap:
    """Tests for notice normalization."""

    def test_friend_recall(self) -> None:
        """friend_recall becomes notice.friend.recall."""
        event = classify(parse_push_frame(notice(notice_type="friend_recall", user_id=5)))

        assert isinstance(event, NoticeEvent)
        assert event.path == "notice.friend.recall"
        assert event["notice_type"] == "friend"
        assert event["sub_type"] == "recall"
        assert event["original_notice_type"] == "friend_recall"

    def test_group_ban_keeps_action(self) -> None:
        """The wire sub_type of a ban is kept as the action type."""
        fields = remap_notice({"notice_type": "group_ban", "sub_type": "lift_ban"})

        assert fields["notice_type"] == "group"
        assert fields["sub_type"] == "ban"
        assert fields["original_sub_type"] == "lift_ban"
        assert fields["action_type"] == "lift_ban"

    @pytest.mark.parametrize(
        "notice_type,sub_type",
        [("group_ban", "ban"), ("group_ban", "lift_ban"), ("group_admin", "set")],
    )
    def test_action_type_always_present(self, notice_type: str, sub_type: str) -> None:
        """A ban whose wire sub_type matches the canonical one still names its action."""
        event = classify(
            parse_push_frame(
                notice(notice_type=notice_type, sub_type=sub_type, group_id=1, user_id=2)
            )
        )

        assert event.get("action_type") == sub_type
        assert event.action_type == sub_type

    def test_matching_sub_type_not_marked_original(self) -> None:
        fields = remap_notice({"notice_type": "group_ban", "sub_type": "ban"})

        assert fields["sub_type"] == "ban"
        assert fields["action_type"] == "ban"
        assert "original_sub_type" not in fields

    def test_existing_action_type_is_kept(self) -> None:
        fields = remap_notice(
            {"notice_type": "group_admin", "sub_type": "set", "action_type": "given"}
        )
        assert fields["action_type"] == "given"

    @pytest.mark.parametrize(
        "group_id,expected",
        [(123, "notice.group.poke"), (None, "notice.friend.poke")],
    )
    def test_poke_scope(self, group_id: int | None, expected: str) -> None:
        """Poke notices are scoped by the presence of a group."""
        event = classify(
            parse_push_frame(notice(notice_type="notify", sub_type="poke", group_id=group_id))
        )
        assert event.path == expected

    def test_unmapped_notice_passes_through(self) -> None:
        event = classify(parse_push_frame(notice(notice_type="bot_offline")))

        assert event.path == "notice.bot_offline"
        assert event["original_notice_type"] == "bot_offline"


# =============================================================================
# Emission Tests
# =============================================================================


class TestEmission:
    """Tests for channel emission on a connection."""

    @pytest.mark.asyncio
    async def test_general_channel_first(self) -> None:
        """A ban notice reaches notice, then notice.group, then notice.group.ban."""
        connection, _ = await create_test_connection()
        order: list[str] = []

        for channel in ("notice.group.ban", "notice", "notice.group", "notice.friend"):
            connection.on(channel, lambda event, c=channel: order.append(c))

        await connection.dispatch(
            parse_push_frame(notice(notice_type="group_ban", sub_type="ban", group_id=1))
        )

        assert order == ["notice", "notice.group", "notice.group.ban"]
        await connection.close()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self) -> None:
        connection, _ = await create_test_connection()
        seen: list[str] = []

        def broken(event: BridgeEvent) -> None:
            raise RuntimeError("boom")

        connection.on("message", broken)
        connection.on("message", lambda event: seen.append("message"))
        connection.on("message.group", lambda event: seen.append("group"))

        await connection.dispatch(parse_push_frame(group_message()))

        assert seen == ["message", "group"]
        await connection.close()

    @pytest.mark.asyncio
    async def test_once_handler(self) -> None:
        connection, _ = await create_test_connection()
        seen: list[int] = []
        connection.once("message", lambda event: seen.append(event.message_id))

        await connection.dispatch(parse_push_frame(group_message(message_id=1)))
        await connection.dispatch(parse_push_frame(group_message(message_id=2)))

        assert seen == [1]
        await connection.close()


# =============================================================================
# Bound Action Tests
# =============================================================================


class TestBoundActions:
    """Tests for actions bound to events."""

    @pytest.mark.asyncio
    async def test_group_reply_with_quote(self) -> None:
        """Quoted replies start with a reply element."""
        connection, transport = await create_test_connection()
        transport.set_response("send_group_msg", {"message_id": 99})

        event = await connection.dispatch(parse_push_frame(group_message()))
        result = await event.reply("pong", quote=True)

        assert result == {"message_id": 99}
        [frame] = transport.sent_actions("send_group_msg")
        assert frame["params"] == {
            "group_id": 100,
            "message": [segment.reply(55), segment.text("pong")],
        }
        await connection.close()

    @pytest.mark.asyncio
    async def test_private_reply(self) -> None:
        connection, transport = await create_test_connection()
        transport.set_response("send_private_msg", {"message_id": 1})

        event = await connection.dispatch(
            parse_push_frame(group_message(message_type="private", sub_type="friend"))
        )
        await event.reply("hi")

        [frame] = transport.sent_actions("send_private_msg")
        assert frame["params"]["user_id"] == 200
        assert event.friend.nickname == "alice"
        await connection.close()

    @pytest.mark.asyncio
    async def test_other_chat_reply_uses_send_msg(self) -> None:
        """Chats other than group or private answer through send_msg."""
        connection, transport = await create_test_connection()
        transport.set_response("send_msg", {"message_id": 2})

        event = await connection.dispatch(
            parse_push_frame(
                group_message(message_type="guild", sub_type="channel", group_id=None)
            )
        )
        result = await event.reply("hi", quote=True)

        assert event.path == "message.guild.channel"
        assert result == {"message_id": 2}
        [frame] = transport.sent_actions("send_msg")
        assert frame["params"]["message_type"] == "guild"
        assert frame["params"]["user_id"] == 200
        assert "group_id" not in frame["params"]
        assert [el["type"] for el in frame["params"]["message"]] == ["reply", "text"]
        await connection.close()

    @pytest.mark.asyncio
    async def test_recall_and_reaction(self) -> None:
        connection, transport = await create_test_connection()
        transport.set_response("delete_msg")
        transport.set_response("set_msg_emoji_like")

        event = await connection.dispatch(parse_push_frame(group_message()))
        await event.recall()
        await event.add_reaction(76)

        assert transport.sent_actions("delete_msg")[0]["params"] == {"message_id": 55}
        assert transport.sent_actions("set_msg_emoji_like")[0]["params"] == {
            "message_id": 55,
            "emoji_id": "76",
            "set": True,
        }
        await connection.close()

    @pytest.mark.asyncio
    async def test_group_ban_through_facade(self) -> None:
        connection, transport = await create_test_connection()
        transport.set_response("set_group_ban")

        event = await connection.dispatch(parse_push_frame(group_message()))
        await event.group.ban(200, 60)

        assert transport.sent_actions("set_group_ban")[0]["params"] == {
            "group_id": 100,
            "user_id": 200,
            "duration": 60,
        }
        await connection.close()

    @pytest.mark.asyncio
    async def test_reject_group_request(self) -> None:
        """Group rejections carry the sub-type and reason."""
        connection, transport = await create_test_connection()
        transport.set_response("set_group_add_request")

        event = await connection.dispatch(
            parse_push_frame(
                {
                    "post_type": "request",
                    "request_type": "group",
                    "sub_type": "add",
                    "flag": "req-1",
                    "group_id": 100,
                    "user_id": 300,
                }
            )
        )
        await event.reject("no spam")

        assert transport.sent_actions("set_group_add_request")[0]["params"] == {
            "flag": "req-1",
            "sub_type": "add",
            "approve": False,
            "reason": "no spam",
        }
        await connection.close()

    @pytest.mark.asyncio
    async def test_approve_friend_request(self) -> None:
        connection, transport = await create_test_connection()
        transport.set_response("set_friend_add_request")

        event = await connection.dispatch(
            parse_push_frame(
                {"post_type": "request", "request_type": "friend", "flag": "req-2", "user_id": 3}
            )
        )
        await event.approve("buddy")

        assert transport.sent_actions("set_friend_add_request")[0]["params"] == {
            "flag": "req-2",
            "approve": True,
            "remark": "buddy",
        }
        await connection.close()

    def test_unbound_event_cannot_act(self) -> None:
        event = classify(parse_push_frame(group_message()))

        with pytest.raises(RuntimeError):
            _ = event.group
