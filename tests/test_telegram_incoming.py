from unittest.mock import AsyncMock

import pytest

from pylon_tg_bot.telegram import (
    TelegramApiError,
    TelegramCallbackQuery,
    TelegramIncomingMessage,
    TelegramMembershipChange,
    parse_incoming_update,
    poll_incoming,
)
from pylon_tg_bot.telegram import parsing
from pylon_tg_bot.telegram.api_models import (
    CallbackQuery,
    Chat,
    Message,
    Update,
    User,
    decode_update,
)


def test_parse_incoming_update_maps_fields() -> None:
    update = Update(
        update_id=1,
        message=Message(
            message_id=10,
            text="/issue Printer on fire",
            chat=Chat(id=-100, type="supergroup", title="Acme"),
            from_=User(id=99, username="bob"),
            reply_to_message=Message(
                message_id=5,
                text="help please",
                chat=Chat(id=-100, type="supergroup", title="Acme"),
                from_=User(id=77, username="carol"),
            ),
        ),
    )

    msg = parse_incoming_update(update)

    assert isinstance(msg, TelegramIncomingMessage)
    assert msg.chat_id == -100
    assert msg.chat_type == "supergroup"
    assert msg.chat_title == "Acme"
    assert msg.message_id == 10
    assert msg.text == "/issue Printer on fire"
    assert msg.sender_username == "bob"
    assert not msg.is_private
    assert msg.reply_to is not None
    assert msg.reply_to.message_id == 5
    assert msg.reply_to.text == "help please"
    assert msg.reply_to.sender is not None
    assert msg.reply_to.sender.username == "carol"
    assert msg.raw is not None
    assert msg.raw["message_id"] == 10


def test_parse_incoming_update_from_dict() -> None:
    raw = {
        "update_id": 3,
        "message": {
            "message_id": 11,
            "chat": {"id": 555, "type": "private"},
            "from": {"id": 555, "is_bot": False, "username": "alice"},
            "text": "/list",
        },
    }

    msg = parse_incoming_update(raw)

    assert isinstance(msg, TelegramIncomingMessage)
    assert msg.is_private
    assert msg.sender_username == "alice"
    assert msg.reply_to is None
    assert msg.raw is raw["message"]


def test_reply_caption_is_used_as_text() -> None:
    update = decode_update(
        {
            "update_id": 4,
            "message": {
                "message_id": 12,
                "chat": {"id": -100, "type": "group"},
                "text": "/issue",
                "reply_to_message": {
                    "message_id": 6,
                    "chat": {"id": -100, "type": "group"},
                    "caption": "screenshot of the error",
                },
            },
        }
    )

    msg = parse_incoming_update(update)

    assert isinstance(msg, TelegramIncomingMessage)
    assert msg.reply_to is not None
    assert msg.reply_to.text == "screenshot of the error"
    assert msg.reply_to.sender is None


def test_parse_callback_query() -> None:
    update = Update(
        update_id=2,
        callback_query=CallbackQuery(
            id="cbq-1",
            from_=User(id=555, username="alice"),
            data="-100123",
            message=Message(message_id=30, chat=Chat(id=555, type="private")),
        ),
    )

    query = parse_incoming_update(update)

    assert isinstance(query, TelegramCallbackQuery)
    assert query.callback_query_id == "cbq-1"
    assert query.chat_id == 555
    assert query.data == "-100123"
    assert query.is_private
    assert query.sender_username == "alice"


def test_callback_query_without_message_is_dropped() -> None:
    update = Update(update_id=2, callback_query=CallbackQuery(id="cbq-1"))
    assert parse_incoming_update(update) is None


def test_parse_membership_changes() -> None:
    added = parse_incoming_update(
        Update(
            update_id=5,
            message=Message(
                message_id=40,
                chat=Chat(id=-100, type="group", title="Acme"),
                new_chat_members=[User(id=777, is_bot=True, username="SuccinctPylonBot")],
            ),
        )
    )
    removed = parse_incoming_update(
        Update(
            update_id=6,
            message=Message(
                message_id=41,
                chat=Chat(id=-100, type="group", title="Acme"),
                left_chat_member=User(id=777, is_bot=True, username="SuccinctPylonBot"),
            ),
        )
    )

    assert isinstance(added, TelegramMembershipChange)
    assert [user.username for user in added.added] == ["SuccinctPylonBot"]
    assert added.removed is None
    assert isinstance(removed, TelegramMembershipChange)
    assert removed.added == ()
    assert removed.removed is not None
    assert removed.removed.is_bot


def test_invalid_dict_update_is_dropped() -> None:
    assert parse_incoming_update({"update_id": "nope"}) is None
    assert parse_incoming_update({"update_id": 1}) is None


@pytest.mark.anyio
async def test_poll_incoming_advances_offset_and_retries(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(parsing, "POLL_RETRY_DELAY_S", 0.0)
    bot = AsyncMock()
    bot.get_updates.side_effect = [
        TelegramApiError("getUpdates", "down", retry_after=0.0),
        [
            {
                "update_id": 10,
                "message": {
                    "message_id": 1,
                    "chat": {"id": 1, "type": "private"},
                    "text": "hi",
                },
            },
            {"update_id": 11},
        ],
        [
            {
                "update_id": 12,
                "message": {
                    "message_id": 2,
                    "chat": {"id": 1, "type": "private"},
                    "text": "again",
                },
            }
        ],
    ]

    received = []
    gen = poll_incoming(bot)
    received.append(await anext(gen))
    received.append(await anext(gen))
    await gen.aclose()

    assert [msg.text for msg in received] == ["hi", "again"]
    offsets = [call.kwargs["offset"] for call in bot.get_updates.call_args_list]
    assert offsets == [None, None, 12]
