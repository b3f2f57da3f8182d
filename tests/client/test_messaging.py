# tests/client/test_messaging.py
"""Tests for the two-party conversation view."""

import pytest

from waypost.client import ClientSession, Conversation
from waypost.client.messaging import conversation_filter
from waypost.platform import StoreError

from conftest import TEST_PASSWORD


@pytest.fixture
def connect(backend):
    return lambda: backend.connect("test-public-key")


async def _signed_in(platform, make_account, email, username):
    await make_account(email, username)
    session = ClientSession(platform)
    await session.sign_in(email, TEST_PASSWORD)
    return session


@pytest.mark.asyncio
async def test_messages_arrive_in_send_order(connect, make_account):
    alice_platform, bob_platform = connect(), connect()
    alice = await _signed_in(alice_platform, make_account, "alice@example.com", "alice")
    bob = await _signed_in(bob_platform, make_account, "bob@example.com", "bob")
    alice_view = Conversation(alice_platform, alice, bob.user_id)
    bob_view = Conversation(bob_platform, bob, alice.user_id)
    await alice_view.open()
    await bob_view.open()
    updates = bob_view.updates()

    for n in range(5):
        assert await alice_view.send(f"message {n}")

    expected = [f"message {n}" for n in range(5)]
    assert [m.content for m in bob_view.messages] == expected
    assert [m.content for m in alice_view.messages] == expected
    assert [updates.get_nowait().content for _ in range(5)] == expected

    history = await bob_platform.messages.conversation(alice.user_id, bob.user_id)
    assert all(row["read"] for row in history)
    await alice_view.close()
    await bob_view.close()


@pytest.mark.asyncio
async def test_open_marks_history_read_in_one_call(connect, make_account, mocker):
    alice_platform, bob_platform = connect(), connect()
    alice = await _signed_in(alice_platform, make_account, "alice@example.com", "alice")
    bob = await _signed_in(bob_platform, make_account, "bob@example.com", "bob")
    for text in ("one", "two", "three"):
        await alice_platform.messages.insert(
            {"sender_id": alice.user_id, "receiver_id": bob.user_id, "content": text}
        )
    await bob_platform.messages.insert(
        {"sender_id": bob.user_id, "receiver_id": alice.user_id, "content": "reply"}
    )
    mark_read = mocker.spy(bob_platform.messages, "mark_read")

    view = Conversation(bob_platform, bob, alice.user_id)
    await view.open()

    assert [m.content for m in view.messages] == ["one", "two", "three", "reply"]
    assert view.loading is False
    mark_read.assert_called_once()
    assert len(mark_read.call_args.args[0]) == 3

    await view.open()
    mark_read.assert_called_once()
    await view.close()


@pytest.mark.asyncio
async def test_blank_draft_writes_nothing(connect, make_account, mocker):
    platform = connect()
    alice = await _signed_in(platform, make_account, "alice@example.com", "alice")
    await make_account("bob@example.com", "bob")
    peer_id = (await platform.profiles.list(exclude_id=alice.user_id))[0]["id"]
    view = Conversation(platform, alice, peer_id)
    await view.open()
    insert = mocker.spy(platform.messages, "insert")

    view.draft = "   \n"
    assert await view.submit() is False
    assert await view.send("") is False

    insert.assert_not_called()
    await view.close()


@pytest.mark.asyncio
async def test_submit_clears_draft_even_on_failure(connect, make_account, mocker):
    platform = connect()
    alice = await _signed_in(platform, make_account, "alice@example.com", "alice")
    await make_account("bob@example.com", "bob")
    peer_id = (await platform.profiles.list(exclude_id=alice.user_id))[0]["id"]
    view = Conversation(platform, alice, peer_id)
    await view.open()
    mocker.patch.object(platform.messages, "insert", side_effect=StoreError("offline"))

    view.draft = "hello"
    assert await view.submit() is False
    assert view.draft == ""
    assert view.messages == []
    await view.close()


@pytest.mark.asyncio
async def test_closed_view_ignores_new_messages(connect, make_account):
    alice_platform, bob_platform = connect(), connect()
    alice = await _signed_in(alice_platform, make_account, "alice@example.com", "alice")
    bob = await _signed_in(bob_platform, make_account, "bob@example.com", "bob")
    view = Conversation(bob_platform, bob, alice.user_id)
    await view.open()
    await view.close()

    await alice_platform.messages.insert(
        {"sender_id": alice.user_id, "receiver_id": bob.user_id, "content": "late"}
    )

    assert view.messages == []
    assert not view.is_open


@pytest.mark.asyncio
async def test_other_conversations_are_filtered(connect, make_account, service_platform):
    platform = connect()
    alice = await _signed_in(platform, make_account, "alice@example.com", "alice")
    bob = await make_account("bob@example.com", "bob")
    carol = await make_account("carol@example.com", "carol")
    view = Conversation(platform, alice, bob.id)
    await view.open()

    await service_platform.messages.insert(
        {"sender_id": carol.id, "receiver_id": alice.user_id, "content": "not for this view"}
    )

    assert view.messages == []
    await view.close()


def test_conversation_filter_matches_both_directions():
    matches = conversation_filter("a", "b")
    assert matches({"sender_id": "a", "receiver_id": "b"})
    assert matches({"sender_id": "b", "receiver_id": "a"})
    assert not matches({"sender_id": "a", "receiver_id": "c"})


@pytest.mark.asyncio
async def test_message_committed_during_history_load_is_kept(connect, make_account, mocker):
    alice_platform, bob_platform = connect(), connect()
    alice = await _signed_in(alice_platform, make_account, "alice@example.com", "alice")
    bob = await _signed_in(bob_platform, make_account, "bob@example.com", "bob")
    load_history = bob_platform.messages.conversation

    async def _history_then_peer_writes(first_id, second_id):
        rows = await load_history(first_id, second_id)
        await alice_platform.messages.insert(
            {"sender_id": alice.user_id, "receiver_id": bob.user_id, "content": "hi"}
        )
        return rows

    mocker.patch.object(bob_platform.messages, "conversation", side_effect=_history_then_peer_writes)
    view = Conversation(bob_platform, bob, alice.user_id)
    await view.open()

    assert [m.content for m in view.messages] == ["hi"]
    stored = await alice_platform.messages.conversation(alice.user_id, bob.user_id)
    assert [row["read"] for row in stored] == [True]
    await view.close()


@pytest.mark.asyncio
async def test_message_in_history_and_live_is_shown_once(connect, make_account, mocker):
    alice_platform, bob_platform = connect(), connect()
    alice = await _signed_in(alice_platform, make_account, "alice@example.com", "alice")
    bob = await _signed_in(bob_platform, make_account, "bob@example.com", "bob")
    load_history = bob_platform.messages.conversation

    async def _peer_writes_then_history(first_id, second_id):
        await alice_platform.messages.insert(
            {"sender_id": alice.user_id, "receiver_id": bob.user_id, "content": "once"}
        )
        return await load_history(first_id, second_id)

    mocker.patch.object(bob_platform.messages, "conversation", side_effect=_peer_writes_then_history)
    view = Conversation(bob_platform, bob, alice.user_id)
    updates = view.updates()
    await view.open()

    assert [m.content for m in view.messages] == ["once"]
    assert updates.empty()
    await view.close()
