import pytest
import pytest_asyncio
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
import services.messaging as messaging
from services.messaging import (
    conversation_pair_key,
    delete_message,
    get_conversation_messages,
    get_or_create_conversation,
    get_user_conversations,
    send_message,
)
from services.profiles import upsert_profile
from services.session_token import create_session_token


ALICE_ID = "user-alice"
BOB_ID = "user-bob"
CAROL_ID = "user-carol"


def _auth(user_id: str, email: str, name: str) -> dict:
    return {"Authorization": f"Bearer {create_session_token(user_id, email, name)['token']}"}


ALICE_AUTH = _auth(ALICE_ID, "alice@example.com", "Alice")
BOB_AUTH = _auth(BOB_ID, "bob@example.com", "Bob")
CAROL_AUTH = _auth(CAROL_ID, "carol@example.com", "Carol")


@pytest_asyncio.fixture
async def messaging_db(tmp_path):
    db_path = tmp_path / "messaging.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as session:
        for user_id, email, name in (
            (ALICE_ID, "alice@example.com", "Alice"),
            (BOB_ID, "bob@example.com", "Bob"),
            (CAROL_ID, "carol@example.com", "Carol"),
        ):
            await upsert_profile(session, email=email, user_id=user_id, display_name=name)

    yield session_maker
    await engine.dispose()


@pytest_asyncio.fixture
async def integration_client(messaging_db):
    async def override_get_db():
        async with messaging_db() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


def test_conversation_pair_key_is_order_independent():
    assert conversation_pair_key("b", "a") == conversation_pair_key("a", "b") == "a:b"


@pytest.mark.asyncio
async def test_get_or_create_conversation_returns_same_id_for_pair(messaging_db):
    alice = {"name": "Alice", "email": "alice@example.com", "photo_url": None}
    bob = {"name": "Bob", "email": "bob@example.com", "photo_url": None}

    async with messaging_db() as db:
        first = await get_or_create_conversation(ALICE_ID, alice, BOB_ID, bob, db)
    async with messaging_db() as db:
        second = await get_or_create_conversation(BOB_ID, bob, ALICE_ID, alice, db)

    assert first["id"] == second["id"]
    assert sorted(first["participants"]) == sorted([ALICE_ID, BOB_ID])
    assert first["unread_count"] == {ALICE_ID: 0, BOB_ID: 0}
    assert first["deleted_for"] == {ALICE_ID: False, BOB_ID: False}
    assert first["participant_data"][BOB_ID]["name"] == "Bob"


@pytest.mark.asyncio
async def test_conversation_with_yourself_is_rejected(messaging_db):
    async with messaging_db() as db:
        with pytest.raises(HTTPException) as exc_info:
            await get_or_create_conversation(ALICE_ID, {}, ALICE_ID, {}, db)
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_send_message_increments_only_recipient_counter(messaging_db):
    async with messaging_db() as db:
        conversation = await get_or_create_conversation(ALICE_ID, {"name": "Alice"}, BOB_ID, {"name": "Bob"}, db)

    for text in ("first", "second"):
        async with messaging_db() as db:
            await send_message(conversation["id"], ALICE_ID, {"name": "Alice"}, BOB_ID, f"  {text}  ", db)

    async with messaging_db() as db:
        conversations = await get_user_conversations(BOB_ID, db)

    assert len(conversations) == 1
    assert conversations[0]["unread_count"][BOB_ID] == 2
    assert conversations[0]["unread_count"][ALICE_ID] == 0
    assert conversations[0]["last_message"] == "second"
    assert conversations[0]["last_message_sender_id"] == ALICE_ID


@pytest.mark.asyncio
async def test_send_message_rejects_blank_text_and_strangers(messaging_db):
    async with messaging_db() as db:
        conversation = await get_or_create_conversation(ALICE_ID, {}, BOB_ID, {}, db)

    async with messaging_db() as db:
        with pytest.raises(HTTPException) as blank:
            await send_message(conversation["id"], ALICE_ID, {}, BOB_ID, "   ", db)
    assert blank.value.status_code == 422

    async with messaging_db() as db:
        with pytest.raises(HTTPException) as stranger:
            await send_message(conversation["id"], CAROL_ID, {}, BOB_ID, "hi", db)
    assert stranger.value.status_code == 403

    async with messaging_db() as db:
        with pytest.raises(HTTPException) as wrong_recipient:
            await send_message(conversation["id"], ALICE_ID, {}, CAROL_ID, "hi", db)
    assert wrong_recipient.value.status_code == 422


@pytest.mark.asyncio
async def test_delete_message_hides_it_for_one_participant_only(messaging_db):
    async with messaging_db() as db:
        conversation = await get_or_create_conversation(ALICE_ID, {}, BOB_ID, {}, db)
    async with messaging_db() as db:
        message = await send_message(conversation["id"], ALICE_ID, {}, BOB_ID, "secret", db)

    async with messaging_db() as db:
        await delete_message(conversation["id"], message["id"], BOB_ID, db)

    async with messaging_db() as db:
        bob_view = await get_conversation_messages(conversation["id"], BOB_ID, db)
        alice_view = await get_conversation_messages(conversation["id"], ALICE_ID, db)

    assert [item["id"] for item in bob_view] == []
    assert [item["id"] for item in alice_view] == [message["id"]]


@pytest.mark.asyncio
async def test_hello_scenario_read_receipts_through_api(integration_client):
    start = await integration_client.post("/conversations", json={"recipient_id": BOB_ID}, headers=ALICE_AUTH)
    assert start.status_code == 200
    conversation_id = start.json()["id"]

    sent = await integration_client.post(
        f"/conversations/{conversation_id}/messages",
        json={"recipient_id": BOB_ID, "text": "hello"},
        headers=ALICE_AUTH,
    )
    assert sent.status_code == 200
    message_id = sent.json()["id"]
    assert sent.json()["read_at"] is None

    bob_inbox = await integration_client.get("/conversations", headers=BOB_AUTH)
    assert bob_inbox.status_code == 200
    inbox_item = bob_inbox.json()["items"][0]
    assert inbox_item["last_message"] == "hello"
    assert inbox_item["unread_count"] == {ALICE_ID: 0, BOB_ID: 1}

    unread = await integration_client.get("/conversations/unread-count", headers=BOB_AUTH)
    assert unread.json() == {"unread_count": 1}

    # Delivered but not yet read from the sender's side.
    alice_thread = await integration_client.get(f"/conversations/{conversation_id}/messages", headers=ALICE_AUTH)
    assert alice_thread.json()["items"][0]["read_at"] is None

    read = await integration_client.post(f"/conversations/{conversation_id}/read", headers=BOB_AUTH)
    assert read.status_code == 200
    assert read.json()["marked"] == 1

    unread_after = await integration_client.get("/conversations/unread-count", headers=BOB_AUTH)
    assert unread_after.json() == {"unread_count": 0}

    alice_thread_after = await integration_client.get(
        f"/conversations/{conversation_id}/messages",
        headers=ALICE_AUTH,
    )
    read_message = alice_thread_after.json()["items"][0]
    assert read_message["id"] == message_id
    assert read_message["read_at"] is not None


@pytest.mark.asyncio
async def test_soft_deleted_conversation_stays_hidden_for_deleter(integration_client):
    start = await integration_client.post("/conversations", json={"recipient_id": BOB_ID}, headers=ALICE_AUTH)
    conversation_id = start.json()["id"]

    deleted = await integration_client.delete(f"/conversations/{conversation_id}", headers=BOB_AUTH)
    assert deleted.status_code == 200

    await integration_client.post(
        f"/conversations/{conversation_id}/messages",
        json={"recipient_id": BOB_ID, "text": "still there?"},
        headers=ALICE_AUTH,
    )

    bob_inbox = await integration_client.get("/conversations", headers=BOB_AUTH)
    alice_inbox = await integration_client.get("/conversations", headers=ALICE_AUTH)
    assert bob_inbox.json()["count"] == 0
    assert alice_inbox.json()["count"] == 1

    bob_unread = await integration_client.get("/conversations/unread-count", headers=BOB_AUTH)
    assert bob_unread.json() == {"unread_count": 0}


@pytest.mark.asyncio
async def test_non_participant_cannot_read_thread(integration_client):
    start = await integration_client.post("/conversations", json={"recipient_id": BOB_ID}, headers=ALICE_AUTH)
    conversation_id = start.json()["id"]

    forbidden = await integration_client.get(f"/conversations/{conversation_id}/messages", headers=CAROL_AUTH)
    assert forbidden.status_code == 403

    missing = await integration_client.get("/conversations/does-not-exist/messages", headers=ALICE_AUTH)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_unknown_recipient_returns_404(integration_client):
    response = await integration_client.post(
        "/conversations",
        json={"recipient_id": "nobody"},
        headers=ALICE_AUTH,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(integration_client):
    response = await integration_client.get("/conversations")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_concurrent_create_returns_the_winning_conversation(messaging_db, monkeypatch):
    alice = {"name": "Alice", "email": "alice@example.com", "photo_url": None}
    bob = {"name": "Bob", "email": "bob@example.com", "photo_url": None}
    real_find = messaging._find_conversation
    lookups = []
    winner = {}

    async def find_while_peer_creates(user_a, user_b, db):
        lookups.append(user_a)
        if len(lookups) == 1:
            # Bob opens the thread between Alice's scan and her insert.
            async with messaging_db() as peer_db:
                winner.update(await get_or_create_conversation(BOB_ID, bob, ALICE_ID, alice, peer_db))
            return None
        return await real_find(user_a, user_b, db)

    monkeypatch.setattr("services.messaging._find_conversation", find_while_peer_creates)

    async with messaging_db() as db:
        result = await get_or_create_conversation(ALICE_ID, alice, BOB_ID, bob, db)

    assert result["id"] == winner["id"]
    assert lookups == [ALICE_ID, BOB_ID, ALICE_ID]

    async with messaging_db() as db:
        assert len(await get_user_conversations(ALICE_ID, db)) == 1
