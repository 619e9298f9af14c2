import json

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db, get_session_factory
from main import app
from services.change_stream import format_sse, watch_snapshots
from services.notifications import create_notification
from services.profiles import upsert_profile
from services.session_token import create_session_token


USER_ID = "stream-user"
PEER_ID = "stream-peer"
USER_AUTH = {"Authorization": f"Bearer {create_session_token(USER_ID, 'stream@moai.test', 'Stream')['token']}"}
PEER_AUTH = {"Authorization": f"Bearer {create_session_token(PEER_ID, 'peer@moai.test', 'Peer')['token']}"}


@pytest_asyncio.fixture
async def stream_client(tmp_path):
    db_path = tmp_path / "stream.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as session:
        await upsert_profile(session, email="stream@moai.test", user_id=USER_ID, display_name="Stream")
        await upsert_profile(session, email="peer@moai.test", user_id=PEER_ID, display_name="Peer")
        await create_notification(
            session,
            user_id=USER_ID,
            type="news_approved",
            title="News Approved!",
            message='Your news item "Opening" has been approved and is now live.',
            link="/news/1",
        )

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_maker
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_session_factory, None)
    await engine.dispose()


def _parse_events(body: str) -> list:
    events = []
    for frame in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in frame.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_format_sse_frames_event_and_json_data():
    assert format_sse("notifications", {"unread_count": 2}) == (
        'event: notifications\ndata: {"unread_count": 2}\n\n'
    )


@pytest.mark.asyncio
async def test_watch_snapshots_emits_only_changes():
    snapshots = iter([{"n": 1}, {"n": 1}, {"n": 2}, {"n": 2}, {"n": 3}])
    sleeps = []

    async def fetch():
        return next(snapshots)

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    emitted = [item async for item in watch_snapshots(fetch, 5, max_events=3, sleep=fake_sleep)]

    assert emitted == [{"n": 1}, {"n": 2}, {"n": 3}]
    assert sleeps == [5.0, 5.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_watch_snapshots_clamps_tiny_intervals():
    calls = []

    async def fetch():
        return len(calls)

    async def fake_sleep(seconds):
        calls.append(seconds)

    emitted = [item async for item in watch_snapshots(fetch, 0, max_events=2, sleep=fake_sleep)]
    assert emitted == [0, 1]
    assert calls == [0.1]


@pytest.mark.asyncio
async def test_notification_stream_sends_current_snapshot(stream_client):
    response = await stream_client.get("/notifications/stream?max_events=1", headers=USER_AUTH)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = _parse_events(response.text)
    assert len(events) == 1
    name, data = events[0]
    assert name == "notifications"
    assert data["unread_count"] == 1
    assert data["items"][0]["title"] == "News Approved!"


@pytest.mark.asyncio
async def test_conversation_and_message_streams(stream_client):
    started = await stream_client.post("/conversations", json={"recipient_id": PEER_ID}, headers=USER_AUTH)
    conversation_id = started.json()["id"]
    await stream_client.post(
        f"/conversations/{conversation_id}/messages",
        json={"recipient_id": PEER_ID, "text": "streamed hello"},
        headers=USER_AUTH,
    )

    inbox = await stream_client.get("/conversations/stream?max_events=1", headers=PEER_AUTH)
    name, data = _parse_events(inbox.text)[0]
    assert name == "conversations"
    assert data[0]["last_message"] == "streamed hello"
    assert data[0]["unread_count"][PEER_ID] == 1

    thread = await stream_client.get(
        f"/conversations/{conversation_id}/messages/stream?max_events=1",
        headers=PEER_AUTH,
    )
    name, data = _parse_events(thread.text)[0]
    assert name == "messages"
    assert [item["text"] for item in data] == ["streamed hello"]


@pytest.mark.asyncio
async def test_message_stream_rejects_outsiders(stream_client):
    response = await stream_client.get("/conversations/unknown/messages/stream?max_events=1", headers=USER_AUTH)
    assert response.status_code == 404
