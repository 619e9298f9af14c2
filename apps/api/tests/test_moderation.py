import pytest
import pytest_asyncio
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config import settings
from database import Base, get_db
from main import app
from services.moderation import TOOLKIT_KIND, create_submission, reject_submission
from services.notifications import get_user_notifications
from services.profiles import upsert_profile
from services.session_token import create_session_token


ADMIN_ID = "admin-user"
ADMIN_EMAIL = "curator@moai.test"
MEMBER_ID = "member-user"
MEMBER_EMAIL = "artist@moai.test"

ADMIN_AUTH = {"Authorization": f"Bearer {create_session_token(ADMIN_ID, ADMIN_EMAIL, 'Curator')['token']}"}
MEMBER_AUTH = {"Authorization": f"Bearer {create_session_token(MEMBER_ID, MEMBER_EMAIL, 'Artist')['token']}"}


@pytest_asyncio.fixture
async def moderation_db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", [ADMIN_EMAIL])
    db_path = tmp_path / "moderation.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_maker() as session:
        await upsert_profile(session, email=ADMIN_EMAIL, user_id=ADMIN_ID, display_name="Curator")
        await upsert_profile(session, email=MEMBER_EMAIL, user_id=MEMBER_ID, display_name="Artist")

    yield session_maker
    await engine.dispose()


@pytest_asyncio.fixture
async def integration_client(moderation_db):
    async def override_get_db():
        async with moderation_db() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)


async def _submit_toolkit(client: AsyncClient, name: str = "Open Palette") -> dict:
    response = await client.post(
        "/toolkits",
        json={"name": name, "description": "Color tools", "category": "design", "tags": ["color"]},
        headers=MEMBER_AUTH,
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_member_submission_is_pending_and_notifies_admins(integration_client):
    toolkit = await _submit_toolkit(integration_client)
    assert toolkit["status"] == "pending"
    assert toolkit["author"] == "Artist"
    assert toolkit["submitted_by"] == MEMBER_ID

    public = await integration_client.get("/toolkits")
    assert public.json()["count"] == 0

    queue = await integration_client.get("/toolkits/review-queue", headers=ADMIN_AUTH)
    assert queue.status_code == 200
    assert [item["id"] for item in queue.json()["items"]] == [toolkit["id"]]

    admin_feed = await integration_client.get("/notifications", headers=ADMIN_AUTH)
    items = admin_feed.json()["items"]
    assert len(items) == 1
    assert items[0]["type"] == "toolkit_submitted"
    assert "Open Palette" in items[0]["message"]
    assert admin_feed.json()["unread_count"] == 1


@pytest.mark.asyncio
async def test_admin_submission_is_published_immediately(integration_client):
    response = await integration_client.post(
        "/news",
        json={"title": "Open call for murals", "content": "Apply by Friday"},
        headers=ADMIN_AUTH,
    )
    assert response.status_code == 200
    item = response.json()
    assert item["status"] == "approved"
    assert item["author"] == "MOAI"
    assert item["published_at"] is not None

    listed = await integration_client.get("/news")
    assert [entry["id"] for entry in listed.json()["items"]] == [item["id"]]


@pytest.mark.asyncio
async def test_approve_notifies_submitter_and_is_terminal(integration_client):
    toolkit = await _submit_toolkit(integration_client)

    approved = await integration_client.post(
        f"/toolkits/{toolkit['id']}/approve",
        json={"changes": {"description": "Curated color tools"}},
        headers=ADMIN_AUTH,
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["description"] == "Curated color tools"
    assert approved.json()["reviewed_by"] == ADMIN_ID

    again = await integration_client.post(f"/toolkits/{toolkit['id']}/approve", headers=ADMIN_AUTH)
    assert again.status_code == 409

    reject_after = await integration_client.post(
        f"/toolkits/{toolkit['id']}/reject",
        json={"reason": "too late"},
        headers=ADMIN_AUTH,
    )
    assert reject_after.status_code == 409

    member_feed = await integration_client.get("/notifications", headers=MEMBER_AUTH)
    notices = member_feed.json()["items"]
    assert [item["type"] for item in notices] == ["toolkit_approved"]
    assert notices[0]["title"] == "Toolkit Approved!"
    assert notices[0]["link"] == f"/toolkits/{toolkit['id']}"

    public = await integration_client.get("/toolkits")
    assert public.json()["count"] == 1


@pytest.mark.asyncio
async def test_reject_requires_reason_and_notifies_with_it(integration_client):
    toolkit = await _submit_toolkit(integration_client)

    blank = await integration_client.post(
        f"/toolkits/{toolkit['id']}/reject",
        json={"reason": "   "},
        headers=ADMIN_AUTH,
    )
    assert blank.status_code == 422

    still_pending = await integration_client.get(f"/toolkits/{toolkit['id']}", headers=MEMBER_AUTH)
    assert still_pending.json()["status"] == "pending"
    member_feed = await integration_client.get("/notifications", headers=MEMBER_AUTH)
    assert member_feed.json()["items"] == []

    rejected = await integration_client.post(
        f"/toolkits/{toolkit['id']}/reject",
        json={"reason": "Broken links"},
        headers=ADMIN_AUTH,
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "rejected"
    assert rejected.json()["rejection_reason"] == "Broken links"

    member_feed = await integration_client.get("/notifications", headers=MEMBER_AUTH)
    notice = member_feed.json()["items"][0]
    assert notice["type"] == "toolkit_rejected"
    assert "Reason: Broken links" in notice["message"]


@pytest.mark.asyncio
async def test_moderation_routes_require_admin(integration_client):
    toolkit = await _submit_toolkit(integration_client)

    approve = await integration_client.post(f"/toolkits/{toolkit['id']}/approve", headers=MEMBER_AUTH)
    assert approve.status_code == 403

    queue = await integration_client.get("/news/review-queue", headers=MEMBER_AUTH)
    assert queue.status_code == 403

    delete = await integration_client.delete(f"/toolkits/{toolkit['id']}", headers=MEMBER_AUTH)
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_pending_items_are_hidden_from_other_members(integration_client):
    toolkit = await _submit_toolkit(integration_client)

    anonymous = await integration_client.get(f"/toolkits/{toolkit['id']}")
    assert anonymous.status_code == 404

    own = await integration_client.get(f"/toolkits/{toolkit['id']}", headers=MEMBER_AUTH)
    assert own.status_code == 200

    mine = await integration_client.get("/toolkits/mine", headers=MEMBER_AUTH)
    assert mine.json()["count"] == 1


@pytest.mark.asyncio
async def test_submitter_can_edit_only_while_pending(integration_client):
    toolkit = await _submit_toolkit(integration_client)

    edited = await integration_client.patch(
        f"/toolkits/{toolkit['id']}",
        json={"name": "Open Palette 2"},
        headers=MEMBER_AUTH,
    )
    assert edited.status_code == 200
    assert edited.json()["name"] == "Open Palette 2"

    await integration_client.post(f"/toolkits/{toolkit['id']}/approve", headers=ADMIN_AUTH)

    locked = await integration_client.patch(
        f"/toolkits/{toolkit['id']}",
        json={"name": "Sneaky rename"},
        headers=MEMBER_AUTH,
    )
    assert locked.status_code == 409


@pytest.mark.asyncio
async def test_news_rejection_uses_news_wording(integration_client):
    created = await integration_client.post(
        "/news",
        json={"title": "Gallery opening"},
        headers=MEMBER_AUTH,
    )
    news_id = created.json()["id"]
    assert created.json()["status"] == "pending"
    assert created.json()["published_at"] is None

    rejected = await integration_client.post(
        f"/news/{news_id}/reject",
        json={"reason": "Duplicate"},
        headers=ADMIN_AUTH,
    )
    assert rejected.status_code == 200

    feed = await integration_client.get("/notifications", headers=MEMBER_AUTH)
    notice = feed.json()["items"][0]
    assert notice["type"] == "news_rejected"
    assert 'news item "Gallery opening"' in notice["message"]


@pytest.mark.asyncio
async def test_blank_reason_is_rejected_before_lookup(moderation_db):
    async with moderation_db() as db:
        item = await create_submission(
            TOOLKIT_KIND,
            {"name": "Sketch kit"},
            actor_id=MEMBER_ID,
            actor_email=MEMBER_EMAIL,
            actor_name="Artist",
            db=db,
        )

    async with moderation_db() as db:
        with pytest.raises(HTTPException) as exc_info:
            await reject_submission(TOOLKIT_KIND, item["id"], reviewer_id=ADMIN_ID, reason="", db=db)
    assert exc_info.value.status_code == 422

    async with moderation_db() as db:
        feed = await get_user_notifications(MEMBER_ID, db)
    assert feed["items"] == []


@pytest.mark.asyncio
async def test_failed_approval_notice_keeps_the_decision(integration_client, moderation_db, monkeypatch):
    toolkit = await _submit_toolkit(integration_client, name="Brush Lab")

    async def notifications_down(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr("services.moderation.notify_submission_approved", notifications_down)

    approved = await integration_client.post(f"/toolkits/{toolkit['id']}/approve", headers=ADMIN_AUTH)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    stored = await integration_client.get(f"/toolkits/{toolkit['id']}")
    assert stored.status_code == 200
    assert stored.json()["status"] == "approved"

    public = await integration_client.get("/toolkits")
    assert [item["id"] for item in public.json()["items"]] == [toolkit["id"]]

    async with moderation_db() as db:
        notices = await get_user_notifications(MEMBER_ID, db)
    assert notices["items"] == []
