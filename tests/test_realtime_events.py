"""Realtime events pushed by the HTTP routes"""
import pytest

from conftest import approve, auth, create_spot, make_admin, register
from waydown.config import settings
from waydown.services.rate_limit import RATE_LIMIT_MESSAGE


def _named(events, name):
    return [(room, data) for room, event, data in events if event == name]


@pytest.fixture
async def admin(client):
    body = await register(client, "admin")
    await make_admin(body["user"]["id"])
    return body


@pytest.fixture
async def alice(client):
    return await register(client, "alice")


@pytest.fixture
async def bob(client):
    return await register(client, "bob")


@pytest.fixture
async def spot(client, alice, admin):
    created = await create_spot(client, alice["access_token"])
    return await approve(client, admin["access_token"], created["id"])


class TestSpotEvents:
    async def test_status_update_goes_to_owner(self, client, alice, admin, events):
        created = await create_spot(client, alice["access_token"])
        await approve(client, admin["access_token"], created["id"])

        assert _named(events, "spotStatusUpdated") == [
            (f"user:{alice['user']['id']}", {"spot_id": created["id"], "status": "approved"}),
        ]

    async def test_back_to_pending_is_silent(self, client, alice, admin, spot, events):
        events.clear()
        r = await client.patch(f"/api/spots/{spot['id']}/status", headers=auth(admin["access_token"]),
                               json={"status": "pending"})
        assert r.status_code == 200
        assert _named(events, "spotStatusUpdated") == []

    async def test_report_reaches_every_admin(self, client, bob, admin, spot, events):
        second_admin = await register(client, "moderator")
        await make_admin(second_admin["user"]["id"])

        await client.post(f"/api/spots/{spot['id']}/report", headers=auth(bob["access_token"]),
                          json={"reason": "Trail is closed"})

        payload = {"spot_id": spot["id"], "user_id": bob["user"]["id"], "reason": "Trail is closed"}
        reports = _named(events, "newReport")
        assert sorted(room for room, _ in reports) == sorted([
            f"user:{admin['user']['id']}", f"user:{second_admin['user']['id']}"])
        assert all(data == payload for _, data in reports)

    async def test_like_notifies_owner_and_room(self, client, alice, bob, spot, events):
        await client.post(f"/api/spots/{spot['id']}/like", headers=auth(bob["access_token"]))

        assert _named(events, "newLike") == [
            (f"user:{alice['user']['id']}", {"spot_id": spot["id"], "user_id": bob["user"]["id"]}),
        ]
        assert (f"spot:{spot['id']}", {"spot_id": spot["id"], "likes": 1}) in _named(events, "spotUpdated")

    async def test_review_emits_new_comment(self, client, alice, bob, spot, events):
        r = await client.post(f"/api/spots/{spot['id']}/reviews", headers=auth(bob["access_token"]),
                              json={"content": "Worth the hike", "rating": 4})
        review = r.json()

        rooms = [room for room, _ in _named(events, "newComment")]
        assert rooms == [f"user:{alice['user']['id']}", f"spot:{spot['id']}"]
        data = _named(events, "newComment")[0][1]
        assert data["spot_id"] == spot["id"]
        assert data["comment"]["id"] == review["id"]
        assert data["comment"]["rating"] == 4

    async def test_disabled_notifications_suppress_like(self, client, alice, bob, spot, events):
        await client.put(f"/api/users/{alice['user']['id']}/settings", headers=auth(alice["access_token"]),
                         json={"notifications_enabled": False})
        await client.post(f"/api/spots/{spot['id']}/like", headers=auth(bob["access_token"]))
        assert _named(events, "newLike") == []


class TestUserEvents:
    async def test_follow_and_unfollow(self, client, alice, bob, events):
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))
        await client.post(f"/api/users/unfollow/{alice['user']['id']}", headers=auth(bob["access_token"]))

        who = {"user_id": bob["user"]["id"], "username": "bob"}
        room = f"user:{alice['user']['id']}"
        assert _named(events, "newFollower") == [(room, who)]
        assert _named(events, "lostFollower") == [(room, who)]

    async def test_deleted_account_is_announced_to_followers(self, client, alice, bob, events):
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))
        await client.delete("/api/auth/delete", headers=auth(alice["access_token"]))

        assert _named(events, "userDeleted") == [
            (f"user:{bob['user']['id']}", {"user_id": alice["user"]["id"], "username": "alice"}),
        ]


class TestPostEvents:
    async def test_post_updates_go_to_post_room(self, client, alice, bob, events):
        r = await client.post("/api/community/", headers=auth(alice["access_token"]), data={
            "title": "Sunrise", "content": "Empty beach at dawn", "location": "Goa"})
        post_id = r.json()["post"]["id"]

        await client.post(f"/api/community/{post_id}/like", headers=auth(bob["access_token"]))
        await client.post(f"/api/community/{post_id}/comments", headers=auth(bob["access_token"]),
                          json={"text": "Beautiful"})
        await client.delete(f"/api/community/{post_id}/like", headers=auth(bob["access_token"]))

        updates = _named(events, "postUpdated")
        assert [room for room, _ in updates] == [f"post:{post_id}"] * 3
        assert updates[0][1]["post"]["liked_by"] == [bob["user"]["id"]]
        assert updates[1][1]["post"]["comments"][0]["text"] == "Beautiful"
        assert updates[2][1]["post"]["liked_by"] == []

    async def test_new_post_reaches_followers(self, client, alice, bob, events):
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))
        r = await client.post("/api/community/", headers=auth(alice["access_token"]), data={
            "title": "Sunrise", "content": "Empty beach at dawn", "location": "Goa"})
        post_id = r.json()["post"]["id"]

        assert _named(events, "newPost") == [(f"user:{bob['user']['id']}", {
            "post_id": post_id, "user_id": alice["user"]["id"], "title": "Sunrise"})]


async def test_like_limit_is_per_user(client, alice, bob, spot, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(settings, "like_comment_requests_per_window", 2)

    path = f"/api/spots/{spot['id']}"
    assert (await client.post(f"{path}/like", headers=auth(bob["access_token"]))).status_code == 200
    assert (await client.post(f"{path}/unlike", headers=auth(bob["access_token"]))).status_code == 200

    r = await client.post(f"{path}/like", headers=auth(bob["access_token"]))
    assert r.status_code == 429
    assert r.json()["error"]["code"] == "too_many_requests"
    assert r.json()["error"]["message"] == RATE_LIMIT_MESSAGE

    # another user still has budget
    r = await client.post(f"{path}/like", headers=auth(alice["access_token"]))
    assert r.status_code == 200
