from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from conftest import approve, auth, create_spot, make_admin, png_bytes, register
from waydown.models import User


async def _located(client, username: str, lon: float, lat: float) -> dict:
    body = await register(client, username)
    r = await client.put("/api/users/profile", headers=auth(body["access_token"]), json={
        "location": {"type": "Point", "coordinates": [lon, lat]}})
    assert r.status_code == 200, r.text
    return body


class TestProfile:
    async def test_get_and_update_profile(self, client):
        body = await register(client, "alice")
        token = body["access_token"]

        r = await client.put("/api/users/profile", headers=auth(token), json={
            "bio": "  Chasing sunsets  ",
            "interests": ["Beaches", "Foodie", "Beaches"],
            "location": {"type": "Point", "coordinates": [77.59, 12.97]},
        })
        assert r.status_code == 200
        data = r.json()
        assert data["bio"] == "Chasing sunsets"
        assert data["interests"] == ["Beaches", "Foodie"]
        assert data["latitude"] == 12.97
        assert data["longitude"] == 77.59

        r = await client.get("/api/users/profile", headers=auth(token))
        assert r.json()["bio"] == "Chasing sunsets"

    async def test_invalid_location_rejected(self, client):
        body = await register(client, "alice")
        r = await client.put("/api/users/profile", headers=auth(body["access_token"]), json={
            "location": {"type": "Point", "coordinates": [200, 10]}})
        assert r.status_code == 400

    async def test_unknown_interest_rejected(self, client):
        body = await register(client, "alice")
        r = await client.put("/api/users/profile", headers=auth(body["access_token"]),
                             json={"interests": ["Skydiving"]})
        assert r.status_code == 400

    async def test_username_taken(self, client):
        await register(client, "alice")
        bob = await register(client, "bob")
        r = await client.put("/api/users/profile", headers=auth(bob["access_token"]),
                             json={"username": "alice"})
        assert r.status_code == 400
        assert r.json()["error"]["message"] == "Username already taken"

    async def test_self_only_routes(self, client):
        alice = await register(client, "alice")
        bob = await register(client, "bob")
        bob_id = bob["user"]["id"]
        token = alice["access_token"]

        for method, path in (
            ("GET", f"/api/users/{bob_id}"),
            ("GET", f"/api/users/{bob_id}/interests"),
            ("GET", f"/api/users/{bob_id}/favorites"),
            ("GET", f"/api/users/{bob_id}/settings"),
            ("GET", f"/api/users/{bob_id}/posts"),
        ):
            r = await client.request(method, path, headers=auth(token))
            assert r.status_code == 403, path
            assert r.json()["error"]["message"].startswith("Unauthorized: You can only")

    async def test_get_and_update_by_id(self, client):
        alice = await register(client, "alice")
        user_id = alice["user"]["id"]
        token = alice["access_token"]

        r = await client.get(f"/api/users/{user_id}", headers=auth(token))
        assert r.status_code == 200
        r = await client.put(f"/api/users/{user_id}", headers=auth(token), json={"bio": "hi"})
        assert r.json()["bio"] == "hi"

    async def test_interests(self, client):
        alice = await register(client, "alice")
        user_id = alice["user"]["id"]
        token = alice["access_token"]

        r = await client.post(f"/api/users/{user_id}/interests", headers=auth(token),
                              json={"interests": ["Temples", "Historical"]})
        assert r.status_code == 200
        assert r.json()["user"]["interests"] == ["Temples", "Historical"]

        r = await client.get(f"/api/users/{user_id}/interests", headers=auth(token))
        assert r.json() == ["Temples", "Historical"]


class TestFollow:
    async def test_follow_and_unfollow(self, client):
        alice = await register(client, "alice")
        bob = await register(client, "bob")
        alice_id = alice["user"]["id"]

        r = await client.post(f"/api/users/follow/{alice_id}", headers=auth(bob["access_token"]))
        assert r.status_code == 200
        assert r.json()["followers_count"] == 1
        assert r.json()["following_count"] == 1

        r = await client.post(f"/api/users/follow/{alice_id}", headers=auth(bob["access_token"]))
        assert r.status_code == 400
        assert r.json()["error"]["message"] == "Already following this user"

        r = await client.get(f"/api/users/{alice_id}/followers")
        assert [u["username"] for u in r.json()["items"]] == ["bob"]
        r = await client.get(f"/api/users/{bob['user']['id']}/following")
        assert [u["username"] for u in r.json()["items"]] == ["alice"]

        r = await client.post(f"/api/users/unfollow/{alice_id}", headers=auth(bob["access_token"]))
        assert r.status_code == 200
        assert r.json()["followers_count"] == 0

        r = await client.post(f"/api/users/unfollow/{alice_id}", headers=auth(bob["access_token"]))
        assert r.status_code == 400
        assert r.json()["error"]["message"] == "You are not following this user"

    async def test_cannot_follow_self(self, client):
        alice = await register(client, "alice")
        r = await client.post(f"/api/users/follow/{alice['user']['id']}",
                              headers=auth(alice["access_token"]))
        assert r.status_code == 400
        assert r.json()["error"]["message"] == "Cannot follow yourself"

    async def test_follow_unknown_user(self, client):
        alice = await register(client, "alice")
        r = await client.post("/api/users/follow/999", headers=auth(alice["access_token"]))
        assert r.status_code == 404

    async def test_follow_creates_notification(self, client):
        alice = await register(client, "alice")
        bob = await register(client, "bob")
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))

        r = await client.get("/api/users/notifications", headers=auth(alice["access_token"]))
        data = r.json()
        assert data["total"] == 1
        assert data["unread"] == 1
        note = data["items"][0]
        assert note["type"] == "follow"
        assert note["actor_id"] == bob["user"]["id"]

        r = await client.patch(f"/api/users/notifications/{note['id']}/read",
                               headers=auth(alice["access_token"]))
        assert r.json()["read"] is True
        r = await client.get("/api/users/notifications", headers=auth(alice["access_token"]))
        assert r.json()["unread"] == 0

    async def test_disabled_notifications_are_not_stored(self, client):
        alice = await register(client, "alice")
        bob = await register(client, "bob")
        await client.put(f"/api/users/{alice['user']['id']}/settings",
                         headers=auth(alice["access_token"]),
                         json={"notifications": {"follows": False}})
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))

        r = await client.get("/api/users/notifications", headers=auth(alice["access_token"]))
        assert r.json()["total"] == 0

    async def test_read_all(self, client):
        alice = await register(client, "alice")
        for name in ("bob", "carol"):
            other = await register(client, name)
            await client.post(f"/api/users/follow/{alice['user']['id']}",
                              headers=auth(other["access_token"]))

        r = await client.post("/api/users/notifications/read-all", headers=auth(alice["access_token"]))
        assert r.status_code == 200
        r = await client.get("/api/users/notifications", headers=auth(alice["access_token"]))
        assert r.json()["total"] == 2
        assert r.json()["unread"] == 0

    async def test_cannot_mark_someone_elses_notification(self, client):
        alice = await register(client, "alice")
        bob = await register(client, "bob")
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))
        r = await client.get("/api/users/notifications", headers=auth(alice["access_token"]))
        note_id = r.json()["items"][0]["id"]

        r = await client.patch(f"/api/users/notifications/{note_id}/read",
                               headers=auth(bob["access_token"]))
        assert r.status_code == 404


class TestDiscovery:
    async def test_nearby_users(self, client):
        me = await _located(client, "me", 77.5946, 12.9716)
        await _located(client, "close", 77.60, 12.98)
        await _located(client, "far", 72.8777, 19.0760)

        r = await client.get("/api/users/nearby", params={"radius": 5},
                             headers=auth(me["access_token"]))
        assert r.status_code == 200
        data = r.json()
        assert [u["username"] for u in data["items"]] == ["close"]
        assert data["items"][0]["distance_km"] < 5

    async def test_nearby_users_respects_share_location(self, client):
        me = await _located(client, "me", 77.5946, 12.9716)
        hidden = await _located(client, "hidden", 77.60, 12.98)
        await client.put(f"/api/users/{hidden['user']['id']}/settings",
                         headers=auth(hidden["access_token"]),
                         json={"privacy": {"share_location": False}})

        r = await client.get("/api/users/nearby", params={"radius": 5},
                             headers=auth(me["access_token"]))
        assert r.json()["items"] == []

    async def test_popular_users(self, client):
        users = [await register(client, name) for name in ("amy", "ben", "cat", "dan", "eve")]
        star = users[2]
        for fan in users[:2] + users[3:]:
            await client.post(f"/api/users/follow/{star['user']['id']}",
                              headers=auth(fan["access_token"]))

        r = await client.get("/api/users/popular", headers=auth(users[0]["access_token"]))
        data = r.json()
        assert data["limit"] == 4
        assert len(data["items"]) == 4
        assert data["total"] == 5
        assert data["items"][0]["username"] == "cat"
        assert data["items"][0]["followers_count"] == 4


class TestFavoritesAndSettings:
    async def test_favorites(self, client):
        admin = await register(client, "admin")
        await make_admin(admin["user"]["id"])
        alice = await register(client, "alice")
        spot = await create_spot(client, admin["access_token"])
        await approve(client, admin["access_token"], spot["id"])
        user_id = alice["user"]["id"]
        token = alice["access_token"]

        r = await client.post(f"/api/users/{user_id}/favorites", headers=auth(token),
                              json={"spot_id": spot["id"]})
        assert r.status_code == 200
        r = await client.post(f"/api/users/{user_id}/favorites", headers=auth(token),
                              json={"spot_id": spot["id"]})
        assert r.status_code == 400
        assert r.json()["error"]["message"] == "Spot already in favorites"

        r = await client.get(f"/api/users/{user_id}/favorites", headers=auth(token))
        assert r.json() == {"favorite_ids": [spot["id"]]}

        r = await client.delete(f"/api/users/{user_id}/favorites/{spot['id']}", headers=auth(token))
        assert r.status_code == 200
        r = await client.delete(f"/api/users/{user_id}/favorites/{spot['id']}", headers=auth(token))
        assert r.status_code == 400
        assert r.json()["error"]["message"] == "Spot not in favorites"

    async def test_favorite_unknown_spot(self, client):
        alice = await register(client, "alice")
        r = await client.post(f"/api/users/{alice['user']['id']}/favorites",
                              headers=auth(alice["access_token"]), json={"spot_id": 42})
        assert r.status_code == 404

    async def test_settings_round_trip(self, client):
        alice = await register(client, "alice")
        user_id = alice["user"]["id"]
        token = alice["access_token"]

        r = await client.get(f"/api/users/{user_id}/settings", headers=auth(token))
        assert r.json()["notifications"]["likes"] is True
        assert r.json()["privacy"]["profile_public"] is True

        r = await client.put(f"/api/users/{user_id}/settings", headers=auth(token), json={
            "notifications": {"likes": False},
            "privacy": {"profile_public": False},
        })
        assert r.status_code == 200
        settings = r.json()["settings"]
        assert settings["notifications"] == {
            "comments": True, "likes": False, "follows": True, "recommendations": True}
        assert settings["privacy"] == {"profile_public": False, "share_location": True}

    async def test_avatar_upload(self, client):
        alice = await register(client, "alice")
        user_id = alice["user"]["id"]
        r = await client.post(
            f"/api/users/{user_id}/avatar", headers=auth(alice["access_token"]),
            files={"avatar": ("me.jpg", png_bytes((400, 300)), "image/jpeg")})
        assert r.status_code == 200, r.text
        url = r.json()["profile_pic"]
        assert f"/media/avatars/{user_id}/" in url
        assert url.endswith(".png")

        r = await client.get("/api/users/profile", headers=auth(alice["access_token"]))
        assert r.json()["profile_pic"] == url

    async def test_avatar_rejects_non_images(self, client):
        alice = await register(client, "alice")
        r = await client.post(
            f"/api/users/{alice['user']['id']}/avatar", headers=auth(alice["access_token"]),
            files={"avatar": ("notes.txt", b"hello", "text/plain")})
        assert r.status_code == 400

    async def test_own_approved_spots(self, client):
        admin = await register(client, "admin")
        await make_admin(admin["user"]["id"])
        alice = await register(client, "alice")
        approved = await create_spot(client, alice["access_token"])
        await create_spot(client, alice["access_token"], name="Still Pending")
        await approve(client, admin["access_token"], approved["id"])

        r = await client.get(f"/api/users/{alice['user']['id']}/posts",
                             headers=auth(alice["access_token"]))
        assert [s["id"] for s in r.json()] == [approved["id"]]


class TestAnalytics:
    async def test_user_analytics(self, client):
        alice = await register(client, "alice")
        bob = await register(client, "bob")
        await client.post(f"/api/users/follow/{alice['user']['id']}", headers=auth(bob["access_token"]))
        await create_spot(client, alice["access_token"])

        r = await client.get(f"/api/users/{alice['user']['id']}/analytics",
                             headers=auth(alice["access_token"]))
        assert r.json() == {"total_spots": 1, "total_likes": 0,
                            "total_followers": 1, "total_following": 0}

        r = await client.get(f"/api/users/{alice['user']['id']}/analytics",
                             headers=auth(bob["access_token"]))
        assert r.status_code == 403

    async def test_admin_user_analytics(self, client, db_session):
        admin = await register(client, "admin")
        await make_admin(admin["user"]["id"])
        stale = await register(client, "stale")
        await db_session.execute(
            update(User).where(User.id == stale["user"]["id"]).values(
                last_active=datetime.now(timezone.utc) - timedelta(days=90)))
        await db_session.commit()

        r = await client.get("/api/users/admin/analytics", headers=auth(admin["access_token"]))
        assert r.json() == {"total_users": 2, "active_users": 1}

        r = await client.get("/api/users/admin/analytics", headers=auth(stale["access_token"]))
        assert r.status_code == 403
