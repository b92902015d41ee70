"""
users 相关 API 测试（关注、公开资料、动态）
"""

from datetime import datetime, timedelta

from app.blueprints.users.views import relative_time


def _post(client, headers, game_id, title):
    return client.post(
        "/api/posts",
        json={"title": title, "content": "内容", "game_id": game_id},
        headers=headers,
    )


def test_follow_toggle(client, login):
    alice, alice_id = login("alice@example.com")
    _, bob_id = login("bob@example.com")

    resp = client.post(f"/api/users/{bob_id}/follow", headers=alice)
    assert resp.status_code == 200
    assert resp.get_json()["following"] is True

    info = client.get(f"/api/users/{bob_id}/follow", headers=alice).get_json()
    assert info == {
        "follower_count": 1,
        "following_count": 0,
        "is_following": True,
        "is_followed_by": False,
    }

    resp = client.post(f"/api/users/{bob_id}/follow", headers=alice)
    assert resp.get_json()["following"] is False
    assert client.get(f"/api/users/{bob_id}/follow").get_json()["follower_count"] == 0

    info = client.get(f"/api/users/{alice_id}/follow").get_json()
    assert info["is_following"] is False


def test_cannot_follow_self_or_unknown(client, login):
    headers, user_id = login("alice@example.com")
    resp = client.post(f"/api/users/{user_id}/follow", headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "不能关注自己"

    assert client.post("/api/users/999/follow", headers=headers).status_code == 404
    assert client.post(f"/api/users/{user_id}/follow").status_code == 401


def test_follow_notifies_target(client, login):
    alice, _ = login("alice@example.com")
    bob, bob_id = login("bob@example.com")
    client.post(f"/api/users/{bob_id}/follow", headers=alice)

    data = client.get("/api/notifications", headers=bob).get_json()
    assert data["unreadCount"] == 1
    notification = data["notifications"][0]
    assert notification["type"] == "follow"
    assert "alice" in notification["message"]


def test_followers_and_following_lists(client, login):
    alice, alice_id = login("alice@example.com")
    bob, bob_id = login("bob@example.com")
    carol, _ = login("carol@example.com")
    client.post(f"/api/users/{bob_id}/follow", headers=alice)
    client.post(f"/api/users/{bob_id}/follow", headers=carol)
    client.post(f"/api/users/{alice_id}/follow", headers=bob)

    data = client.get(f"/api/users/{bob_id}/followers?per_page=1").get_json()
    assert data["pagination"]["total"] == 2
    assert data["pagination"]["pages"] == 2
    assert len(data["followers"]) == 1

    data = client.get(f"/api/users/{bob_id}/followers", headers=bob).get_json()
    usernames = {f["username"] for f in data["followers"]}
    assert usernames == {"alice", "carol"}
    alice_entry = next(f for f in data["followers"] if f["username"] == "alice")
    assert alice_entry["follow_info"]["is_following"] is True
    assert alice_entry["follow_info"]["is_followed_by"] is True

    data = client.get(f"/api/users/{bob_id}/following").get_json()
    assert [f["username"] for f in data["following"]] == ["alice"]

    assert client.get("/api/users/999/followers").status_code == 404


def test_public_profile(client, login):
    headers, user_id = login("alice@example.com", username="alice")
    client.patch("/api/auth/profile", json={"bio": "建筑党"}, headers=headers)

    data = client.get(f"/api/users/{user_id}/profile").get_json()
    assert data == {
        "username": "alice",
        "full_name": "alice",
        "avatar_url": "/default-avatar.png",
        "bio": "建筑党",
    }
    assert client.get("/api/users/999/profile").status_code == 404


def test_user_posts_and_favorite_games(client, login, admin_headers, game):
    headers, user_id = login("alice@example.com")
    uno = client.post("/api/games", json={"name": "UNO"}, headers=admin_headers).get_json()
    _post(client, headers, game["id"], "第一篇")
    _post(client, headers, game["id"], "第二篇")
    _post(client, headers, uno["game"]["id"], "第三篇")

    posts = client.get(f"/api/users/{user_id}/posts?limit=2").get_json()["posts"]
    assert [p["title"] for p in posts] == ["第三篇", "第二篇"]

    games = client.get(f"/api/users/{user_id}/favorite-games").get_json()["games"]
    assert [(g["name"], g["post_count"]) for g in games] == [("Minecraft", 2), ("UNO", 1)]


def test_recent_activity(client, login, game):
    headers, user_id = login("alice@example.com")
    _post(client, headers, game["id"], "开服啦")

    activity = client.get(f"/api/users/{user_id}/recent-activity").get_json()["activity"]
    assert len(activity) == 1
    assert activity[0]["type"] == "post"
    assert activity[0]["game"] == "Minecraft"
    assert activity[0]["server"] is None
    assert activity[0]["time_ago"] == "刚刚"


def test_relative_time():
    now = datetime(2024, 5, 20, 12, 0, 0)
    assert relative_time(now - timedelta(seconds=30), now) == "刚刚"
    assert relative_time(now - timedelta(minutes=5), now) == "5分钟前"
    assert relative_time(now - timedelta(hours=3), now) == "3小时前"
    assert relative_time(now - timedelta(days=2), now) == "2天前"
    assert relative_time(datetime(2024, 1, 2, 8, 0), now) == "2024-01-02"
