"""
servers 相关 API 测试
"""

from datetime import datetime, timedelta
from unittest import mock

from app.core.extensions import db
from app.blueprints.games.models import Game
from app.blueprints.servers.models import GameServer, ServerStats


def _create(client, headers, game_id, **fields):
    body = {"name": "生存服务器", "game_id": game_id}
    body.update(fields)
    return client.post("/api/servers", json=body, headers=headers)


def test_create_server(client, login, game):
    headers, user_id = login("owner@example.com")
    resp = _create(
        client,
        headers,
        game["id"],
        description="原版生存，每周重置资源世界",
        server_port=25565,
        server_type="survival",
    )
    assert resp.status_code == 201
    server = resp.get_json()["server"]
    assert server["owner_id"] == user_id
    assert server["max_players"] == 100
    assert server["game"]["name"] == "Minecraft"
    assert server["stats"]["total_posts"] == 0
    assert ServerStats.query.filter_by(server_id=server["id"]).count() == 1
    assert db.session.get(Game, game["id"]).has_servers is True


def test_create_server_missing_fields(client, login):
    headers, _ = login("owner@example.com")
    resp = client.post("/api/servers", json={}, headers=headers)
    assert resp.status_code == 400
    assert "name, game_id" in resp.get_json()["error"]

    resp = client.post("/api/servers", json={"name": "生存服务器"}, headers=headers)
    assert resp.get_json()["error"].endswith("game_id")


def test_create_server_validation(client, login, game):
    headers, _ = login("owner@example.com")
    cases = [
        {"server_port": 0},
        {"server_port": 70000},
        {"max_players": 0},
        {"max_players": 1001},
        {"server_type": "battle"},
        {"name": "ab"},
        {"description": "太短了"},
        {"name": 12345},
        {"description": 123},
    ]
    for fields in cases:
        resp = _create(client, headers, game["id"], **fields)
        assert resp.status_code == 400, fields


def test_create_server_unknown_game(client, login):
    headers, _ = login("owner@example.com")
    assert _create(client, headers, 999).status_code == 404


def test_duplicate_name_within_game_conflicts(client, login, admin_headers, game):
    headers, _ = login("owner@example.com")
    assert _create(client, headers, game["id"]).status_code == 201
    resp = _create(client, headers, game["id"])
    assert resp.status_code == 409

    # 其它游戏下可以同名
    other = client.post("/api/games", json={"name": "Terraria"}, headers=admin_headers)
    assert _create(client, headers, other.get_json()["game"]["id"]).status_code == 201


def test_deleted_server_name_can_be_reused(client, login, game):
    headers, _ = login("owner@example.com")
    server = _create(client, headers, game["id"]).get_json()["server"]
    client.delete(f"/api/servers/{server['id']}", headers=headers)
    assert _create(client, headers, game["id"]).status_code == 201


def test_list_servers_filters_and_paging(client, login, game):
    alice, alice_id = login("alice@example.com")
    bob, _ = login("bob@example.com")
    for i in range(3):
        _create(client, alice, game["id"], name=f"Alice服务器{i}")
    _create(client, bob, game["id"], name="Bob服务器")

    data = client.get("/api/servers").get_json()
    assert data["count"] == 4
    assert data["servers"][0]["name"] == "Bob服务器"

    data = client.get(f"/api/servers?user_id={alice_id}").get_json()
    assert data["count"] == 3
    assert data["servers"][0]["owner"]["username"] == "alice"

    data = client.get("/api/servers?limit=2&offset=1").get_json()
    assert [s["name"] for s in data["servers"]] == ["Alice服务器2", "Alice服务器1"]


def test_my_servers(client, login, game):
    alice, _ = login("alice@example.com")
    bob, _ = login("bob@example.com")
    _create(client, alice, game["id"], name="Alice服务器")
    _create(client, bob, game["id"], name="Bob服务器")

    data = client.get("/api/servers/mine", headers=alice).get_json()
    assert [s["name"] for s in data["servers"]] == ["Alice服务器"]


def test_update_server_owner_only(client, login, game):
    owner, _ = login("owner@example.com")
    other, _ = login("other@example.com")
    server = _create(client, owner, game["id"]).get_json()["server"]

    resp = client.put(f"/api/servers/{server['id']}", json={"max_players": 50}, headers=other)
    assert resp.status_code == 403

    resp = client.put(f"/api/servers/{server['id']}", json={"max_players": 50}, headers=owner)
    assert resp.status_code == 200
    assert resp.get_json()["server"]["max_players"] == 50

    resp = client.put(f"/api/servers/{server['id']}", json={"server_port": -1}, headers=owner)
    assert resp.status_code == 400
    resp = client.put(f"/api/servers/{server['id']}", json={"name": ["x"]}, headers=owner)
    assert resp.status_code == 400


def test_update_server_name_conflict(client, login, game):
    owner, _ = login("owner@example.com")
    _create(client, owner, game["id"], name="第一服务器")
    second = _create(client, owner, game["id"], name="第二服务器").get_json()["server"]
    resp = client.put(
        f"/api/servers/{second['id']}", json={"name": "第一服务器"}, headers=owner
    )
    assert resp.status_code == 409


def test_delete_server_soft(client, login, game):
    owner, _ = login("owner@example.com")
    other, _ = login("other@example.com")
    server = _create(client, owner, game["id"]).get_json()["server"]

    assert client.delete(f"/api/servers/{server['id']}", headers=other).status_code == 403
    assert client.delete(f"/api/servers/{server['id']}", headers=owner).status_code == 200
    assert client.get(f"/api/servers/{server['id']}").status_code == 404
    assert db.session.get(GameServer, server["id"]).is_active is False


def test_server_stats(client, login, game):
    owner, _ = login("owner@example.com")
    fan, _ = login("fan@example.com")
    server = _create(client, owner, game["id"]).get_json()["server"]
    for headers in (owner, owner, fan):
        client.post(
            "/api/posts",
            json={
                "title": "攻略",
                "content": "分享一个建造技巧",
                "game_id": game["id"],
                "server_id": server["id"],
            },
            headers=headers,
        )

    stats = client.get(f"/api/servers/{server['id']}/stats").get_json()
    assert stats["total_posts"] == 3
    assert stats["active_users"] == 2
    assert stats["recent_posts_week"] == 3
    assert stats["max_players"] == 100
    assert stats["last_activity"] is not None

    detail = client.get(f"/api/servers/{server['id']}").get_json()
    assert detail["stats"]["total_posts"] == 3


def test_top_servers_by_activity(client, login, game):
    owner, _ = login("owner@example.com")
    quiet = _create(client, owner, game["id"], name="安静服务器").get_json()["server"]
    busy = _create(client, owner, game["id"], name="热闹服务器").get_json()["server"]
    db.session.get(GameServer, quiet["id"]).last_activity = datetime.utcnow() - timedelta(
        days=3
    )
    db.session.commit()

    servers = client.get("/api/servers/top").get_json()["servers"]
    assert servers[0]["id"] == busy["id"]


def test_recalculate_server_stats(client, login, game):
    from app.tasks.community_tasks import recalculate_server_stats

    owner, _ = login("owner@example.com")
    server = _create(client, owner, game["id"]).get_json()["server"]
    post = client.post(
        "/api/posts",
        json={"title": "攻略", "content": "内容", "game_id": game["id"], "server_id": server["id"]},
        headers=owner,
    ).get_json()["post"]
    client.delete(f"/api/posts/{post['id']}", headers=owner)

    stats = ServerStats.query.filter_by(server_id=server["id"]).first()
    assert stats.total_posts == 1
    assert recalculate_server_stats() == 1
    assert stats.total_posts == 0


def test_create_server_invalidates_games_cache(client, login, game):
    from app.core.cache import cache

    headers, _ = login("owner@example.com")
    with mock.patch.object(cache, "invalidate") as invalidate:
        resp = _create(client, headers, game["id"])
    assert resp.status_code == 201
    invalidate.assert_called_once_with("games:")
