"""
games / theme 相关 API 测试
"""

from unittest import mock


def test_create_game_requires_admin(client, login):
    headers, _ = login("player@example.com")
    resp = client.post("/api/games", json={"name": "Fortnite"}, headers=headers)
    assert resp.status_code == 403

    resp = client.post("/api/games", json={"name": "Fortnite"})
    assert resp.status_code == 401


def test_create_game(client, admin_headers):
    resp = client.post(
        "/api/games",
        json={"name": "Call of Duty", "genre": "FPS", "release_date": "2003-10-29"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    game = resp.get_json()["game"]
    assert game["slug"] == "call-of-duty"
    assert game["release_date"] == "2003-10-29"
    assert game["has_servers"] is False


def test_create_game_validation(client, admin_headers, game):
    resp = client.post("/api/games", json={"description": "无名"}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.post("/api/games", json={"name": "Minecraft"}, headers=admin_headers)
    assert resp.status_code == 409

    resp = client.post(
        "/api/games", json={"name": "UNO", "release_date": "yesterday"}, headers=admin_headers
    )
    assert resp.status_code == 400

    resp = client.post("/api/games", json={"name": 42}, headers=admin_headers)
    assert resp.status_code == 400
    resp = client.put(f"/api/games/{game['id']}", json={"name": 42}, headers=admin_headers)
    assert resp.status_code == 400


def test_list_games_ordered_by_name(client, admin_headers, game):
    client.post("/api/games", json={"name": "Among Us"}, headers=admin_headers)
    resp = client.get("/api/games")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["count"] == 2
    assert [g["name"] for g in data["games"]] == ["Among Us", "Minecraft"]


def test_lookup_game_by_name_and_id(client, game):
    resp = client.get("/api/games?name=Minecraft")
    assert resp.status_code == 200
    assert resp.get_json()["game"]["id"] == game["id"]

    resp = client.get(f"/api/games?id={game['id']}")
    assert resp.get_json()["game"]["name"] == "Minecraft"

    resp = client.get("/api/games?name=Terraria")
    assert resp.status_code == 404


def test_update_and_soft_delete_game(client, admin_headers, game):
    resp = client.put(
        f"/api/games/{game['id']}", json={"genre": "Survival"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["game"]["genre"] == "Survival"

    resp = client.delete(f"/api/games/{game['id']}", headers=admin_headers)
    assert resp.status_code == 200
    assert client.get(f"/api/games/{game['id']}").status_code == 404
    assert client.get("/api/games").get_json()["count"] == 0


def test_favorite_toggle(client, login, game):
    headers, _ = login("fan@example.com")
    resp = client.post(f"/api/games/{game['id']}/favorite", headers=headers)
    assert resp.get_json() == {"is_favorite": True}

    resp = client.get(f"/api/games/{game['id']}/favorite", headers=headers)
    assert resp.get_json() == {"is_favorite": True, "favorite_count": 1}

    resp = client.post(f"/api/games/{game['id']}/favorite", headers=headers)
    assert resp.get_json() == {"is_favorite": False}

    resp = client.get(f"/api/games/{game['id']}/favorite")
    assert resp.get_json() == {"is_favorite": False, "favorite_count": 0}


def test_popular_games(client, login, admin_headers, game):
    other = client.post("/api/games", json={"name": "UNO"}, headers=admin_headers).get_json()
    for email in ("a@example.com", "b@example.com"):
        headers, _ = login(email)
        client.post(f"/api/games/{other['game']['id']}/favorite", headers=headers)

    games = client.get("/api/games/popular").get_json()["games"]
    assert games[0]["name"] == "UNO"
    assert games[0]["favorite_count"] == 2
    assert games[1]["favorite_count"] == 0


def test_game_servers_featured_first(app, client, login, game):
    from app.core.extensions import db
    from app.blueprints.servers.models import GameServer

    headers, _ = login("owner@example.com")
    for name in ("普通服务器一", "推荐服务器", "普通服务器二"):
        client.post(
            "/api/servers", json={"name": name, "game_id": game["id"]}, headers=headers
        )
    featured = GameServer.query.filter_by(name="推荐服务器").first()
    featured.is_featured = True
    db.session.commit()

    servers = client.get(f"/api/games/{game['id']}/servers").get_json()["servers"]
    assert servers[0]["name"] == "推荐服务器"
    assert len(servers) == 3


def test_games_list_uses_cache(client, game):
    from app.core.cache import cache

    cached = {"games": [{"id": 99, "name": "缓存游戏"}], "count": 1}
    with mock.patch.object(cache, "get_json", return_value=cached) as get_json:
        resp = client.get("/api/games")
    get_json.assert_called_once_with("games:list")
    assert resp.get_json() == cached


def test_game_write_invalidates_cache(client, admin_headers):
    from app.core.cache import cache

    with mock.patch.object(cache, "invalidate") as invalidate:
        client.post("/api/games", json={"name": "Fortnite"}, headers=admin_headers)
    invalidate.assert_called_once_with("games:")


# ==================== 主题 ====================


def test_update_theme(client, admin_headers, game):
    theme = {
        "colors": {"primary": "#ff0000", "secondary": "rgba(0, 0, 0, 0.5)", "text": "white"},
        "typography": {"fontFamily": "Inter"},
        "layout": {"borderRadius": "8px"},
    }
    resp = client.post(
        "/api/theme/update",
        json={"entityType": "game", "entityId": game["id"], "themeConfig": theme},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["success"] is True

    resp = client.get(f"/api/theme?entityType=game&entityId={game['id']}")
    assert resp.get_json()["data"] == theme


def test_update_theme_validation(client, admin_headers, game):
    def post(body):
        return client.post("/api/theme/update", json=body, headers=admin_headers)

    assert post({"entityType": "game", "entityId": game["id"]}).status_code == 400
    assert (
        post(
            {"entityType": "planet", "entityId": game["id"], "themeConfig": {"colors": {}}}
        ).status_code
        == 400
    )
    bad_color = {"colors": {"primary": "not-a-color"}}
    assert (
        post(
            {"entityType": "game", "entityId": game["id"], "themeConfig": bad_color}
        ).status_code
        == 400
    )
    bad_font = {"typography": {"fontFamily": 12}}
    assert (
        post(
            {"entityType": "game", "entityId": game["id"], "themeConfig": bad_font}
        ).status_code
        == 400
    )
    resp = post({"entityType": "server", "entityId": 999, "themeConfig": {"colors": {}}})
    assert resp.status_code == 404


def test_get_theme_defaults_to_empty(client, game):
    resp = client.get(f"/api/theme?entityType=game&entityId={game['id']}")
    assert resp.get_json() == {"success": True, "data": {}}
    assert client.get("/api/theme?entityType=game").status_code == 400
