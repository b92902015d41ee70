import pytest
from app import create_app
from app.core.extensions import db
from app.core.account_service import create_account


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    """注册并登录，返回 (headers, user_id)"""

    def _login(email, password="password123", username=None):
        resp = client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "username": username},
        )
        assert resp.status_code == 201, resp.get_json()
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        data = resp.get_json()
        return {"Authorization": f"Bearer {data['access_token']}"}, data["user_id"]

    return _login


@pytest.fixture
def admin_headers(app, client):
    create_account("admin@calico.dev", "password123", username="admin", user_role="admin")
    resp = client.post(
        "/api/auth/login", json={"email": "admin@calico.dev", "password": "password123"}
    )
    return {"Authorization": f"Bearer {resp.get_json()['access_token']}"}


@pytest.fixture
def game(client, admin_headers):
    resp = client.post(
        "/api/games",
        json={"name": "Minecraft", "genre": "Sandbox", "description": "方块世界"},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    return resp.get_json()["game"]
