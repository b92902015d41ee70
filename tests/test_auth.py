"""
auth 相关 API 测试
"""

from datetime import timedelta

from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

from app.core.extensions import db
from app.blueprints.auth.models import User, Profile


def test_register_success(client):
    resp = client.post(
        "/api/auth/register",
        json={"email": "Alice@Example.com", "password": "password123", "username": "alice"},
    )
    assert resp.status_code == 201
    data = resp.get_json()
    assert data["message"] == "注册成功"
    assert data["user"]["email"] == "alice@example.com"
    assert data["profile"]["username"] == "alice"
    assert data["profile"]["user_role"] == "user"


def test_register_generates_username_from_email(client):
    resp = client.post(
        "/api/auth/register", json={"email": "john.doe@example.com", "password": "password123"}
    )
    assert resp.get_json()["profile"]["username"] == "johndoe"


def test_register_duplicate_email(client):
    client.post("/api/auth/register", json={"email": "bob@example.com", "password": "password123"})
    resp = client.post(
        "/api/auth/register", json={"email": "bob@example.com", "password": "password456"}
    )
    assert resp.status_code == 409
    assert "邮箱已被注册" in resp.get_json()["error"]


def test_register_duplicate_username(client):
    client.post(
        "/api/auth/register",
        json={"email": "a@example.com", "password": "password123", "username": "gamer"},
    )
    resp = client.post(
        "/api/auth/register",
        json={"email": "b@example.com", "password": "password123", "username": "gamer"},
    )
    assert resp.status_code == 409
    assert "用户名已存在" in resp.get_json()["error"]


def test_register_validation(client):
    resp = client.post("/api/auth/register", json={"email": "c@example.com"})
    assert resp.status_code == 400
    assert "必填" in resp.get_json()["error"]

    resp = client.post("/api/auth/register", json={"email": "bad-email", "password": "password123"})
    assert resp.status_code == 400

    resp = client.post("/api/auth/register", json={"email": "c@example.com", "password": "short"})
    assert resp.status_code == 400
    assert "密码至少8位" in resp.get_json()["error"]

    resp = client.post(
        "/api/auth/register",
        json={"email": "c@example.com", "password": "password123", "username": "a!"},
    )
    assert resp.status_code == 400


def test_login_success(client):
    client.post(
        "/api/auth/register", json={"email": "david@example.com", "password": "password123"}
    )
    resp = client.post(
        "/api/auth/login", json={"email": "david@example.com", "password": "password123"}
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["message"] == "登录成功"
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 3600
    assert isinstance(data["access_token"], str) and len(data["access_token"]) > 10
    assert data["refresh_token"]
    assert data["profile"]["username"] == "david"


def test_login_wrong_password(client):
    client.post("/api/auth/register", json={"email": "eva@example.com", "password": "password123"})
    resp = client.post("/api/auth/login", json={"email": "eva@example.com", "password": "wrong"})
    assert resp.status_code == 401
    assert "邮箱或密码错误" in resp.get_json()["error"]


def test_login_missing_fields(client):
    resp = client.post("/api/auth/login", json={"email": "eva@example.com"})
    assert resp.status_code == 400
    resp = client.post("/api/auth/login", json={"email": 123, "password": "password123"})
    assert resp.status_code == 400


def test_login_creates_missing_profile(client):
    # 已占用的用户名触发数字后缀
    client.post(
        "/api/auth/register",
        json={"email": "other@example.com", "password": "password123", "username": "frank"},
    )
    user = User(email="frank@example.com", password_hash=generate_password_hash("password123"))
    db.session.add(user)
    db.session.commit()

    resp = client.post(
        "/api/auth/login", json={"email": "frank@example.com", "password": "password123"}
    )
    assert resp.status_code == 200
    assert resp.get_json()["profile"]["username"] == "frank1"
    assert db.session.get(Profile, user.id) is not None


def test_refresh_issues_new_tokens(client):
    client.post("/api/auth/register", json={"email": "gina@example.com", "password": "password123"})
    tokens = client.post(
        "/api/auth/login", json={"email": "gina@example.com", "password": "password123"}
    ).get_json()

    resp = client.post(
        "/api/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}
    )
    assert resp.status_code == 200
    assert resp.get_json()["access_token"]

    # access token 不能用于刷新
    resp = client.post(
        "/api/auth/refresh", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert resp.status_code == 401


def test_me_requires_token(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "缺少授权token"


def test_expired_token_rejected(client, login):
    _, user_id = login("henry@example.com")
    token = create_access_token(identity=str(user_id), expires_delta=timedelta(seconds=-1))
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "token已过期"


def test_update_profile(client, login):
    headers, _ = login("ivy@example.com", username="ivy")
    login("jack@example.com", username="jack")

    resp = client.patch(
        "/api/auth/profile", json={"bio": "喜欢生存模式", "full_name": "Ivy"}, headers=headers
    )
    assert resp.status_code == 200
    assert resp.get_json()["bio"] == "喜欢生存模式"

    resp = client.patch("/api/auth/profile", json={"username": "jack"}, headers=headers)
    assert resp.status_code == 409


def test_change_password(client, login):
    headers, _ = login("kate@example.com")
    resp = client.patch(
        "/api/auth/change_password",
        json={"old_password": "wrong-password", "new_password": "newpassword1"},
        headers=headers,
    )
    assert resp.status_code == 401

    resp = client.patch(
        "/api/auth/change_password",
        json={"old_password": "password123", "new_password": "newpassword1"},
        headers=headers,
    )
    assert resp.status_code == 200
    resp = client.post(
        "/api/auth/login", json={"email": "kate@example.com", "password": "newpassword1"}
    )
    assert resp.status_code == 200


def test_non_string_fields_rejected(client, login):
    resp = client.post(
        "/api/auth/register", json={"email": "lily@example.com", "password": 12345678}
    )
    assert resp.status_code == 400
    resp = client.post(
        "/api/auth/register",
        json={"email": "lily@example.com", "password": "password123", "username": 42},
    )
    assert resp.status_code == 400

    headers, _ = login("mia@example.com")
    resp = client.patch("/api/auth/profile", json={"full_name": 7}, headers=headers)
    assert resp.status_code == 400
    resp = client.patch(
        "/api/auth/change_password",
        json={"old_password": "password123", "new_password": 12345678},
        headers=headers,
    )
    assert resp.status_code == 400
