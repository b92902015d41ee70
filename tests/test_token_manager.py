"""
客户端 TokenManager 测试（HTTP 层使用 mock）
"""

import time
from unittest import mock

import jwt
import pytest
import requests

from client.token_manager import (
    AuthenticationError,
    FileSessionStore,
    MemorySessionStore,
    SessionStorage,
    TokenManager,
    decode_jwt,
    is_token_expired,
    is_token_expiring_soon,
)


def make_token(expires_in, **claims):
    now = int(time.time())
    payload = {"sub": "1", "iat": now, "exp": now + expires_in}
    payload.update(claims)
    return jwt.encode(payload, "test-secret", algorithm="HS256")


def fake_response(status_code, body=None):
    response = mock.Mock(status_code=status_code)
    response.json.return_value = body if body is not None else {}
    return response


def make_manager(session=None, **kwargs):
    store = SessionStorage()
    if session:
        store.save(session)
    http = mock.Mock(spec=requests.Session)
    return TokenManager("http://api.test/", store=store, http=http, **kwargs), http


def test_decode_jwt_ignores_signature():
    token = make_token(3600, role="user")
    assert decode_jwt(token)["role"] == "user"
    assert decode_jwt("garbage") == {}
    assert decode_jwt(None) == {}


def test_expiry_checks():
    assert is_token_expiring_soon(make_token(60)) is True
    assert is_token_expiring_soon(make_token(3600)) is False
    assert is_token_expired(make_token(-10)) is True
    assert is_token_expired(make_token(60)) is False
    # 没有exp视为已过期
    assert is_token_expired(jwt.encode({"sub": "1"}, "k", algorithm="HS256")) is True


def test_session_storage_remember_me(tmp_path):
    persistent = FileSessionStore(str(tmp_path / "session.json"))
    storage = SessionStorage(MemorySessionStore(), persistent)

    storage.save({"access_token": "a", "remember_me": False})
    assert persistent.load() is None
    assert storage.load()["access_token"] == "a"

    storage.save({"access_token": "b", "remember_me": True})
    assert persistent.load()["access_token"] == "b"
    assert storage.load()["access_token"] == "b"

    storage.clear()
    assert storage.load() is None
    assert not (tmp_path / "session.json").exists()


def test_session_storage_switching_remember_me(tmp_path):
    persistent = FileSessionStore(str(tmp_path / "session.json"))
    memory = MemorySessionStore()
    storage = SessionStorage(memory, persistent)

    storage.save({"access_token": "alice", "remember_me": True})
    storage.save({"access_token": "bob", "remember_me": False})
    assert storage.load()["access_token"] == "bob"
    assert not (tmp_path / "session.json").exists()

    storage.save({"access_token": "carol", "remember_me": True})
    assert storage.load()["access_token"] == "carol"
    assert memory.load() is None


def test_file_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert FileSessionStore(str(path)).load() is None


def test_login_saves_session():
    manager, http = make_manager()
    http.post.return_value = fake_response(
        200,
        {"access_token": make_token(3600), "refresh_token": "r1", "user": {"id": 1}},
    )
    result = manager.login("a@example.com", "password123", remember_me=False)
    assert result.success
    http.post.assert_called_once_with(
        "http://api.test/api/auth/login",
        json={"email": "a@example.com", "password": "password123"},
        timeout=10,
    )
    assert manager.get_session()["refresh_token"] == "r1"


def test_login_failure():
    manager, http = make_manager()
    http.post.return_value = fake_response(401, {"error": "邮箱或密码错误"})
    result = manager.login("a@example.com", "bad")
    assert result.success is False
    assert result.error == "邮箱或密码错误"
    assert manager.get_session() is None


def test_refresh_token_updates_session():
    manager, http = make_manager({"access_token": make_token(-5), "refresh_token": "r1"})
    new_access = make_token(3600)
    http.post.return_value = fake_response(
        200, {"access_token": new_access, "refresh_token": "r2"}
    )

    result = manager.refresh_token()
    assert result.success
    _, kwargs = http.post.call_args
    assert kwargs["headers"] == {"Authorization": "Bearer r1"}
    session = manager.get_session()
    assert session["access_token"] == new_access
    assert session["refresh_token"] == "r2"


def test_refresh_without_session():
    manager, http = make_manager()
    assert manager.refresh_token().success is False
    http.post.assert_not_called()


def test_ensure_valid_token_keeps_fresh_token():
    manager, http = make_manager({"access_token": make_token(3600), "refresh_token": "r1"})
    assert manager.ensure_valid_token() is True
    http.post.assert_not_called()


def test_ensure_valid_token_refreshes_expiring_token():
    manager, http = make_manager({"access_token": make_token(60), "refresh_token": "r1"})
    http.post.return_value = fake_response(200, {"access_token": make_token(3600)})
    assert manager.ensure_valid_token() is True
    assert http.post.call_count == 1


def test_expiring_token_survives_refresh_failure():
    manager, http = make_manager({"access_token": make_token(60), "refresh_token": "r1"})
    http.post.side_effect = requests.ConnectionError("down")
    assert manager.ensure_valid_token() is True
    assert manager.get_session() is not None


def test_expired_token_with_failed_refresh_logs_out():
    expired = mock.Mock()
    manager, http = make_manager(
        {"access_token": make_token(-5), "refresh_token": "r1"}, on_session_expired=expired
    )
    http.post.return_value = fake_response(401, {"error": "token已过期"})
    assert manager.ensure_valid_token() is False
    assert manager.get_session() is None
    expired.assert_called_once_with()


def test_authenticated_request_retries_once_after_401():
    manager, http = make_manager({"access_token": make_token(3600), "refresh_token": "r1"})
    new_access = make_token(7200)
    http.request.side_effect = [fake_response(401), fake_response(200, {"ok": True})]
    http.post.return_value = fake_response(200, {"access_token": new_access})

    response = manager.authenticated_request("GET", "/api/servers/mine")
    assert response.status_code == 200
    assert http.request.call_count == 2
    retry_headers = http.request.call_args_list[1][1]["headers"]
    assert retry_headers["Authorization"] == f"Bearer {new_access}"


def test_authenticated_request_gives_up_when_refresh_fails():
    expired = mock.Mock()
    manager, http = make_manager(
        {"access_token": make_token(3600), "refresh_token": "r1"}, on_session_expired=expired
    )
    http.request.return_value = fake_response(401)
    http.post.return_value = fake_response(401)

    response = manager.authenticated_request("GET", "/api/servers/mine")
    assert response.status_code == 401
    assert http.request.call_count == 1
    assert manager.get_session() is None
    expired.assert_called_once_with()


def test_authenticated_request_without_session():
    manager, _ = make_manager()
    with pytest.raises(AuthenticationError):
        manager.authenticated_request("GET", "/api/servers/mine")


def test_token_info():
    access = make_token(3600)
    manager, _ = make_manager({"access_token": access, "refresh_token": "r1"})
    info = manager.get_token_info()
    assert info["access_token"] == access
    assert 3590 <= info["expires_in"] <= 3600

    manager, _ = make_manager()
    assert manager.get_token_info() is None


def test_is_session_valid():
    manager, http = make_manager({"access_token": make_token(3600), "refresh_token": "r1"})
    http.get.return_value = fake_response(200)
    assert manager.is_session_valid() is True
    http.get.side_effect = requests.Timeout()
    assert manager.is_session_valid() is False


def test_auto_refresh_stops_without_session():
    manager, http = make_manager({"access_token": make_token(3600), "refresh_token": "r1"})
    thread = manager.start_auto_refresh(interval=0.01)
    manager.store.clear()
    thread.join(timeout=2)
    assert not thread.is_alive()
    manager.stop_auto_refresh()
