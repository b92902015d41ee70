"""
客户端会话与token管理

- 本地解析JWT过期时间（不校验签名）
- token过期前主动刷新，已过期则刷新失败即登出
- 后台线程每2分钟检查一次，会话消失后自动停止
- 带认证的请求遇到401时刷新token并重试一次
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import jwt
import requests

logger = logging.getLogger(__name__)

EXPIRY_BUFFER_MINUTES = 5
AUTO_REFRESH_INTERVAL = 120
REQUEST_TIMEOUT = 10


class AuthenticationError(Exception):
    """没有可用的有效会话"""


@dataclass
class RefreshResult:
    success: bool
    error: Optional[str] = None
    session: Optional[Dict[str, Any]] = None


def decode_jwt(token) -> Dict[str, Any]:
    """解析JWT载荷，不校验签名，格式错误返回空字典"""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except (jwt.PyJWTError, AttributeError, TypeError):
        return {}


def is_token_expiring_soon(token, buffer_minutes: int = EXPIRY_BUFFER_MINUTES) -> bool:
    exp = decode_jwt(token).get("exp")
    if not exp:
        return True
    return exp - int(time.time()) <= buffer_minutes * 60


def is_token_expired(token) -> bool:
    exp = decode_jwt(token).get("exp")
    if not exp:
        return True
    return exp <= int(time.time())


# ==================== 会话存储 ====================


class MemorySessionStore:
    """仅在进程内保存会话，对应“不记住我”"""

    def __init__(self):
        self._session = None

    def load(self):
        return self._session

    def save(self, session):
        self._session = dict(session)

    def clear(self):
        self._session = None


class FileSessionStore:
    """JSON文件保存会话，对应“记住我”"""

    def __init__(self, path):
        self.path = path

    def load(self):
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"会话文件读取失败，已忽略: {e}")
            return None

    def save(self, session):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(session, f, ensure_ascii=False)

    def clear(self):
        if os.path.exists(self.path):
            os.remove(self.path)


class SessionStorage:
    """
    组合两种存储：remember_me 的会话写入文件，否则只保存在内存中。
    读取时优先文件存储。
    """

    def __init__(self, memory=None, persistent=None):
        self.memory = memory or MemorySessionStore()
        self.persistent = persistent

    def _stores(self):
        return [s for s in (self.persistent, self.memory) if s is not None]

    def load(self):
        for store in self._stores():
            session = store.load()
            if session and session.get("access_token"):
                return session
        return None

    def save(self, session):
        # 两种存储中最多只有一份会话
        if session.get("remember_me") and self.persistent is not None:
            self.persistent.save(session)
            self.memory.clear()
        else:
            self.memory.save(session)
            if self.persistent is not None:
                self.persistent.clear()

    def clear(self):
        for store in self._stores():
            store.clear()


# ==================== token管理 ====================


class TokenManager:
    def __init__(
        self,
        base_url: str,
        store: SessionStorage = None,
        http: requests.Session = None,
        on_session_expired: Callable[[], None] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store or SessionStorage()
        self.http = http or requests.Session()
        self.on_session_expired = on_session_expired
        self._refresh_lock = threading.Lock()
        self._stop_event = None
        self._thread = None

    def _url(self, path):
        return f"{self.base_url}{path}"

    def get_session(self):
        return self.store.load()

    def login(self, email, password, remember_me=False) -> RefreshResult:
        try:
            response = self.http.post(
                self._url("/api/auth/login"),
                json={"email": email, "password": password},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            logger.error(f"登录请求失败: {e}")
            return RefreshResult(False, error="网络错误")

        body = _json_body(response)
        if response.status_code != 200:
            return RefreshResult(False, error=body.get("error", "登录失败"))

        session = {
            "access_token": body["access_token"],
            "refresh_token": body["refresh_token"],
            "user": body.get("user"),
            "profile": body.get("profile"),
            "remember_me": bool(remember_me),
            "login_time": datetime.utcnow().isoformat(),
        }
        self.store.save(session)
        logger.info(f"登录成功: {email}")
        return RefreshResult(True, session=session)

    def logout(self):
        self.stop_auto_refresh()
        self.store.clear()
        logger.info("已退出登录")

    def refresh_token(self) -> RefreshResult:
        """使用refresh_token换取新token，并写回原来的存储"""
        with self._refresh_lock:
            session = self.get_session()
            if not session or not session.get("refresh_token"):
                return RefreshResult(False, error="没有可用的refresh_token")

            try:
                response = self.http.post(
                    self._url("/api/auth/refresh"),
                    headers={"Authorization": f"Bearer {session['refresh_token']}"},
                    timeout=REQUEST_TIMEOUT,
                )
            except requests.RequestException as e:
                logger.warning(f"刷新token请求失败: {e}")
                return RefreshResult(False, error="刷新token时发生网络错误")

            body = _json_body(response)
            if response.status_code != 200:
                return RefreshResult(False, error=body.get("error", "刷新token失败"))
            if not body.get("access_token"):
                return RefreshResult(False, error="刷新接口未返回新的token")

            updated = {
                **session,
                "access_token": body["access_token"],
                "refresh_token": body.get("refresh_token", session["refresh_token"]),
                "login_time": datetime.utcnow().isoformat(),
            }
            self.store.save(updated)
            logger.debug("token已刷新")
            return RefreshResult(True, session=updated)

    def _expire_session(self):
        self.logout()
        if self.on_session_expired is not None:
            self.on_session_expired()

    def ensure_valid_token(self) -> bool:
        session = self.get_session()
        if not session or not session.get("access_token"):
            return False
        access_token = session["access_token"]

        if is_token_expired(access_token):
            result = self.refresh_token()
            if not result.success:
                logger.info(f"会话已过期: {result.error}")
                self._expire_session()
                return False
            return True

        if is_token_expiring_soon(access_token):
            result = self.refresh_token()
            if not result.success:
                # token仍然有效，下次再尝试
                logger.debug(f"提前刷新失败: {result.error}")
        return True

    def start_auto_refresh(self, interval: float = AUTO_REFRESH_INTERVAL):
        """后台定期检查token，立即执行一次"""
        self.stop_auto_refresh()
        stop_event = threading.Event()
        self._stop_event = stop_event

        def run():
            self.ensure_valid_token()
            while not stop_event.wait(interval):
                if not self.get_session():
                    logger.debug("会话不存在，停止自动刷新")
                    break
                self.ensure_valid_token()

        self._thread = threading.Thread(target=run, name="token-refresh", daemon=True)
        self._thread.start()
        return self._thread

    def stop_auto_refresh(self):
        if self._stop_event is not None:
            self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1)
        self._stop_event = None
        self._thread = None

    def authenticated_request(self, method, path, **kwargs) -> requests.Response:
        if not self.ensure_valid_token():
            raise AuthenticationError("没有可用的有效token")
        session = self.get_session()
        if not session or not session.get("access_token"):
            raise AuthenticationError("没有可用的access_token")

        headers = dict(kwargs.pop("headers", None) or {})
        kwargs.setdefault("timeout", REQUEST_TIMEOUT)
        headers["Authorization"] = f"Bearer {session['access_token']}"
        response = self.http.request(method, self._url(path), headers=headers, **kwargs)
        if response.status_code != 401:
            return response

        result = self.refresh_token()
        if result.success:
            headers["Authorization"] = f"Bearer {result.session['access_token']}"
            return self.http.request(method, self._url(path), headers=headers, **kwargs)

        self._expire_session()
        return response

    def get_token_info(self) -> Optional[Dict[str, Any]]:
        session = self.get_session()
        if not session or not session.get("access_token"):
            return None
        claims = decode_jwt(session["access_token"])
        if not claims.get("exp") or not claims.get("iat"):
            return None
        return {
            "access_token": session["access_token"],
            "refresh_token": session.get("refresh_token") or "",
            "expires_at": claims["exp"],
            "expires_in": claims["exp"] - int(time.time()),
        }

    def is_session_valid(self) -> bool:
        """向服务端确认当前access_token是否有效"""
        session = self.get_session()
        if not session or not session.get("access_token"):
            return False
        try:
            response = self.http.get(
                self._url("/api/auth/me"),
                headers={"Authorization": f"Bearer {session['access_token']}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException:
            return False
        return response.status_code == 200


def _json_body(response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
