"""
“我的服务器”列表的客户端状态

状态只通过 server_reducer 变更；列表非空时写入本地JSON缓存，
启动时只恢复5分钟内的缓存。
"""

import json
import logging
import os
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from .token_manager import AuthenticationError, TokenManager

logger = logging.getLogger(__name__)

CACHE_TTL = 300


class ServerActionType(Enum):
    SET_LOADING = "SET_LOADING"
    SET_ERROR = "SET_ERROR"
    SET_SERVERS = "SET_SERVERS"
    ADD_SERVER = "ADD_SERVER"
    UPDATE_SERVER = "UPDATE_SERVER"
    DELETE_SERVER = "DELETE_SERVER"
    REFRESH_SERVERS = "REFRESH_SERVERS"


@dataclass(frozen=True)
class ServerState:
    servers: List[Dict[str, Any]] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None
    last_updated: float = 0


@dataclass(frozen=True)
class ServerAction:
    type: ServerActionType
    payload: Any = None
    timestamp: float = field(default_factory=time.time)


def server_reducer(state: ServerState, action: ServerAction) -> ServerState:
    kind = action.type
    if kind is ServerActionType.SET_LOADING:
        return replace(state, loading=bool(action.payload))
    if kind is ServerActionType.SET_ERROR:
        return replace(state, error=action.payload, loading=False)
    if kind is ServerActionType.SET_SERVERS:
        return replace(
            state,
            servers=list(action.payload or []),
            loading=False,
            error=None,
            last_updated=action.timestamp,
        )
    if kind is ServerActionType.ADD_SERVER:
        return replace(
            state,
            servers=[action.payload] + state.servers,
            last_updated=action.timestamp,
        )
    if kind is ServerActionType.UPDATE_SERVER:
        updated = action.payload
        return replace(
            state,
            servers=[updated if s.get("id") == updated.get("id") else s for s in state.servers],
            last_updated=action.timestamp,
        )
    if kind is ServerActionType.DELETE_SERVER:
        return replace(
            state,
            servers=[s for s in state.servers if s.get("id") != action.payload],
            last_updated=action.timestamp,
        )
    if kind is ServerActionType.REFRESH_SERVERS:
        return replace(state, last_updated=0)
    return state


class ServerStore:
    def __init__(self, token_manager: TokenManager, cache_path: str, ttl: int = CACHE_TTL):
        self.token_manager = token_manager
        self.cache_path = cache_path
        self.ttl = ttl
        self.state = ServerState()
        self._restore_cache()

    # ---------- 缓存 ----------

    def _restore_cache(self):
        if not os.path.exists(self.cache_path):
            return
        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                cached = json.load(f)
            servers = cached["servers"]
            last_updated = float(cached["last_updated"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"服务器缓存读取失败，已忽略: {e}")
            return
        if time.time() - last_updated < self.ttl:
            self.state = ServerState(servers=servers, last_updated=last_updated)
            logger.debug(f"已从缓存恢复 {len(servers)} 个服务器")

    def _persist(self):
        if not self.state.servers:
            return
        directory = os.path.dirname(self.cache_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.cache_path, "w", encoding="utf-8") as f:
            json.dump(
                {"servers": self.state.servers, "last_updated": self.state.last_updated},
                f,
                ensure_ascii=False,
            )

    def dispatch(self, action_type: ServerActionType, payload=None) -> ServerState:
        self.state = server_reducer(self.state, ServerAction(action_type, payload))
        self._persist()
        return self.state

    def is_stale(self) -> bool:
        return (
            self.state.last_updated == 0
            or time.time() - self.state.last_updated >= self.ttl
        )

    # ---------- 远程操作 ----------

    def _request(self, method, path, **kwargs):
        """返回 (response, body)，网络或认证失败时返回 (None, 错误信息)"""
        try:
            response = self.token_manager.authenticated_request(method, path, **kwargs)
        except AuthenticationError:
            return None, "会话已过期"
        except requests.RequestException as e:
            logger.error(f"服务器接口请求失败 {method} {path}: {e}")
            return None, "网络错误"
        try:
            body = response.json()
        except ValueError:
            body = {}
        return response, body

    def load_servers(self) -> ServerState:
        self.dispatch(ServerActionType.SET_LOADING, True)
        response, body = self._request("GET", "/api/servers/mine")
        if response is None:
            return self.dispatch(ServerActionType.SET_ERROR, body)
        if response.status_code != 200:
            return self.dispatch(
                ServerActionType.SET_ERROR, body.get("error", "加载服务器失败")
            )
        return self.dispatch(ServerActionType.SET_SERVERS, body.get("servers", []))

    def create_server(self, data) -> Optional[Dict[str, Any]]:
        response, body = self._request("POST", "/api/servers", json=data)
        if response is None:
            self.dispatch(ServerActionType.SET_ERROR, body)
            return None
        if response.status_code != 201 or not body.get("server"):
            self.dispatch(ServerActionType.SET_ERROR, body.get("error", "创建服务器失败"))
            return None
        self.dispatch(ServerActionType.ADD_SERVER, body["server"])
        return body["server"]

    def update_server(self, server_id, data) -> Optional[Dict[str, Any]]:
        response, body = self._request("PUT", f"/api/servers/{server_id}", json=data)
        if response is None:
            self.dispatch(ServerActionType.SET_ERROR, body)
            return None
        if response.status_code != 200 or not body.get("server"):
            self.dispatch(ServerActionType.SET_ERROR, body.get("error", "更新服务器失败"))
            return None
        self.dispatch(ServerActionType.UPDATE_SERVER, body["server"])
        return body["server"]

    def delete_server(self, server_id) -> bool:
        response, body = self._request("DELETE", f"/api/servers/{server_id}")
        if response is None:
            self.dispatch(ServerActionType.SET_ERROR, body)
            return False
        if response.status_code != 200:
            self.dispatch(ServerActionType.SET_ERROR, body.get("error", "删除服务器失败"))
            return False
        self.dispatch(ServerActionType.DELETE_SERVER, server_id)
        return True

    def refresh_servers(self) -> ServerState:
        self.dispatch(ServerActionType.REFRESH_SERVERS)
        return self.load_servers()

    def get_servers(self) -> List[Dict[str, Any]]:
        """缓存过期时重新加载"""
        if self.is_stale():
            self.load_servers()
        return self.state.servers
