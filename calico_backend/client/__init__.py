"""
Calico 客户端工具：会话token管理与服务器列表状态
"""

from .token_manager import TokenManager, SessionStorage, MemorySessionStore, FileSessionStore
from .server_store import ServerStore

__all__ = [
    "TokenManager",
    "SessionStorage",
    "MemorySessionStore",
    "FileSessionStore",
    "ServerStore",
]
