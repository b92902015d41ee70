"""
WebSocket初始化和管理模块

为已登录用户提供实时通知通道，每个用户加入 user_<id> 房间
"""

import logging
from flask_socketio import SocketIO
from flask import Flask

logger = logging.getLogger(__name__)

# 全局SocketIO实例
socketio = None


def init_socketio(app: Flask):
    """初始化SocketIO"""
    global socketio

    ws_config = app.config.get("WEBSOCKET_CONFIG", {})
    try:
        socketio = SocketIO(
            app,
            cors_allowed_origins=ws_config.get("cors_allowed_origins", "*"),
            async_mode=ws_config.get("async_mode"),
            ping_timeout=ws_config.get("ping_timeout", 60),
            ping_interval=ws_config.get("ping_interval", 25),
            max_http_buffer_size=ws_config.get("max_http_buffer_size", 1e6),
            json=app.json,  # 使用Flask的JSON编码器
            manage_session=False,  # 不管理会话
        )

        register_socketio_events()

        logger.info("SocketIO初始化成功")
        return socketio

    except Exception as e:
        logger.error(f"SocketIO初始化失败: {e}")
        raise


def register_socketio_events():
    """注册SocketIO事件处理器"""
    from .handlers import handle_connect, handle_disconnect, handle_ping

    socketio.on_event("connect", handle_connect)
    socketio.on_event("disconnect", handle_disconnect)
    socketio.on_event("ping", handle_ping)

    logger.info("SocketIO事件处理器注册完成")


def get_socketio() -> SocketIO:
    """获取SocketIO实例"""
    global socketio
    if socketio is None:
        raise RuntimeError("SocketIO未初始化，请先调用init_socketio()")
    return socketio
