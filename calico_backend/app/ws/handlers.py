"""
WebSocket事件处理器
处理连接认证与通知推送
"""

import time
import logging
from flask import request
from flask_socketio import emit, join_room
from flask_jwt_extended import decode_token
from app.core.extensions import db
from app.blueprints.auth.models import User
from . import get_socketio

logger = logging.getLogger(__name__)

# 在线用户映射 {sid: user_id}
online_users = {}


def authenticate_socket(token):
    """验证WebSocket连接的token，返回解码后的claims，失败返回None"""
    try:
        # 移除Bearer前缀
        if token.startswith("Bearer "):
            token = token[7:]

        return decode_token(token)
    except Exception as e:
        logger.warning(f"WebSocket认证失败: {e}")
        return None


def _extract_token(auth):
    if isinstance(auth, dict) and auth.get("token"):
        return auth["token"]
    return request.headers.get("Authorization") or request.args.get("token")


def handle_connect(auth=None):
    """处理WebSocket连接，认证失败时拒绝连接"""
    token = _extract_token(auth)
    if not token:
        logger.warning("WebSocket连接缺少token")
        return False

    token_data = authenticate_socket(token)
    if not token_data or token_data.get("type") != "access":
        logger.warning("WebSocket连接token无效")
        return False

    try:
        user_id = int(token_data["sub"])
    except (KeyError, ValueError, TypeError):
        logger.warning(f"WebSocket连接user_id格式错误: {token_data.get('sub')}")
        return False

    if db.session.get(User, user_id) is None:
        logger.warning(f"WebSocket连接用户不存在: {user_id}")
        return False

    online_users[request.sid] = user_id
    join_room(f"user_{user_id}")

    logger.info(f"用户 {user_id} WebSocket连接成功")
    emit("connected", {"user_id": user_id, "message": "连接成功"})


def handle_disconnect(*args):
    """处理WebSocket断开连接"""
    user_id = online_users.pop(request.sid, None)
    if user_id is not None:
        logger.info(f"用户 {user_id} WebSocket断开连接")


def handle_ping(data=None):
    emit("pong", {"timestamp": time.time()})


def is_user_online(user_id) -> bool:
    return int(user_id) in online_users.values()


def send_to_user(user_id, event, data):
    """向指定用户推送事件，推送失败不影响业务流程"""
    try:
        socketio = get_socketio()
        socketio.emit(event, data, to=f"user_{user_id}")
    except Exception as e:
        logger.error(f"用户消息发送失败: {e}")
