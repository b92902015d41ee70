"""
通知服务

负责通知的持久化、偏好读取和实时推送。
视图与Celery任务都通过这里创建通知，保证偏好规则一致。
"""

import logging
from typing import Iterable, Optional

from app.core.extensions import db
from app.core.pydantic_schemas import NotificationSchema, dump

logger = logging.getLogger(__name__)

# 通知类型 -> 偏好开关字段
PREFERENCE_FIELDS = {
    "new_post": "new_posts",
    "new_server": "new_servers",
    "new_game": "new_games",
    "follow": "follows",
}

DEFAULT_PREFERENCES = {
    "email_notifications": True,
    "push_notifications": True,
    "new_posts": True,
    "new_servers": True,
    "new_games": False,
    "follows": True,
}


def get_or_create_preferences(user_id: int, commit: bool = True):
    """获取用户通知偏好，不存在时按默认值创建"""
    from app.blueprints.notifications.models import NotificationPreference

    preferences = db.session.get(NotificationPreference, user_id)
    if preferences is None:
        preferences = NotificationPreference(user_id=user_id, **DEFAULT_PREFERENCES)
        db.session.add(preferences)
        if commit:
            db.session.commit()
        logger.debug(f"为用户 {user_id} 创建默认通知偏好")
    return preferences


def wants_notification(user_id: int, notification_type: str) -> bool:
    from app.blueprints.notifications.models import NotificationPreference

    field = PREFERENCE_FIELDS.get(notification_type)
    if field is None:
        return True
    preferences = db.session.get(NotificationPreference, user_id)
    if preferences is None:
        return DEFAULT_PREFERENCES[field]
    return bool(getattr(preferences, field))


def push_realtime(notification):
    """通过WebSocket推送给在线用户，离线用户只保留站内通知"""
    from app.ws.handlers import is_user_online, send_to_user

    if not is_user_online(notification.user_id):
        return

    send_to_user(notification.user_id, "notification", dump(NotificationSchema, notification))


def create_notification(
    user_id: int,
    title: str,
    message: str,
    type: str = "info",
    data: Optional[dict] = None,
    respect_preferences: bool = False,
):
    """
    创建一条通知并实时推送

    respect_preferences 为 True 时，用户关闭了该类型通知则不创建，返回None
    """
    from app.blueprints.notifications.models import Notification

    if respect_preferences and not wants_notification(user_id, type):
        logger.debug(f"用户 {user_id} 已关闭 {type} 通知")
        return None

    notification = Notification(
        user_id=user_id, title=title, message=message, type=type, data=data or {}
    )
    db.session.add(notification)
    db.session.commit()
    push_realtime(notification)
    return notification


def notify_users(
    user_ids: Iterable[int],
    title: str,
    message: str,
    type: str,
    data: Optional[dict] = None,
):
    """批量通知，始终遵循用户偏好"""
    from app.blueprints.notifications.models import Notification

    created = []
    for user_id in set(user_ids):
        if not wants_notification(user_id, type):
            continue
        notification = Notification(
            user_id=user_id, title=title, message=message, type=type, data=data or {}
        )
        db.session.add(notification)
        created.append(notification)
    db.session.commit()

    for notification in created:
        push_realtime(notification)
    logger.info(f"{type} 通知已发送给 {len(created)} 个用户")
    return created
