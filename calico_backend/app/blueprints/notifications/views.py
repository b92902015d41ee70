from . import notifications_bp
import logging
from flask import request, jsonify
from flask_jwt_extended import jwt_required
from app.core.extensions import db
from app.core.permission_decorators import current_user_id
from app.core.notification_service import (
    DEFAULT_PREFERENCES,
    create_notification,
    get_or_create_preferences,
)
from app.core.pydantic_schemas import (
    NotificationPreferenceSchema,
    NotificationSchema,
    PushTokenSchema,
    dump,
)
from .models import Notification, PushToken, NOTIFICATION_TYPES

logger = logging.getLogger(__name__)


def _own_notification(notification_id, user_id):
    return Notification.query.filter_by(id=notification_id, user_id=user_id).first()


@notifications_bp.route("/notifications", methods=["GET"])
@jwt_required()
def list_notifications():
    """
    获取通知列表
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        example: 1
      - in: query
        name: limit
        type: integer
        example: 20
      - in: query
        name: unread_only
        type: boolean
        example: false
    responses:
      200:
        description: 通知列表
        schema:
          type: object
          properties:
            notifications:
              type: array
              items:
                type: object
            unreadCount:
              type: integer
            page:
              type: integer
            limit:
              type: integer
            hasMore:
              type: boolean
    """
    user_id = current_user_id()
    page = max(1, request.args.get("page", 1, type=int))
    limit = max(1, min(request.args.get("limit", 20, type=int), 100))
    unread_only = request.args.get("unread_only", "false").lower() == "true"

    query = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        query = query.filter_by(read=False)
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    unread_count = Notification.query.filter_by(user_id=user_id, read=False).count()
    return (
        jsonify(
            {
                "notifications": [dump(NotificationSchema, n) for n in notifications],
                "unreadCount": unread_count,
                "page": page,
                "limit": limit,
                "hasMore": len(notifications) == limit,
            }
        ),
        200,
    )


@notifications_bp.route("/notifications", methods=["POST"])
@jwt_required()
def create_user_notification():
    """
    为当前用户创建通知
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - title
            - message
          properties:
            title:
              type: string
            message:
              type: string
            type:
              type: string
              example: info
            data:
              type: object
    responses:
      201:
        description: 创建成功
      400:
        description: 标题和内容必填
    """
    data = request.get_json(silent=True) or {}
    title = data.get("title")
    message = data.get("message")
    if not title or not message:
        return jsonify({"error": "标题和内容必填"}), 400
    if not isinstance(title, str) or not isinstance(message, str):
        return jsonify({"error": "标题和内容必须是字符串"}), 400
    notification_type = data.get("type") or "info"
    if notification_type not in NOTIFICATION_TYPES:
        return jsonify({"error": f"通知类型必须是: {', '.join(NOTIFICATION_TYPES)}"}), 400
    extra = data.get("data") or {}
    if not isinstance(extra, dict):
        return jsonify({"error": "data必须是对象"}), 400

    notification = create_notification(
        current_user_id(), title, message, type=notification_type, data=extra
    )
    return jsonify({"notification": dump(NotificationSchema, notification)}), 201


@notifications_bp.route("/notifications/<int:notification_id>", methods=["PATCH"])
@jwt_required()
def update_notification(notification_id):
    """
    标记通知已读/未读
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: path
        name: notification_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            read:
              type: boolean
    responses:
      200:
        description: 更新后的通知
      400:
        description: read必须是布尔值
      404:
        description: 通知不存在
    """
    notification = _own_notification(notification_id, current_user_id())
    if not notification:
        return jsonify({"error": "通知不存在"}), 404
    data = request.get_json(silent=True) or {}
    read = data.get("read", True)
    if not isinstance(read, bool):
        return jsonify({"error": "read必须是布尔值"}), 400
    notification.read = read
    db.session.commit()
    return jsonify({"notification": dump(NotificationSchema, notification)}), 200


@notifications_bp.route("/notifications/<int:notification_id>", methods=["DELETE"])
@jwt_required()
def delete_notification(notification_id):
    """
    删除通知
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: path
        name: notification_id
        type: integer
        required: true
    responses:
      200:
        description: 删除成功
      404:
        description: 通知不存在
    """
    notification = _own_notification(notification_id, current_user_id())
    if not notification:
        return jsonify({"error": "通知不存在"}), 404
    db.session.delete(notification)
    db.session.commit()
    return jsonify({"success": True}), 200


@notifications_bp.route("/notifications/mark-all-read", methods=["POST"])
@jwt_required()
def mark_all_read():
    """
    全部标记为已读
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    responses:
      200:
        description: 成功，返回更新条数
    """
    updated = Notification.query.filter_by(user_id=current_user_id(), read=False).update(
        {"read": True}, synchronize_session=False
    )
    db.session.commit()
    return jsonify({"success": True, "updated": updated}), 200


@notifications_bp.route("/notifications/preferences", methods=["GET"])
@jwt_required()
def get_preferences():
    """
    获取通知偏好（不存在时创建默认值）
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    responses:
      200:
        description: 通知偏好
    """
    preferences = get_or_create_preferences(current_user_id())
    return jsonify({"preferences": dump(NotificationPreferenceSchema, preferences)}), 200


@notifications_bp.route("/notifications/preferences", methods=["PUT"])
@jwt_required()
def update_preferences():
    """
    更新通知偏好
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            email_notifications:
              type: boolean
            push_notifications:
              type: boolean
            new_posts:
              type: boolean
            new_servers:
              type: boolean
            new_games:
              type: boolean
            follows:
              type: boolean
    responses:
      200:
        description: 更新后的通知偏好
      400:
        description: 偏好值必须是布尔值
    """
    data = request.get_json(silent=True) or {}
    for field in DEFAULT_PREFERENCES:
        if field in data and not isinstance(data[field], bool):
            return jsonify({"error": f"{field}必须是布尔值"}), 400

    preferences = get_or_create_preferences(current_user_id(), commit=False)
    for field in DEFAULT_PREFERENCES:
        if field in data:
            setattr(preferences, field, data[field])
    db.session.commit()
    return jsonify({"preferences": dump(NotificationPreferenceSchema, preferences)}), 200


@notifications_bp.route("/notifications/push-token", methods=["POST"])
@jwt_required()
def register_push_token():
    """
    注册推送token
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - token
          properties:
            token:
              type: string
            device_type:
              type: string
              example: web
    responses:
      200:
        description: 注册成功
      400:
        description: token必填
    """
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if not token or not isinstance(token, str):
        return jsonify({"error": "token必填"}), 400
    user_id = current_user_id()
    device_type = data.get("device_type") or "web"
    if not isinstance(device_type, str):
        return jsonify({"error": "device_type必须是字符串"}), 400

    push_token = PushToken.query.filter_by(user_id=user_id, token=token).first()
    if push_token is None:
        push_token = PushToken(user_id=user_id, token=token)
        db.session.add(push_token)
    push_token.device_type = device_type
    db.session.commit()
    return jsonify({"success": True, "push_token": dump(PushTokenSchema, push_token)}), 200


@notifications_bp.route("/notifications/push-token", methods=["DELETE"])
@jwt_required()
def remove_push_token():
    """
    删除推送token
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - token
          properties:
            token:
              type: string
    responses:
      200:
        description: 删除成功
      400:
        description: token必填
    """
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    if not token or not isinstance(token, str):
        return jsonify({"error": "token必填"}), 400
    deleted = PushToken.query.filter_by(user_id=current_user_id(), token=token).delete()
    db.session.commit()
    return jsonify({"success": True, "deleted": deleted}), 200
