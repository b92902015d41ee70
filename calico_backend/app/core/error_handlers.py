"""
全局错误处理

- HTTP异常统一返回 {"error": "..."} JSON
- JWT缺失、无效、过期统一返回 401
- 未捕获异常回滚会话并返回 500
"""

import logging

from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from app.core.extensions import db, jwt

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    """注册应用级错误处理器"""

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        # 并发下唯一约束冲突（重复点赞、重复关注、重名服务器等）
        db.session.rollback()
        logger.warning(f"数据完整性冲突: {e.orig}")
        return jsonify({"error": "资源已存在或违反唯一约束"}), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        messages = {
            400: "请求格式错误",
            404: "资源不存在",
            405: "请求方法不允许",
            413: "上传内容过大",
        }
        return jsonify({"error": messages.get(e.code, e.description)}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception(f"未处理的服务器异常: {e}")
        return jsonify({"error": "服务器内部错误"}), 500


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return jsonify({"error": "缺少授权token"}), 401


@jwt.invalid_token_loader
def invalid_token_callback(reason):
    logger.info(f"无效token: {reason}")
    return jsonify({"error": "token无效"}), 401


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({"error": "token已过期"}), 401


@jwt.revoked_token_loader
def revoked_token_callback(jwt_header, jwt_payload):
    return jsonify({"error": "token已失效"}), 401


@jwt.needs_fresh_token_loader
def fresh_token_callback(jwt_header, jwt_payload):
    return jsonify({"error": "需要重新登录"}), 401


@jwt.user_lookup_error_loader
def user_lookup_error_callback(jwt_header, jwt_payload):
    return jsonify({"error": "用户不存在"}), 401
