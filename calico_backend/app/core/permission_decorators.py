"""
权限装饰器模块

提供统一的错误响应函数、当前用户解析以及基于角色的访问控制装饰器。
资源归属（帖子作者、服务器所有者）校验在各视图内完成。
"""

import logging
from functools import wraps
from typing import Optional

from flask import jsonify, g
from flask_jwt_extended import (
    jwt_required,
    get_jwt_identity,
    verify_jwt_in_request,
)

from app.core.extensions import db

logger = logging.getLogger(__name__)

# ==================== 统一错误响应函数 ====================


def create_error_response(message: str, status_code: int = 403) -> tuple:
    """
    创建统一的错误响应格式

    参数:
        message: 错误消息
        status_code: HTTP状态码

    返回:
        tuple: (response, status_code)
    """
    return jsonify({"error": message}), status_code


def unauthorized_error(message: str = "未授权访问") -> tuple:
    """创建401未授权错误响应"""
    return create_error_response(message, 401)


def forbidden_error(message: str = "权限不足") -> tuple:
    """创建403权限不足错误响应"""
    return create_error_response(message, 403)


# ==================== 当前用户 ====================


def current_user_id() -> int:
    """在 @jwt_required() 保护的视图内获取当前用户ID"""
    return int(get_jwt_identity())


def optional_user_id() -> Optional[int]:
    """
    可选认证：携带有效token时返回用户ID，否则返回None。
    用于公开接口中计算 user_has_liked / is_following 等个性化字段。
    """
    try:
        verify_jwt_in_request(optional=True)
    except Exception as e:
        # 公开接口上的无效token不阻止访问，只是不做个性化
        logger.debug(f"可选认证失败，按匿名用户处理: {e}")
        return None
    identity = get_jwt_identity()
    return int(identity) if identity is not None else None


def get_current_profile():
    """获取当前用户资料，同一上下文内同一用户只查询一次"""
    from app.blueprints.auth.models import Profile

    user_id = current_user_id()
    profile = g.get("current_profile")
    if profile is None or profile.id != user_id:
        profile = db.session.get(Profile, user_id)
        g.current_profile = profile
    return profile


# ==================== 装饰器实现 ====================


def require_role(*roles: str):
    """
    要求当前用户拥有指定角色之一

    用法:
        @require_role("admin")
        def create_game(): ...
    """

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            profile = get_current_profile()
            if profile is None or not profile.is_active:
                logger.warning(f"角色校验失败：用户 {get_jwt_identity()} 无有效资料")
                return unauthorized_error("用户资料不存在或已停用")
            if profile.user_role not in roles:
                logger.info(
                    f"权限不足: 用户 {profile.id} 角色 {profile.user_role} 需要 {roles}"
                )
                return forbidden_error()
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_admin(fn):
    """管理员权限装饰器"""
    return require_role("admin")(fn)
