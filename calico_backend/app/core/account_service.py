"""
账号服务

注册、登录签发token、资料自动补建等账号相关逻辑，
供 auth 视图与数据填充命令共用。
"""

import logging
import re
from datetime import datetime

from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token
from werkzeug.security import generate_password_hash

from app.core.extensions import db
from app.blueprints.auth.models import User, Profile

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,30}$")
MIN_PASSWORD_LENGTH = 8


class AccountError(Exception):
    """账号操作失败，携带HTTP状态码"""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def validate_email(email) -> bool:
    return isinstance(email, str) and bool(EMAIL_PATTERN.match(email))


def validate_username(username) -> bool:
    return isinstance(username, str) and bool(USERNAME_PATTERN.match(username))


def username_base_from_email(email: str) -> str:
    """邮箱前缀转小写并去掉非字母数字字符"""
    base = re.sub(r"[^a-z0-9]", "", email.split("@")[0].lower())
    return base or "user"


def generate_unique_username(base: str) -> str:
    """base 已被占用时依次追加 1、2、3…"""
    username = base
    counter = 1
    while Profile.query.filter_by(username=username).first() is not None:
        username = f"{base}{counter}"
        counter += 1
    return username


def create_account(email, password, username=None, full_name=None, user_role="user"):
    """
    创建用户及其资料

    异常:
        AccountError: 参数不合法(400) 或 邮箱/用户名已被占用(409)
    """
    if not email or not password:
        raise AccountError("邮箱和密码必填")
    if not isinstance(email, str) or not isinstance(password, str):
        raise AccountError("邮箱和密码必须是字符串")
    if full_name is not None and not isinstance(full_name, str):
        raise AccountError("姓名必须是字符串")
    email = email.strip().lower()
    if not validate_email(email):
        raise AccountError("邮箱格式不正确")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AccountError(f"密码至少{MIN_PASSWORD_LENGTH}位")
    if username is not None and not validate_username(username):
        raise AccountError("用户名需为3-30位字母、数字或下划线")

    if User.query.filter_by(email=email).first():
        raise AccountError("邮箱已被注册", 409)
    if username and Profile.query.filter_by(username=username).first():
        raise AccountError("用户名已存在", 409)

    user = User(email=email, password_hash=generate_password_hash(password))
    db.session.add(user)
    db.session.flush()

    username = username or generate_unique_username(username_base_from_email(email))
    profile = Profile(
        id=user.id,
        username=username,
        full_name=full_name or username,
        avatar_url=current_app.config.get("DEFAULT_AVATAR_URL"),
        user_role=user_role,
        is_active=True,
    )
    db.session.add(profile)
    db.session.commit()
    logger.info(f"新用户注册: {user.id} ({username})")
    return user, profile


def ensure_profile(user: User) -> Profile:
    """登录时资料缺失则按邮箱自动创建"""
    if user.profile is not None:
        return user.profile

    username = generate_unique_username(username_base_from_email(user.email))
    profile = Profile(
        id=user.id,
        username=username,
        full_name=username,
        avatar_url=current_app.config.get("DEFAULT_AVATAR_URL"),
        bio=None,
        user_role="user",
        is_active=True,
    )
    db.session.add(profile)
    db.session.commit()
    logger.info(f"为用户 {user.id} 自动创建资料: {username}")
    return profile


def issue_tokens(user: User, profile: Profile) -> dict:
    """签发access/refresh token，返回会话信息"""
    claims = {"user_role": profile.user_role, "username": profile.username}
    access_token = create_access_token(identity=str(user.id), additional_claims=claims)
    refresh_token = create_refresh_token(identity=str(user.id))

    expires = current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES")
    expires_in = int(expires.total_seconds()) if expires else None
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "expires_in": expires_in,
    }


def record_login(user: User):
    user.last_login_at = datetime.utcnow()
    db.session.commit()
