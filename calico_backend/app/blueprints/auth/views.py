from . import auth_bp
import logging
from flask import request, jsonify
from app.core.extensions import db
from app.blueprints.auth.models import User, Profile
from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import jwt_required, get_jwt_identity
from app.core.account_service import (
    AccountError,
    create_account,
    ensure_profile,
    issue_tokens,
    record_login,
    validate_username,
    MIN_PASSWORD_LENGTH,
)
from app.core.permission_decorators import current_user_id
from app.core.pydantic_schemas import UserSchema, ProfileSchema, dump
from app.core.storage import StorageError, save_image
from flasgger import swag_from

logger = logging.getLogger(__name__)


@auth_bp.route("/auth/register", methods=["POST"])
@swag_from(
    {
        "tags": ["Auth"],
        "summary": "用户注册",
        "description": "注册新用户，邮箱和用户名唯一。未提供用户名时由邮箱前缀自动生成。",
        "parameters": [
            {
                "name": "body",
                "in": "body",
                "required": True,
                "schema": {
                    "type": "object",
                    "properties": {
                        "email": {"type": "string", "example": "alice@example.com"},
                        "password": {"type": "string", "example": "Secret123"},
                        "username": {"type": "string", "example": "alice"},
                        "full_name": {"type": "string", "example": "Alice"},
                    },
                    "required": ["email", "password"],
                },
            }
        ],
        "responses": {
            201: {"description": "注册成功"},
            400: {"description": "参数错误"},
            409: {"description": "邮箱或用户名已存在"},
        },
    }
)
def register():
    data = request.get_json(silent=True) or {}
    try:
        user, profile = create_account(
            email=data.get("email"),
            password=data.get("password"),
            username=data.get("username") or None,
            full_name=data.get("full_name"),
        )
    except AccountError as e:
        return jsonify({"error": e.message}), e.status_code
    return (
        jsonify(
            {
                "message": "注册成功",
                "user": dump(UserSchema, user),
                "profile": dump(ProfileSchema, profile),
            }
        ),
        201,
    )


# 登录API
@auth_bp.route("/auth/login", methods=["POST"])
def login():
    """
    用户登录
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
          properties:
            email:
              type: string
              example: alice@example.com
            password:
              type: string
              example: Secret123
    responses:
      200:
        description: 登录成功，返回access_token、refresh_token与用户资料
      400:
        description: 参数错误
      401:
        description: 邮箱或密码错误
      403:
        description: 账号已停用
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")
    if isinstance(email, str):
        email = email.strip().lower()
    if not (isinstance(email, str) and email) or not (isinstance(password, str) and password):
        return jsonify({"error": "邮箱和密码必填"}), 400
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return jsonify({"error": "邮箱或密码错误"}), 401

    profile = ensure_profile(user)
    if not profile.is_active:
        return jsonify({"error": "账号已停用"}), 403

    record_login(user)
    session = issue_tokens(user, profile)
    return (
        jsonify(
            {
                "message": "登录成功",
                "user_id": user.id,
                "user": dump(UserSchema, user),
                "profile": dump(ProfileSchema, profile),
                **session,
            }
        ),
        200,
    )


@auth_bp.route("/auth/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    """
    刷新token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    description: 使用refresh_token换取新的access_token和refresh_token
    responses:
      200:
        description: 刷新成功
      401:
        description: refresh_token无效或已过期
    """
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return jsonify({"error": "用户不存在"}), 401
    profile = ensure_profile(user)
    if not profile.is_active:
        return jsonify({"error": "账号已停用"}), 401
    return jsonify(issue_tokens(user, profile)), 200


@auth_bp.route("/auth/me", methods=["GET"])
@jwt_required()
def me():
    """
    获取当前用户信息
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: 用户信息
      401:
        description: 未授权
      404:
        description: 用户不存在
    """
    user = db.session.get(User, current_user_id())
    if not user:
        return jsonify({"error": "用户不存在"}), 404
    profile = ensure_profile(user)
    return (
        jsonify({"user": dump(UserSchema, user), "profile": dump(ProfileSchema, profile)}),
        200,
    )


@auth_bp.route("/auth/profile", methods=["PATCH"])
@jwt_required()
def update_profile():
    """
    更新用户资料
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username:
              type: string
            full_name:
              type: string
            bio:
              type: string
            avatar_url:
              type: string
    responses:
      200:
        description: 更新成功
      400:
        description: 参数错误
      404:
        description: 用户不存在
      409:
        description: 用户名已存在
    """
    profile = db.session.get(Profile, current_user_id())
    if not profile:
        return jsonify({"error": "用户不存在"}), 404
    data = request.get_json(silent=True) or {}

    new_username = data.get("username")
    if new_username and new_username != profile.username:
        if not validate_username(new_username):
            return jsonify({"error": "用户名需为3-30位字母、数字或下划线"}), 400
        if Profile.query.filter_by(username=new_username).first():
            return jsonify({"error": "用户名已存在"}), 409
        profile.username = new_username

    if "full_name" in data:
        if data["full_name"] is not None and not isinstance(data["full_name"], str):
            return jsonify({"error": "姓名必须是字符串"}), 400
        full_name = (data.get("full_name") or "").strip()
        if full_name and len(full_name) < 2:
            return jsonify({"error": "姓名至少2个字符"}), 400
        profile.full_name = full_name or profile.username
    for field in ("bio", "avatar_url"):
        if field in data:
            setattr(profile, field, data.get(field))

    db.session.commit()
    return jsonify(dump(ProfileSchema, profile)), 200


@auth_bp.route("/auth/change_password", methods=["PATCH"])
@jwt_required()
def change_password():
    """
    修改密码
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - old_password
            - new_password
          properties:
            old_password:
              type: string
            new_password:
              type: string
    responses:
      200:
        description: 密码修改成功
      400:
        description: 参数错误
      401:
        description: 原密码错误
      404:
        description: 用户不存在
    """
    user = db.session.get(User, current_user_id())
    if not user:
        return jsonify({"error": "用户不存在"}), 404
    data = request.get_json(silent=True) or {}
    old_password = data.get("old_password")
    new_password = data.get("new_password")
    if not (isinstance(old_password, str) and old_password) or not (
        isinstance(new_password, str) and new_password
    ):
        return jsonify({"error": "原密码和新密码必填"}), 400
    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"密码至少{MIN_PASSWORD_LENGTH}位"}), 400
    if not check_password_hash(user.password_hash, old_password):
        return jsonify({"error": "原密码错误"}), 401
    user.password_hash = generate_password_hash(new_password)
    db.session.commit()
    return jsonify({"message": "密码修改成功"}), 200


@auth_bp.route("/auth/avatar", methods=["POST"])
@jwt_required()
def upload_avatar():
    """
    上传头像
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - in: formData
        name: file
        type: file
        required: true
    responses:
      200:
        description: 上传成功，返回新的头像地址
      400:
        description: 文件不合法
    """
    profile = db.session.get(Profile, current_user_id())
    if not profile:
        return jsonify({"error": "用户不存在"}), 404
    try:
        result = save_image(request.files.get("file"), "avatars", str(profile.id))
    except StorageError as e:
        return jsonify({"error": str(e)}), 400

    profile.avatar_url = result["public_url"]
    db.session.commit()
    return jsonify({"message": "头像上传成功", "data": result}), 200
