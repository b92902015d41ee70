from . import games_bp
import logging
import re
from datetime import date
from flask import request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from app.core.extensions import db
from app.core.cache import cache
from app.core.theme import THEME_ENTITY_TYPES, validate_theme_config
from app.core.permission_decorators import (
    current_user_id,
    optional_user_id,
    require_admin,
)
from app.core.pydantic_schemas import GameSchema, ServerSchema, dump
from .models import Game, FavoriteGame
from app.blueprints.servers.models import GameServer

logger = logging.getLogger(__name__)

GAMES_CACHE_PREFIX = "games:"
GAME_FIELDS = (
    "description",
    "genre",
    "platform",
    "cover_image_url",
    "theme_config",
    "has_servers",
    "is_active",
)


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "game"


def _parse_release_date(value):
    if not value:
        return None
    return date.fromisoformat(value)


def _active_game(game_id):
    game = db.session.get(Game, game_id)
    if game is None or not game.is_active:
        return None
    return game


@games_bp.route("/games", methods=["GET"])
def list_games():
    """
    获取游戏列表
    ---
    description: |
      传入 name 或 id 时返回单个游戏，否则返回全部启用的游戏（按名称排序）。
      列表结果会缓存在Redis中。
    tags:
      - Games
    parameters:
      - in: query
        name: name
        type: string
        description: 按名称精确查找
      - in: query
        name: id
        type: integer
        description: 按ID查找
    responses:
      200:
        description: 游戏列表或单个游戏
      404:
        description: 游戏不存在
    """
    name = request.args.get("name")
    game_id = request.args.get("id", type=int)
    if name or game_id:
        query = Game.query.filter_by(is_active=True)
        query = query.filter_by(name=name) if name else query.filter_by(id=game_id)
        game = query.first()
        if not game:
            return jsonify({"error": "游戏不存在"}), 404
        return jsonify({"game": dump(GameSchema, game)}), 200

    cache_key = f"{GAMES_CACHE_PREFIX}list"
    cached = cache.get_json(cache_key)
    if cached is not None:
        return jsonify(cached), 200

    games = Game.query.filter_by(is_active=True).order_by(Game.name).all()
    payload = {"games": [dump(GameSchema, g) for g in games], "count": len(games)}
    cache.set_json(cache_key, payload)
    return jsonify(payload), 200


@games_bp.route("/games/popular", methods=["GET"])
def popular_games():
    """
    热门游戏（按收藏数排序）
    ---
    tags:
      - Games
    parameters:
      - in: query
        name: limit
        type: integer
        example: 10
    responses:
      200:
        description: 热门游戏列表，附带favorite_count
    """
    limit = min(request.args.get("limit", 10, type=int), 50)
    favorite_count = func.count(FavoriteGame.id).label("favorite_count")
    rows = (
        db.session.query(Game, favorite_count)
        .outerjoin(FavoriteGame, FavoriteGame.game_id == Game.id)
        .filter(Game.is_active.is_(True))
        .group_by(Game.id)
        .order_by(favorite_count.desc(), Game.name)
        .limit(limit)
        .all()
    )
    games = [{**dump(GameSchema, game), "favorite_count": count} for game, count in rows]
    return jsonify({"games": games}), 200


@games_bp.route("/games/<int:game_id>", methods=["GET"])
def get_game(game_id):
    """
    获取游戏详情
    ---
    tags:
      - Games
    parameters:
      - in: path
        name: game_id
        type: integer
        required: true
    responses:
      200:
        description: 游戏详情
      404:
        description: 游戏不存在
    """
    game = _active_game(game_id)
    if not game:
        return jsonify({"error": "游戏不存在"}), 404
    return jsonify(dump(GameSchema, game)), 200


@games_bp.route("/games", methods=["POST"])
@require_admin
def create_game():
    """
    创建游戏（管理员）
    ---
    tags:
      - Games
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - name
          properties:
            name:
              type: string
              example: Minecraft
            description:
              type: string
            genre:
              type: string
            platform:
              type: string
            release_date:
              type: string
              example: "2011-11-18"
            cover_image_url:
              type: string
    responses:
      201:
        description: 创建成功
      400:
        description: 参数错误
      403:
        description: 权限不足
      409:
        description: 游戏名称已存在
    """
    data = request.get_json(silent=True) or {}
    if data.get("name") is not None and not isinstance(data["name"], str):
        return jsonify({"error": "游戏名称必须是字符串"}), 400
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "游戏名称必填"}), 400
    if Game.query.filter_by(name=name).first():
        return jsonify({"error": "游戏名称已存在"}), 409

    try:
        release_date = _parse_release_date(data.get("release_date"))
    except (TypeError, ValueError):
        return jsonify({"error": "发行日期格式应为YYYY-MM-DD"}), 400

    slug = data.get("slug") or slugify(name)
    if Game.query.filter_by(slug=slug).first():
        return jsonify({"error": "游戏slug已存在"}), 409
    if data.get("theme_config") is not None and not validate_theme_config(
        data["theme_config"]
    ):
        return jsonify({"error": "主题配置无效"}), 400

    game = Game(name=name, slug=slug, release_date=release_date)
    for field in GAME_FIELDS:
        if field in data:
            setattr(game, field, data[field])
    db.session.add(game)
    db.session.commit()
    cache.invalidate(GAMES_CACHE_PREFIX)
    logger.info(f"游戏已创建: {game.id} {game.name}")
    return jsonify({"message": "游戏创建成功", "game": dump(GameSchema, game)}), 201


@games_bp.route("/games/<int:game_id>", methods=["PUT"])
@require_admin
def update_game(game_id):
    """
    更新游戏（管理员）
    ---
    tags:
      - Games
    security:
      - Bearer: []
    parameters:
      - in: path
        name: game_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
    responses:
      200:
        description: 更新成功
      404:
        description: 游戏不存在
      409:
        description: 游戏名称已存在
    """
    game = db.session.get(Game, game_id)
    if not game:
        return jsonify({"error": "游戏不存在"}), 404
    data = request.get_json(silent=True) or {}

    if data.get("name") is not None and not isinstance(data["name"], str):
        return jsonify({"error": "游戏名称必须是字符串"}), 400
    new_name = (data.get("name") or "").strip()
    if new_name and new_name != game.name:
        if Game.query.filter(Game.name == new_name, Game.id != game.id).first():
            return jsonify({"error": "游戏名称已存在"}), 409
        game.name = new_name
    if "slug" in data and data["slug"]:
        game.slug = data["slug"]
    if "release_date" in data:
        try:
            game.release_date = _parse_release_date(data["release_date"])
        except (TypeError, ValueError):
            return jsonify({"error": "发行日期格式应为YYYY-MM-DD"}), 400
    if "theme_config" in data and data["theme_config"] is not None:
        if not validate_theme_config(data["theme_config"]):
            return jsonify({"error": "主题配置无效"}), 400
    for field in GAME_FIELDS:
        if field in data:
            setattr(game, field, data[field])

    db.session.commit()
    cache.invalidate(GAMES_CACHE_PREFIX)
    return jsonify({"message": "游戏更新成功", "game": dump(GameSchema, game)}), 200


@games_bp.route("/games/<int:game_id>", methods=["DELETE"])
@require_admin
def delete_game(game_id):
    """
    删除游戏（管理员，软删除）
    ---
    tags:
      - Games
    security:
      - Bearer: []
    parameters:
      - in: path
        name: game_id
        type: integer
        required: true
    responses:
      200:
        description: 删除成功
      404:
        description: 游戏不存在
    """
    game = _active_game(game_id)
    if not game:
        return jsonify({"error": "游戏不存在"}), 404
    game.is_active = False
    db.session.commit()
    cache.invalidate(GAMES_CACHE_PREFIX)
    logger.info(f"游戏已停用: {game.id}")
    return jsonify({"message": "游戏已删除"}), 200


@games_bp.route("/games/<int:game_id>/favorite", methods=["POST"])
@jwt_required()
def toggle_favorite(game_id):
    """
    收藏/取消收藏游戏
    ---
    tags:
      - Games
    security:
      - Bearer: []
    parameters:
      - in: path
        name: game_id
        type: integer
        required: true
    responses:
      200:
        description: 切换后的收藏状态
        schema:
          type: object
          properties:
            is_favorite:
              type: boolean
      404:
        description: 游戏不存在
    """
    if not _active_game(game_id):
        return jsonify({"error": "游戏不存在"}), 404
    user_id = current_user_id()
    favorite = FavoriteGame.query.filter_by(user_id=user_id, game_id=game_id).first()
    if favorite:
        db.session.delete(favorite)
        is_favorite = False
    else:
        db.session.add(FavoriteGame(user_id=user_id, game_id=game_id))
        is_favorite = True
    db.session.commit()
    return jsonify({"is_favorite": is_favorite}), 200


@games_bp.route("/games/<int:game_id>/favorite", methods=["GET"])
def favorite_status(game_id):
    """
    获取收藏状态
    ---
    tags:
      - Games
    parameters:
      - in: path
        name: game_id
        type: integer
        required: true
    responses:
      200:
        description: is_favorite 与 favorite_count
    """
    user_id = optional_user_id()
    is_favorite = False
    if user_id is not None:
        is_favorite = (
            FavoriteGame.query.filter_by(user_id=user_id, game_id=game_id).first()
            is not None
        )
    favorite_count = FavoriteGame.query.filter_by(game_id=game_id).count()
    return jsonify({"is_favorite": is_favorite, "favorite_count": favorite_count}), 200


@games_bp.route("/games/<int:game_id>/servers", methods=["GET"])
def game_servers(game_id):
    """
    获取游戏下的服务器
    ---
    tags:
      - Games
    parameters:
      - in: path
        name: game_id
        type: integer
        required: true
    responses:
      200:
        description: 启用的服务器，推荐服务器优先，其余按创建时间倒序
      404:
        description: 游戏不存在
    """
    if not _active_game(game_id):
        return jsonify({"error": "游戏不存在"}), 404
    servers = (
        GameServer.query.filter_by(game_id=game_id, is_active=True)
        .order_by(GameServer.is_featured.desc(), GameServer.created_at.desc())
        .all()
    )
    return jsonify({"servers": [dump(ServerSchema, s) for s in servers]}), 200


# ==================== 主题 ====================

THEME_MODELS = {"game": Game, "server": GameServer}


@games_bp.route("/theme/update", methods=["POST"])
@require_admin
def update_theme():
    """
    更新游戏或服务器的主题配置（管理员）
    ---
    tags:
      - Theme
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - entityType
            - entityId
            - themeConfig
          properties:
            entityType:
              type: string
              enum: [game, server]
            entityId:
              type: integer
            themeConfig:
              type: object
    responses:
      200:
        description: 更新成功
      400:
        description: 参数不完整或主题配置无效
      404:
        description: 实体不存在
    """
    data = request.get_json(silent=True) or {}
    entity_type = data.get("entityType")
    entity_id = data.get("entityId")
    theme_config = data.get("themeConfig")
    if not entity_type or not entity_id or not theme_config:
        return jsonify({"error": "参数不完整"}), 400
    if entity_type not in THEME_ENTITY_TYPES:
        return jsonify({"error": "无效的实体类型"}), 400
    if not validate_theme_config(theme_config):
        return jsonify({"error": "主题配置无效"}), 400

    entity = db.session.get(THEME_MODELS[entity_type], entity_id)
    if entity is None:
        return jsonify({"error": "实体不存在"}), 404
    entity.theme_config = theme_config
    db.session.commit()
    if entity_type == "game":
        cache.invalidate(GAMES_CACHE_PREFIX)
    logger.info(f"主题已更新: {entity_type} {entity_id}")
    return (
        jsonify(
            {"success": True, "data": entity.theme_config, "message": "主题更新成功"}
        ),
        200,
    )


@games_bp.route("/theme", methods=["GET"])
def get_theme():
    """
    获取主题配置
    ---
    tags:
      - Theme
    parameters:
      - in: query
        name: entityType
        type: string
        required: true
      - in: query
        name: entityId
        type: integer
        required: true
    responses:
      200:
        description: 主题配置，未设置时为空对象
      400:
        description: 参数缺失
      404:
        description: 实体不存在
    """
    entity_type = request.args.get("entityType")
    entity_id = request.args.get("entityId", type=int)
    if not entity_type or not entity_id:
        return jsonify({"error": "参数缺失"}), 400
    if entity_type not in THEME_ENTITY_TYPES:
        return jsonify({"error": "无效的实体类型"}), 400
    entity = db.session.get(THEME_MODELS[entity_type], entity_id)
    if entity is None:
        return jsonify({"error": "实体不存在"}), 404
    return jsonify({"success": True, "data": entity.theme_config or {}}), 200
