from . import servers_bp
import logging
from datetime import datetime, timedelta
from flask import request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from app.core.extensions import db
from app.core.cache import cache
from app.core.permission_decorators import current_user_id
from app.core.serializers import serialize_server
from app.tasks.notification_tasks import notify_followers_new_server
from .models import GameServer, ServerStats, SERVER_TYPES
from app.blueprints.games.models import Game
from app.blueprints.posts.models import Post

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "description",
    "server_ip",
    "server_port",
    "server_version",
    "max_players",
    "server_type",
    "theme_config",
)


def validate_server_data(data, partial=False):
    """返回第一条校验错误信息，校验通过返回None"""
    if not partial:
        missing = [field for field in ("name", "game_id") if not data.get(field)]
        if missing:
            return f"缺少必填字段: {', '.join(missing)}"

    for field in ("name", "description", "server_ip", "server_version"):
        if data.get(field) is not None and not isinstance(data[field], str):
            return f"{field}必须是字符串"

    name = data.get("name")
    if name is not None and len(name.strip()) < 3:
        return "服务器名称至少3个字符"
    description = data.get("description")
    if description and len(description.strip()) < 10:
        return "服务器描述至少10个字符"

    port = data.get("server_port")
    if port not in (None, ""):
        if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
            return "端口必须在1-65535之间"
    max_players = data.get("max_players")
    if max_players is not None:
        if (
            not isinstance(max_players, int)
            or isinstance(max_players, bool)
            or not 1 <= max_players <= 1000
        ):
            return "最大玩家数必须在1-1000之间"
    server_type = data.get("server_type")
    if server_type is not None and server_type not in SERVER_TYPES:
        return f"服务器类型必须是: {', '.join(SERVER_TYPES)}"
    return None


def _name_taken(game_id, name, exclude_id=None):
    query = GameServer.query.filter(
        GameServer.game_id == game_id,
        GameServer.name == name,
        GameServer.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(GameServer.id != exclude_id)
    return query.first() is not None


def _active_server(server_id):
    server = db.session.get(GameServer, server_id)
    if server is None or not server.is_active:
        return None
    return server


@servers_bp.route("/servers", methods=["POST"])
@jwt_required()
def create_server():
    """
    创建游戏服务器
    ---
    tags:
      - Servers
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
            - game_id
          properties:
            name:
              type: string
              example: 生存服务器
            game_id:
              type: integer
              example: 1
            description:
              type: string
            server_ip:
              type: string
            server_port:
              type: integer
              example: 25565
            server_version:
              type: string
            max_players:
              type: integer
              example: 100
            server_type:
              type: string
              enum: [survival, creative, pvp, roleplay, minigames, custom]
    responses:
      201:
        description: 服务器创建成功
      400:
        description: 参数错误
      404:
        description: 游戏不存在
      409:
        description: 同一游戏下服务器名称已存在
    """
    data = request.get_json(silent=True) or {}
    error = validate_server_data(data)
    if error:
        return jsonify({"error": error}), 400

    game = db.session.get(Game, data["game_id"])
    if game is None or not game.is_active:
        return jsonify({"error": "游戏不存在"}), 404

    name = data["name"].strip()
    if _name_taken(game.id, name):
        return jsonify({"error": "该游戏下已存在同名服务器"}), 409

    server = GameServer(
        game_id=game.id,
        name=name,
        owner_id=current_user_id(),
        last_activity=datetime.utcnow(),
    )
    for field in EDITABLE_FIELDS:
        if field != "name" and data.get(field) is not None:
            setattr(server, field, data[field])
    db.session.add(server)
    db.session.flush()
    db.session.add(ServerStats(server_id=server.id))
    game.has_servers = True
    db.session.commit()
    # has_servers 变化，游戏列表缓存失效
    cache.invalidate("games:")
    logger.info(f"服务器已创建: {server.id} {server.name} (game={game.id})")

    notify_followers_new_server.delay(server.id)
    return (
        jsonify({"message": "服务器创建成功", "server": serialize_server(server, detail=True)}),
        201,
    )


@servers_bp.route("/servers", methods=["GET"])
def list_servers():
    """
    获取服务器列表
    ---
    description: |
      只返回启用的服务器，按创建时间倒序，支持 game_id、user_id 过滤以及 limit/offset 分页。
    tags:
      - Servers
    parameters:
      - in: query
        name: game_id
        type: integer
      - in: query
        name: user_id
        type: integer
        description: 所有者ID
      - in: query
        name: limit
        type: integer
        example: 10
      - in: query
        name: offset
        type: integer
        example: 0
    responses:
      200:
        description: 服务器列表
    """
    game_id = request.args.get("game_id", type=int)
    user_id = request.args.get("user_id", type=int)
    limit = max(1, min(request.args.get("limit", 10, type=int), 100))
    offset = max(0, request.args.get("offset", 0, type=int))

    query = GameServer.query.filter_by(is_active=True)
    if game_id:
        query = query.filter_by(game_id=game_id)
    if user_id:
        query = query.filter_by(owner_id=user_id)
    servers = (
        query.order_by(GameServer.created_at.desc(), GameServer.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    data = [serialize_server(s) for s in servers]
    return jsonify({"servers": data, "count": len(data)}), 200


@servers_bp.route("/servers/mine", methods=["GET"])
@jwt_required()
def my_servers():
    """
    获取我创建的服务器
    ---
    tags:
      - Servers
    security:
      - Bearer: []
    responses:
      200:
        description: 当前用户的启用服务器，按创建时间倒序
    """
    servers = (
        GameServer.query.filter_by(owner_id=current_user_id(), is_active=True)
        .order_by(GameServer.created_at.desc(), GameServer.id.desc())
        .all()
    )
    data = [serialize_server(s) for s in servers]
    return jsonify({"servers": data, "count": len(data)}), 200


@servers_bp.route("/servers/top", methods=["GET"])
def top_servers():
    """
    最活跃的服务器
    ---
    tags:
      - Servers
    parameters:
      - in: query
        name: limit
        type: integer
        example: 5
    responses:
      200:
        description: 按最近活跃时间排序的服务器
    """
    limit = max(1, min(request.args.get("limit", 5, type=int), 50))
    servers = (
        GameServer.query.filter_by(is_active=True)
        .order_by(GameServer.last_activity.desc())
        .limit(limit)
        .all()
    )
    return jsonify({"servers": [serialize_server(s) for s in servers]}), 200


@servers_bp.route("/servers/<int:server_id>", methods=["GET"])
def get_server(server_id):
    """
    获取服务器详情
    ---
    tags:
      - Servers
    parameters:
      - in: path
        name: server_id
        type: integer
        required: true
        example: 1
    responses:
      200:
        description: 服务器详情，包含游戏、所有者与统计信息
      404:
        description: 服务器不存在
    """
    server = _active_server(server_id)
    if not server:
        return jsonify({"error": "服务器不存在"}), 404
    return jsonify(serialize_server(server, detail=True)), 200


@servers_bp.route("/servers/<int:server_id>", methods=["PUT"])
@jwt_required()
def update_server(server_id):
    """
    更新服务器（仅所有者）
    ---
    tags:
      - Servers
    security:
      - Bearer: []
    parameters:
      - in: path
        name: server_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
    responses:
      200:
        description: 更新成功
      400:
        description: 参数错误
      403:
        description: 非服务器所有者
      404:
        description: 服务器不存在
      409:
        description: 同名服务器已存在
    """
    server = _active_server(server_id)
    if not server:
        return jsonify({"error": "服务器不存在"}), 404
    if server.owner_id != current_user_id():
        return jsonify({"error": "只有服务器所有者可以修改服务器"}), 403

    data = request.get_json(silent=True) or {}
    error = validate_server_data(data, partial=True)
    if error:
        return jsonify({"error": error}), 400

    if data.get("name"):
        data["name"] = data["name"].strip()
        if _name_taken(server.game_id, data["name"], exclude_id=server.id):
            return jsonify({"error": "该游戏下已存在同名服务器"}), 409
    for field in EDITABLE_FIELDS:
        if field in data and (field != "name" or data[field]):
            setattr(server, field, data[field])
    db.session.commit()
    return (
        jsonify({"message": "服务器更新成功", "server": serialize_server(server, detail=True)}),
        200,
    )


@servers_bp.route("/servers/<int:server_id>", methods=["DELETE"])
@jwt_required()
def delete_server(server_id):
    """
    删除服务器（仅所有者，软删除）
    ---
    tags:
      - Servers
    security:
      - Bearer: []
    parameters:
      - in: path
        name: server_id
        type: integer
        required: true
    responses:
      200:
        description: 删除成功
      403:
        description: 非服务器所有者
      404:
        description: 服务器不存在
    """
    server = _active_server(server_id)
    if not server:
        return jsonify({"error": "服务器不存在"}), 404
    if server.owner_id != current_user_id():
        return jsonify({"error": "只有服务器所有者可以删除服务器"}), 403
    server.is_active = False
    db.session.commit()
    logger.info(f"服务器已停用: {server.id}")
    return jsonify({"message": "服务器已删除"}), 200


@servers_bp.route("/servers/<int:server_id>/stats", methods=["GET"])
def server_stats(server_id):
    """
    获取服务器统计
    ---
    tags:
      - Servers
    parameters:
      - in: path
        name: server_id
        type: integer
        required: true
    responses:
      200:
        description: 统计信息
        schema:
          type: object
          properties:
            total_posts:
              type: integer
            active_users:
              type: integer
            recent_posts_week:
              type: integer
            last_activity:
              type: string
            player_count:
              type: integer
            max_players:
              type: integer
      404:
        description: 服务器不存在
    """
    server = _active_server(server_id)
    if not server:
        return jsonify({"error": "服务器不存在"}), 404

    posts = Post.query.filter_by(server_id=server.id, is_active=True)
    active_users = (
        db.session.query(func.count(func.distinct(Post.user_id)))
        .filter(Post.server_id == server.id, Post.is_active.is_(True))
        .scalar()
    )
    week_ago = datetime.utcnow() - timedelta(days=7)
    last_activity = server.last_activity or server.updated_at
    return (
        jsonify(
            {
                "server_id": server.id,
                "total_posts": posts.count(),
                "active_users": active_users or 0,
                "recent_posts_week": posts.filter(Post.created_at >= week_ago).count(),
                "last_activity": last_activity.isoformat() if last_activity else None,
                "player_count": server.stats.online_players if server.stats else 0,
                "max_players": server.max_players or 0,
            }
        ),
        200,
    )
