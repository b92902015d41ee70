from . import users_bp
import logging
from datetime import datetime
from flask import request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from app.core.extensions import db
from app.core.permission_decorators import current_user_id, optional_user_id
from app.core.pydantic_schemas import GameSummarySchema, PublicProfileSchema, dump
from app.core.serializers import profile_summary, serialize_post
from app.tasks.notification_tasks import notify_new_follower
from .models import UserFollow
from app.blueprints.auth.models import Profile
from app.blueprints.posts.models import Post

logger = logging.getLogger(__name__)


def relative_time(moment: datetime, now: datetime = None) -> str:
    """将时间转换为“3分钟前”这类相对描述"""
    now = now or datetime.utcnow()
    seconds = int((now - moment).total_seconds())
    if seconds < 60:
        return "刚刚"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}分钟前"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}小时前"
    days = hours // 24
    if days < 30:
        return f"{days}天前"
    return moment.strftime("%Y-%m-%d")


def _is_following(follower_id, following_id) -> bool:
    return (
        UserFollow.query.filter_by(
            follower_id=follower_id, following_id=following_id
        ).first()
        is not None
    )


def follow_info(user_id, viewer_id=None) -> dict:
    info = {
        "follower_count": UserFollow.query.filter_by(following_id=user_id).count(),
        "following_count": UserFollow.query.filter_by(follower_id=user_id).count(),
        "is_following": False,
        "is_followed_by": False,
    }
    if viewer_id is not None and viewer_id != user_id:
        info["is_following"] = _is_following(viewer_id, user_id)
        info["is_followed_by"] = _is_following(user_id, viewer_id)
    return info


def _active_profile(user_id):
    profile = db.session.get(Profile, user_id)
    if profile is None or not profile.is_active:
        return None
    return profile


def _pagination_args():
    page = max(1, request.args.get("page", 1, type=int))
    per_page = max(1, min(request.args.get("per_page", 20, type=int), 100))
    return page, per_page


@users_bp.route("/users/<int:user_id>/follow", methods=["POST"])
@jwt_required()
def toggle_follow(user_id):
    """
    关注/取消关注用户
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: 切换后的关注状态
        schema:
          type: object
          properties:
            success:
              type: boolean
            following:
              type: boolean
            message:
              type: string
      400:
        description: 不能关注自己
      404:
        description: 用户不存在
    """
    follower_id = current_user_id()
    if follower_id == user_id:
        return jsonify({"error": "不能关注自己"}), 400
    if not _active_profile(user_id):
        return jsonify({"error": "用户不存在"}), 404

    follow = UserFollow.query.filter_by(
        follower_id=follower_id, following_id=user_id
    ).first()
    if follow:
        db.session.delete(follow)
        db.session.commit()
        return jsonify({"success": True, "following": False, "message": "已取消关注"}), 200

    db.session.add(UserFollow(follower_id=follower_id, following_id=user_id))
    db.session.commit()
    logger.info(f"用户 {follower_id} 关注了 {user_id}")
    notify_new_follower.delay(follower_id, user_id)
    return jsonify({"success": True, "following": True, "message": "关注成功"}), 200


@users_bp.route("/users/<int:user_id>/follow", methods=["GET"])
def follow_status(user_id):
    """
    获取关注信息
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: follower_count、following_count、is_following、is_followed_by
    """
    return jsonify(follow_info(user_id, optional_user_id())), 200


def _follow_list(user_id, relation):
    if not _active_profile(user_id):
        return jsonify({"error": "用户不存在"}), 404
    page, per_page = _pagination_args()
    viewer_id = optional_user_id()

    if relation == "followers":
        query = UserFollow.query.filter_by(following_id=user_id)
        other = "follower_id"
    else:
        query = UserFollow.query.filter_by(follower_id=user_id)
        other = "following_id"
    pagination = query.order_by(UserFollow.created_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )

    users = []
    for row in pagination.items:
        other_id = getattr(row, other)
        users.append(
            {
                "id": other_id,
                **(profile_summary(other_id) or {}),
                "followed_at": row.created_at.isoformat() if row.created_at else None,
                "follow_info": follow_info(other_id, viewer_id),
            }
        )
    return (
        jsonify(
            {
                relation: users,
                "pagination": {
                    "page": pagination.page,
                    "per_page": pagination.per_page,
                    "total": pagination.total,
                    "pages": pagination.pages,
                },
            }
        ),
        200,
    )


@users_bp.route("/users/<int:user_id>/followers", methods=["GET"])
def list_followers(user_id):
    """
    粉丝列表
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
      - in: query
        name: page
        type: integer
        example: 1
      - in: query
        name: per_page
        type: integer
        example: 20
    responses:
      200:
        description: 分页的粉丝列表
      404:
        description: 用户不存在
    """
    return _follow_list(user_id, "followers")


@users_bp.route("/users/<int:user_id>/following", methods=["GET"])
def list_following(user_id):
    """
    关注列表
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
      - in: query
        name: page
        type: integer
      - in: query
        name: per_page
        type: integer
    responses:
      200:
        description: 分页的关注列表
      404:
        description: 用户不存在
    """
    return _follow_list(user_id, "following")


@users_bp.route("/users/<int:user_id>/profile", methods=["GET"])
def user_profile(user_id):
    """
    用户公开资料
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: username、full_name、avatar_url、bio
      404:
        description: 用户不存在
    """
    profile = _active_profile(user_id)
    if not profile:
        return jsonify({"error": "用户不存在"}), 404
    return jsonify(dump(PublicProfileSchema, profile)), 200


@users_bp.route("/users/<int:user_id>/posts", methods=["GET"])
def user_posts(user_id):
    """
    用户发布的帖子
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
      - in: query
        name: limit
        type: integer
        example: 20
      - in: query
        name: offset
        type: integer
        example: 0
    responses:
      200:
        description: 帖子列表（按创建时间倒序）
    """
    limit = max(1, min(request.args.get("limit", 20, type=int), 100))
    offset = max(0, request.args.get("offset", 0, type=int))
    posts = (
        Post.query.filter_by(user_id=user_id, is_active=True)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    viewer_id = optional_user_id()
    return jsonify({"posts": [serialize_post(p, viewer_id) for p in posts]}), 200


@users_bp.route("/users/<int:user_id>/favorite-games", methods=["GET"])
def favorite_games(user_id):
    """
    用户常玩的游戏（按发帖数前5）
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: 游戏列表，附带 post_count
    """
    from app.blueprints.games.models import Game

    post_count = func.count(Post.id).label("post_count")
    rows = (
        db.session.query(Game, post_count)
        .join(Post, Post.game_id == Game.id)
        .filter(Post.user_id == user_id, Post.is_active.is_(True))
        .group_by(Game.id)
        .order_by(post_count.desc(), Game.name)
        .limit(5)
        .all()
    )
    games = [{**dump(GameSummarySchema, game), "post_count": count} for game, count in rows]
    return jsonify({"games": games}), 200


@users_bp.route("/users/<int:user_id>/recent-activity", methods=["GET"])
def recent_activity(user_id):
    """
    用户最近动态
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
    responses:
      200:
        description: 最近10条帖子，附带相对时间 time_ago
    """
    posts = (
        Post.query.filter_by(user_id=user_id, is_active=True)
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(10)
        .all()
    )
    now = datetime.utcnow()
    activity = []
    for post in posts:
        activity.append(
            {
                "type": "post",
                "post_id": post.id,
                "title": post.title,
                "game": post.game.name if post.game else None,
                "server": post.server.name if post.server else None,
                "created_at": post.created_at.isoformat(),
                "time_ago": relative_time(post.created_at, now),
            }
        )
    return jsonify({"activity": activity}), 200
