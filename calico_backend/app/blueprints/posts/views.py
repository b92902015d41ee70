from . import posts_bp
import logging
from flask import request, jsonify
from flask_jwt_extended import jwt_required
from app.core.extensions import db
from app.core.permission_decorators import current_user_id, optional_user_id
from app.core.serializers import serialize_comment, serialize_post
from app.core.storage import StorageError, save_image
from app.tasks.community_tasks import record_server_post
from app.tasks.notification_tasks import notify_followers_new_post
from .models import Post, Comment, PostLike, CommentLike, POST_TYPES
from app.blueprints.games.models import Game
from app.blueprints.servers.models import GameServer

logger = logging.getLogger(__name__)


def _active_post(post_id):
    post = db.session.get(Post, post_id)
    if post is None or not post.is_active:
        return None
    return post


def _active_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    if comment is None or not comment.is_active:
        return None
    return comment


def _all_text(data, *fields):
    """给出的字段要么缺省，要么是字符串"""
    return all(data.get(field) is None or isinstance(data[field], str) for field in fields)


@posts_bp.route("/posts", methods=["GET"])
def list_posts():
    """
    获取帖子列表
    ---
    description: |
      必须提供 serverId 或 gameId 之一。携带token时返回的 user_has_liked 针对当前用户。
    tags:
      - Posts
    parameters:
      - in: query
        name: serverId
        type: integer
      - in: query
        name: gameId
        type: integer
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
      400:
        description: 缺少serverId或gameId
    """
    server_id = request.args.get("serverId", type=int)
    game_id = request.args.get("gameId", type=int)
    limit = max(1, min(request.args.get("limit", 20, type=int), 100))
    offset = max(0, request.args.get("offset", 0, type=int))

    query = Post.query.filter_by(is_active=True)
    if server_id:
        query = query.filter_by(server_id=server_id)
    elif game_id:
        query = query.filter_by(game_id=game_id)
    else:
        return jsonify({"error": "必须提供serverId或gameId"}), 400

    posts = (
        query.order_by(Post.created_at.desc(), Post.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    viewer_id = optional_user_id()
    return jsonify({"posts": [serialize_post(p, viewer_id) for p in posts]}), 200


@posts_bp.route("/posts", methods=["POST"])
@jwt_required()
def create_post():
    """
    发布帖子
    ---
    tags:
      - Posts
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
            - content
            - game_id
          properties:
            title:
              type: string
            content:
              type: string
            game_id:
              type: integer
            server_id:
              type: integer
            post_type:
              type: string
              enum: [general, achievement, review, tip, question]
            image_url:
              type: string
            video_url:
              type: string
    responses:
      201:
        description: 发布成功
      400:
        description: 参数错误
      404:
        description: 游戏或服务器不存在
    """
    data = request.get_json(silent=True) or {}
    if not _all_text(data, "title", "content"):
        return jsonify({"error": "标题和内容必须是字符串"}), 400
    title = (data.get("title") or "").strip()
    content = (data.get("content") or "").strip()
    game_id = data.get("game_id")
    if not title or not content or not game_id:
        return jsonify({"error": "标题、内容和游戏必填"}), 400
    post_type = data.get("post_type") or "general"
    if post_type not in POST_TYPES:
        return jsonify({"error": f"帖子类型必须是: {', '.join(POST_TYPES)}"}), 400

    game = db.session.get(Game, game_id)
    if game is None or not game.is_active:
        return jsonify({"error": "游戏不存在"}), 404
    server_id = data.get("server_id")
    if server_id:
        server = db.session.get(GameServer, server_id)
        if server is None or not server.is_active:
            return jsonify({"error": "服务器不存在"}), 404
        if server.game_id != game.id:
            return jsonify({"error": "服务器不属于该游戏"}), 400

    post = Post(
        user_id=current_user_id(),
        game_id=game.id,
        server_id=server_id or None,
        title=title,
        content=content,
        image_url=data.get("image_url"),
        video_url=data.get("video_url"),
        post_type=post_type,
    )
    db.session.add(post)
    db.session.commit()
    logger.info(f"用户 {post.user_id} 发布帖子 {post.id}")

    if post.server_id:
        record_server_post.delay(post.server_id)
    notify_followers_new_post.delay(post.id)
    return jsonify({"message": "发布成功", "post": serialize_post(post, post.user_id)}), 201


@posts_bp.route("/posts/<int:post_id>", methods=["GET"])
def get_post(post_id):
    """
    获取帖子详情
    ---
    tags:
      - Posts
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
    responses:
      200:
        description: 帖子详情
      404:
        description: 帖子不存在
    """
    post = _active_post(post_id)
    if not post:
        return jsonify({"error": "帖子不存在"}), 404
    return jsonify(serialize_post(post, optional_user_id())), 200


@posts_bp.route("/posts/<int:post_id>", methods=["PUT"])
@jwt_required()
def update_post(post_id):
    """
    编辑帖子（仅作者）
    ---
    tags:
      - Posts
    security:
      - Bearer: []
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            title:
              type: string
            content:
              type: string
            post_type:
              type: string
            image_url:
              type: string
            video_url:
              type: string
    responses:
      200:
        description: 编辑成功
      400:
        description: 参数错误
      403:
        description: 非作者
      404:
        description: 帖子不存在
    """
    post = _active_post(post_id)
    if not post:
        return jsonify({"error": "帖子不存在"}), 404
    if post.user_id != current_user_id():
        return jsonify({"error": "只能编辑自己的帖子"}), 403

    data = request.get_json(silent=True) or {}
    if not _all_text(data, "title", "content"):
        return jsonify({"error": "标题和内容必须是字符串"}), 400
    for field in ("title", "content"):
        if field in data:
            value = (data.get(field) or "").strip()
            if not value:
                return jsonify({"error": "标题和内容不能为空"}), 400
            setattr(post, field, value)
    if "post_type" in data:
        if data["post_type"] not in POST_TYPES:
            return jsonify({"error": f"帖子类型必须是: {', '.join(POST_TYPES)}"}), 400
        post.post_type = data["post_type"]
    for field in ("image_url", "video_url"):
        if field in data:
            setattr(post, field, data[field])
    db.session.commit()
    return jsonify({"message": "编辑成功", "post": serialize_post(post, post.user_id)}), 200


@posts_bp.route("/posts/<int:post_id>", methods=["DELETE"])
@jwt_required()
def delete_post(post_id):
    """
    删除帖子（仅作者，软删除）
    ---
    tags:
      - Posts
    security:
      - Bearer: []
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
    responses:
      200:
        description: 删除成功
      403:
        description: 非作者
      404:
        description: 帖子不存在
    """
    post = _active_post(post_id)
    if not post:
        return jsonify({"error": "帖子不存在"}), 404
    if post.user_id != current_user_id():
        return jsonify({"error": "只能删除自己的帖子"}), 403
    post.is_active = False
    db.session.commit()
    return jsonify({"message": "帖子已删除"}), 200


@posts_bp.route("/posts/<int:post_id>/image", methods=["POST"])
@jwt_required()
def upload_post_image(post_id):
    """
    上传帖子配图
    ---
    tags:
      - Posts
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
      - in: formData
        name: file
        type: file
        required: true
    responses:
      200:
        description: 上传成功
      400:
        description: 文件不合法
      403:
        description: 非作者
      404:
        description: 帖子不存在
    """
    post = _active_post(post_id)
    if not post:
        return jsonify({"error": "帖子不存在"}), 404
    if post.user_id != current_user_id():
        return jsonify({"error": "只能修改自己的帖子"}), 403
    try:
        result = save_image(request.files.get("file"), "post-images", str(post.user_id))
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    post.image_url = result["public_url"]
    db.session.commit()
    return jsonify({"message": "图片上传成功", "data": result}), 200


# ==================== 评论 ====================


@posts_bp.route("/posts/<int:post_id>/comments", methods=["GET"])
def list_comments(post_id):
    """
    获取帖子评论（楼中楼）
    ---
    tags:
      - Comments
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
    responses:
      200:
        description: 顶层评论按时间正序，每条附带 replies
      404:
        description: 帖子不存在
    """
    if not _active_post(post_id):
        return jsonify({"error": "帖子不存在"}), 404
    viewer_id = optional_user_id()
    comments = (
        Comment.query.filter_by(post_id=post_id, is_active=True)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )

    replies = {}
    for comment in comments:
        if comment.parent_comment_id is not None:
            replies.setdefault(comment.parent_comment_id, []).append(comment)

    threads = []
    for comment in comments:
        if comment.parent_comment_id is None:
            item = serialize_comment(comment, viewer_id)
            item["replies"] = [
                serialize_comment(r, viewer_id) for r in replies.get(comment.id, [])
            ]
            threads.append(item)
    return jsonify({"comments": threads, "total": len(comments)}), 200


@posts_bp.route("/posts/<int:post_id>/comments", methods=["POST"])
@jwt_required()
def create_comment(post_id):
    """
    发表评论
    ---
    tags:
      - Comments
    security:
      - Bearer: []
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - content
          properties:
            content:
              type: string
            parent_comment_id:
              type: integer
              description: 回复的评论ID
    responses:
      201:
        description: 评论成功
      400:
        description: 内容为空或父评论不属于该帖子
      404:
        description: 帖子不存在
    """
    data = request.get_json(silent=True) or {}
    if not _all_text(data, "content"):
        return jsonify({"error": "评论内容必须是字符串"}), 400
    content = (data.get("content") or "").strip()
    if not content:
        return jsonify({"error": "评论内容不能为空"}), 400
    if not _active_post(post_id):
        return jsonify({"error": "帖子不存在"}), 404

    parent_id = data.get("parent_comment_id")
    if parent_id:
        parent = _active_comment(parent_id)
        if parent is None or parent.post_id != post_id:
            return jsonify({"error": "回复的评论不存在"}), 400
        # 楼中楼统一挂到顶层评论下
        parent_id = parent.parent_comment_id or parent.id

    comment = Comment(
        post_id=post_id,
        user_id=current_user_id(),
        parent_comment_id=parent_id or None,
        content=content,
    )
    db.session.add(comment)
    db.session.commit()
    return jsonify(serialize_comment(comment, comment.user_id)), 201


@posts_bp.route("/comments/<int:comment_id>", methods=["DELETE"])
@jwt_required()
def delete_comment(comment_id):
    """
    删除评论（仅作者）
    ---
    tags:
      - Comments
    security:
      - Bearer: []
    parameters:
      - in: path
        name: comment_id
        type: integer
        required: true
    responses:
      200:
        description: 删除成功
      403:
        description: 非作者
      404:
        description: 评论不存在
    """
    comment = _active_comment(comment_id)
    if not comment:
        return jsonify({"error": "评论不存在"}), 404
    if comment.user_id != current_user_id():
        return jsonify({"error": "只能删除自己的评论"}), 403
    comment.is_active = False
    db.session.commit()
    return jsonify({"message": "评论已删除"}), 200


# ==================== 点赞 ====================


def _toggle_like(model, user_id, **target):
    like = model.query.filter_by(user_id=user_id, **target).first()
    if like:
        db.session.delete(like)
        liked = False
    else:
        db.session.add(model(user_id=user_id, **target))
        liked = True
    db.session.commit()
    return liked


def _like_status(model, **target):
    user_id = optional_user_id()
    user_has_liked = False
    if user_id is not None:
        user_has_liked = (
            model.query.filter_by(user_id=user_id, **target).first() is not None
        )
    return {
        "like_count": model.query.filter_by(**target).count(),
        "user_has_liked": user_has_liked,
    }


@posts_bp.route("/posts/<int:post_id>/like", methods=["POST"])
@jwt_required()
def toggle_post_like(post_id):
    """
    点赞/取消点赞帖子
    ---
    tags:
      - Likes
    security:
      - Bearer: []
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
    responses:
      200:
        description: 切换后的点赞状态
        schema:
          type: object
          properties:
            success:
              type: boolean
            liked:
              type: boolean
      404:
        description: 帖子不存在
    """
    if not _active_post(post_id):
        return jsonify({"error": "帖子不存在"}), 404
    liked = _toggle_like(PostLike, current_user_id(), post_id=post_id)
    return jsonify({"success": True, "liked": liked}), 200


@posts_bp.route("/posts/<int:post_id>/like", methods=["GET"])
def post_like_status(post_id):
    """
    帖子点赞状态
    ---
    tags:
      - Likes
    parameters:
      - in: path
        name: post_id
        type: integer
        required: true
    responses:
      200:
        description: like_count 与 user_has_liked
    """
    return jsonify(_like_status(PostLike, post_id=post_id)), 200


@posts_bp.route("/comments/<int:comment_id>/like", methods=["POST"])
@jwt_required()
def toggle_comment_like(comment_id):
    """
    点赞/取消点赞评论
    ---
    tags:
      - Likes
    security:
      - Bearer: []
    parameters:
      - in: path
        name: comment_id
        type: integer
        required: true
    responses:
      200:
        description: 切换后的点赞状态
      404:
        description: 评论不存在
    """
    if not _active_comment(comment_id):
        return jsonify({"error": "评论不存在"}), 404
    liked = _toggle_like(CommentLike, current_user_id(), comment_id=comment_id)
    return jsonify({"success": True, "liked": liked}), 200


@posts_bp.route("/comments/<int:comment_id>/like", methods=["GET"])
def comment_like_status(comment_id):
    """
    评论点赞状态
    ---
    tags:
      - Likes
    parameters:
      - in: path
        name: comment_id
        type: integer
        required: true
    responses:
      200:
        description: like_count 与 user_has_liked
    """
    return jsonify(_like_status(CommentLike, comment_id=comment_id)), 200
