"""
社区数据的响应组装

在 pydantic 序列化结果之上补充作者、游戏、服务器摘要以及点赞/评论计数等字段。
"""

from typing import Optional

from app.core.extensions import db
from app.core.pydantic_schemas import (
    CommentSchema,
    GameSummarySchema,
    PostSchema,
    ProfileSummarySchema,
    ServerSchema,
    ServerStatsSchema,
    dump,
)


def profile_summary(user_id) -> Optional[dict]:
    from app.blueprints.auth.models import Profile

    if user_id is None:
        return None
    profile = db.session.get(Profile, user_id)
    return dump(ProfileSummarySchema, profile) if profile else None


def serialize_server(server, detail: bool = False) -> dict:
    data = dump(ServerSchema, server)
    data["game"] = (
        {"name": server.game.name, "slug": server.game.slug} if server.game else None
    )
    data["owner"] = profile_summary(server.owner_id)
    if detail:
        data["stats"] = dump(ServerStatsSchema, server.stats) if server.stats else None
    return data


def serialize_post(post, viewer_id=None) -> dict:
    from app.blueprints.posts.models import Comment, PostLike

    data = dump(PostSchema, post)
    data["author"] = profile_summary(post.user_id)
    data["game"] = dump(GameSummarySchema, post.game) if post.game else None
    data["server"] = (
        {"id": post.server.id, "name": post.server.name} if post.server else None
    )
    data["like_count"] = PostLike.query.filter_by(post_id=post.id).count()
    data["comment_count"] = Comment.query.filter_by(
        post_id=post.id, is_active=True
    ).count()
    data["user_has_liked"] = (
        viewer_id is not None
        and PostLike.query.filter_by(post_id=post.id, user_id=viewer_id).first()
        is not None
    )
    return data


def serialize_comment(comment, viewer_id=None) -> dict:
    from app.blueprints.posts.models import CommentLike

    data = dump(CommentSchema, comment)
    data["author"] = profile_summary(comment.user_id)
    data["like_count"] = CommentLike.query.filter_by(comment_id=comment.id).count()
    data["user_has_liked"] = (
        viewer_id is not None
        and CommentLike.query.filter_by(comment_id=comment.id, user_id=viewer_id).first()
        is not None
    )
    return data

