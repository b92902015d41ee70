"""
通知推送相关 Celery 任务定义。
"""

import logging

from app.core.extensions import db, celery
from app.core.notification_service import notify_users, create_notification

logger = logging.getLogger(__name__)


def _follower_ids(user_id):
    from app.blueprints.users.models import UserFollow

    rows = UserFollow.query.filter_by(following_id=user_id).all()
    return [row.follower_id for row in rows]


def _display_name(user_id):
    from app.blueprints.auth.models import Profile

    profile = db.session.get(Profile, user_id)
    return profile.username if profile else "有用户"


@celery.task(name="tasks.notify_followers_new_post")
def notify_followers_new_post(post_id):
    """作者发布新帖后通知其关注者"""
    from app.blueprints.posts.models import Post

    post = db.session.get(Post, post_id)
    if post is None or not post.is_active:
        logger.warning(f"新帖通知跳过，帖子不存在: {post_id}")
        return 0

    where = post.game.name if post.game else "社区"
    if post.server is not None:
        where = f"{where} - {post.server.name}"
    created = notify_users(
        _follower_ids(post.user_id),
        title="新帖子",
        message=f"{_display_name(post.user_id)} 在 {where} 发布了《{post.title}》",
        type="new_post",
        data={"post_id": post.id, "game_id": post.game_id, "server_id": post.server_id},
    )
    return len(created)


@celery.task(name="tasks.notify_followers_new_server")
def notify_followers_new_server(server_id):
    """用户创建服务器后通知其关注者"""
    from app.blueprints.servers.models import GameServer

    server = db.session.get(GameServer, server_id)
    if server is None or not server.is_active or server.owner_id is None:
        return 0

    created = notify_users(
        _follower_ids(server.owner_id),
        title="新服务器",
        message=f"{_display_name(server.owner_id)} 创建了服务器 {server.name}",
        type="new_server",
        data={"server_id": server.id, "game_id": server.game_id},
    )
    return len(created)


@celery.task(name="tasks.notify_new_follower")
def notify_new_follower(follower_id, following_id):
    """通知被关注的用户"""
    notification = create_notification(
        following_id,
        title="新的关注者",
        message=f"{_display_name(follower_id)} 关注了你",
        type="follow",
        data={"follower_id": follower_id},
        respect_preferences=True,
    )
    return notification.id if notification else None
