"""
社区管理相关 Celery 任务定义。
"""

import logging
from datetime import datetime

from app.core.extensions import db, celery

logger = logging.getLogger(__name__)


@celery.task(name="tasks.record_server_post")
def record_server_post(server_id):
    """帖子发布到服务器后更新服务器统计和活跃时间"""
    from app.blueprints.servers.models import GameServer, ServerStats

    server = db.session.get(GameServer, server_id)
    if server is None:
        logger.warning(f"服务器统计更新跳过，服务器不存在: {server_id}")
        return None

    stats = ServerStats.query.filter_by(server_id=server_id).first()
    if stats is None:
        stats = ServerStats(server_id=server_id)
        db.session.add(stats)
    stats.total_posts = (stats.total_posts or 0) + 1
    server.last_activity = datetime.utcnow()
    db.session.commit()
    return stats.total_posts


@celery.task(name="tasks.recalculate_server_stats")
def recalculate_server_stats():
    """定时按帖子表重算所有服务器的帖子数"""
    from app.blueprints.posts.models import Post
    from app.blueprints.servers.models import ServerStats

    counts = dict(
        db.session.query(Post.server_id, db.func.count(Post.id))
        .filter(Post.server_id.isnot(None), Post.is_active.is_(True))
        .group_by(Post.server_id)
        .all()
    )
    updated = 0
    for stats in ServerStats.query.all():
        total = counts.get(stats.server_id, 0)
        if stats.total_posts != total:
            stats.total_posts = total
            updated += 1
    db.session.commit()
    logger.info(f"服务器统计重算完成，更新 {updated} 条")
    return updated
