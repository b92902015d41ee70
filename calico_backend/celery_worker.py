"""
Celery worker 入口

    celery -A celery_worker.celery worker --loglevel=info
    celery -A celery_worker.celery beat --loglevel=info
"""

import os
from app import create_app, make_celery

app = create_app(os.getenv("FLASK_ENV", "development"))
celery = make_celery(app)

# 每小时按帖子表校准服务器帖子数
celery.conf.beat_schedule = {
    "recalculate-server-stats": {
        "task": "tasks.recalculate_server_stats",
        "schedule": 3600.0,
    },
}
