import logging
from flask import Flask, has_app_context
from config import (
    DevelopmentConfig,
    TestingConfig,
    ProductionConfig,
)
from app.core.extensions import db, migrate, jwt, celery
from app.core.cache import cache
from app.core.error_handlers import register_error_handlers
from flasgger import Swagger
from dotenv import load_dotenv

# 导入所有模型以确保它们被注册到SQLAlchemy元数据中
from app.blueprints.auth.models import User, Profile
from app.blueprints.games.models import Game, FavoriteGame
from app.blueprints.servers.models import GameServer, ServerStats
from app.blueprints.posts.models import Post, Comment, PostLike, CommentLike
from app.blueprints.users.models import UserFollow
from app.blueprints.notifications.models import (
    Notification,
    NotificationPreference,
    PushToken,
)

# 注册蓝图
from app.blueprints.auth import auth_bp
from app.blueprints.games import games_bp
from app.blueprints.servers import servers_bp
from app.blueprints.posts import posts_bp
from app.blueprints.users import users_bp
from app.blueprints.notifications import notifications_bp
from app.blueprints.uploads import uploads_bp

# 注册Celery任务
from app.tasks import community_tasks, notification_tasks

logger = logging.getLogger(__name__)

# 加载.env文件
load_dotenv()

swagger_template = {
    "swagger": "2.0",
    "info": {
        "title": "Calico 游戏社区 API",
        "description": "Calico 游戏社区接口文档：游戏、服务器、帖子、评论、关注与通知。",
        "contact": {
            "responsibleOrganization": "Calico",
            "responsibleDeveloper": "Calico Team",
            "email": "dev@calico.dev",
        },
        "version": "1.0.0",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "JWT认证，格式: Bearer <token>",
        }
    },
}

swagger_config = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: rule.rule.startswith("/api"),
            "model_filter": lambda tag: True,  # 所有模型
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",  # 仅开发环境下生效
    "swagger_ui_config": {
        "docExpansion": "list",
        "defaultModelsExpandDepth": 2,
        "displayRequestDuration": True,
    },
}

CONFIGS = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def create_app(config_name="development"):
    """应用工厂函数"""
    app = Flask(__name__)

    # 根据配置名称选择配置类
    config_class = CONFIGS.get(config_name, DevelopmentConfig)
    app.config.from_object(config_class)

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    cache.init_app(app)
    celery.conf.update(
        broker_url=app.config["CELERY_BROKER_URL"],
        result_backend=app.config["CELERY_RESULT_BACKEND"],
        task_always_eager=app.config["CELERY_TASK_ALWAYS_EAGER"],
        task_eager_propagates=app.config["CELERY_TASK_ALWAYS_EAGER"],
    )
    make_celery(app)

    # 注册蓝图
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(games_bp, url_prefix="/api")
    app.register_blueprint(servers_bp, url_prefix="/api")
    app.register_blueprint(posts_bp, url_prefix="/api")
    app.register_blueprint(users_bp, url_prefix="/api")
    app.register_blueprint(notifications_bp, url_prefix="/api")
    app.register_blueprint(uploads_bp)

    register_error_handlers(app)

    # 初始化WebSocket
    from app.ws import init_socketio

    init_socketio(app)

    # 仅开发/测试环境下启用默认Swagger UI
    if config_name in ("development", "testing"):
        Swagger(app, template=swagger_template, config=swagger_config)

    from app.seeders import register_commands

    register_commands(app)

    logger.info(f"应用已创建，配置: {config_class.__name__}")
    return app


def make_celery(app=None):
    app = app or create_app()

    class ContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            # eager模式下任务在请求内同步执行，复用当前应用上下文
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = ContextTask
    return celery
