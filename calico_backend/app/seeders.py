"""
示例数据填充

通过 `flask --app run seed` 执行，已存在的数据会被跳过，可重复运行。
"""

import logging

import click

from app.core.extensions import db
from app.core.account_service import create_account
from app.blueprints.auth.models import Profile
from app.blueprints.games.models import Game
from app.blueprints.servers.models import GameServer, ServerStats
from app.blueprints.posts.models import Post

logger = logging.getLogger(__name__)

GAMES = [
    {
        "name": "Minecraft",
        "slug": "minecraft",
        "description": "在无限的方块世界中建造与生存",
        "genre": "Sandbox",
        "cover_image_url": "/minecraft-bg.jpg",
    },
    {
        "name": "Among Us",
        "slug": "among-us",
        "description": "找出隐藏在船员中的内鬼",
        "genre": "Social Deduction",
        "cover_image_url": "/among-us-bg.jpg",
    },
    {
        "name": "Call of Duty",
        "slug": "call-of-duty",
        "description": "多人竞技第一人称射击游戏",
        "genre": "FPS",
        "cover_image_url": "/cod-bg.jpg",
    },
    {
        "name": "Fortnite",
        "slug": "fortnite",
        "description": "融合建造玩法的大逃杀游戏",
        "genre": "Battle Royale",
        "cover_image_url": "/fortnite-bg.jpg",
    },
    {
        "name": "UNO",
        "slug": "uno",
        "description": "经典卡牌游戏的数字版本",
        "genre": "Card Game",
        "cover_image_url": "/uno-bg.jpg",
    },
]

USERS = [
    {"email": "admin@calico.dev", "username": "admin", "user_role": "admin"},
    {"email": "steve@calico.dev", "username": "steve"},
    {"email": "alex@calico.dev", "username": "alex"},
]
SEED_PASSWORD = "calico12345"

SERVERS = [
    {
        "game": "Minecraft",
        "owner": "steve",
        "name": "方块生存服",
        "description": "原版生存，每周重置资源世界",
        "server_ip": "mc.calico.dev",
        "server_port": 25565,
        "server_version": "1.20.4",
        "server_type": "survival",
        "is_featured": True,
    },
    {
        "game": "Minecraft",
        "owner": "alex",
        "name": "创造建筑服",
        "description": "无限资源的创造模式建筑社区",
        "server_ip": "build.calico.dev",
        "server_port": 25566,
        "server_version": "1.20.4",
        "server_type": "creative",
    },
]

POSTS = [
    {
        "game": "Minecraft",
        "server": "方块生存服",
        "author": "steve",
        "title": "新赛季开服公告",
        "content": "资源世界已重置，欢迎大家回来一起建设主城。",
        "post_type": "general",
    },
    {
        "game": "Minecraft",
        "server": None,
        "author": "alex",
        "title": "红石自动农场教程",
        "content": "分享一个只需要十分钟就能搭好的全自动甘蔗农场。",
        "post_type": "tip",
    },
]


def seed_games():
    created = 0
    for data in GAMES:
        if Game.query.filter_by(name=data["name"]).first():
            continue
        db.session.add(Game(**data))
        created += 1
    db.session.commit()
    logger.info(f"游戏填充完成，新增 {created} 个")
    return created


def seed_users():
    created = 0
    for data in USERS:
        if Profile.query.filter_by(username=data["username"]).first():
            continue
        create_account(
            email=data["email"],
            password=SEED_PASSWORD,
            username=data["username"],
            user_role=data.get("user_role", "user"),
        )
        created += 1
    logger.info(f"用户填充完成，新增 {created} 个")
    return created


def seed_servers():
    created = 0
    for data in SERVERS:
        data = dict(data)
        game = Game.query.filter_by(name=data.pop("game")).first()
        owner = Profile.query.filter_by(username=data.pop("owner")).first()
        if game is None or owner is None:
            continue
        if GameServer.query.filter_by(game_id=game.id, name=data["name"]).first():
            continue
        server = GameServer(game_id=game.id, owner_id=owner.id, **data)
        db.session.add(server)
        db.session.flush()
        db.session.add(ServerStats(server_id=server.id))
        game.has_servers = True
        created += 1
    db.session.commit()
    logger.info(f"服务器填充完成，新增 {created} 个")
    return created


def seed_posts():
    created = 0
    for data in POSTS:
        data = dict(data)
        game = Game.query.filter_by(name=data.pop("game")).first()
        author = Profile.query.filter_by(username=data.pop("author")).first()
        server_name = data.pop("server")
        if game is None or author is None:
            continue
        if Post.query.filter_by(user_id=author.id, title=data["title"]).first():
            continue
        server = None
        if server_name:
            server = GameServer.query.filter_by(game_id=game.id, name=server_name).first()
        db.session.add(
            Post(
                user_id=author.id,
                game_id=game.id,
                server_id=server.id if server else None,
                **data,
            )
        )
        if server is not None and server.stats is not None:
            server.stats.total_posts += 1
        created += 1
    db.session.commit()
    logger.info(f"帖子填充完成，新增 {created} 个")
    return created


def run_seeders():
    """按依赖顺序执行所有填充"""
    return {
        "games": seed_games(),
        "users": seed_users(),
        "servers": seed_servers(),
        "posts": seed_posts(),
    }


def register_commands(app):
    @app.cli.command("seed")
    def seed_command():
        """创建数据表并填充示例数据"""
        db.create_all()
        result = run_seeders()
        click.echo(f"示例数据填充完成: {result}")
