from app.models.base import BaseModel, TimestampedModel
from app.core.extensions import db


class Game(TimestampedModel):
    __tablename__ = "games"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), unique=True, nullable=False, index=True)
    slug = db.Column(db.String(128), unique=True, index=True)
    description = db.Column(db.Text)
    genre = db.Column(db.String(64), index=True)
    platform = db.Column(db.String(64))
    release_date = db.Column(db.Date)
    cover_image_url = db.Column(db.String(255))
    theme_config = db.Column(db.JSON, nullable=True)  # 游戏页主题配置
    has_servers = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)


class FavoriteGame(BaseModel):
    __tablename__ = "user_favorite_games"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False, index=True)

    game = db.relationship("Game", lazy=True)
    __table_args__ = (
        db.UniqueConstraint("user_id", "game_id", name="uq_user_favorite_game"),
    )
