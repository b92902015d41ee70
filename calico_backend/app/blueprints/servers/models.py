from datetime import datetime

from app.models.base import TimestampedModel
from app.core.extensions import db

SERVER_TYPES = ("survival", "creative", "pvp", "roleplay", "minigames", "custom")


class GameServer(TimestampedModel):
    __tablename__ = "game_servers"
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)
    server_ip = db.Column(db.String(255))
    server_port = db.Column(db.Integer)
    server_version = db.Column(db.String(64))
    max_players = db.Column(db.Integer, nullable=False, default=100)
    server_type = db.Column(
        db.Enum(*SERVER_TYPES, name="server_type"), nullable=False, default="survival"
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)
    theme_config = db.Column(db.JSON, nullable=True)
    last_activity = db.Column(db.DateTime, default=datetime.utcnow)

    game = db.relationship("Game", backref=db.backref("servers", lazy="dynamic"))
    stats = db.relationship(
        "ServerStats", backref="server", uselist=False, lazy=True
    )


class ServerStats(db.Model):
    __tablename__ = "server_stats"
    id = db.Column(db.Integer, primary_key=True)
    server_id = db.Column(
        db.Integer, db.ForeignKey("game_servers.id"), unique=True, nullable=False
    )
    online_players = db.Column(db.Integer, nullable=False, default=0)
    total_posts = db.Column(db.Integer, nullable=False, default=0)
    total_members = db.Column(db.Integer, nullable=False, default=0)
    last_updated = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
