from datetime import datetime

from app.models.base import BaseModel
from app.core.extensions import db

NOTIFICATION_TYPES = (
    "info",
    "success",
    "warning",
    "error",
    "new_post",
    "follow",
    "new_server",
)


class Notification(BaseModel):
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(
        db.Enum(*NOTIFICATION_TYPES, name="notification_type"),
        nullable=False,
        default="info",
    )
    read = db.Column(db.Boolean, nullable=False, default=False, index=True)
    data = db.Column(db.JSON, nullable=True)  # 附加数据，如 post_id、follower_id


class NotificationPreference(db.Model):
    __tablename__ = "notification_preferences"
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    email_notifications = db.Column(db.Boolean, nullable=False, default=True)
    push_notifications = db.Column(db.Boolean, nullable=False, default=True)
    new_posts = db.Column(db.Boolean, nullable=False, default=True)
    new_servers = db.Column(db.Boolean, nullable=False, default=True)
    new_games = db.Column(db.Boolean, nullable=False, default=False)
    follows = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class PushToken(BaseModel):
    __tablename__ = "push_tokens"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token = db.Column(db.String(512), nullable=False)
    device_type = db.Column(db.String(32), nullable=False, default="web")
    __table_args__ = (db.UniqueConstraint("user_id", "token", name="uq_user_push_token"),)
