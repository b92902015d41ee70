from app.models.base import BaseModel, TimestampedModel
from app.core.extensions import db


class User(BaseModel):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    profile = db.relationship(
        "Profile", backref=db.backref("user", lazy=True), uselist=False, lazy=True
    )


class Profile(TimestampedModel):
    """用户公开资料，主键与 users.id 一一对应"""

    __tablename__ = "profiles"
    id = db.Column(db.Integer, db.ForeignKey("users.id"), primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(128))
    avatar_url = db.Column(db.String(255))
    bio = db.Column(db.Text)
    user_role = db.Column(
        db.Enum("user", "admin", name="user_role"), nullable=False, default="user"
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    @property
    def is_admin(self):
        return self.user_role == "admin"
