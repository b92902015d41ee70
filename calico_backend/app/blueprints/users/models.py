from app.models.base import BaseModel
from app.core.extensions import db


class UserFollow(BaseModel):
    __tablename__ = "user_follows"
    id = db.Column(db.Integer, primary_key=True)
    follower_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    following_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    __table_args__ = (
        db.UniqueConstraint("follower_id", "following_id", name="uq_follower_following"),
    )
