from app.models.base import BaseModel, TimestampedModel
from app.core.extensions import db

POST_TYPES = ("general", "achievement", "review", "tip", "question")


class Post(TimestampedModel):
    __tablename__ = "posts"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False, index=True)
    server_id = db.Column(
        db.Integer, db.ForeignKey("game_servers.id"), nullable=True, index=True
    )
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    image_url = db.Column(db.String(255))
    video_url = db.Column(db.String(255))
    post_type = db.Column(
        db.Enum(*POST_TYPES, name="post_type"), nullable=False, default="general"
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    game = db.relationship("Game", lazy=True)
    server = db.relationship("GameServer", lazy=True)


class Comment(TimestampedModel):
    __tablename__ = "comments"
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    parent_comment_id = db.Column(
        db.Integer, db.ForeignKey("comments.id"), nullable=True, index=True
    )  # 回复的评论ID，顶层评论为空
    content = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)


class PostLike(BaseModel):
    __tablename__ = "post_likes"
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey("posts.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    __table_args__ = (db.UniqueConstraint("post_id", "user_id", name="uq_post_like"),)


class CommentLike(BaseModel):
    __tablename__ = "comment_likes"
    id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(
        db.Integer, db.ForeignKey("comments.id"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    __table_args__ = (
        db.UniqueConstraint("comment_id", "user_id", name="uq_comment_like"),
    )
