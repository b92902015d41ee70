"""
Pydantic 序列化模型定义入口。
各业务模块的响应结构统一在此定义，视图中通过 dump() 转换为可JSON化的字典。
"""

from datetime import date, datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


def dump(schema, obj) -> Dict[str, Any]:
    """ORM对象 -> JSON兼容字典"""
    return schema.model_validate(obj).model_dump(mode="json")


class UserSchema(BaseModel):
    id: int
    email: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileSchema(BaseModel):
    id: int
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    user_role: str = "user"
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileSummarySchema(BaseModel):
    """嵌入在帖子、评论、服务器中的作者信息"""

    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class PublicProfileSchema(BaseModel):
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None

    class Config:
        from_attributes = True


class GameSchema(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    genre: Optional[str] = None
    platform: Optional[str] = None
    release_date: Optional[date] = None
    cover_image_url: Optional[str] = None
    theme_config: Optional[Dict[str, Any]] = None
    has_servers: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GameSummarySchema(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None
    cover_image_url: Optional[str] = None
    genre: Optional[str] = None

    class Config:
        from_attributes = True


class ServerStatsSchema(BaseModel):
    id: int
    server_id: int
    online_players: int = 0
    total_posts: int = 0
    total_members: int = 0
    last_updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServerSchema(BaseModel):
    id: int
    game_id: int
    name: str
    description: Optional[str] = None
    server_ip: Optional[str] = None
    server_port: Optional[int] = None
    server_version: Optional[str] = None
    max_players: int = 100
    server_type: str = "survival"
    is_active: bool = True
    is_featured: bool = False
    owner_id: Optional[int] = None
    theme_config: Optional[Dict[str, Any]] = None
    last_activity: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostSchema(BaseModel):
    id: int
    user_id: int
    game_id: int
    server_id: Optional[int] = None
    title: str
    content: str
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    post_type: str = "general"
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentSchema(BaseModel):
    id: int
    post_id: int
    user_id: int
    parent_comment_id: Optional[int] = None
    content: str
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationSchema(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str = "info"
    read: bool = False
    data: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationPreferenceSchema(BaseModel):
    user_id: int
    email_notifications: bool = True
    push_notifications: bool = True
    new_posts: bool = True
    new_servers: bool = True
    new_games: bool = False
    follows: bool = True
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PushTokenSchema(BaseModel):
    id: int
    user_id: int
    token: str
    device_type: str = "web"
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
