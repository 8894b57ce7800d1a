"""SQLModel models package."""

from .chat import Chat, Message
from .comment import Comment, CommentEdit
from .follow import Follow
from .like import Like
from .notification import Notification
from .post import Post
from .post_subscription import PostSubscription
from .user import User
from .user_block import UserBlock

__all__ = [
    "User",
    "Follow",
    "UserBlock",
    "Post",
    "PostSubscription",
    "Comment",
    "CommentEdit",
    "Like",
    "Notification",
    "Chat",
    "Message",
]
