# tutorhub/services/chat/__init__.py
from .chat_service import ChatService
from .feed import FeedEvent, MessageFeed, RedisMessageFeed, SessionEvent, get_message_feed
from .reconciler import ChatEntry, MessageStream, should_autoscroll

__all__ = [
    "ChatService",
    "FeedEvent",
    "MessageFeed",
    "RedisMessageFeed",
    "SessionEvent",
    "get_message_feed",
    "ChatEntry",
    "MessageStream",
    "should_autoscroll",
]
