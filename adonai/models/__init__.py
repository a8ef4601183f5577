from .base import Base
from .profile import Profile
from .anonymous_usage import AnonymousUsage
from .conversation import Conversation, Message
from .error_code import ErrorCode

__all__ = [
    "Base",
    "Profile",
    "AnonymousUsage",
    "Conversation",
    "Message",
    "ErrorCode",
]
