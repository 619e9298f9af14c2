"""Models package."""

from .user import User
from .project import Project
from .toolkit import Toolkit
from .news import NewsItem
from .conversation import Conversation
from .conversation_participant import ConversationParticipant
from .message import Message
from .notification import Notification
from .review import Review
from .favorite import Favorite
