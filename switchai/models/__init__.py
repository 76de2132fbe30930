"""SQLAlchemy models: re-export all."""

from models.user import UserProfile, APIKey  # noqa: F401
from models.credential import ProviderCredential  # noqa: F401
from models.conversation import Conversation  # noqa: F401
from models.message import Message, MESSAGE_ROLES  # noqa: F401
