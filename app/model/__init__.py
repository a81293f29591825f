from app.model.user import User
from app.model.vet_profile import VetProfile
from app.model.presence import UserPresence
from app.model.conversation import Conversation
from app.model.conversation_member import ConversationMember
from app.model.chat_message import ChatMessage
from app.model.pulse_post import PulsePost
from app.model.pulse_reaction import PulseReaction

__all__ = [
    "User",
    "VetProfile",
    "UserPresence",
    "Conversation",
    "ConversationMember",
    "ChatMessage",
    "PulsePost",
    "PulseReaction",
]
