from app.crud.user_crud import user_crud
from app.crud.conversation_crud import conversation_crud
from app.crud.conversation_member_crud import conversation_member_crud
from app.crud.chat_message_crud import chat_message_crud
from app.crud.pulse_post_crud import pulse_post_crud
from app.crud.pulse_reaction_crud import pulse_reaction_crud
from app.crud.presence_crud import presence_crud

__all__ = [
    "user_crud",
    "conversation_crud",
    "conversation_member_crud",
    "chat_message_crud",
    "pulse_post_crud",
    "pulse_reaction_crud",
    "presence_crud",
]
