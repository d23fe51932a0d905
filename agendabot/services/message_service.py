"""Message sink: records bot output per room and fans it out to listeners."""

from datetime import datetime
from typing import Callable, List, Optional

from ..models import ChatMessage, utc_now
from ..models.chat_message import MESSAGE_TYPE_RESPONSE, MESSAGE_TYPES
from .database_service import DatabaseService
from .logging_config import get_logger

logger = get_logger("messages")


class MessageService:
    """Delivers text into rooms.

    Every message is stored in the messages table, then handed to the
    registered callbacks (a chat transport, a websocket, a test spy).
    Callback failures are logged and do not fail the send.

    Usage:
        messages = MessageService(database)
        messages.add_message_callback(transport.post)
        messages.send("room", "Hello", silent=True)
    """

    def __init__(self, database: DatabaseService, clock: Callable[[], datetime] = utc_now):
        self._database = database
        self._clock = clock
        self._on_message: List[Callable[[ChatMessage], None]] = []

    def add_message_callback(self, callback: Callable[[ChatMessage], None]) -> None:
        """Add a callback for every posted message."""
        self._on_message.append(callback)

    def _notify_message(self, message: ChatMessage) -> None:
        for callback in self._on_message:
            try:
                callback(message)
            except Exception as e:
                logger.error(f"Error in message callback: {e}")

    def send(self, room_id: str, text: str, silent: bool = True,
             message_type: str = MESSAGE_TYPE_RESPONSE) -> ChatMessage:
        """Post ``text`` into a room. Returns the stored message."""
        if message_type not in MESSAGE_TYPES:
            raise ValueError(f"Unknown message type: {message_type}")

        message = ChatMessage(
            room_id=room_id,
            content=text,
            timestamp=self._clock(),
            silent=silent,
            message_type=message_type
        )
        self._database.save_message(message)
        logger.debug(f"Room {room_id}: posted {message_type} message {message.id} (silent={silent})")
        self._notify_message(message)
        return message

    def __call__(self, room_id: str, text: str, silent: bool = True) -> ChatMessage:
        return self.send(room_id, text, silent)

    def get_messages(self, room_id: str, since_id: Optional[int] = None) -> List[ChatMessage]:
        return self._database.get_messages_for_room(room_id, since_id)

    def clear_messages(self, room_id: str) -> None:
        self._database.clear_room_messages(room_id)
