from typing import List, Optional

from roomchat.core.config import settings
from roomchat.core.logger import get_logger
from roomchat.notifications.notifier import Notifier
from roomchat.schemas.chat import Message, Room

logger = get_logger(__name__)


class NotificationFanout:
    """Tells every room member except the author about a new message."""

    def __init__(
        self,
        notifier: Notifier,
        preview_length: Optional[int] = None,
        notification_type: Optional[str] = None,
    ) -> None:
        self.notifier = notifier
        self.preview_length = preview_length if preview_length is not None else settings.NOTIFICATION_PREVIEW_LENGTH
        self.notification_type = notification_type if notification_type is not None else settings.NOTIFICATION_TYPE

    async def notify_new_message(self, room: Room, message: Message, sender_id: str) -> List[str]:
        """
        Best effort: one notifier call per recipient; a failing recipient is
        logged and skipped. Returns the recipients that were notified.
        """
        recipients = [uid for uid in room.members if uid != sender_id]
        preview = message.content[: self.preview_length]

        notified: List[str] = []
        for uid in recipients:
            try:
                await self.notifier.send(
                    user_id=uid,
                    type=self.notification_type,
                    message=f"New message: {preview}",
                    metadata={
                        "roomId": room.id,
                        "messageId": message.id,
                        "senderId": sender_id,
                    },
                )
                notified.append(uid)
            except Exception:
                logger.exception(
                    "Failed to notify user %s about message %s in room %s", uid, message.id, room.id
                )

        logger.info(
            "Fan-out for message %s in room %s: %s/%s recipients notified",
            message.id, room.id, len(notified), len(recipients),
        )
        return notified
