"""Read side of in-app notifications."""

from typing import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from slotbook.models.notification import Notification
from slotbook.utils.ids import is_valid_uuid
from slotbook.utils.time import utc_now

# Bell dropdown shows the latest few only
DEFAULT_INBOX_LIMIT = 20


class InboxService:
    """List and mark a user's notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(
        self,
        user_id: str,
        limit: int = DEFAULT_INBOX_LIMIT,
    ) -> Sequence[Notification]:
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def unread_count(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.read == False,
            )
        )
        return result.scalar_one()

    async def mark_read(self, notification_id: str, user_id: str) -> Notification | None:
        """Mark one notification read. Returns None if the user does not own it."""
        if not is_valid_uuid(notification_id):
            return None

        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            return None

        if not notification.read:
            notification.read = True
            notification.read_at = utc_now()
            await self.session.commit()
            await self.session.refresh(notification)

        return notification

    async def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification for the user read; returns how many."""
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.read == False,
            )
            .values(read=True, read_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount
