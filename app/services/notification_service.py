"""
Notification service - per-user inbox with realtime push
"""
import logging
from typing import Dict, Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError
from app.models import Notification, User
from app.realtime.connection_manager import connection_manager

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for storing and delivering user notifications"""

    @staticmethod
    def to_message(notification: Notification) -> Dict[str, Any]:
        """JSON payload pushed over the notification socket"""
        return {
            "event": "notification",
            "id": str(notification.id),
            "title": notification.title,
            "content": notification.content,
            "type": notification.type,
            "data": notification.data,
            "is_read": notification.is_read,
            "created_at": notification.created_at.isoformat() if notification.created_at else None,
        }

    def create(
        self,
        db: Session,
        user_id: UUID,
        title: str,
        content: str,
        type: str = "system",
        data: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Store a notification in the user's inbox"""
        notification = Notification(
            user_id=user_id,
            title=title,
            content=content,
            type=type,
            data=data,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)

        logger.info(f"Notification {notification.id} ({type}) created for user {user_id}")
        return notification

    async def push(self, notification: Notification) -> int:
        """Best-effort realtime delivery; failures never propagate"""
        try:
            return await connection_manager.send_to_user(
                notification.user_id, self.to_message(notification)
            )
        except Exception as e:
            logger.warning(f"Push failed for notification {notification.id}: {str(e)}")
            return 0

    async def send_to_user(
        self,
        db: Session,
        user_id: UUID,
        title: str,
        content: str,
        type: str = "system",
        data: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """
        Admin send to a single user

        Raises:
            NotFoundError: user doesn't exist
        """
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found", error="user_not_found")

        notification = self.create(db, user_id, title, content, type, data)
        await self.push(notification)
        return notification

    async def broadcast(
        self,
        db: Session,
        title: str,
        content: str,
        data: Optional[Dict[str, Any]] = None
    ) -> int:
        """
        Admin broadcast to every active user

        Returns:
            Number of inbox rows created
        """
        user_ids = [
            row[0] for row in db.query(User.id).filter(User.is_blocked.is_(False)).all()
        ]

        notifications = [
            Notification(user_id=user_id, title=title, content=content, type="broadcast", data=data)
            for user_id in user_ids
        ]
        db.add_all(notifications)
        db.commit()

        for notification in notifications:
            await self.push(notification)

        logger.info(f"Broadcast '{title}' sent to {len(notifications)} users")
        return len(notifications)

    def list_for_user(
        self,
        db: Session,
        user: User,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Notification], int]:
        """Newest first, with the total count for pagination"""
        query = db.query(Notification).filter(Notification.user_id == user.id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        total = query.count()
        items = (
            query.order_by(Notification.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return items, total

    def unread_count(self, db: Session, user: User) -> int:
        return db.query(func.count(Notification.id)).filter(
            Notification.user_id == user.id,
            Notification.is_read.is_(False),
        ).scalar()

    def _get_owned(self, db: Session, user: User, notification_id: UUID) -> Notification:
        notification = db.get(Notification, notification_id)
        if notification is None or notification.user_id != user.id:
            raise NotFoundError("Notification not found", error="notification_not_found")
        return notification

    def mark_read(self, db: Session, user: User, notification_id: UUID) -> Notification:
        notification = self._get_owned(db, user, notification_id)
        if not notification.is_read:
            notification.is_read = True
            db.commit()
        return notification

    def mark_all_read(self, db: Session, user: User) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount

    def delete(self, db: Session, user: User, notification_id: UUID) -> None:
        notification = self._get_owned(db, user, notification_id)
        db.delete(notification)
        db.commit()


# Global instance
notification_service = NotificationService()
