# rentflow/services/notifications.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Notification
from ..timeutil import utcnow

log = logging.getLogger(__name__)

SYSTEM_ANNOUNCEMENT = "SYSTEM_ANNOUNCEMENT"
MOVE_IN_ISSUE_UPDATED = "MOVE_IN_ISSUE_UPDATED"


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    body: str
    type: str = SYSTEM_ANNOUNCEMENT


class NotificationSink:
    """
    Fire-and-forget notification writer.

    Every notification is committed on its own, so call this only after the
    caller's primary write is committed. A failing recipient is logged and
    rolled back; the remaining recipients are still attempted.

    Services import:
        from .notifications import notifier
    """

    def exists(self, db: Session, *, user_id: int, entity_id: Any, title: str) -> bool:
        row = db.scalar(
            select(Notification.id)
            .where(
                Notification.user_id == int(user_id),
                Notification.entity_id == str(entity_id),
                Notification.title == title,
            )
            .limit(1)
        )
        return row is not None

    def send(
        self,
        db: Session,
        *,
        user_id: int,
        entity_id: Any,
        template: NotificationTemplate,
    ) -> Optional[Notification]:
        try:
            row = Notification(
                user_id=int(user_id),
                type=template.type,
                entity_id=str(entity_id) if entity_id is not None else None,
                title=template.title,
                body=template.body,
                created_at=utcnow(),
            )
            db.add(row)
            db.commit()
            return row
        except SQLAlchemyError:
            db.rollback()
            log.exception(
                "notification write failed",
                extra={"user_id": user_id, "entity_id": entity_id},
            )
            return None

    def send_once(
        self,
        db: Session,
        *,
        user_id: int,
        entity_id: Any,
        template: NotificationTemplate,
    ) -> Optional[Notification]:
        """Idempotent by lookup on (user_id, entity_id, title)."""
        if self.exists(db, user_id=user_id, entity_id=entity_id, title=template.title):
            return None
        return self.send(db, user_id=user_id, entity_id=entity_id, template=template)

    def notify(
        self,
        db: Session,
        recipients: Iterable[int],
        template: NotificationTemplate,
        *,
        entity_id: Any,
    ) -> int:
        """Send one template to many recipients. Returns how many were written."""
        sent = 0
        seen: set[int] = set()
        for uid in recipients:
            if uid is None or int(uid) in seen:
                continue
            seen.add(int(uid))
            if self.send(db, user_id=int(uid), entity_id=entity_id, template=template) is not None:
                sent += 1
        return sent


notifier = NotificationSink()
