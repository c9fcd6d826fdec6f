"""Notification dispatcher and inbox queries.

The dispatcher is a side effect of mutations that have already committed:
request handlers hand it a list of NotificationRequest objects through FastAPI
BackgroundTasks, it deduplicates recipients, persists one Notification per
recipient and tries to email each one. Failures are logged and swallowed in
dispatch(); notify() itself reports them so direct callers can decide.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pms.models import Notification, User
from pms.services.email_service import SmtpMailer
from pms.services.errors import InternalError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class NotificationType(str, Enum):
    """Kinds raised by task and comment mutations."""

    TASK_ASSIGNED = "task_assigned"
    TASK_UPDATED = "task_updated"
    TASK_COMMENT = "task_comment"
    COMMENT_REPLY = "comment_reply"


@dataclass(frozen=True)
class RelatedEntities:
    workspace_id: int | None = None
    project_id: int | None = None
    task_id: int | None = None
    comment_id: int | None = None

    def link_path(self) -> str | None:
        """Frontend path for the most specific related entity."""
        if self.task_id is not None:
            return f"/tasks/{self.task_id}"
        if self.project_id is not None:
            return f"/projects/{self.project_id}"
        if self.workspace_id is not None:
            return f"/workspaces/{self.workspace_id}"
        return None


@dataclass(frozen=True)
class NotificationRequest:
    """What to tell one recipient. Built by services, delivered by the dispatcher."""

    recipient_id: int
    type: NotificationType
    title: str
    message: str
    sender_id: int | None = None
    related: RelatedEntities = field(default_factory=RelatedEntities)


def dedupe_requests(
    requests: Iterable[NotificationRequest],
    exclude_user_id: int | None = None,
) -> list[NotificationRequest]:
    """Keep the first request per recipient and drop the acting user's own.

    One mutation can name the same person twice (e.g. assignee who is also the
    creator); each recipient is notified once.
    """
    seen: set[int] = set()
    result: list[NotificationRequest] = []
    for req in requests:
        if req.recipient_id is None or req.recipient_id == exclude_user_id:
            continue
        if req.recipient_id in seen:
            continue
        seen.add(req.recipient_id)
        result.append(req)
    return result


class NotificationDispatcher:
    """Persists notifications and sends best-effort email.

    Constructed once per process with a session factory and a mailer; request
    handlers receive it through a dependency rather than importing a global.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        mailer: SmtpMailer | None = None,
        *,
        email_enabled: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self.mailer = mailer
        self.email_enabled = email_enabled

    def notify(
        self,
        recipient_id: int,
        type: NotificationType,
        title: str,
        message: str,
        related: RelatedEntities | None = None,
        sender_id: int | None = None,
        db: Session | None = None,
    ) -> Notification:
        """Persist one notification, then try to email the recipient.

        Raises NotFoundError for an unknown recipient and InternalError when the
        notification cannot be stored. Email problems never raise.
        """
        if db is None:
            with self._session_factory() as own_db:
                return self.notify(
                    recipient_id, type, title, message, related, sender_id, db=own_db
                )

        related = related or RelatedEntities()
        recipient = db.get(User, recipient_id)
        if recipient is None:
            raise NotFoundError("user", "Notification recipient not found")

        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=NotificationType(type).value,
            title=title,
            message=message,
            workspace_id=related.workspace_id,
            project_id=related.project_id,
            task_id=related.task_id,
            comment_id=related.comment_id,
            is_read=False,
        )
        try:
            db.add(notification)
            db.commit()
            db.refresh(notification)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("notification_persist_failed: recipient_id=%s error=%s", recipient_id, exc)
            raise InternalError("Could not store notification") from exc

        logger.info(
            "notification_created: id=%s recipient_id=%s type=%s",
            notification.id,
            recipient_id,
            notification.type,
        )
        self._send_email(recipient, notification, related)
        return notification

    def _send_email(
        self, recipient: User, notification: Notification, related: RelatedEntities
    ) -> None:
        if not self.email_enabled or self.mailer is None:
            return
        try:
            self.mailer.send_notification(
                recipient.email,
                notification.title,
                notification.message,
                notification.type,
                path=related.link_path(),
            )
        except Exception:
            logger.exception("notification_email_failed: notification_id=%s", notification.id)

    def dispatch(
        self,
        requests: Iterable[NotificationRequest],
        exclude_user_id: int | None = None,
    ) -> list[Notification]:
        """Fire-and-forget delivery of many requests. Never raises."""
        delivered: list[Notification] = []
        for req in dedupe_requests(requests, exclude_user_id=exclude_user_id):
            try:
                delivered.append(
                    self.notify(
                        req.recipient_id,
                        req.type,
                        req.title,
                        req.message,
                        related=req.related,
                        sender_id=req.sender_id,
                    )
                )
            except Exception:
                logger.exception(
                    "notification_dispatch_failed: recipient_id=%s type=%s",
                    req.recipient_id,
                    req.type,
                )
        return delivered


# ── Inbox ─────────────────────────────────────────────────────────────


@dataclass
class NotificationPage:
    items: list[Notification]
    page: int
    limit: int
    total: int
    unread_count: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


def list_notifications(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    unread_only: bool = False,
) -> NotificationPage:
    """Newest-first page of user_id's notifications with total and unread counts."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = db.query(Notification).filter(Notification.recipient_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    unread_count = (
        db.query(Notification)
        .filter(Notification.recipient_id == user_id, Notification.is_read == False)
        .count()
    )
    return NotificationPage(
        items=items, page=page, limit=limit, total=total, unread_count=unread_count
    )


def mark_notification_read(db: Session, user_id: int, notification_id: int) -> Notification:
    """Mark one of user_id's notifications read. Other users' rows are NotFound."""
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.recipient_id == user_id)
        .first()
    )
    if notification is None:
        raise NotFoundError("notification", "Notification not found")
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(UTC)
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_notifications_read(db: Session, user_id: int) -> int:
    """Mark every unread notification of user_id read; returns how many changed."""
    updated = (
        db.query(Notification)
        .filter(Notification.recipient_id == user_id, Notification.is_read == False)
        .update(
            {Notification.is_read: True, Notification.read_at: datetime.now(UTC)},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated
