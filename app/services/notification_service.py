"""
Notification dispatch for lifecycle transitions.

Every transition writes its notification inside a SAVEPOINT of the caller's
transaction. A failed write is logged and rolled back to the savepoint so the
transition itself still commits.
"""
import datetime

from flask import after_this_request, current_app, g, has_request_context
from sqlalchemy import and_, func, select

from app.errors import NotFoundError, AuthorizationError
from app.extensions import db
from app.models import Notification
from app.services.email_service import email_service

# type -> keys its data payload must carry
PAYLOAD_KEYS = {
    "appointment_booked": ("appointment_id", "appointment_date", "appointment_time"),
    "appointment_accepted": ("appointment_id", "order_id"),
    "appointment_rejected": ("appointment_id", "reason"),
    "ready_to_check": ("order_id", "scheduled_at"),
    "order_completed": ("order_id", "total_amount", "scheduled_at"),
    "order_finished": ("order_id",),
    "order_details_updated": ("appointment_id", "appointment_date", "appointment_time"),
    "order_cancelled": ("appointment_id",),
    "refund_processed": ("appointment_id", "refund_image"),
    "feedback_responded": ("feedback_id", "order_id"),
}

NOTIFICATION_TYPES = tuple(PAYLOAD_KEYS)

ADMIN_CHANNEL = "admin"
CUSTOMER_CHANNEL = "customer"

PENDING_EMAILS_KEY = "pending_notification_emails"


class InvalidNotification(ValueError):
    pass


def build_notification(user_id, type, title, body, data, channel=CUSTOMER_CHANNEL):
    if type not in PAYLOAD_KEYS:
        raise InvalidNotification(f"Unknown notification type '{type}'")

    data = dict(data or {})
    missing = [key for key in PAYLOAD_KEYS[type] if data.get(key) is None]
    if missing:
        raise InvalidNotification(
            f"Notification '{type}' is missing payload keys: {', '.join(missing)}"
        )

    if channel == CUSTOMER_CHANNEL and user_id is None:
        raise InvalidNotification("Customer notifications need a recipient")

    return Notification(
        user_id=user_id if channel == CUSTOMER_CHANNEL else None,
        channel=channel,
        type=type,
        title=title,
        body=body,
        data=data,
        is_viewed=False,
    )


def dispatch(user, type, title, body=None, data=None):
    """Notify a customer. Returns the notification, or None if it could not be stored."""
    notification = _store(user.id, type, title, body, data, CUSTOMER_CHANNEL)
    if notification is not None:
        _mirror_to_email(user, title, body)
    return notification


def dispatch_admin(type, title, body=None, data=None):
    return _store(None, type, title, body, data, ADMIN_CHANNEL)


def _store(user_id, type, title, body, data, channel):
    try:
        notification = build_notification(user_id, type, title, body, data, channel)
        with db.session.begin_nested():
            db.session.add(notification)
        return notification
    except Exception as e:
        current_app.logger.error(
            f"Failed to dispatch '{type}' notification to {channel}"
            f"{'' if user_id is None else f' user {user_id}'}: {e}"
        )
        return None


def _mirror_to_email(user, title, body):
    if not current_app.config.get("NOTIFICATION_EMAILS_ENABLED") or not user.email:
        return

    if not has_request_context():
        _send_email(user.id, user.email, user.name, title, body)
        return

    # Sent once the request has committed; dropped if it ends in an error
    pending = g.get(PENDING_EMAILS_KEY)
    if pending is None:
        pending = g.setdefault(PENDING_EMAILS_KEY, [])
        after_this_request(_flush_pending_emails)
    pending.append((user.id, user.email, user.name, title, body))


def _flush_pending_emails(response):
    pending = g.pop(PENDING_EMAILS_KEY, [])
    if response.status_code >= 400:
        if pending:
            current_app.logger.info(
                f"Dropped {len(pending)} notification email(s) for a failed request"
            )
        return response

    for email in pending:
        _send_email(*email)
    return response


def _send_email(user_id, to_email, name, title, body):
    result = email_service.send_status_update(to_email, name, title, body)
    if not result.get("success"):
        current_app.logger.warning(
            f"Email mirror failed for user {user_id}: {result.get('error')}"
        )


# ---- read side ----


def list_for_user(user_id):
    return db.session.scalars(
        select(Notification)
        .where(
            and_(
                Notification.user_id == user_id,
                Notification.channel == CUSTOMER_CHANNEL,
            )
        )
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    ).all()


def list_for_admin():
    return db.session.scalars(
        select(Notification)
        .where(Notification.channel == ADMIN_CHANNEL)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    ).all()


def get_owned(notification_id, user_id):
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.channel != CUSTOMER_CHANNEL:
        raise NotFoundError("Notification not found")
    if notification.user_id != user_id:
        raise AuthorizationError("Notification belongs to another user")
    return notification


def mark_read(notification_id, user_id):
    notification = get_owned(notification_id, user_id)
    if notification.read_at is None:
        notification.read_at = datetime.datetime.now()
    return notification


def mark_all_read(user_id):
    unread = db.session.scalars(
        select(Notification).where(
            and_(
                Notification.user_id == user_id,
                Notification.channel == CUSTOMER_CHANNEL,
                Notification.read_at.is_(None),
            )
        )
    ).all()
    now = datetime.datetime.now()
    for notification in unread:
        notification.read_at = now
    return len(unread)


def admin_unviewed_count():
    return db.session.scalar(
        select(func.count(Notification.id)).where(
            and_(
                Notification.channel == ADMIN_CHANNEL,
                Notification.is_viewed.is_(False),
            )
        )
    )


def mark_admin_viewed(notification_id):
    notification = db.session.get(Notification, notification_id)
    if not notification or notification.channel != ADMIN_CHANNEL:
        raise NotFoundError("Notification not found")
    _mark_viewed([notification])
    return notification


def _booking_notifications(appointment_id=None):
    notifications = db.session.scalars(
        select(Notification).where(
            and_(
                Notification.channel == ADMIN_CHANNEL,
                Notification.type == "appointment_booked",
            )
        )
    ).all()
    if appointment_id is None:
        return notifications
    return [n for n in notifications if (n.data or {}).get("appointment_id") == appointment_id]


def unviewed_appointment_count():
    return sum(1 for n in _booking_notifications() if not n.is_viewed)


def mark_appointment_viewed(appointment_id):
    notifications = _booking_notifications(appointment_id)
    _mark_viewed(notifications)
    return len(notifications)


def appointment_view_states():
    """appointment_id -> whether the admin has opened its booking notification."""
    states = {}
    for notification in _booking_notifications():
        appointment_id = (notification.data or {}).get("appointment_id")
        if appointment_id is not None:
            states[appointment_id] = states.get(appointment_id, True) and bool(
                notification.is_viewed
            )
    return states


def _mark_viewed(notifications):
    now = datetime.datetime.now()
    for notification in notifications:
        if not notification.is_viewed:
            notification.is_viewed = True
            notification.viewed_at = now
