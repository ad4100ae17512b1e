import datetime

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError

from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Appointment, Feedback, Order
from app.services import notification_service


def get_feedback(feedback_id):
    feedback = db.session.get(Feedback, feedback_id)
    if not feedback:
        raise NotFoundError("Feedback not found")
    return feedback


def pending_feedback_for(user_id):
    """The customer's most recently finished order that has no feedback yet."""
    return db.session.scalar(
        select(Order)
        .join(Order.appointment)
        .outerjoin(Feedback, Feedback.order_id == Order.id)
        .where(
            and_(
                Appointment.user_id == user_id,
                Order.status == "Finished",
                Feedback.id.is_(None),
            )
        )
        .order_by(Order.finished_at.desc(), Order.id.desc())
        .limit(1)
    )


def _parse_rating(value):
    if isinstance(value, bool):
        value = None
    try:
        rating = int(value)
    except (TypeError, ValueError):
        rating = None
    if rating is None or not 1 <= rating <= 5:
        raise ValidationError.for_field("rating", "The rating must be between 1 and 5.")
    return rating


def submit(customer, order_id, rating, comment=None):
    rating = _parse_rating(rating)
    if order_id is None:
        raise ValidationError.for_field("order_id", "The order id field is required.")

    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.appointment.user_id != customer.id:
        raise AuthorizationError("This order belongs to another customer")
    if order.status != "Finished":
        raise ConflictError("Feedback can only be left for finished orders.")
    if order.feedback is not None:
        raise ConflictError("Feedback has already been submitted for this order.")

    feedback = Feedback(
        order_id=order.id,
        user_id=customer.id,
        rating=rating,
        comment=comment,
        admin_checked=False,
    )
    db.session.add(feedback)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Feedback has already been submitted for this order.")
    return feedback


def respond(feedback, admin_response):
    if feedback.responded_at is not None or feedback.admin_response:
        raise ConflictError("This feedback has already been responded to.")

    admin_response = (admin_response or "").strip() or None
    feedback.admin_response = admin_response
    feedback.admin_checked = True
    feedback.responded_at = datetime.datetime.now()

    title = (
        "Admin responded to your feedback" if admin_response else "Admin checked your feedback"
    )
    notification_service.dispatch(
        feedback.user,
        "feedback_responded",
        title,
        admin_response,
        {
            "feedback_id": feedback.id,
            "order_id": feedback.order_id,
            "admin_response": admin_response,
        },
    )
    return feedback


def list_all():
    return db.session.scalars(
        select(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc())
    ).all()


def delete(feedback):
    db.session.delete(feedback)
    db.session.flush()
