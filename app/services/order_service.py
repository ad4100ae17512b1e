"""
Order pipeline: Pending -> Ready to Check -> Completed -> Finished, with
Cancelled reachable from any of the first three.
"""
import datetime

from flask import current_app
from sqlalchemy import and_, func, select

from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Appointment, Feedback, Order, ORDER_STATUSES
from app.services import notification_service, slots
from app.services.refunds import attach_refund
from app.utils.parsing import (
    format_time,
    parse_amount,
    parse_date,
    parse_flag,
    parse_time,
    parse_sizes,
    parse_total_quantity,
)

TRANSITIONS = {
    "Pending": ("Ready to Check", "Cancelled"),
    "Ready to Check": ("Completed", "Cancelled"),
    "Completed": ("Finished", "Cancelled"),
    "Finished": (),
    "Cancelled": (),
}

OPEN_STATUSES = ("Pending", "Ready to Check", "Completed")
CLOSED_STATUSES = ("Finished", "Cancelled")


def get_order(order_id):
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


# ---- queue numbers ----


def _lock_active_orders():
    return db.session.scalars(
        select(Order)
        .where(Order.status != "Cancelled")
        .order_by(Order.created_at, Order.id)
        .with_for_update()
    ).all()


def next_queue_number():
    held = [o.queue_number for o in _lock_active_orders() if o.queue_number]
    return max(held, default=0) + 1


def create_for_appointment(appointment):
    order = Order(
        appointment=appointment,
        status="Pending",
        handled=False,
        queue_number=next_queue_number(),
    )
    db.session.add(order)
    db.session.flush()
    return order


def recalculate_queue_numbers():
    """Renumber every non-cancelled order 1..n in creation order. Idempotent."""
    orders = _lock_active_orders()
    changed = 0
    for number, order in enumerate(orders, start=1):
        if order.queue_number != number:
            order.queue_number = number
            changed += 1
    db.session.flush()
    return {"total": len(orders), "updated": changed}


# ---- transitions ----


def change_status(order, target, data):
    if target not in ORDER_STATUSES:
        raise ValidationError.for_field(
            "status", f"Status must be one of: {', '.join(ORDER_STATUSES)}."
        )
    if target not in TRANSITIONS[order.status]:
        raise ConflictError(
            f"Cannot change order status from '{order.status}' to '{target}'."
        )

    if target == "Ready to Check":
        mark_ready_to_check(
            order,
            parse_date(data.get("check_appointment_date"), "check_appointment_date"),
            parse_time(data.get("check_appointment_time"), "check_appointment_time"),
        )
    elif target == "Completed":
        complete(
            order,
            parse_amount(data.get("total_amount"), "total_amount"),
            parse_date(data.get("pickup_appointment_date"), "pickup_appointment_date"),
            parse_time(data.get("pickup_appointment_time"), "pickup_appointment_time"),
        )
    elif target == "Finished":
        finish(order)
    else:
        cancel(order, data.get("refund_image"))
    return order


def mark_ready_to_check(order, check_date, check_time):
    appointment = order.appointment
    slots.ensure_bookable(
        check_date,
        check_time,
        exclude_appointment_id=appointment.id,
        field="check_appointment_time",
    )
    slots.claim_slot(appointment, "check", check_date, check_time)

    order.check_appointment_date = check_date
    order.check_appointment_time = check_time
    order.scheduled_at = datetime.datetime.combine(check_date, check_time)
    order.status = "Ready to Check"

    notification_service.dispatch(
        appointment.user,
        "ready_to_check",
        "Your order is now ready to be checked",
        f"Please visit the shop on {check_date.isoformat()} at {format_time(check_time)} "
        "to check your order.",
        {
            "order_id": order.id,
            "appointment_id": appointment.id,
            "scheduled_at": order.scheduled_at.isoformat(),
            "check_appointment_date": check_date.isoformat(),
            "check_appointment_time": format_time(check_time),
        },
    )


def complete(order, total_amount, pickup_date, pickup_time):
    appointment = order.appointment
    slots.ensure_bookable(
        pickup_date,
        pickup_time,
        exclude_appointment_id=appointment.id,
        field="pickup_appointment_time",
    )
    slots.claim_slot(appointment, "pickup", pickup_date, pickup_time)

    order.total_amount = total_amount
    order.pickup_appointment_date = pickup_date
    order.pickup_appointment_time = pickup_time
    order.scheduled_at = datetime.datetime.combine(pickup_date, pickup_time)
    order.completed_at = datetime.datetime.now()
    order.status = "Completed"

    notification_service.dispatch(
        appointment.user,
        "order_completed",
        "Your order is now completed",
        f"Your order is ready for pickup on {pickup_date.isoformat()} at "
        f"{format_time(pickup_time)}. Total amount: {total_amount:.2f}.",
        {
            "order_id": order.id,
            "appointment_id": appointment.id,
            "total_amount": f"{total_amount:.2f}",
            "scheduled_at": order.scheduled_at.isoformat(),
            "pickup_appointment_date": pickup_date.isoformat(),
            "pickup_appointment_time": format_time(pickup_time),
        },
    )


def finish(order):
    appointment = order.appointment
    slots.release_claims(appointment)
    order.status = "Finished"
    order.finished_at = datetime.datetime.now()

    notification_service.dispatch(
        appointment.user,
        "order_finished",
        "Congratulations! Your order is now finished!",
        "Thank you for choosing us. We would love to hear your feedback.",
        {"order_id": order.id, "appointment_id": appointment.id},
    )


def cancel(order, refund_image):
    """Admin cancellation; the down payment refund is attached in the same step."""
    if not refund_image:
        raise ValidationError.for_field(
            "refund_image", "A refund image is required to cancel an order."
        )

    appointment = order.appointment
    slots.release_claims(appointment)
    order.status = "Cancelled"
    appointment.state = "cancelled"

    notification_service.dispatch(
        appointment.user,
        "order_cancelled",
        "Your order has been cancelled",
        "The shop has cancelled your order. Your down payment will be refunded.",
        {"order_id": order.id, "appointment_id": appointment.id},
    )
    attach_refund(appointment, refund_image)


def refund(order, refund_image):
    if order.status != "Cancelled":
        raise ConflictError("Refunds can only be processed for cancelled orders.")
    attach_refund(order.appointment, refund_image)


def set_handled(order, handled):
    if order.status in CLOSED_STATUSES:
        raise ConflictError(f"Cannot change a {order.status.lower()} order.")
    handled = parse_flag(handled, "handled")
    if handled:
        order.handled = True
    elif order.handled:
        raise ConflictError("An order that has been handled cannot be marked unhandled.")
    return order


def update_sizes(order, sizes, total_quantity):
    if order.status in CLOSED_STATUSES:
        raise ConflictError(f"Cannot change sizes of a {order.status.lower()} order.")

    sizes = parse_sizes(sizes)
    appointment = order.appointment
    appointment.sizes = sizes
    appointment.total_quantity = parse_total_quantity(total_quantity, sizes)
    return order


# ---- read side ----


def derived_schedule(order):
    """Date and time of the customer's next visit for an open order."""
    appointment = order.appointment
    if order.status == "Ready to Check" and order.check_appointment_date:
        return order.check_appointment_date, order.check_appointment_time
    if order.status == "Completed" and order.pickup_appointment_date:
        return order.pickup_appointment_date, order.pickup_appointment_time
    if order.status in OPEN_STATUSES:
        return appointment.appointment_date, appointment.appointment_time
    return None, None


def list_orders(status=None):
    query = select(Order).join(Order.appointment)
    if status:
        query = query.where(Order.status == status)
    else:
        query = query.where(Order.status.in_(OPEN_STATUSES))
    return db.session.scalars(
        query.order_by(Order.queue_number, Order.created_at, Order.id)
    ).all()


def order_history():
    return db.session.scalars(
        select(Order)
        .where(Order.status.in_(CLOSED_STATUSES))
        .order_by(Order.updated_at.desc(), Order.id.desc())
    ).all()


def orders_for_customer(user_id):
    return db.session.scalars(
        select(Order)
        .join(Order.appointment)
        .where(Appointment.user_id == user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    ).all()


def booked_times(day, exclude_order_id=None):
    excluded = slots.appointment_for_exclusion(exclude_order_id=exclude_order_id)
    return sorted(slots.reserved_times(day, excluded))


def today_queue(now=None):
    now = now or datetime.datetime.now()
    today = now.date()

    candidates = db.session.scalars(
        select(Order)
        .join(Order.appointment)
        .where(
            and_(
                Order.status.in_(OPEN_STATUSES),
                Appointment.status == "accepted",
                Appointment.state == "active",
            )
        )
    ).all()

    entries = []
    for order in candidates:
        day, slot_time = derived_schedule(order)
        if day == today:
            entries.append((order, slot_time))
    entries.sort(key=lambda entry: (entry[1] or datetime.time.max, entry[0].queue_number or 0))

    current_index = None
    if entries:
        current_index = len(entries) - 1
        for index, (_, slot_time) in enumerate(entries):
            if slot_time and slot_time >= now.time().replace(microsecond=0):
                current_index = index
                break

    current_app.logger.info(
        f"Today queue for {today.isoformat()}: {len(entries)} order(s)"
    )
    return {
        "current_date": today,
        "current_time": now.time().replace(microsecond=0),
        "entries": entries,
        "current": entries[current_index] if current_index is not None else None,
        "next": (
            entries[current_index + 1]
            if current_index is not None and current_index + 1 < len(entries)
            else None
        ),
    }


def order_stats():
    counts = dict(
        db.session.execute(
            select(Order.status, func.count(Order.id)).group_by(Order.status)
        ).all()
    )
    pending_appointments = db.session.scalar(
        select(func.count(Appointment.id)).where(
            and_(Appointment.status == "pending", Appointment.state == "active")
        )
    )
    awaiting_feedback = db.session.scalar(
        select(func.count(Order.id))
        .outerjoin(Feedback, Feedback.order_id == Order.id)
        .where(and_(Order.status == "Finished", Feedback.id.is_(None)))
    )
    return {
        "pending_orders": sum(counts.get(status, 0) for status in OPEN_STATUSES),
        "finished_orders": counts.get("Finished", 0),
        "cancelled_orders": counts.get("Cancelled", 0),
        "by_status": {status: counts.get(status, 0) for status in ORDER_STATUSES},
        "pending_appointments": pending_appointments or 0,
        "finished_without_feedback": awaiting_feedback or 0,
    }
