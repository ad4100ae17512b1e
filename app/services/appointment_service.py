"""
Appointment lifecycle.

``status`` (pending / accepted / rejected) is the admin's decision and
``state`` (active / cancelled) is the customer-facing lifecycle. Accepting
creates the linked order; rejecting and cancelling both free the slot.
"""
import datetime

from sqlalchemy import select

from app.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import Appointment, ServiceType
from app.services import notification_service, order_service, slots
from app.services.refunds import attach_refund
from app.utils.parsing import (
    format_time,
    parse_date,
    parse_sizes,
    parse_time,
    parse_total_quantity,
)

BOOKED_TITLE = "You have successfully booked an appointment!"
BOOKED_BODY = (
    "Please wait while the admin reviews your appointment request. "
    "Your order will be processed once it has been approved."
)


def get_appointment(appointment_id):
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def get_owned(appointment_id, user):
    appointment = get_appointment(appointment_id)
    if appointment.user_id != user.id:
        raise AuthorizationError("This appointment belongs to another customer")
    return appointment


def find_service_type(name):
    if not name:
        raise ValidationError.for_field("service_type", "The service type field is required.")
    service_type = db.session.scalar(select(ServiceType).where(ServiceType.name == name))
    if not service_type:
        raise ValidationError.for_field("service_type", f"Unknown service type '{name}'.")
    return service_type


def _slot_payload(appointment):
    return {
        "appointment_id": appointment.id,
        "appointment_date": appointment.appointment_date.isoformat(),
        "appointment_time": format_time(appointment.appointment_time),
    }


def book(customer, data, payment_proof, design_image=None, today=None):
    """Create a pending appointment and hold its slot in one transaction."""
    today = today or datetime.date.today()
    service_type = find_service_type(data.get("service_type"))
    sizes = parse_sizes(data.get("sizes"))
    total_quantity = parse_total_quantity(data.get("total_quantity"), sizes)
    appointment_date = parse_date(data.get("appointment_date"), "appointment_date")
    appointment_time = parse_time(data.get("appointment_time"), "appointment_time")
    preferred_due_date = parse_date(
        data.get("preferred_due_date"), "preferred_due_date", required=False
    )

    if not payment_proof:
        raise ValidationError.for_field(
            "payment_proof", "Proof of down payment is required."
        )
    if preferred_due_date and preferred_due_date < appointment_date:
        raise ValidationError.for_field(
            "preferred_due_date", "The preferred due date must be on or after the appointment date."
        )

    slots.ensure_bookable(appointment_date, appointment_time, today=today)

    appointment = Appointment(
        user=customer,
        service_type=service_type.name,
        sizes=sizes,
        total_quantity=total_quantity,
        notes=data.get("notes"),
        design_image=design_image,
        payment_proof=payment_proof,
        preferred_due_date=preferred_due_date,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        status="pending",
        state="active",
    )
    db.session.add(appointment)
    slots.claim_slot(appointment, "appointment", appointment_date, appointment_time)

    notification_service.dispatch(
        customer, "appointment_booked", BOOKED_TITLE, BOOKED_BODY, _slot_payload(appointment)
    )
    notification_service.dispatch_admin(
        "appointment_booked",
        "New appointment submitted",
        f"{customer.name} booked a {service_type.name} appointment.",
        dict(_slot_payload(appointment), user_id=customer.id),
    )
    return appointment, service_type


def accept(appointment):
    if appointment.state != "active":
        raise ConflictError("Cancelled appointments cannot be accepted.")
    if appointment.status != "pending":
        raise ConflictError(f"Appointment is already {appointment.status}.")

    appointment.status = "accepted"
    order = order_service.create_for_appointment(appointment)

    notification_service.dispatch(
        appointment.user,
        "appointment_accepted",
        "Your appointment has been accepted by the Admin!",
        "Your order is now being processed.",
        dict(_slot_payload(appointment), order_id=order.id, queue_number=order.queue_number),
    )
    return order


def reject(appointment, refund_image):
    if appointment.state != "active":
        raise ConflictError("Cancelled appointments cannot be rejected.")
    if appointment.status != "pending":
        raise ConflictError(f"Appointment is already {appointment.status}.")
    if not refund_image:
        raise ValidationError.for_field(
            "refund_image", "A refund image is required to reject an appointment."
        )

    appointment.status = "rejected"
    appointment.refund_image = refund_image
    slots.release_claims(appointment)

    notification_service.dispatch(
        appointment.user,
        "appointment_rejected",
        "We're sorry, unfortunately your appointment has been rejected by the admin.",
        "Your down payment has been refunded. Please see the attached proof of refund.",
        dict(
            _slot_payload(appointment),
            reason="rejected_by_admin",
            refund_image=refund_image,
        ),
    )
    return appointment


def cancel(appointment, customer):
    """Customer cancellation. Allowed until the shop starts handling the order."""
    if appointment.user_id != customer.id:
        raise AuthorizationError("This appointment belongs to another customer")
    if appointment.state != "active":
        raise ConflictError("Appointment is already cancelled.")

    order = appointment.order
    if appointment.status == "rejected":
        raise ConflictError("Rejected appointments cannot be cancelled.")
    if appointment.status == "accepted":
        if order is None or order.status != "Pending" or order.handled:
            raise ConflictError(
                "This order is already being processed and can no longer be cancelled."
            )

    appointment.state = "cancelled"
    slots.release_claims(appointment)
    if order is not None:
        order.status = "Cancelled"

    payload = dict(_slot_payload(appointment), order_id=order.id if order else None)
    notification_service.dispatch(
        customer,
        "order_cancelled",
        "You have successfully cancelled an order!",
        "Your down payment will be refunded by the admin.",
        payload,
    )
    notification_service.dispatch_admin(
        "order_cancelled",
        "Customer cancelled an appointment",
        f"{customer.name} cancelled their appointment.",
        dict(payload, user_id=customer.id),
    )
    return appointment


def process_refund(appointment, refund_image):
    order = appointment.order
    if appointment.state != "cancelled" and not (order and order.status == "Cancelled"):
        raise ConflictError("Only cancelled appointments can be refunded.")
    attach_refund(appointment, refund_image)
    return appointment


def reschedule(appointment, customer, data):
    if appointment.user_id != customer.id:
        raise AuthorizationError("This appointment belongs to another customer")
    if appointment.state != "active" or appointment.status not in ("pending", "accepted"):
        raise ConflictError("This appointment can no longer be edited.")
    order = appointment.order
    if order is not None and order.status in order_service.CLOSED_STATUSES:
        raise ConflictError(f"Cannot edit a {order.status.lower()} order.")

    new_date = parse_date(
        data.get("appointment_date", appointment.appointment_date), "appointment_date"
    )
    new_time = parse_time(
        data.get("appointment_time", appointment.appointment_time), "appointment_time"
    )
    if "preferred_due_date" in data:
        appointment.preferred_due_date = parse_date(
            data.get("preferred_due_date"), "preferred_due_date", required=False
        )
    if "notes" in data:
        appointment.notes = data.get("notes")

    due_date = appointment.preferred_due_date
    if due_date and due_date < new_date:
        raise ValidationError.for_field(
            "preferred_due_date", "The preferred due date must be on or after the appointment date."
        )

    if (new_date, new_time) != (appointment.appointment_date, appointment.appointment_time):
        slots.ensure_bookable(new_date, new_time, exclude_appointment_id=appointment.id)
        slots.claim_slot(appointment, "appointment", new_date, new_time)
        appointment.appointment_date = new_date
        appointment.appointment_time = new_time

    payload = dict(_slot_payload(appointment), order_id=order.id if order else None)
    notification_service.dispatch(
        customer,
        "order_details_updated",
        "You have successfully updated your Order Details!",
        f"Your appointment is now on {payload['appointment_date']} at {payload['appointment_time']}.",
        payload,
    )
    notification_service.dispatch_admin(
        "order_details_updated",
        "Customer updated appointment details",
        f"{customer.name} updated their appointment details.",
        dict(payload, user_id=customer.id),
    )
    return appointment


def delete(appointment):
    """Admin hard delete. The customer is told before the record disappears."""
    notification_service.dispatch(
        appointment.user,
        "appointment_rejected",
        "Your appointment has been removed by the admin.",
        "Please contact the shop if you believe this is a mistake.",
        dict(_slot_payload(appointment), reason="deleted_by_admin"),
    )
    images = [appointment.design_image, appointment.payment_proof, appointment.refund_image]
    db.session.delete(appointment)
    db.session.flush()
    return images


def list_for_admin(status=None, state=None):
    query = select(Appointment)
    if status:
        query = query.where(Appointment.status == status)
    if state:
        query = query.where(Appointment.state == state)
    return db.session.scalars(
        query.order_by(Appointment.created_at.desc(), Appointment.id.desc())
    ).all()


def list_for_customer(user_id):
    return db.session.scalars(
        select(Appointment)
        .where(Appointment.user_id == user_id)
        .order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
    ).all()
