# JSON shapes returned by the blueprints
from app.utils.parsing import format_time


def _iso(value):
    return value.isoformat() if value else None


def _amount(value):
    return float(value) if value is not None else None


def serialize_user(user):
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "address": user.address,
        "role": user.role,
    }


def serialize_service_type(service_type):
    return {
        "id": service_type.id,
        "name": service_type.name,
        "downpayment_amount": _amount(service_type.downpayment_amount),
    }


def serialize_appointment(appointment, include_order=True):
    data = {
        "id": appointment.id,
        "user_id": appointment.user_id,
        "customer_name": appointment.user.name if appointment.user else None,
        "service_type": appointment.service_type,
        "sizes": appointment.sizes,
        "total_quantity": appointment.total_quantity,
        "notes": appointment.notes,
        "design_image": appointment.design_image,
        "payment_proof": appointment.payment_proof,
        "refund_image": appointment.refund_image,
        "preferred_due_date": _iso(appointment.preferred_due_date),
        "appointment_date": _iso(appointment.appointment_date),
        "appointment_time": format_time(appointment.appointment_time),
        "status": appointment.status,
        "state": appointment.state,
        "created_at": _iso(appointment.created_at),
    }
    if include_order:
        order = appointment.order
        data["order"] = serialize_order(order, include_appointment=False) if order else None
    return data


def serialize_order(order, include_appointment=True):
    data = {
        "id": order.id,
        "appointment_id": order.appointment_id,
        "queue_number": order.queue_number,
        "status": order.status,
        "handled": bool(order.handled),
        "scheduled_at": _iso(order.scheduled_at),
        "completed_at": _iso(order.completed_at),
        "finished_at": _iso(order.finished_at),
        "total_amount": _amount(order.total_amount),
        "check_appointment_date": _iso(order.check_appointment_date),
        "check_appointment_time": format_time(order.check_appointment_time),
        "pickup_appointment_date": _iso(order.pickup_appointment_date),
        "pickup_appointment_time": format_time(order.pickup_appointment_time),
        "created_at": _iso(order.created_at),
    }
    if include_appointment:
        data["appointment"] = serialize_appointment(order.appointment, include_order=False)
        data["has_feedback"] = order.feedback is not None
    return data


def serialize_notification(notification):
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "channel": notification.channel,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "data": notification.data or {},
        "read_at": _iso(notification.read_at),
        "is_viewed": bool(notification.is_viewed),
        "viewed_at": _iso(notification.viewed_at),
        "created_at": _iso(notification.created_at),
    }


def serialize_feedback(feedback):
    return {
        "id": feedback.id,
        "order_id": feedback.order_id,
        "user_id": feedback.user_id,
        "customer_name": feedback.user.name if feedback.user else None,
        "rating": feedback.rating,
        "comment": feedback.comment,
        "admin_response": feedback.admin_response,
        "admin_checked": bool(feedback.admin_checked),
        "responded_at": _iso(feedback.responded_at),
        "created_at": _iso(feedback.created_at),
    }


def serialize_queue_entry(order, slot_time):
    appointment = order.appointment
    return {
        "id": order.id,
        "queue_number": order.queue_number,
        "name": appointment.user.name if appointment.user else None,
        "service_type": appointment.service_type,
        "appointment_time": format_time(slot_time),
        "status": order.status,
    }
