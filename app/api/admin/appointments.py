# Admin review of booked appointments
from flask import Blueprint, current_app, jsonify, request

from app.extensions import db
from app.models import APPOINTMENT_STATES, APPOINTMENT_STATUSES
from app.errors import ValidationError
from app.services import appointment_service
from app.utils.auth import admin_required
from app.utils.s3_utils import discard_images, image_from_request
from ..serializers import serialize_appointment, serialize_order

admin_appointments_bp = Blueprint(
    "admin_appointments", __name__, url_prefix="/api/admin/appointments"
)


@admin_appointments_bp.route("", methods=["GET"])
@admin_required
def list_appointments():
    """
    List appointments for review
    ---
    tags:
      - Admin
    parameters:
      - in: query
        name: status
        type: string
        enum: [pending, accepted, rejected]
      - in: query
        name: state
        type: string
        enum: [active, cancelled]
    responses:
      200:
        description: Appointments, newest first
      403:
        description: Not an admin
    """
    status = request.args.get("status")
    state = request.args.get("state")
    if status and status not in APPOINTMENT_STATUSES:
        raise ValidationError.for_field("status", f"Unknown status '{status}'.")
    if state and state not in APPOINTMENT_STATES:
        raise ValidationError.for_field("state", f"Unknown state '{state}'.")

    appointments = appointment_service.list_for_admin(status=status, state=state)
    return (
        jsonify(
            {
                "status": "success",
                "count": len(appointments),
                "appointments": [serialize_appointment(a) for a in appointments],
            }
        ),
        200,
    )


@admin_appointments_bp.route("/<int:appointment_id>", methods=["GET"])
@admin_required
def get_appointment(appointment_id):
    appointment = appointment_service.get_appointment(appointment_id)
    return jsonify({"status": "success", "appointment": serialize_appointment(appointment)}), 200


@admin_appointments_bp.route("/<int:appointment_id>/accept", methods=["POST"])
@admin_required
def accept_appointment(appointment_id):
    """
    POST /api/admin/appointments/<appointment_id>/accept
    Purpose: Approve a pending appointment. Creates its order in the
             Pending state with the next queue number.
    """
    appointment = appointment_service.get_appointment(appointment_id)
    order = appointment_service.accept(appointment)
    db.session.commit()

    current_app.logger.info(
        f"Appointment {appointment_id} accepted as order {order.id} (queue #{order.queue_number})"
    )
    return (
        jsonify(
            {
                "status": "success",
                "message": "Appointment accepted and order created",
                "order": serialize_order(order),
            }
        ),
        201,
    )


@admin_appointments_bp.route("/<int:appointment_id>/reject", methods=["POST"])
@admin_required
def reject_appointment(appointment_id):
    """
    POST /api/admin/appointments/<appointment_id>/reject
    Purpose: Reject a pending appointment. Proof of the down payment refund
             (refund_image) is mandatory; the slot becomes bookable again.
    """
    appointment = appointment_service.get_appointment(appointment_id)
    refund_image = image_from_request("refund_image", "refunds")
    appointment_service.reject(appointment, refund_image)
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Appointment rejected",
                "appointment": serialize_appointment(appointment),
            }
        ),
        200,
    )


@admin_appointments_bp.route("/<int:appointment_id>/refund", methods=["POST"])
@admin_required
def refund_appointment(appointment_id):
    """
    POST /api/admin/appointments/<appointment_id>/refund
    Purpose: Attach refund evidence to an appointment the customer cancelled.
    """
    appointment = appointment_service.get_appointment(appointment_id)
    refund_image = image_from_request("refund_image", "refunds")
    appointment_service.process_refund(appointment, refund_image)
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Refund processed",
                "appointment": serialize_appointment(appointment),
            }
        ),
        200,
    )


@admin_appointments_bp.route("/<int:appointment_id>", methods=["DELETE"])
@admin_required
def delete_appointment(appointment_id):
    """
    DELETE /api/admin/appointments/<appointment_id>
    Purpose: Permanently remove an appointment together with its order,
             feedback and held slots.
    """
    appointment = appointment_service.get_appointment(appointment_id)
    images = appointment_service.delete(appointment)
    db.session.commit()

    discard_images(images)
    return jsonify({"status": "success", "message": "Appointment deleted"}), 200
