# Book, reschedule and cancel appointments; query open slots
from flask import Blueprint, jsonify, request

from app.extensions import db
from app.services import appointment_service, slots
from app.utils.auth import current_user, customer_required
from app.utils.parsing import format_time, parse_date
from app.utils.s3_utils import image_from_request
from ..serializers import serialize_appointment

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api")


def _request_data():
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def _optional_int(name):
    value = request.args.get(name)
    if value in (None, ""):
        return None
    try:
        return int(value)
    except ValueError:
        return None


@appointments_bp.route("/appointments/available-slots", methods=["GET"])
def get_available_slots():
    """
    Open appointment slots for a day
    ---
    tags:
      - Appointments
    parameters:
      - in: query
        name: date
        type: string
        required: true
        description: Day to check (YYYY-MM-DD)
      - in: query
        name: exclude_order_id
        type: integer
        required: false
        description: Ignore the slots held by this order (rescheduling)
      - in: query
        name: exclude_appointment_id
        type: integer
        required: false
        description: Ignore the slots held by this appointment (rescheduling)
    responses:
      200:
        description: Available HH:MM slots, empty for past days
      422:
        description: Missing or malformed date
    """
    day = parse_date(request.args.get("date"), "date")
    available = slots.slots_for_day(
        day,
        exclude_order_id=_optional_int("exclude_order_id"),
        exclude_appointment_id=_optional_int("exclude_appointment_id"),
    )
    return (
        jsonify(
            {
                "status": "success",
                "date": day.isoformat(),
                "available_slots": [format_time(t) for t in available],
            }
        ),
        200,
    )


@appointments_bp.route("/appointments", methods=["POST"])
@customer_required
def book_appointment():
    """
    Book a new appointment
    ---
    tags:
      - Appointments
    consumes:
      - application/json
      - multipart/form-data
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - service_type
            - sizes
            - appointment_date
            - appointment_time
            - payment_proof
          properties:
            service_type:
              type: string
              example: Custom Tailoring
            sizes:
              type: object
              example: {"M": 2, "L": 1}
            total_quantity:
              type: integer
              example: 3
            appointment_date:
              type: string
              example: "2025-06-10"
            appointment_time:
              type: string
              example: "09:00"
            preferred_due_date:
              type: string
            notes:
              type: string
            payment_proof:
              type: string
              description: Stored image reference, or upload a file under the same name
            design_image:
              type: string
    responses:
      201:
        description: Appointment booked and pending admin review
      409:
        description: Slot already taken
      422:
        description: Validation failed
    """
    data = _request_data()
    payment_proof = image_from_request("payment_proof", "payment-proofs")
    design_image = image_from_request("design_image", "designs")

    appointment, service_type = appointment_service.book(
        current_user(), data, payment_proof, design_image
    )
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Appointment booked successfully",
                "appointment": serialize_appointment(appointment),
                "required_downpayment": float(service_type.downpayment_amount),
            }
        ),
        201,
    )


@appointments_bp.route("/me/appointments", methods=["GET"])
@customer_required
def get_my_appointments():
    """
    GET /api/me/appointments
    Purpose: Every appointment of the logged-in customer, newest slot first,
             each with its order (if accepted).
    """
    appointments = appointment_service.list_for_customer(current_user().id)
    return (
        jsonify(
            {
                "status": "success",
                "appointments": [serialize_appointment(a) for a in appointments],
            }
        ),
        200,
    )


@appointments_bp.route("/appointments/<int:appointment_id>/details", methods=["PATCH"])
@customer_required
def update_appointment_details(appointment_id):
    """
    PATCH /api/appointments/<appointment_id>/details
    Purpose: Reschedule an appointment and/or edit its notes and due date.

    Behavior:
    - Only while the appointment is pending or accepted and still active
    - The appointment's own slot never counts as taken
    - 409 if the new slot is held by someone else
    """
    appointment = appointment_service.get_owned(appointment_id, current_user())
    appointment_service.reschedule(appointment, current_user(), _request_data())
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Appointment details updated successfully",
                "appointment": serialize_appointment(appointment),
            }
        ),
        200,
    )


@appointments_bp.route("/appointments/<int:appointment_id>/cancel", methods=["DELETE"])
@customer_required
def cancel_appointment(appointment_id):
    """
    DELETE /api/appointments/<appointment_id>/cancel
    Purpose: Customer cancels a pending appointment, or an accepted one whose
             order has not been picked up by the shop yet.
    """
    appointment = appointment_service.get_owned(appointment_id, current_user())
    appointment_service.cancel(appointment, current_user())
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Appointment cancelled successfully",
                "appointment": serialize_appointment(appointment),
            }
        ),
        200,
    )
