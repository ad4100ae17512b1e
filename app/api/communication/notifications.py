from flask import Blueprint, jsonify, request

from app.errors import ValidationError
from app.extensions import db
from app.services import notification_service
from app.services.email_service import email_service
from app.utils.auth import admin_required, current_user, login_required
from ..serializers import serialize_notification

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api")


@notifications_bp.route("/notifications", methods=["GET"])
@login_required
def get_notifications():
    """
    Customer notifications
    ---
    tags:
      - Notifications
    responses:
      200:
        description: The caller's notifications, newest first, with the unread count
    """
    notifications = notification_service.list_for_user(current_user().id)
    return (
        jsonify(
            {
                "status": "success",
                "unread_count": sum(1 for n in notifications if n.read_at is None),
                "notifications": [serialize_notification(n) for n in notifications],
            }
        ),
        200,
    )


@notifications_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH"])
@login_required
def mark_notification_read(notification_id):
    notification = notification_service.mark_read(notification_id, current_user().id)
    db.session.commit()
    return jsonify({"status": "success", "notification": serialize_notification(notification)}), 200


@notifications_bp.route("/notifications/read-all", methods=["PATCH"])
@login_required
def mark_all_notifications_read():
    updated = notification_service.mark_all_read(current_user().id)
    db.session.commit()
    return jsonify({"status": "success", "updated": updated}), 200


@notifications_bp.route("/notifications/appointments/unviewed-count", methods=["GET"])
@admin_required
def unviewed_appointment_count():
    """
    GET /api/notifications/appointments/unviewed-count
    Purpose: Number of booked appointments the admin has not opened yet.
    """
    return (
        jsonify({"status": "success", "count": notification_service.unviewed_appointment_count()}),
        200,
    )


@notifications_bp.route(
    "/notifications/appointments/<int:appointment_id>/viewed", methods=["PATCH"]
)
@admin_required
def mark_appointment_viewed(appointment_id):
    updated = notification_service.mark_appointment_viewed(appointment_id)
    db.session.commit()
    return jsonify({"status": "success", "updated": updated}), 200


@notifications_bp.route("/notifications/appointments/view-states", methods=["GET"])
@admin_required
def appointment_view_states():
    states = notification_service.appointment_view_states()
    return (
        jsonify(
            {
                "status": "success",
                "view_states": {str(k): v for k, v in states.items()},
            }
        ),
        200,
    )


@notifications_bp.route("/admin/notifications", methods=["GET"])
@admin_required
def get_admin_notifications():
    notifications = notification_service.list_for_admin()
    return (
        jsonify(
            {
                "status": "success",
                "unviewed_count": sum(1 for n in notifications if not n.is_viewed),
                "notifications": [serialize_notification(n) for n in notifications],
            }
        ),
        200,
    )


@notifications_bp.route("/admin/notifications/unviewed-count", methods=["GET"])
@admin_required
def admin_unviewed_count():
    return jsonify({"status": "success", "count": notification_service.admin_unviewed_count()}), 200


@notifications_bp.route("/admin/notifications/<int:notification_id>/viewed", methods=["PATCH"])
@admin_required
def mark_admin_notification_viewed(notification_id):
    notification = notification_service.mark_admin_viewed(notification_id)
    db.session.commit()
    return jsonify({"status": "success", "notification": serialize_notification(notification)}), 200


@notifications_bp.route("/admin/notifications/test-email", methods=["POST"])
@admin_required
def test_email():
    """
    Test email configuration
    ---
    tags:
      - Notifications
    summary: Send a test email to verify Resend integration
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
          properties:
            email:
              type: string
              format: email
              example: test@example.com
    responses:
      200:
        description: Test email sent (or skipped in test mode)
      422:
        description: Email is required
      500:
        description: Email service error
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    if not email:
        raise ValidationError.for_field("email", "The email field is required.")

    result = email_service.send_test_email(email)
    if result["success"]:
        return (
            jsonify(
                {
                    "status": "success",
                    "message": result["message"],
                    "email_id": result.get("email_id"),
                }
            ),
            200,
        )
    return jsonify({"status": "error", "message": result["error"]}), 500
