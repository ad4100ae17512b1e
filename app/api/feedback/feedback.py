# Post-completion customer feedback and admin replies
from flask import Blueprint, jsonify, request

from app.extensions import db
from app.services import feedback_service
from app.utils.auth import admin_required, current_user, customer_required
from ..serializers import serialize_feedback, serialize_order

feedback_bp = Blueprint("feedback", __name__, url_prefix="/api/feedback")


@feedback_bp.route("/my-pending", methods=["GET"])
@customer_required
def my_pending_feedback():
    """
    GET /api/feedback/my-pending
    Purpose: The customer's latest finished order still waiting for feedback,
             so the client can prompt for a rating. ``order`` is null when
             there is nothing to rate.
    """
    order = feedback_service.pending_feedback_for(current_user().id)
    return (
        jsonify(
            {
                "status": "success",
                "has_pending": order is not None,
                "order": serialize_order(order) if order else None,
            }
        ),
        200,
    )


@feedback_bp.route("", methods=["POST"])
@customer_required
def submit_feedback():
    """
    Leave feedback for a finished order
    ---
    tags:
      - Feedback
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - order_id
            - rating
          properties:
            order_id:
              type: integer
            rating:
              type: integer
              minimum: 1
              maximum: 5
            comment:
              type: string
    responses:
      201:
        description: Feedback stored
      409:
        description: Order not finished or feedback already given
      422:
        description: Rating out of range
    """
    data = request.get_json(silent=True) or {}
    feedback = feedback_service.submit(
        current_user(), data.get("order_id"), data.get("rating"), data.get("comment")
    )
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Thank you for your feedback!",
                "feedback": serialize_feedback(feedback),
            }
        ),
        201,
    )


@feedback_bp.route("", methods=["GET"])
@admin_required
def list_feedback():
    feedback = feedback_service.list_all()
    return jsonify({"status": "success", "feedback": [serialize_feedback(f) for f in feedback]}), 200


@feedback_bp.route("/<int:feedback_id>/respond", methods=["PATCH"])
@admin_required
def respond_to_feedback(feedback_id):
    """
    PATCH /api/feedback/<feedback_id>/respond
    Purpose: Reply to (or just acknowledge) a customer's feedback. Allowed once.
    """
    feedback = feedback_service.get_feedback(feedback_id)
    data = request.get_json(silent=True) or {}
    feedback_service.respond(feedback, data.get("admin_response"))
    db.session.commit()

    return jsonify({"status": "success", "feedback": serialize_feedback(feedback)}), 200


@feedback_bp.route("/<int:feedback_id>", methods=["DELETE"])
@admin_required
def delete_feedback(feedback_id):
    feedback = feedback_service.get_feedback(feedback_id)
    feedback_service.delete(feedback)
    db.session.commit()
    return jsonify({"status": "success", "message": "Feedback deleted"}), 200
