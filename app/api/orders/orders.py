# Order pipeline, queue and dashboard endpoints
from flask import Blueprint, current_app, jsonify, request

from app.errors import ValidationError
from app.extensions import db
from app.models import ORDER_STATUSES
from app.services import order_service
from app.utils.auth import admin_required, current_user, customer_required
from app.utils.parsing import format_time, parse_date
from app.utils.s3_utils import image_from_request
from ..serializers import serialize_order, serialize_queue_entry

orders_bp = Blueprint("orders", __name__, url_prefix="/api")


def _json_body():
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@orders_bp.route("/orders", methods=["GET"])
@admin_required
def list_orders():
    """
    List orders
    ---
    tags:
      - Orders
    parameters:
      - in: query
        name: status
        type: string
        required: false
        description: Filter by one status; defaults to all open orders
    responses:
      200:
        description: Orders by queue number
    """
    status = request.args.get("status")
    if status and status not in ORDER_STATUSES:
        raise ValidationError.for_field("status", f"Unknown status '{status}'.")

    orders = order_service.list_orders(status)
    return (
        jsonify(
            {
                "status": "success",
                "count": len(orders),
                "orders": [serialize_order(o) for o in orders],
            }
        ),
        200,
    )


@orders_bp.route("/orders/history", methods=["GET"])
@admin_required
def order_history():
    """Finished and cancelled orders, most recently updated first."""
    orders = order_service.order_history()
    return jsonify({"status": "success", "orders": [serialize_order(o) for o in orders]}), 200


@orders_bp.route("/me/orders", methods=["GET"])
@customer_required
def my_orders():
    orders = order_service.orders_for_customer(current_user().id)
    return jsonify({"status": "success", "orders": [serialize_order(o) for o in orders]}), 200


@orders_bp.route("/orders/<int:order_id>/status", methods=["PATCH"])
@admin_required
def update_order_status(order_id):
    """
    Advance an order through the pipeline
    ---
    tags:
      - Orders
    parameters:
      - in: path
        name: order_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status:
              type: string
              enum: ["Ready to Check", "Completed", "Finished", "Cancelled"]
            check_appointment_date:
              type: string
              description: Required for Ready to Check
            check_appointment_time:
              type: string
              description: Required for Ready to Check
            total_amount:
              type: number
              description: Required for Completed
            pickup_appointment_date:
              type: string
              description: Required for Completed
            pickup_appointment_time:
              type: string
              description: Required for Completed
            refund_image:
              type: string
              description: Required for Cancelled
    responses:
      200:
        description: Order updated
      409:
        description: Transition not allowed or slot taken
      422:
        description: Missing transition data
    """
    order = order_service.get_order(order_id)
    data = _json_body()
    target = data.get("status")
    if not target:
        raise ValidationError.for_field("status", "The status field is required.")

    if target == "Cancelled":
        data["refund_image"] = image_from_request("refund_image", "refunds")

    previous = order.status
    order_service.change_status(order, target, data)
    db.session.commit()

    current_app.logger.info(f"Order {order_id} moved from {previous} to {order.status}")
    return (
        jsonify(
            {
                "status": "success",
                "message": f"Order status updated to {order.status}",
                "order": serialize_order(order),
            }
        ),
        200,
    )


@orders_bp.route("/orders/<int:order_id>/handled", methods=["PATCH"])
@admin_required
def update_handled(order_id):
    """
    PATCH /api/orders/<order_id>/handled
    Purpose: Mark an order as picked up by the shop. Once handled the
             customer can no longer cancel, and the flag cannot be cleared.
    """
    order = order_service.get_order(order_id)
    data = _json_body()
    order_service.set_handled(order, data.get("handled", True))
    db.session.commit()

    return jsonify({"status": "success", "order": serialize_order(order)}), 200


@orders_bp.route("/orders/<int:order_id>/sizes-quantity", methods=["PATCH"])
@admin_required
def update_sizes_quantity(order_id):
    order = order_service.get_order(order_id)
    data = _json_body()
    order_service.update_sizes(order, data.get("sizes"), data.get("total_quantity"))
    db.session.commit()

    return (
        jsonify(
            {
                "status": "success",
                "message": "Sizes and quantity updated",
                "order": serialize_order(order),
            }
        ),
        200,
    )


@orders_bp.route("/admin/orders/<int:order_id>/refund", methods=["POST"])
@admin_required
def refund_order(order_id):
    """
    POST /api/admin/orders/<order_id>/refund
    Purpose: Attach refund evidence to an order the customer cancelled.
    """
    order = order_service.get_order(order_id)
    refund_image = image_from_request("refund_image", "refunds")
    order_service.refund(order, refund_image)
    db.session.commit()

    return (
        jsonify({"status": "success", "message": "Refund processed", "order": serialize_order(order)}),
        200,
    )


@orders_bp.route("/orders/recalculate-queue", methods=["POST"])
@admin_required
def recalculate_queue():
    """
    Renumber the queue
    ---
    tags:
      - Orders
    responses:
      200:
        description: Every non-cancelled order renumbered 1..n in creation order
    """
    result = order_service.recalculate_queue_numbers()
    db.session.commit()

    return jsonify({"status": "success", "message": "Queue numbers recalculated", **result}), 200


@orders_bp.route("/orders/booked-times", methods=["GET"])
@admin_required
def booked_times():
    """
    GET /api/orders/booked-times?date=YYYY-MM-DD&order_id=<id>
    Purpose: Times already held on a day, used when picking check-in and
             pickup slots. The given order's own slots are left out.
    """
    day = parse_date(request.args.get("date"), "date")
    order_id = request.args.get("order_id", type=int)
    times = order_service.booked_times(day, exclude_order_id=order_id)

    return (
        jsonify(
            {
                "status": "success",
                "date": day.isoformat(),
                "booked_times": [format_time(t) for t in times],
            }
        ),
        200,
    )


@orders_bp.route("/orders/today-queue", methods=["GET"])
@admin_required
def today_queue():
    """
    GET /api/orders/today-queue
    Purpose: Today's open orders in visit order, with the customer being
             served now and the one after.
    """
    queue = order_service.today_queue()

    def entry(item):
        return serialize_queue_entry(*item) if item else None

    return (
        jsonify(
            {
                "status": "success",
                "has_queue": bool(queue["entries"]),
                "current_date": queue["current_date"].isoformat(),
                "current_time": format_time(queue["current_time"]),
                "current_customer": entry(queue["current"]),
                "next_customer": entry(queue["next"]),
                "all_orders": [entry(item) for item in queue["entries"]],
            }
        ),
        200,
    )


@orders_bp.route("/orders/stats", methods=["GET"])
@admin_required
def order_stats():
    return jsonify({"status": "success", "stats": order_service.order_stats()}), 200
