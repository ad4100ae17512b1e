from flask import Blueprint, jsonify, request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, NotFoundError, ValidationError
from app.extensions import db
from app.models import ServiceType
from app.utils.auth import admin_required
from app.utils.parsing import parse_amount
from ..serializers import serialize_service_type

service_types_bp = Blueprint("service_types", __name__, url_prefix="/api/service-types")


def _get_service_type(service_type_id):
    service_type = db.session.get(ServiceType, service_type_id)
    if not service_type:
        raise NotFoundError("Service type not found")
    return service_type


def _commit_unique():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A service type with this name already exists.")


@service_types_bp.route("", methods=["GET"])
def list_service_types():
    """
    Service types and their required down payment
    ---
    tags:
      - Services
    security: []
    responses:
      200:
        description: All service types by name
    """
    service_types = db.session.scalars(select(ServiceType).order_by(ServiceType.name)).all()
    return (
        jsonify(
            {
                "status": "success",
                "service_types": [serialize_service_type(s) for s in service_types],
            }
        ),
        200,
    )


@service_types_bp.route("", methods=["POST"])
@admin_required
def create_service_type():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError.for_field("name", "The name field is required.")

    service_type = ServiceType(
        name=name,
        downpayment_amount=parse_amount(data.get("downpayment_amount"), "downpayment_amount"),
    )
    db.session.add(service_type)
    _commit_unique()

    return jsonify({"status": "success", "service_type": serialize_service_type(service_type)}), 201


@service_types_bp.route("/<int:service_type_id>", methods=["PUT"])
@admin_required
def update_service_type(service_type_id):
    service_type = _get_service_type(service_type_id)
    data = request.get_json(silent=True) or {}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError.for_field("name", "The name field is required.")
        service_type.name = name
    if "downpayment_amount" in data:
        service_type.downpayment_amount = parse_amount(
            data.get("downpayment_amount"), "downpayment_amount"
        )
    _commit_unique()

    return jsonify({"status": "success", "service_type": serialize_service_type(service_type)}), 200


@service_types_bp.route("/<int:service_type_id>", methods=["DELETE"])
@admin_required
def delete_service_type(service_type_id):
    service_type = _get_service_type(service_type_id)
    db.session.delete(service_type)
    db.session.commit()
    return jsonify({"status": "success", "message": "Service type deleted"}), 200
