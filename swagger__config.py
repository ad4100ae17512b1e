"""
Swagger/OpenAPI configuration for the Tailor Shop Backend API
"""

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec",
            "route": "/apispec.json",
            "rule_filter": lambda rule: True,
            "model_filter": lambda tag: True,
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/api/docs",
}

SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Tailor Shop Backend API",
        "description": "REST API for tailoring appointments, the production order pipeline, customer notifications and feedback",
        "version": "1.0.0",
    },
    "host": "",
    "basePath": "/api",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": 'JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
        }
    },
    "security": [{"Bearer": []}],
    "tags": [
        {"name": "Authentication", "description": "Customer registration and login"},
        {"name": "Appointments", "description": "Slot availability and booking"},
        {"name": "Admin", "description": "Appointment review"},
        {"name": "Orders", "description": "Order pipeline and queue"},
        {"name": "Notifications", "description": "In-app notifications"},
        {"name": "Feedback", "description": "Post-completion feedback"},
        {"name": "Services", "description": "Service types and down payments"},
    ],
    "definitions": {
        "Error": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "error"},
                "message": {"type": "string"},
                "errors": {"type": "object"},
            },
        },
        "Success": {
            "type": "object",
            "properties": {
                "status": {"type": "string", "example": "success"},
                "message": {"type": "string"},
            },
        },
        "Appointment": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "service_type": {"type": "string", "example": "Custom Tailoring"},
                "sizes": {"type": "object", "example": {"M": 2, "L": 1}},
                "total_quantity": {"type": "integer", "example": 3},
                "appointment_date": {"type": "string", "example": "2025-06-10"},
                "appointment_time": {"type": "string", "example": "09:00"},
                "status": {"type": "string", "enum": ["pending", "accepted", "rejected"]},
                "state": {"type": "string", "enum": ["active", "cancelled"]},
                "payment_proof": {"type": "string"},
                "design_image": {"type": "string"},
                "refund_image": {"type": "string"},
            },
        },
        "Order": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "appointment_id": {"type": "integer"},
                "queue_number": {"type": "integer"},
                "status": {
                    "type": "string",
                    "enum": ["Pending", "Ready to Check", "Completed", "Finished", "Cancelled"],
                },
                "handled": {"type": "boolean"},
                "total_amount": {"type": "number", "format": "float"},
                "scheduled_at": {"type": "string", "format": "date-time"},
            },
        },
        "Notification": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "type": {"type": "string", "example": "ready_to_check"},
                "title": {"type": "string"},
                "body": {"type": "string"},
                "data": {"type": "object"},
                "read_at": {"type": "string", "format": "date-time"},
            },
        },
        "Feedback": {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "order_id": {"type": "integer"},
                "rating": {"type": "integer", "minimum": 1, "maximum": 5},
                "comment": {"type": "string"},
                "admin_response": {"type": "string"},
                "admin_checked": {"type": "boolean"},
            },
        },
    },
}
