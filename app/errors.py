"""Domain errors raised by the services layer and their HTTP rendering."""
from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException

from app.extensions import db
from app.utils.s3_utils import discard_request_uploads


class ServiceError(Exception):
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors or {}

    def to_dict(self):
        payload = {"status": "error", "message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(ServiceError):
    status_code = 422
    default_message = "The given data was invalid."

    @classmethod
    def for_field(cls, field, message):
        return cls(message, errors={field: [message]})


class ConflictError(ServiceError):
    status_code = 409
    default_message = "The request conflicts with the current state."


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Resource not found"


class AuthenticationError(ServiceError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(ServiceError):
    status_code = 403
    default_message = "Unauthorized"


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        db.session.rollback()
        discard_request_uploads()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return (
            jsonify({"status": "error", "message": error.description}),
            error.code,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        discard_request_uploads()
        current_app.logger.exception(f"Unhandled error: {error}")
        return (
            jsonify(
                {
                    "status": "error",
                    "message": "Internal server error",
                    "details": str(error),
                }
            ),
            500,
        )
