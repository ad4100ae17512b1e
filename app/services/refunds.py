from app.errors import ConflictError, ValidationError
from app.services import notification_service

REFUND_TITLE = (
    "Your down payment for the cancelled appointment/order has been "
    "successfully refunded by the admin."
)


def attach_refund(appointment, refund_image):
    """Store refund evidence for a cancelled booking and tell the customer."""
    if not refund_image:
        raise ValidationError.for_field(
            "refund_image", "The refund image field is required."
        )
    if appointment.refund_image:
        raise ConflictError("A refund has already been processed for this appointment.")

    appointment.refund_image = refund_image
    notification_service.dispatch(
        appointment.user,
        "refund_processed",
        REFUND_TITLE,
        "Please check the attached proof of refund.",
        {
            "appointment_id": appointment.id,
            "order_id": appointment.order.id if appointment.order else None,
            "refund_image": refund_image,
        },
    )
