# Request value coercion shared by the blueprints and services
import datetime
import json
from decimal import Decimal, InvalidOperation

from app.errors import ValidationError


def parse_date(value, field, required=True):
    if value in (None, ""):
        if required:
            raise ValidationError.for_field(field, f"The {field} field is required.")
        return None
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError.for_field(
            field, f"The {field} must be a date in YYYY-MM-DD format."
        )


def parse_time(value, field, required=True):
    if value in (None, ""):
        if required:
            raise ValidationError.for_field(field, f"The {field} field is required.")
        return None
    if isinstance(value, datetime.time):
        return value
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.datetime.strptime(str(value), fmt).time()
        except ValueError:
            continue
    raise ValidationError.for_field(field, f"The {field} must be a time in HH:MM format.")


def parse_sizes(value):
    """Size map is ``{label: quantity}``; multipart bodies send it as a JSON string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValidationError.for_field("sizes", "The sizes must be a JSON object.")

    if not isinstance(value, dict) or not value:
        raise ValidationError.for_field(
            "sizes", "The sizes field must be a non-empty map of size to quantity."
        )

    sizes = {}
    for label, quantity in value.items():
        if isinstance(quantity, bool):
            quantity = None
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            quantity = None
        if quantity is None or quantity < 1:
            raise ValidationError.for_field(
                "sizes", f"Quantity for size '{label}' must be a positive integer."
            )
        sizes[str(label)] = quantity
    return sizes


def parse_total_quantity(value, sizes):
    expected = sum(sizes.values())
    if value in (None, ""):
        return expected
    try:
        total = int(value)
    except (TypeError, ValueError):
        raise ValidationError.for_field(
            "total_quantity", "The total quantity must be an integer."
        )
    if total != expected:
        raise ValidationError.for_field(
            "total_quantity",
            f"Total quantity ({total}) must equal the sum of all size quantities ({expected}).",
        )
    return total


def parse_amount(value, field):
    if value in (None, ""):
        raise ValidationError.for_field(field, f"The {field} field is required.")
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValidationError.for_field(field, f"The {field} must be a number.")
    if amount < 0:
        raise ValidationError.for_field(field, f"The {field} must be at least 0.")
    return amount


def format_time(value):
    return value.strftime("%H:%M") if value else None


def parse_flag(value, field):
    """Booleans arrive as JSON true/false or as form strings like "true"/"0"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    raise ValidationError.for_field(field, f"The {field} field must be true or false.")
