"""
Slot availability for the shop's single daily calendar.

The bookable grid is every half hour from 08:00 to 20:00 with the lunch
break (12:00 and 12:30) removed. A slot is held by a row in ``slot_claims``;
the unique (date, time) index on that table is the final arbiter when two
requests race for the same slot.
"""
import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.errors import ConflictError, ValidationError
from app.extensions import db
from app.models import Order, SlotClaim

OPENING_TIME = datetime.time(8, 0)
CLOSING_TIME = datetime.time(20, 0)
SLOT_INTERVAL = datetime.timedelta(minutes=30)
LUNCH_BREAK = (datetime.time(12, 0), datetime.time(12, 30))

SLOT_TAKEN_MESSAGE = "This time slot is already taken."


def build_slot_grid(opening=OPENING_TIME, closing=CLOSING_TIME, interval=SLOT_INTERVAL):
    slots = []
    current = datetime.datetime.combine(datetime.date.min, opening)
    end = datetime.datetime.combine(datetime.date.min, closing)

    while current <= end:
        if current.time() not in LUNCH_BREAK:
            slots.append(current.time())
        current += interval

    return tuple(slots)


SLOT_GRID = build_slot_grid()


def _normalize(value):
    return value.replace(second=0, microsecond=0)


def is_grid_time(value):
    return value is not None and value.second == 0 and _normalize(value) in SLOT_GRID


def available_slots(day, reserved, today=None):
    """Grid times on ``day`` that are not in ``reserved``. Past days have none."""
    today = today or datetime.date.today()
    if day < today:
        return []

    taken = {_normalize(t) for t in reserved}
    return [slot for slot in SLOT_GRID if slot not in taken]


def reserved_times(day, exclude_appointment_id=None):
    """Currently held times on ``day``, optionally ignoring one appointment's own claims."""
    query = select(SlotClaim.slot_time).where(SlotClaim.slot_date == day)
    if exclude_appointment_id is not None:
        query = query.where(SlotClaim.appointment_id != exclude_appointment_id)

    return set(db.session.scalars(query).all())


def appointment_for_exclusion(exclude_order_id=None, exclude_appointment_id=None):
    """Both exclusion parameters resolve to the appointment whose claims are ignored."""
    if exclude_appointment_id is not None:
        return exclude_appointment_id
    if exclude_order_id is not None:
        order = db.session.get(Order, exclude_order_id)
        return order.appointment_id if order else None
    return None


def slots_for_day(day, exclude_order_id=None, exclude_appointment_id=None, today=None):
    excluded = appointment_for_exclusion(exclude_order_id, exclude_appointment_id)
    return available_slots(day, reserved_times(day, excluded), today=today)


def ensure_bookable(day, slot_time, exclude_appointment_id=None, today=None, field="appointment_time"):
    """Validate a requested (day, time) pair and make sure nobody else holds it."""
    today = today or datetime.date.today()
    if day < today:
        raise ValidationError.for_field(
            field.replace("time", "date"), "The date must be today or a future date."
        )
    if not is_grid_time(slot_time):
        raise ValidationError.for_field(
            field, "The selected time is not a bookable slot."
        )

    taken = reserved_times(day, exclude_appointment_id)
    if _normalize(slot_time) not in available_slots(day, taken, today=today):
        raise ConflictError(SLOT_TAKEN_MESSAGE)


def claim_slot(appointment, kind, day, slot_time):
    """
    Hold (day, slot_time) for ``appointment`` under ``kind``.

    An appointment keeps at most one claim per kind, so re-claiming moves the
    existing row. When the slot is already held by the same appointment under
    another kind, that row is re-pointed to the new kind.
    """
    slot_time = _normalize(slot_time)
    existing = next((c for c in appointment.claims if c.kind == kind), None)

    holder = db.session.scalar(
        select(SlotClaim).where(
            SlotClaim.slot_date == day, SlotClaim.slot_time == slot_time
        )
    )
    if holder is not None and holder.appointment_id != appointment.id:
        raise ConflictError(SLOT_TAKEN_MESSAGE)

    if holder is not None:
        if existing is not None and existing is not holder:
            appointment.claims.remove(existing)
        holder.kind = kind
    elif existing is not None:
        existing.slot_date = day
        existing.slot_time = slot_time
    else:
        appointment.claims.append(
            SlotClaim(kind=kind, slot_date=day, slot_time=slot_time)
        )

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(SLOT_TAKEN_MESSAGE)


def release_claims(appointment, kinds=None):
    for claim in list(appointment.claims):
        if kinds is None or claim.kind in kinds:
            appointment.claims.remove(claim)
    db.session.flush()
