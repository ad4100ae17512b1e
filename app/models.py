from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DECIMAL,
    Date,
    DateTime,
    Enum,
    ForeignKeyConstraint,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
    VARBINARY,
    func,
    text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata

APPOINTMENT_STATUSES = ("pending", "accepted", "rejected")
APPOINTMENT_STATES = ("active", "cancelled")
ORDER_STATUSES = ("Pending", "Ready to Check", "Completed", "Finished", "Cancelled")
CLAIM_KINDS = ("appointment", "check", "pickup")
NOTIFICATION_CHANNELS = ("customer", "admin")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("ix_users_email", "email", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(255), nullable=False)
    email = mapped_column(String(255), nullable=False)
    phone = mapped_column(String(32))
    address = mapped_column(String(255))
    password_hash = mapped_column(VARBINARY(72), nullable=False)
    role = mapped_column(
        Enum("CUSTOMER", "ADMIN", name="user_role"),
        nullable=False,
        server_default=text("'CUSTOMER'"),
    )
    created_at = mapped_column(DateTime, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now()
    )

    appointments: Mapped[List["Appointment"]] = relationship(
        "Appointment",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
    )
    notifications: Mapped[List["Notification"]] = relationship(
        "Notification",
        uselist=True,
        back_populates="user",
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self):
        return self.role == "ADMIN"


class ServiceType(Base):
    __tablename__ = "service_types"
    __table_args__ = (Index("ix_service_types_name", "name", unique=True),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    downpayment_amount = mapped_column(
        DECIMAL(10, 2), nullable=False, server_default=text("0")
    )
    created_at = mapped_column(DateTime, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), onupdate=func.now()
    )


class Appointment(Base):
    """A customer's request for a fitting/consultation slot.

    ``status`` is the admin decision and ``state`` the customer-facing
    lifecycle. The two are independent: a rejected appointment stays active.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_appt_user"
        ),
        Index("ix_appointments_user", "user_id"),
        Index("ix_appointments_slot", "appointment_date", "appointment_time"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    service_type = mapped_column(String(100), nullable=False)
    sizes = mapped_column(JSON, nullable=False)
    total_quantity = mapped_column(Integer, nullable=False)
    notes = mapped_column(Text)
    design_image = mapped_column(String(512))
    payment_proof = mapped_column(String(512), nullable=False)
    refund_image = mapped_column(String(512))
    preferred_due_date = mapped_column(Date)
    appointment_date = mapped_column(Date, nullable=False)
    appointment_time = mapped_column(Time, nullable=False)
    status = mapped_column(
        Enum(*APPOINTMENT_STATUSES, name="appointment_status"),
        nullable=False,
        default="pending",
    )
    state = mapped_column(
        Enum(*APPOINTMENT_STATES, name="appointment_state"),
        nullable=False,
        default="active",
    )
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    user: Mapped["User"] = relationship("User", back_populates="appointments")
    order: Mapped[Optional["Order"]] = relationship(
        "Order",
        uselist=False,
        back_populates="appointment",
        cascade="all, delete-orphan",
    )
    claims: Mapped[List["SlotClaim"]] = relationship(
        "SlotClaim",
        uselist=True,
        back_populates="appointment",
        cascade="all, delete-orphan",
    )


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            ondelete="CASCADE",
            name="fk_order_appointment",
        ),
        Index("ix_orders_appointment", "appointment_id", unique=True),
        Index("ix_orders_status", "status"),
    )

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(Integer, nullable=False)
    queue_number = mapped_column(Integer)
    status = mapped_column(
        Enum(*ORDER_STATUSES, name="order_status"),
        nullable=False,
        default="Pending",
    )
    handled = mapped_column(Boolean, nullable=False, default=False)
    scheduled_at = mapped_column(DateTime)
    completed_at = mapped_column(DateTime)
    finished_at = mapped_column(DateTime)
    total_amount = mapped_column(DECIMAL(10, 2))
    check_appointment_date = mapped_column(Date)
    check_appointment_time = mapped_column(Time)
    pickup_appointment_date = mapped_column(Date)
    pickup_appointment_time = mapped_column(Time)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="order"
    )
    feedback: Mapped[Optional["Feedback"]] = relationship(
        "Feedback",
        uselist=False,
        back_populates="order",
        cascade="all, delete-orphan",
    )


class SlotClaim(Base):
    """One held (date, time) slot. The unique index is what keeps two bookings
    from ever holding the same slot."""

    __tablename__ = "slot_claims"
    __table_args__ = (
        ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            ondelete="CASCADE",
            name="fk_claim_appointment",
        ),
        Index("ux_slot_claims_slot", "slot_date", "slot_time", unique=True),
        Index("ix_slot_claims_owner", "appointment_id", "kind"),
    )

    id = mapped_column(Integer, primary_key=True)
    appointment_id = mapped_column(Integer, nullable=False)
    kind = mapped_column(Enum(*CLAIM_KINDS, name="slot_claim_kind"), nullable=False)
    slot_date = mapped_column(Date, nullable=False)
    slot_time = mapped_column(Time, nullable=False)
    created_at = mapped_column(DateTime, server_default=text("CURRENT_TIMESTAMP"))

    appointment: Mapped["Appointment"] = relationship(
        "Appointment", back_populates="claims"
    )


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_notif_user"
        ),
        Index("ix_notifications_user", "user_id", "created_at"),
        Index("ix_notifications_channel", "channel", "is_viewed"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer)
    channel = mapped_column(
        Enum(*NOTIFICATION_CHANNELS, name="notification_channel"),
        nullable=False,
        default="customer",
    )
    type = mapped_column(String(64), nullable=False)
    title = mapped_column(String(255), nullable=False)
    body = mapped_column(Text)
    data = mapped_column(JSON)
    read_at = mapped_column(DateTime)
    is_viewed = mapped_column(Boolean, nullable=False, default=False)
    viewed_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    user: Mapped[Optional["User"]] = relationship(
        "User", back_populates="notifications"
    )


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        ForeignKeyConstraint(
            ["order_id"], ["orders.id"], ondelete="CASCADE", name="fk_feedback_order"
        ),
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_feedback_user"
        ),
        Index("ux_feedback_order", "order_id", unique=True),
        Index("ix_feedback_user", "user_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    order_id = mapped_column(Integer, nullable=False)
    user_id = mapped_column(Integer, nullable=False)
    rating = mapped_column(Integer, nullable=False)
    comment = mapped_column(Text)
    admin_response = mapped_column(Text)
    admin_checked = mapped_column(Boolean, nullable=False, default=False)
    responded_at = mapped_column(DateTime)
    created_at = mapped_column(
        DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    order: Mapped["Order"] = relationship("Order", back_populates="feedback")
    user: Mapped["User"] = relationship("User")
