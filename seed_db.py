# Create the schema and load reference data: python seed_db.py
import os

import bcrypt
from decimal import Decimal
from sqlalchemy import select

from app.extensions import db
from app.models import Base, ServiceType, User

SERVICE_TYPES = [
    ("Jersey Production", Decimal("500.00")),
    ("Custom Tailoring (eg. Uniforms)", Decimal("500.00")),
    ("Repairs/Alterations (eg. incl. zippers, buttons, size alteration etc.)", Decimal("100.00")),
]


def seed_service_types():
    """Insert or update the default service types. Call inside an app context."""
    for name, downpayment in SERVICE_TYPES:
        service_type = db.session.scalar(select(ServiceType).where(ServiceType.name == name))
        if service_type:
            service_type.downpayment_amount = downpayment
        else:
            db.session.add(ServiceType(name=name, downpayment_amount=downpayment))
    db.session.commit()


def seed_admin(email, password, name="Shop Admin"):
    admin = db.session.scalar(select(User).where(User.email == email))
    if admin:
        return admin

    admin = User(
        name=name,
        email=email,
        password_hash=bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()),
        role="ADMIN",
    )
    db.session.add(admin)
    db.session.commit()
    return admin


if __name__ == "__main__":
    from main import create_app

    app = create_app()
    with app.app_context():
        Base.metadata.create_all(bind=db.engine)
        seed_service_types()
        print("Service types seeded")

        admin_email = os.environ.get("ADMIN_EMAIL")
        admin_password = os.environ.get("ADMIN_PASSWORD")
        if admin_email and admin_password:
            seed_admin(admin_email, admin_password)
            print(f"Admin account ready: {admin_email}")
        else:
            print("ADMIN_EMAIL / ADMIN_PASSWORD not set, skipping admin account")
