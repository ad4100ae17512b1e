"""
Pytest configuration and shared fixtures for the tailor shop API tests.
"""
import datetime
import json
import os

import bcrypt
import pytest

os.environ.setdefault("TESTING", "True")
os.environ.setdefault("FLASK_ENV", "testing")

from main import create_app  # noqa: E402
from app.extensions import db as database  # noqa: E402
from app.models import Base, User  # noqa: E402
from app.utils.auth import issue_token  # noqa: E402
from seed_db import seed_service_types  # noqa: E402

SERVICE_TYPE = "Custom Tailoring (eg. Uniforms)"


@pytest.fixture
def app():
    """Fresh app and schema per test; in-memory SQLite unless MYSQL_TEST_URL is set."""
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": os.environ.get("MYSQL_TEST_URL", "sqlite:///:memory:"),
            "SECRET_KEY": "test-secret-key-for-testing-only",
            "NOTIFICATION_EMAILS_ENABLED": False,
            "ENABLE_SCHEDULER": False,
        }
    )

    with app.app_context():
        Base.metadata.drop_all(bind=database.engine)
        Base.metadata.create_all(bind=database.engine)
        seed_service_types()

        yield app

        database.session.remove()
        Base.metadata.drop_all(bind=database.engine)


@pytest.fixture
def db_session(app):
    return database.session


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def make_user(session, email, role="CUSTOMER", name="Test Customer", password=b"password123"):
    user = User(
        name=name,
        email=email,
        phone="0917-000-0000",
        address="123 Test St",
        password_hash=bcrypt.hashpw(password, bcrypt.gensalt(rounds=4)),
        role=role,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def customer(db_session):
    return make_user(db_session, "customer@example.com", name="Juan Dela Cruz")


@pytest.fixture
def other_customer(db_session):
    return make_user(db_session, "other@example.com", name="Maria Santos")


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", role="ADMIN", name="Shop Admin")


def bearer(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def customer_headers(customer):
    return bearer(customer)


@pytest.fixture
def other_headers(other_customer):
    return bearer(other_customer)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def future_day():
    return datetime.date.today() + datetime.timedelta(days=10)


@pytest.fixture
def booking_data(future_day):
    return {
        "service_type": SERVICE_TYPE,
        "sizes": {"M": 2, "L": 1},
        "total_quantity": 3,
        "appointment_date": future_day.isoformat(),
        "appointment_time": "09:00",
        "notes": "Team uniforms",
        "payment_proof": "payment-proofs/gcash-receipt.png",
    }


def post_json(client, url, payload, headers=None, method="post"):
    return getattr(client, method)(
        url,
        data=json.dumps(payload),
        content_type="application/json",
        headers=headers or {},
    )


@pytest.fixture
def book(client, customer_headers, booking_data):
    """Book through the API; keyword arguments override the default booking."""

    def _book(headers=None, **overrides):
        payload = dict(booking_data, **overrides)
        return post_json(client, "/api/appointments", payload, headers or customer_headers)

    return _book


@pytest.fixture
def accepted_order(client, book, admin_headers):
    """An appointment booked at 09:00 and accepted by the admin; returns the order JSON."""
    appointment = book().get_json()["appointment"]
    response = client.post(
        f"/api/admin/appointments/{appointment['id']}/accept", headers=admin_headers
    )
    assert response.status_code == 201
    return response.get_json()["order"]
