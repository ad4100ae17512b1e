import datetime

import pytest
from sqlalchemy import select

from app.models import Appointment, Notification, Order
from app.scheduler import run_queue_recalculation
from app.services import order_service
from conftest import post_json


def patch_status(client, order_id, payload, headers):
    return post_json(client, f"/api/orders/{order_id}/status", payload, headers, "patch")


def ready_payload(day, time="10:00"):
    return {
        "status": "Ready to Check",
        "check_appointment_date": day.isoformat(),
        "check_appointment_time": time,
    }


def completed_payload(day, time="14:00", amount="1500.00"):
    return {
        "status": "Completed",
        "total_amount": amount,
        "pickup_appointment_date": day.isoformat(),
        "pickup_appointment_time": time,
    }


def accept(client, appointment_id, admin_headers):
    response = client.post(f"/api/admin/appointments/{appointment_id}/accept", headers=admin_headers)
    assert response.status_code == 201
    return response.get_json()["order"]


@pytest.mark.orders
class TestOrderTransitions:
    """PATCH /api/orders/<id>/status"""

    def test_full_pipeline(self, client, accepted_order, admin_headers, future_day, db_session):
        check_day = future_day + datetime.timedelta(days=2)
        pickup_day = future_day + datetime.timedelta(days=5)

        response = patch_status(client, accepted_order["id"], ready_payload(check_day), admin_headers)
        assert response.status_code == 200
        order = response.get_json()["order"]
        assert order["status"] == "Ready to Check"
        assert order["check_appointment_time"] == "10:00"
        assert order["scheduled_at"] == f"{check_day.isoformat()}T10:00:00"

        response = patch_status(client, accepted_order["id"], completed_payload(pickup_day), admin_headers)
        assert response.status_code == 200
        order = response.get_json()["order"]
        assert order["status"] == "Completed"
        assert order["total_amount"] == 1500.0
        assert order["completed_at"] is not None

        response = patch_status(client, accepted_order["id"], {"status": "Finished"}, admin_headers)
        assert response.status_code == 200
        assert response.get_json()["order"]["status"] == "Finished"

        types = [
            n.type
            for n in db_session.scalars(
                select(Notification)
                .where(Notification.channel == "customer")
                .order_by(Notification.id)
            )
        ]
        assert types == [
            "appointment_booked",
            "appointment_accepted",
            "ready_to_check",
            "order_completed",
            "order_finished",
        ]
        completed = db_session.scalar(
            select(Notification).where(Notification.type == "order_completed")
        )
        assert completed.data["total_amount"] == "1500.00"
        assert completed.data["pickup_appointment_time"] == "14:00"

    def test_cannot_skip_states(self, client, accepted_order, admin_headers, future_day):
        response = patch_status(client, accepted_order["id"], completed_payload(future_day), admin_headers)
        assert response.status_code == 409

        response = patch_status(client, accepted_order["id"], {"status": "Finished"}, admin_headers)
        assert response.status_code == 409

    def test_unknown_status(self, client, accepted_order, admin_headers):
        response = patch_status(client, accepted_order["id"], {"status": "Ongoing"}, admin_headers)
        assert response.status_code == 422

    def test_ready_to_check_requires_check_date(self, client, accepted_order, admin_headers):
        response = patch_status(client, accepted_order["id"], {"status": "Ready to Check"}, admin_headers)
        assert response.status_code == 422
        assert "check_appointment_date" in response.get_json()["errors"]

    def test_completed_requires_total_amount(self, client, accepted_order, admin_headers, future_day):
        patch_status(client, accepted_order["id"], ready_payload(future_day), admin_headers)
        payload = completed_payload(future_day)
        payload.pop("total_amount")

        response = patch_status(client, accepted_order["id"], payload, admin_headers)
        assert response.status_code == 422
        assert "total_amount" in response.get_json()["errors"]

    def test_check_in_slot_taken_by_another_booking(self, client, accepted_order, book, other_headers, admin_headers, future_day):
        book(headers=other_headers, appointment_time="16:00")

        response = patch_status(client, accepted_order["id"], ready_payload(future_day, "16:00"), admin_headers)
        assert response.status_code == 409

        order = client.get("/api/orders", headers=admin_headers).get_json()["orders"][0]
        assert order["status"] == "Pending"

    def test_check_in_at_own_appointment_slot(self, client, accepted_order, admin_headers, future_day):
        response = patch_status(client, accepted_order["id"], ready_payload(future_day, "09:00"), admin_headers)
        assert response.status_code == 200

    def test_finished_order_is_final(self, client, accepted_order, admin_headers, future_day):
        patch_status(client, accepted_order["id"], ready_payload(future_day), admin_headers)
        patch_status(client, accepted_order["id"], completed_payload(future_day), admin_headers)
        patch_status(client, accepted_order["id"], {"status": "Finished"}, admin_headers)

        response = patch_status(
            client, accepted_order["id"], {"status": "Cancelled", "refund_image": "r.png"}, admin_headers
        )
        assert response.status_code == 409

    def test_finishing_releases_slots(self, client, accepted_order, admin_headers, future_day):
        patch_status(client, accepted_order["id"], ready_payload(future_day, "10:00"), admin_headers)
        patch_status(client, accepted_order["id"], completed_payload(future_day, "14:00"), admin_headers)
        patch_status(client, accepted_order["id"], {"status": "Finished"}, admin_headers)

        slots = client.get(
            f"/api/appointments/available-slots?date={future_day.isoformat()}"
        ).get_json()["available_slots"]
        assert {"09:00", "10:00", "14:00"} <= set(slots)

    def test_admin_cancel_requires_refund_image(self, client, accepted_order, admin_headers):
        response = patch_status(client, accepted_order["id"], {"status": "Cancelled"}, admin_headers)
        assert response.status_code == 422

    def test_admin_cancel_with_refund(self, client, accepted_order, admin_headers, db_session):
        response = patch_status(
            client,
            accepted_order["id"],
            {"status": "Cancelled", "refund_image": "refunds/order.png"},
            admin_headers,
        )

        assert response.status_code == 200
        order = response.get_json()["order"]
        assert order["status"] == "Cancelled"
        assert order["appointment"]["state"] == "cancelled"
        assert order["appointment"]["refund_image"] == "refunds/order.png"

        types = [
            n.type
            for n in db_session.scalars(
                select(Notification)
                .where(Notification.channel == "customer")
                .order_by(Notification.id)
            )
        ]
        assert types[-2:] == ["order_cancelled", "refund_processed"]

    def test_customer_cannot_change_status(self, client, accepted_order, customer_headers, future_day):
        response = patch_status(client, accepted_order["id"], ready_payload(future_day), customer_headers)
        assert response.status_code == 403

    def test_unknown_order(self, client, admin_headers):
        response = patch_status(client, 999, {"status": "Finished"}, admin_headers)
        assert response.status_code == 404


@pytest.mark.orders
class TestHandledFlag:
    """PATCH /api/orders/<id>/handled"""

    def test_handled_is_monotonic(self, client, accepted_order, admin_headers):
        url = f"/api/orders/{accepted_order['id']}/handled"

        response = post_json(client, url, {"handled": True}, admin_headers, "patch")
        assert response.status_code == 200
        assert response.get_json()["order"]["handled"] is True

        response = post_json(client, url, {"handled": False}, admin_headers, "patch")
        assert response.status_code == 409

        response = post_json(client, url, {"handled": True}, admin_headers, "patch")
        assert response.status_code == 200
        assert response.get_json()["order"]["handled"] is True

    def test_status_change_keeps_handled(self, client, accepted_order, admin_headers, future_day):
        post_json(client, f"/api/orders/{accepted_order['id']}/handled", {"handled": True}, admin_headers, "patch")
        response = patch_status(client, accepted_order["id"], ready_payload(future_day), admin_headers)
        assert response.get_json()["order"]["handled"] is True

    def test_form_encoded_flag(self, client, accepted_order, admin_headers):
        url = f"/api/orders/{accepted_order['id']}/handled"

        response = client.patch(url, data={"handled": "maybe"}, headers=admin_headers)
        assert response.status_code == 422

        response = client.patch(url, data={"handled": "true"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()["order"]["handled"] is True

        response = client.patch(url, data={"handled": "false"}, headers=admin_headers)
        assert response.status_code == 409

    @pytest.mark.parametrize("value", [1, None, "yes please"])
    def test_non_boolean_json_rejected(self, client, accepted_order, admin_headers, value):
        response = post_json(
            client, f"/api/orders/{accepted_order['id']}/handled", {"handled": value}, admin_headers, "patch"
        )
        assert response.status_code == 422

    def test_closed_orders_are_frozen(self, client, accepted_order, admin_headers, future_day, db_session):
        patch_status(client, accepted_order["id"], ready_payload(future_day), admin_headers)
        patch_status(client, accepted_order["id"], completed_payload(future_day), admin_headers)
        patch_status(client, accepted_order["id"], {"status": "Finished"}, admin_headers)

        response = post_json(
            client, f"/api/orders/{accepted_order['id']}/handled", {"handled": True}, admin_headers, "patch"
        )

        assert response.status_code == 409
        assert db_session.get(Order, accepted_order["id"]).handled is False


@pytest.mark.orders
class TestQueueNumbers:
    """Queue assignment and recalculation."""

    def _accepted(self, client, book, admin_headers, times):
        orders = []
        for slot in times:
            appointment = book(appointment_time=slot).get_json()["appointment"]
            orders.append(accept(client, appointment["id"], admin_headers))
        return orders

    def test_recalculate_compacts_in_creation_order(self, client, book, admin_headers, customer_headers, db_session):
        orders = self._accepted(client, book, admin_headers, ["09:00", "09:30", "10:00"])
        client.delete(f"/api/appointments/{orders[1]['appointment_id']}/cancel", headers=customer_headers)

        response = client.post("/api/orders/recalculate-queue", headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()["total"] == 2
        assert response.get_json()["updated"] == 1

        assert db_session.get(Order, orders[0]["id"]).queue_number == 1
        assert db_session.get(Order, orders[2]["id"]).queue_number == 2

        again = client.post("/api/orders/recalculate-queue", headers=admin_headers)
        assert again.get_json()["updated"] == 0

    def test_new_order_takes_next_free_number(self, client, book, admin_headers, customer_headers):
        orders = self._accepted(client, book, admin_headers, ["09:00", "09:30"])
        client.delete(f"/api/appointments/{orders[1]['appointment_id']}/cancel", headers=customer_headers)

        appointment = book(appointment_time="10:30").get_json()["appointment"]
        order = accept(client, appointment["id"], admin_headers)
        assert order["queue_number"] == 2

    def test_scheduled_recalculation(self, app, client, book, admin_headers, customer_headers, db_session):
        orders = self._accepted(client, book, admin_headers, ["09:00", "09:30"])
        client.delete(f"/api/appointments/{orders[0]['appointment_id']}/cancel", headers=customer_headers)

        result = run_queue_recalculation(app)

        assert result == {"total": 1, "updated": 1}
        db_session.expire_all()
        assert db_session.get(Order, orders[1]["id"]).queue_number == 1

    def test_numbers_unique_among_active_orders(self, client, book, admin_headers, db_session):
        self._accepted(client, book, admin_headers, ["09:00", "09:30", "10:00", "10:30"])
        order_service.recalculate_queue_numbers()

        numbers = [
            o.queue_number
            for o in db_session.scalars(select(Order).where(Order.status != "Cancelled"))
        ]
        assert sorted(numbers) == [1, 2, 3, 4]


@pytest.mark.orders
class TestOrderReads:
    """Dashboard and listing endpoints."""

    def test_booked_times_excludes_own_order(self, client, accepted_order, book, other_headers, admin_headers, future_day):
        book(headers=other_headers, appointment_time="11:00")

        response = client.get(
            f"/api/orders/booked-times?date={future_day.isoformat()}", headers=admin_headers
        )
        assert response.get_json()["booked_times"] == ["09:00", "11:00"]

        response = client.get(
            f"/api/orders/booked-times?date={future_day.isoformat()}&order_id={accepted_order['id']}",
            headers=admin_headers,
        )
        assert response.get_json()["booked_times"] == ["11:00"]

    def test_today_queue(self, app, client, book, admin_headers):
        today = datetime.date.today()
        late = book(appointment_date=today.isoformat(), appointment_time="20:00").get_json()["appointment"]
        early = book(appointment_date=today.isoformat(), appointment_time="08:00").get_json()["appointment"]
        accept(client, late["id"], admin_headers)
        accept(client, early["id"], admin_headers)

        queue = order_service.today_queue(now=datetime.datetime.combine(today, datetime.time(7, 0)))
        assert [o.appointment_id for o, _ in queue["entries"]] == [early["id"], late["id"]]
        assert queue["current"][0].appointment_id == early["id"]
        assert queue["next"][0].appointment_id == late["id"]

        late_evening = order_service.today_queue(
            now=datetime.datetime.combine(today, datetime.time(20, 30))
        )
        assert late_evening["current"][0].appointment_id == late["id"]
        assert late_evening["next"] is None

        response = client.get("/api/orders/today-queue", headers=admin_headers)
        data = response.get_json()
        assert data["has_queue"] is True
        assert [o["appointment_time"] for o in data["all_orders"]] == ["08:00", "20:00"]

    def test_today_queue_empty(self, client, admin_headers):
        data = client.get("/api/orders/today-queue", headers=admin_headers).get_json()
        assert data["has_queue"] is False
        assert data["current_customer"] is None
        assert data["all_orders"] == []

    def test_stats(self, client, book, accepted_order, admin_headers):
        book(appointment_time="15:00")

        stats = client.get("/api/orders/stats", headers=admin_headers).get_json()["stats"]
        assert stats["pending_orders"] == 1
        assert stats["finished_orders"] == 0
        assert stats["pending_appointments"] == 1
        assert stats["by_status"]["Pending"] == 1

    def test_list_and_history(self, client, accepted_order, admin_headers, future_day):
        assert len(client.get("/api/orders", headers=admin_headers).get_json()["orders"]) == 1

        patch_status(client, accepted_order["id"], ready_payload(future_day), admin_headers)
        patch_status(client, accepted_order["id"], completed_payload(future_day), admin_headers)
        patch_status(client, accepted_order["id"], {"status": "Finished"}, admin_headers)

        assert client.get("/api/orders", headers=admin_headers).get_json()["orders"] == []
        history = client.get("/api/orders/history", headers=admin_headers).get_json()["orders"]
        assert [o["id"] for o in history] == [accepted_order["id"]]

    def test_my_orders(self, client, accepted_order, customer_headers, other_headers):
        mine = client.get("/api/me/orders", headers=customer_headers).get_json()["orders"]
        assert [o["id"] for o in mine] == [accepted_order["id"]]

        theirs = client.get("/api/me/orders", headers=other_headers).get_json()["orders"]
        assert theirs == []


@pytest.mark.orders
class TestSizesAndRefunds:
    def test_update_sizes(self, client, accepted_order, admin_headers, db_session):
        url = f"/api/orders/{accepted_order['id']}/sizes-quantity"

        response = post_json(client, url, {"sizes": {"S": 1, "M": 1}, "total_quantity": 5}, admin_headers, "patch")
        assert response.status_code == 422

        response = post_json(client, url, {"sizes": {"S": 1, "M": 4}, "total_quantity": 5}, admin_headers, "patch")
        assert response.status_code == 200
        appointment = db_session.get(Appointment, accepted_order["appointment_id"])
        assert appointment.sizes == {"S": 1, "M": 4}
        assert appointment.total_quantity == 5

    def test_refund_cancelled_order(self, client, accepted_order, customer_headers, admin_headers):
        url = f"/api/admin/orders/{accepted_order['id']}/refund"

        response = post_json(client, url, {"refund_image": "refunds/r.png"}, admin_headers)
        assert response.status_code == 409

        client.delete(f"/api/appointments/{accepted_order['appointment_id']}/cancel", headers=customer_headers)
        response = post_json(client, url, {"refund_image": "refunds/r.png"}, admin_headers)
        assert response.status_code == 200
        assert response.get_json()["order"]["appointment"]["refund_image"] == "refunds/r.png"
