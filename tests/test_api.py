"""
API Tests (FastAPI TestClient) for the REST routes and the WebSocket channel.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app

PREFIX = "/api/unified"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def created(client, order_payload):
    response = client.post(f"{PREFIX}/orders", json=order_payload)
    assert response.status_code == 201
    return response.json()["data"]


def accept(client, order, prep_time=20):
    return client.post(
        f"{PREFIX}/restaurant/{order['restaurantId']}/orders/{order['orderId']}/accept",
        json={"prepTime": prep_time},
    )


class TestOrderRoutes:

    def test_create_envelope(self, client, order_payload):
        response = client.post(f"{PREFIX}/orders", json=order_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "pending_restaurant"
        assert body["message"] == "Order created successfully"

    def test_create_missing_fields(self, client):
        response = client.post(f"{PREFIX}/orders", json={"customerName": "Asha"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Missing required fields:")

    def test_create_non_object_body(self, client):
        response = client.post(f"{PREFIX}/orders", json=["not", "an", "order"])

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_get_and_track(self, client, created):
        fetched = client.get(f"{PREFIX}/orders/{created['orderId']}")
        tracked = client.get(f"{PREFIX}/orders/{created['orderId']}/track")

        assert fetched.json()["data"]["orderId"] == created["orderId"]
        assert tracked.json()["data"]["currentStatus"] == "pending_restaurant"
        assert len(tracked.json()["data"]["timeline"]) == 7

    def test_unknown_order_404(self, client):
        response = client.get(f"{PREFIX}/orders/MYE-0-AAAAAAAAAA")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Order not found"}

    def test_customer_history(self, client, created):
        response = client.get(f"{PREFIX}/customer/cust_1/orders")

        assert response.json()["count"] == 1

    def test_cancel(self, client, created):
        response = client.post(f"{PREFIX}/orders/{created['orderId']}/cancel", json={"reason": "ordered twice"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

    def test_debug_delete(self, client, created):
        response = client.delete(f"{PREFIX}/orders/{created['orderId']}")

        assert response.status_code == 200
        assert client.get(f"{PREFIX}/orders/{created['orderId']}").status_code == 404


class TestRestaurantRoutes:

    def test_accept(self, client, created):
        response = accept(client, created)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "preparing"
        assert data["prepTime"] == 20

    def test_accept_without_body_uses_default(self, client, created):
        response = client.post(
            f"{PREFIX}/restaurant/1/orders/{created['orderId']}/accept"
        )

        assert response.status_code == 200
        assert response.json()["data"]["prepTime"] == 20

    def test_accept_wrong_restaurant(self, client, created):
        response = client.post(f"{PREFIX}/restaurant/2/orders/{created['orderId']}/accept", json={})

        assert response.status_code == 404

    def test_double_accept_is_400(self, client, created):
        accept(client, created)
        response = accept(client, created)

        assert response.status_code == 400
        assert "preparing" in response.json()["error"]

    def test_reject_and_ready(self, client, created, order_payload):
        rejected = client.post(
            f"{PREFIX}/restaurant/1/orders/{created['orderId']}/reject", json={"reason": "no capacity"}
        )
        assert rejected.json()["data"]["rejectionReason"] == "no capacity"

        second = client.post(f"{PREFIX}/orders", json=order_payload).json()["data"]
        accept(client, second)
        ready = client.post(f"{PREFIX}/restaurant/1/orders/{second['orderId']}/ready")
        assert ready.json()["data"]["status"] == "ready_for_pickup"

    def test_queues(self, client, created, order_payload):
        second = client.post(f"{PREFIX}/orders", json=order_payload).json()["data"]
        accept(client, second)

        pending = client.get(f"{PREFIX}/restaurant/1/orders/pending").json()
        active = client.get(f"{PREFIX}/restaurant/1/orders", params={"status": "active"}).json()
        bogus = client.get(f"{PREFIX}/restaurant/1/orders", params={"status": "lost"})

        assert [o["orderId"] for o in pending["data"]] == [created["orderId"]]
        assert active["count"] == 2
        assert bogus.status_code == 400


class TestWebhookRoutes:

    def test_full_rider_flow(self, client, created):
        order_id = created["orderId"]
        accept(client, created)
        client.post(f"{PREFIX}/restaurant/1/orders/{order_id}/ready")

        assigned = client.post(
            f"{PREFIX}/orders/{order_id}/rider-assigned",
            json={"riderId": "rider_7", "riderName": "Sameer", "riderPhone": "9000000001"},
        )
        picked = client.post(f"{PREFIX}/orders/{order_id}/picked-up")
        out = client.post(f"{PREFIX}/orders/{order_id}/out-for-delivery")
        wrong = client.post(f"{PREFIX}/orders/{order_id}/delivered", json={"verificationCode": "0000"})
        done = client.post(
            f"{PREFIX}/orders/{order_id}/delivered",
            json={"verificationCode": created["verificationCode"].lower()},
        )

        assert assigned.json()["data"]["riderName"] == "Sameer"
        assert picked.json()["data"]["status"] == "picked_up"
        assert out.json()["data"]["status"] == "out_for_delivery"
        assert wrong.status_code == 400
        assert wrong.json()["error"] == "Invalid verification code"
        assert done.json()["data"]["status"] == "delivered"

    def test_rider_assigned_requires_rider_id(self, client, created):
        response = client.post(f"{PREFIX}/orders/{created['orderId']}/rider-assigned", json={})

        assert response.status_code == 400

    def test_generic_status(self, client, created):
        ok = client.post(
            f"{PREFIX}/orders/{created['orderId']}/status",
            json={"status": "preparing", "restaurantNotes": "extra napkins"},
        )
        bad_status = client.post(f"{PREFIX}/orders/{created['orderId']}/status", json={"status": "lost"})
        bad_field = client.post(
            f"{PREFIX}/orders/{created['orderId']}/status", json={"status": "preparing", "total": 0}
        )

        assert ok.json()["data"]["restaurantNotes"] == "extra napkins"
        assert bad_status.status_code == 400
        assert bad_field.status_code == 400


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "operational"
        assert body["store"] == "memory"
        assert body["dispatch"] == "mock"
        assert body["websocket"]["totalConnections"] == 0


class TestWebSocket:

    def test_restaurant_receives_new_order(self, client, order_payload):
        with client.websocket_connect(f"{PREFIX}/ws") as ws:
            ws.send_json({"event": "authenticate", "data": {"type": "restaurant", "id": "1"}})
            assert ws.receive_json()["event"] == "authenticated"

            created = client.post(f"{PREFIX}/orders", json=order_payload).json()["data"]

            frame = ws.receive_json()
            assert frame["event"] == "new_order"
            assert frame["data"]["order"]["orderId"] == created["orderId"]
            assert frame["data"]["message"] == "New order received!"

    def test_customer_tracks_order(self, client, created):
        with client.websocket_connect(f"{PREFIX}/ws") as ws:
            ws.send_json({"event": "customer:join", "data": "cust_1"})
            assert ws.receive_json()["event"] == "room_joined"
            ws.send_json({"event": "order:subscribe", "data": created["orderId"]})
            assert ws.receive_json()["event"] == "order_tracking_started"

            accept(client, created)
            accepted = ws.receive_json()
            client.post(f"{PREFIX}/restaurant/1/orders/{created['orderId']}/ready")
            ready_events = [ws.receive_json()["event"] for _ in range(2)]

            assert accepted["event"] == "order_accepted"
            assert accepted["data"]["prepTime"] == 20
            assert ready_events == ["order_ready", "order_updated"]

    def test_garbage_frames_keep_connection_open(self, client):
        with client.websocket_connect(f"{PREFIX}/ws") as ws:
            ws.send_text("not json")
            ws.send_json({"event": "order:teleport"})
            ws.send_json({"event": "rider:join", "data": {"id": "r1"}})

            assert ws.receive_json()["data"]["room"] == "rider_r1"

    def test_health_counts_connections(self, client):
        with client.websocket_connect(f"{PREFIX}/ws") as ws:
            ws.send_json({"event": "authenticate", "data": {"type": "customer", "id": "c1"}})
            ws.receive_json()

            stats = client.get("/health").json()["websocket"]

        assert stats["totalConnections"] == 1
        assert stats["clientsByType"]["customer"] == 1
