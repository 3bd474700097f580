"""
Unit Tests for the Event Fan-out Hub and the WebSocket gateway.
"""

import asyncio

from app.services.realtime.gateway import RealtimeGateway
from app.services.realtime.hub import EventHub

from conftest import Recorder


class TestRooms:

    async def test_emit_reaches_joined_connections_only(self, hub):
        joined, bystander = Recorder(), Recorder()
        conn = hub.connect(joined)
        other = hub.connect(bystander)
        hub.join(conn, "order", "MYE-1")

        delivered = hub.emit_to_room("order", "MYE-1", "order_updated", {"status": "preparing"})
        await conn.drain()
        await other.drain()

        assert delivered == 1
        assert joined.of("order_updated")[0]["status"] == "preparing"
        assert bystander.frames == []

    async def test_late_joiner_misses_earlier_events(self, hub):
        late = Recorder()
        conn = hub.connect(late)

        hub.emit_to_room("order", "MYE-1", "order_updated", {"status": "preparing"})
        hub.join(conn, "order", "MYE-1")
        hub.emit_to_room("order", "MYE-1", "order_updated", {"status": "ready_for_pickup"})
        await conn.drain()

        assert [e["status"] for e in late.of("order_updated")] == ["ready_for_pickup"]

    async def test_join_is_idempotent(self, hub):
        client = Recorder()
        conn = hub.connect(client)
        hub.join(conn, "restaurant", "1")
        hub.join(conn, "restaurant", "1")

        hub.emit_to_room("restaurant", "1", "new_order", {"order": {}})
        await conn.drain()

        assert hub.room_size("restaurant", "1") == 1
        assert len(client.of("new_order")) == 1
        assert client.events.count("room_joined") == 2

    async def test_leave_order_room(self, hub):
        client = Recorder()
        conn = hub.connect(client)
        hub.join(conn, "order", "MYE-1")

        assert hub.leave(conn, "MYE-1") is True
        assert hub.leave(conn, "MYE-1") is False
        hub.emit_to_room("order", "MYE-1", "order_updated", {})
        await conn.drain()

        assert client.of("order_updated") == []

    async def test_disconnect_removes_from_every_room(self, hub):
        client = Recorder()
        conn = hub.connect(client)
        hub.authenticate(conn, "customer", "cust_1")
        hub.join(conn, "order", "MYE-1")

        await hub.disconnect(conn)

        assert hub.emit_to_room("customer", "cust_1", "order_accepted", {}) == 0
        assert hub.emit_to_room("order", "MYE-1", "order_updated", {}) == 0
        assert hub.stats()["totalConnections"] == 0
        assert hub.stats()["rooms"] == 0

    async def test_empty_room_is_silent(self, hub):
        assert hub.emit_to_room("rider", "nobody", "order_assigned", {}) == 0

    async def test_unusable_join_is_ignored(self, hub):
        conn = hub.connect(Recorder())

        assert hub.join(conn, "galaxy", "1") is None
        assert hub.join(conn, "order", "") is None
        assert conn.rooms == set()


class TestEmission:

    async def test_per_connection_order_is_emission_order(self, hub):
        client = Recorder()
        conn = hub.connect(client)
        hub.join(conn, "order", "MYE-1")

        for status in ("preparing", "ready_for_pickup", "rider_assigned", "picked_up"):
            hub.emit_to_room("order", "MYE-1", "order_updated", {"status": status})
        await conn.drain()

        assert [e["status"] for e in client.of("order_updated")] == [
            "preparing", "ready_for_pickup", "rider_assigned", "picked_up",
        ]

    async def test_payload_is_stamped_copy(self, hub):
        client = Recorder()
        conn = hub.connect(client)
        hub.join(conn, "order", "MYE-1")
        payload = {"status": "preparing"}

        hub.emit_to_room("order", "MYE-1", "order_updated", payload)
        await conn.drain()

        assert "timestamp" in client.of("order_updated")[0]
        assert payload == {"status": "preparing"}

    async def test_broadcast_reaches_unauthenticated(self, hub):
        a, b = Recorder(), Recorder()
        conn_a = hub.connect(a)
        conn_b = hub.connect(b)
        hub.authenticate(conn_b, "restaurant", "1")

        assert hub.broadcast("order_status_changed", {"orderId": "MYE-1"}) == 2
        await conn_a.drain()
        await conn_b.drain()

        assert len(a.of("order_status_changed")) == 1
        assert len(b.of("order_status_changed")) == 1

    async def test_full_buffer_drops_instead_of_blocking(self):
        hub = EventHub(queue_size=1)
        client = Recorder()
        conn = hub.connect(client)
        hub.join(conn, "order", "MYE-1")  # fills the single slot

        delivered = hub.emit_to_room("order", "MYE-1", "order_updated", {})
        await conn.drain()

        assert delivered == 0
        assert client.events == ["order_tracking_started"]

    async def test_failed_send_closes_connection(self, hub):
        async def broken(frame):
            raise ConnectionResetError("gone")

        conn = hub.connect(broken)
        hub.join(conn, "order", "MYE-1")
        await conn.drain()

        assert conn.closed is True
        assert hub.emit_to_room("order", "MYE-1", "order_updated", {}) == 0


class TestAuthenticationAndStats:

    async def test_authenticate_joins_identity_room(self, hub):
        client = Recorder()
        conn = hub.connect(client)

        identity = hub.authenticate(conn, "restaurant", 1, token="opaque")
        hub.notify_new_order("1", {"orderId": "MYE-1"})
        await conn.drain()

        assert identity.type == "restaurant"
        assert identity.id == "1"
        assert client.events == ["authenticated", "new_order"]
        assert client.of("authenticated")[0]["success"] is True

    async def test_authenticate_twice_is_harmless(self, hub):
        conn = hub.connect(Recorder())
        hub.authenticate(conn, "customer", "cust_1")
        hub.authenticate(conn, "customer", "cust_1")

        assert hub.room_size("customer", "cust_1") == 1
        assert hub.stats()["authenticatedClients"] == 1

    async def test_reauthenticate_moves_identity_room(self, hub):
        client = Recorder()
        conn = hub.connect(client)
        hub.authenticate(conn, "restaurant", "1")

        hub.authenticate(conn, "restaurant", "2")
        delivered_old = hub.notify_new_order("1", {"orderId": "MYE-1"})
        delivered_new = hub.notify_new_order("2", {"orderId": "MYE-2"})
        await conn.drain()

        assert delivered_old == 0
        assert delivered_new == 1
        assert conn.rooms == {"restaurant_2"}
        assert [e["order"]["orderId"] for e in client.of("new_order")] == ["MYE-2"]

    async def test_reauthenticate_keeps_joined_order_rooms(self, hub):
        conn = hub.connect(Recorder())
        hub.authenticate(conn, "customer", "cust_1")
        hub.join(conn, "order", "MYE-1")

        hub.authenticate(conn, "customer", "cust_2")

        assert conn.rooms == {"customer_cust_2", "order_MYE-1"}

    async def test_stats(self, hub):
        hub.connect(Recorder())
        for client_type, client_id in (("restaurant", "1"), ("customer", "c1"), ("customer", "c2"), ("kiosk", "k1")):
            hub.authenticate(hub.connect(Recorder()), client_type, client_id)

        stats = hub.stats()

        assert stats["totalConnections"] == 5
        assert stats["authenticatedClients"] == 4
        assert stats["clientsByType"] == {"restaurant": 1, "customer": 2, "rider": 0, "unknown": 1}

    async def test_notify_helpers_skip_missing_ids(self, hub):
        assert hub.notify_customer(None, "order_accepted", {}) == 0
        assert hub.notify_rider(None, "order_assigned", {}) == 0


class TestGateway:

    async def test_join_events(self, hub):
        gateway = RealtimeGateway(hub)
        client = Recorder()
        conn = hub.connect(client)

        gateway.handle(conn, {"event": "restaurant:join", "data": "1"})
        gateway.handle(conn, {"event": "customer:join", "data": {"id": "cust_1"}})
        gateway.handle(conn, {"event": "order:subscribe", "data": {"orderId": "MYE-1"}})
        gateway.handle(conn, {"event": "customer:track_order", "data": "MYE-2"})
        await conn.drain()

        assert conn.rooms == {"restaurant_1", "customer_cust_1", "order_MYE-1", "order_MYE-2"}
        assert client.of("room_joined")[0] == {
            "room": "restaurant_1",
            "restaurantId": "1",
            "timestamp": client.of("room_joined")[0]["timestamp"],
        }
        assert [e["orderId"] for e in client.of("order_tracking_started")] == ["MYE-1", "MYE-2"]

    async def test_unsubscribe(self, hub):
        gateway = RealtimeGateway(hub)
        conn = hub.connect(Recorder())
        gateway.handle(conn, {"event": "order:subscribe", "data": "MYE-1"})

        gateway.handle(conn, {"event": "order:unsubscribe", "data": "MYE-1"})

        assert hub.room_size("order", "MYE-1") == 0

    async def test_authenticate_event(self, hub):
        gateway = RealtimeGateway(hub)
        conn = hub.connect(Recorder())

        gateway.handle(conn, {"event": "authenticate", "data": {"type": "rider", "id": "r1"}})

        assert conn.identity.type == "rider"
        assert "rider_r1" in conn.rooms

    async def test_rider_location_relayed_to_order_room(self, hub):
        gateway = RealtimeGateway(hub)
        rider_conn = hub.connect(Recorder())
        customer = Recorder()
        customer_conn = hub.connect(customer)
        gateway.handle(customer_conn, {"event": "order:subscribe", "data": "MYE-1"})

        gateway.handle(rider_conn, {
            "event": "rider:location_update",
            "data": {"riderId": "r1", "orderId": "MYE-1", "location": [73.85, 18.52], "heading": 90},
        })
        await customer_conn.drain()

        location = customer.of("rider_location")[0]
        assert location["riderId"] == "r1"
        assert location["heading"] == 90

    async def test_client_status_updates_relayed_with_source(self, hub):
        gateway = RealtimeGateway(hub)
        watcher = Recorder()
        conn = hub.connect(watcher)
        gateway.handle(conn, {"event": "order:subscribe", "data": "MYE-1"})

        gateway.handle(conn, {
            "event": "restaurant:order_update",
            "data": {"orderId": "MYE-1", "status": "preparing", "prepTime": 20},
        })
        gateway.handle(conn, {
            "event": "rider:order_update",
            "data": {"orderId": "MYE-1", "status": "picked_up"},
        })
        await conn.drain()

        updates = watcher.of("order_status_updated")
        assert [(u["source"], u["status"]) for u in updates] == [
            ("restaurant", "preparing"),
            ("rider", "picked_up"),
        ]

    async def test_malformed_and_unknown_frames_ignored(self, hub):
        gateway = RealtimeGateway(hub)
        client = Recorder()
        conn = hub.connect(client)

        gateway.handle(conn, ["not", "a", "frame"])
        gateway.handle(conn, {"data": "no event"})
        gateway.handle(conn, {"event": "order:teleport", "data": {}})
        gateway.handle(conn, {"event": "authenticate", "data": "restaurant"})
        await asyncio.sleep(0)
        await conn.drain()

        assert client.frames == []
        assert conn.identity is None
