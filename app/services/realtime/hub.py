"""
Event Fan-out Hub

Tracks which live connection belongs to which room and pushes events to
the right set of connections.

Rooms:
    - restaurant_{id} : every dashboard of one restaurant
    - customer_{id}   : every app session of one customer
    - rider_{id}      : every device of one rider
    - order_{id}      : everyone tracking one order

Delivery is fire-and-forget. Each connection has a bounded outbox drained
by its own writer task, so emitting never waits on a socket and every
connection sees events in the order they were emitted. Nothing is queued
for connections that are not in the room at emission time; clients heal
through the reconciliation pull.

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

ROOM_KINDS = ("restaurant", "customer", "rider", "order")
IDENTITY_TYPES = ("restaurant", "customer", "rider")

Sender = Callable[[dict[str, Any]], Awaitable[None]]


def room_name(kind: str, room_id: Any) -> str:
    return f"{kind}_{room_id}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ClientIdentity:
    """Self-declared identity of a connection (not verified)."""
    type: str
    id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Connection:
    """
    One push-channel connection.

    Attributes:
        sid: Connection id
        identity: Declared identity, once authenticated
        rooms: Names of rooms this connection is in
        outbox: Frames waiting for the writer task
    """

    def __init__(self, send: Sender, sid: Optional[str] = None, queue_size: int = 256):
        self.sid = sid or uuid.uuid4().hex
        self.identity: Optional[ClientIdentity] = None
        self.rooms: set[str] = set()
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.closed = False
        self._send = send
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self):
        who = f"{self.identity.type}:{self.identity.id}" if self.identity else "anonymous"
        return f"<Connection {self.sid[:8]} {who}>"

    def push(self, event: str, data: dict[str, Any]) -> bool:
        """Queue one frame. Returns False if it was dropped."""
        if self.closed:
            return False
        try:
            self.outbox.put_nowait({"event": event, "data": data})
            return True
        except asyncio.QueueFull:
            logger.warning(f"Push buffer full for {self!r}, dropping '{event}'")
            return False

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._pump(), name=f"ws-writer-{self.sid[:8]}")

    async def _pump(self) -> None:
        while True:
            frame = await self.outbox.get()
            try:
                if not self.closed:
                    await self._send(frame)
            except Exception as e:
                # The transport is gone; the receive loop will disconnect us
                logger.debug(f"Send failed on {self!r}: {e}")
                self.closed = True
            finally:
                self.outbox.task_done()

    async def drain(self) -> None:
        """Wait until every queued frame has been handed to the transport."""
        await self.outbox.join()

    async def close(self) -> None:
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None


class EventHub:
    """
    Room registry and event fan-out.

    Emitting to an empty or unknown room is a silent no-op; the hub never
    raises for routing reasons.

    Example:
        >>> hub = EventHub()
        >>> conn = hub.connect(websocket.send_json)
        >>> hub.join(conn, "order", "MYE-LX3K9Q2A-7F3KQ9ZP2D")
        >>> hub.emit_to_room("order", "MYE-LX3K9Q2A-7F3KQ9ZP2D", "order_updated", {...})
        1
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = defaultdict(set)

    # =========================================================================
    # CONNECTION LIFECYCLE
    # =========================================================================

    def connect(self, send: Sender, sid: Optional[str] = None) -> Connection:
        """Register a new transport connection and start its writer."""
        conn = Connection(send, sid=sid, queue_size=self.queue_size)
        self._connections[conn.sid] = conn
        conn.start()
        logger.info(f"🔌 Client connected: {conn.sid}")
        return conn

    def authenticate(
        self,
        conn: Connection,
        client_type: str,
        client_id: Any,
        token: Optional[str] = None,
    ) -> ClientIdentity:
        """
        Record the connection's declared identity and join its identity room.

        The token is not verified: identity is trusted as declared.
        """
        if token:
            logger.debug(f"Token supplied by {conn.sid} (not verified)")

        identity = ClientIdentity(type=str(client_type), id=str(client_id))
        previous = conn.identity
        if previous is not None and previous.type in IDENTITY_TYPES:
            old_room = room_name(previous.type, previous.id)
            if old_room != room_name(identity.type, identity.id):
                self._remove_member(conn, old_room)
        conn.identity = identity

        if identity.type in IDENTITY_TYPES:
            self._add_member(conn, room_name(identity.type, identity.id))

        conn.push("authenticated", {"success": True, "timestamp": utc_now_iso()})
        logger.info(f"✅ Client authenticated: {identity.type} - {identity.id}")
        return identity

    async def disconnect(self, conn: Connection) -> None:
        """Remove the connection from every room. No effect on orders."""
        for room in list(conn.rooms):
            self._remove_member(conn, room)
        self._connections.pop(conn.sid, None)
        await conn.close()

        who = f"{conn.identity.type} - {conn.identity.id}" if conn.identity else "(unknown)"
        logger.info(f"❌ Client disconnected: {conn.sid} {who}")

    # =========================================================================
    # ROOM MEMBERSHIP
    # =========================================================================

    def _add_member(self, conn: Connection, room: str) -> bool:
        if conn.sid in self._rooms[room]:
            return False
        self._rooms[room].add(conn.sid)
        conn.rooms.add(room)
        return True

    def _remove_member(self, conn: Connection, room: str) -> bool:
        members = self._rooms.get(room)
        if not members or conn.sid not in members:
            return False
        members.discard(conn.sid)
        conn.rooms.discard(room)
        if not members:
            del self._rooms[room]
        return True

    def join(self, conn: Connection, kind: str, room_id: Any) -> Optional[str]:
        """
        Add the connection to a room (no-op if already a member).

        Returns:
            Room name, or None if the request was unusable
        """
        if kind not in ROOM_KINDS:
            logger.warning(f"Unknown room kind '{kind}' from {conn.sid}")
            return None
        if room_id is None or str(room_id) == "":
            logger.warning(f"Join '{kind}' without an id from {conn.sid}")
            return None

        room = room_name(kind, room_id)
        if self._add_member(conn, room):
            logger.info(f"Socket {conn.sid} joined {kind} room: {room}")

        if kind == "order":
            conn.push("order_tracking_started", {"orderId": str(room_id), "timestamp": utc_now_iso()})
        else:
            conn.push("room_joined", {
                "room": room,
                f"{kind}Id": str(room_id),
                "timestamp": utc_now_iso(),
            })
        return room

    def leave(self, conn: Connection, order_id: Any) -> bool:
        """Leave an order room. Identity rooms last as long as the connection."""
        room = room_name("order", order_id)
        removed = self._remove_member(conn, room)
        if removed:
            logger.info(f"Socket {conn.sid} left order room: {room}")
        return removed

    def room_size(self, kind: str, room_id: Any) -> int:
        return len(self._rooms.get(room_name(kind, room_id), ()))

    # =========================================================================
    # EMISSION
    # =========================================================================

    def _deliver(self, sids: list[str], event: str, payload: dict[str, Any]) -> int:
        stamped = {**payload, "timestamp": utc_now_iso()}
        delivered = 0
        for sid in sids:
            conn = self._connections.get(sid)
            if conn is not None and conn.push(event, stamped):
                delivered += 1
        return delivered

    def emit_to_room(self, kind: str, room_id: Any, event: str, payload: dict[str, Any]) -> int:
        """
        Push ``event`` to every current member of one room.

        Returns:
            Number of connections the event was queued for
        """
        room = room_name(kind, room_id)
        members = sorted(self._rooms.get(room, ()))
        delivered = self._deliver(members, event, payload)
        logger.debug(f"Emitted '{event}' to {room} ({delivered} connections)")
        return delivered

    def broadcast(self, event: str, payload: dict[str, Any]) -> int:
        """Push ``event`` to every connection, in or out of rooms."""
        delivered = self._deliver(list(self._connections), event, payload)
        logger.debug(f"Broadcast '{event}' ({delivered} connections)")
        return delivered

    # Server-side helpers used by the lifecycle engine

    def notify_new_order(self, restaurant_id: Any, order: dict[str, Any]) -> int:
        return self.emit_to_room("restaurant", restaurant_id, "new_order", {
            "order": order,
            "message": "New order received!",
            "sound": True,
        })

    def notify_customer(self, customer_id: Any, event: str, data: dict[str, Any]) -> int:
        if customer_id is None:
            return 0
        return self.emit_to_room("customer", customer_id, event, data)

    def notify_rider(self, rider_id: Any, event: str, data: dict[str, Any]) -> int:
        if rider_id is None:
            return 0
        return self.emit_to_room("rider", rider_id, event, data)

    def broadcast_order_update(self, order_id: Any, data: dict[str, Any]) -> int:
        return self.emit_to_room("order", order_id, "order_updated", {"orderId": str(order_id), **data})

    # =========================================================================
    # STATS
    # =========================================================================

    def stats(self) -> dict[str, Any]:
        """Connection counts for operational visibility."""
        by_type = {"restaurant": 0, "customer": 0, "rider": 0, "unknown": 0}
        authenticated = 0

        for conn in self._connections.values():
            if conn.identity is None:
                continue
            authenticated += 1
            if conn.identity.type in by_type:
                by_type[conn.identity.type] += 1
            else:
                by_type["unknown"] += 1

        return {
            "totalConnections": len(self._connections),
            "authenticatedClients": authenticated,
            "clientsByType": by_type,
            "rooms": len(self._rooms),
        }
