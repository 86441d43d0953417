"""
Process-wide registry of connected users.

Populated when a socket authenticates, cleared when it closes and
reconciled against the `users.is_online` flags by the periodic sweep.
Nothing here is persisted or shared between processes: running more than
one API process needs a shared store (e.g. Redis hashes) instead.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set
from fastapi import WebSocket
from chatwave_app.core.base.base import utc_now


@dataclass
class Connection:
    user_id: str
    connection_id: str
    websocket: WebSocket
    user: Optional[dict] = None
    connected_at: datetime = field(default_factory=utc_now)
    rooms: Set[str] = field(default_factory=set)
    # a send failed; the socket loop still owns the cleanup
    closed: bool = False
    # chose to appear offline while connected
    hidden: bool = False


class PresenceRegistry:
    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}

    def register(self, user_id: str, connection_id: str, websocket: WebSocket, user: dict = None) -> Optional[Connection]:
        """Register a connection and return the one it replaced, if any."""
        previous = self._connections.get(user_id)
        if previous is not None:
            self._drop_rooms(previous)
        self._connections[user_id] = Connection(
            user_id=user_id,
            connection_id=connection_id,
            websocket=websocket,
            user=user,
        )
        return previous

    def unregister(self, user_id: str, connection_id: str) -> bool:
        """Remove the user only if `connection_id` is still their live connection."""
        current = self._connections.get(user_id)
        if current is None or current.connection_id != connection_id:
            return False
        self._drop_rooms(current)
        del self._connections[user_id]
        return True

    def lookup(self, user_id: str) -> Optional[Connection]:
        return self._connections.get(user_id)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    def online_user_ids(self) -> List[str]:
        return list(self._connections.keys())

    def visible_user_ids(self) -> List[str]:
        """Users other people should see as online."""
        return [uid for uid, conn in self._connections.items() if not conn.hidden and not conn.closed]

    def online_users(self) -> List[dict]:
        return [
            self._connections[uid].user or {"id": uid}
            for uid in self.visible_user_ids()
        ]

    def set_hidden(self, user_id: str, hidden: bool) -> bool:
        conn = self._connections.get(user_id)
        if conn is None:
            return False
        conn.hidden = hidden
        return True

    def join_room(self, user_id: str, room: str) -> bool:
        conn = self._connections.get(user_id)
        if conn is None:
            return False
        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(user_id)
        return True

    def leave_room(self, user_id: str, room: str):
        conn = self._connections.get(user_id)
        if conn is not None:
            conn.rooms.discard(room)
        members = self._rooms.get(room)
        if members is not None:
            members.discard(user_id)
            if not members:
                del self._rooms[room]

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def clear(self):
        self._connections.clear()
        self._rooms.clear()

    def _drop_rooms(self, conn: Connection):
        for room in list(conn.rooms):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(conn.user_id)
                if not members:
                    del self._rooms[room]
        conn.rooms.clear()


presence = PresenceRegistry()
