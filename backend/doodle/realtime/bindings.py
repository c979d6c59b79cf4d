from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass(frozen=True)
class Binding:
    room_code: str
    player_id: str


class ConnectionBindings:
    """connection sid -> (room, player), set once on join, cleared once on leave."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._by_sid: dict[str, Binding] = {}

    def bind(self, sid: str, room_code: str, player_id: str) -> Binding | None:
        """Bind sid unless already bound; returns the existing binding if any."""
        with self._lock:
            existing = self._by_sid.get(sid)
            if existing is not None:
                return existing
            self._by_sid[sid] = Binding(room_code=room_code, player_id=player_id)
            return None

    def get(self, sid: str) -> Binding | None:
        with self._lock:
            return self._by_sid.get(sid)

    def unbind(self, sid: str) -> Binding | None:
        with self._lock:
            return self._by_sid.pop(sid, None)

    def sid_for(self, room_code: str, player_id: str) -> str | None:
        """Connection currently bound to player_id in room_code, if any.

        Player ids are the sid of the connection that joined, so this is a
        direct lookup that also confirms the binding still points at the room.
        """
        with self._lock:
            b = self._by_sid.get(player_id)
            if b is None or b.room_code != room_code or b.player_id != player_id:
                return None
            return player_id

    def clear(self) -> None:
        with self._lock:
            self._by_sid.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_sid)


bindings = ConnectionBindings()
