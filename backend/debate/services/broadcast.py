import threading
from typing import Dict, Optional, Tuple


class BroadcastGateway:
    """What the game core needs from the transport: group and member sends."""

    def send_to_group(self, code: str, event: str, payload=None) -> None:
        raise NotImplementedError

    def send_to_member(self, code: str, identity: str, event: str, payload=None) -> None:
        raise NotImplementedError

    def close_group(self, code: str) -> None:
        """Forget every member of ``code``; called after a lobby is torn down."""


class SocketIOGateway(BroadcastGateway):
    """Socket.IO rooms as broadcast groups.

    Keeps the (lobby, identity) -> sid binding so member sends reach the
    participant's current socket, and so a stale socket's disconnect can be
    told apart from the active one.
    """

    def __init__(self, socketio, namespace='/ws'):
        self._socketio = socketio
        self.namespace = namespace
        self._members: Dict[Tuple[str, str], str] = {}
        self._sid_to_ctx: Dict[str, Tuple[str, str]] = {}
        self._guard = threading.Lock()

    @staticmethod
    def room_for(code: str) -> str:
        return f"lobby:{code}"

    def bind(self, sid: str, code: str, identity: str) -> None:
        with self._guard:
            previous = self._sid_to_ctx.pop(sid, None)
            if previous and self._members.get(previous) == sid:
                del self._members[previous]
            self._members[(code, identity)] = sid
            self._sid_to_ctx[sid] = (code, identity)

    def unbind(self, sid: str) -> Optional[Tuple[str, str]]:
        """Drop ``sid``; returns its context only if it was the active socket."""
        with self._guard:
            ctx = self._sid_to_ctx.pop(sid, None)
            if ctx is None or self._members.get(ctx) != sid:
                return None
            del self._members[ctx]
            return ctx

    def context(self, sid: str) -> Optional[Tuple[str, str]]:
        with self._guard:
            return self._sid_to_ctx.get(sid)

    def _emit(self, event, payload, to):
        if payload is None:
            self._socketio.emit(event, to=to, namespace=self.namespace)
        else:
            self._socketio.emit(event, payload, to=to, namespace=self.namespace)

    def send_to_group(self, code, event, payload=None):
        self._emit(event, payload, self.room_for(code))

    def send_to_member(self, code, identity, event, payload=None):
        with self._guard:
            sid = self._members.get((code, identity))
        if sid is not None:
            self._emit(event, payload, sid)

    def close_group(self, code):
        with self._guard:
            stale = [ctx for ctx in self._members if ctx[0] == code]
            for ctx in stale:
                self._sid_to_ctx.pop(self._members.pop(ctx), None)
        self._socketio.close_room(self.room_for(code), namespace=self.namespace)
