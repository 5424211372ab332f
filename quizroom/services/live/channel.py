from typing import Any, Dict, Optional

from flask_socketio import SocketIO

from .events import NAMESPACE, Outbound, room_name


class RoomChannel:
    """Publish/subscribe fan-out over Socket.IO rooms.

    One room per session (``session:<id>``). Delivery is best effort: a
    connection that drops before ``publish`` returns may miss the event.
    Subscribing twice or unsubscribing a non-member is harmless.
    """

    def __init__(self, socketio: SocketIO, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def subscribe(self, sid: Optional[str], session_id: str) -> None:
        if not sid:
            return
        self.socketio.server.enter_room(sid, room_name(session_id), namespace=self.namespace)

    def unsubscribe(self, sid: Optional[str], session_id: str) -> None:
        if not sid:
            return
        self.socketio.server.leave_room(sid, room_name(session_id), namespace=self.namespace)

    def publish(self, session_id: str, event: Outbound, payload: Dict[str, Any]) -> None:
        self.socketio.emit(Outbound(event).value, payload, to=room_name(session_id), namespace=self.namespace)

    def send(self, sid: Optional[str], event: Outbound, payload: Dict[str, Any]) -> None:
        if not sid:
            return
        self.socketio.emit(Outbound(event).value, payload, to=sid, namespace=self.namespace)
