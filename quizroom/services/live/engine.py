from dataclasses import dataclass

from quizroom.store import DurableStore
from .channel import RoomChannel
from .coordinator import SessionCoordinator
from .presence import PresenceTracker
from .state import SessionStateTable
from .sweeper import PersistenceSweeper


@dataclass
class LiveEngine:
    store: DurableStore
    table: SessionStateTable
    channel: RoomChannel
    coordinator: SessionCoordinator
    presence: PresenceTracker
    sweeper: PersistenceSweeper


def build_engine(app, socketio) -> LiveEngine:
    """Wire the live session components for one Flask app."""
    store = DurableStore()
    table = SessionStateTable()
    channel = RoomChannel(socketio)
    coordinator = SessionCoordinator.from_config(app.config, store, table, channel, logger=app.logger)
    presence = PresenceTracker(
        coordinator,
        timeout=int(app.config.get('PRESENCE_TIMEOUT_SEC', 15)),
        logger=app.logger,
    )
    sweeper = PersistenceSweeper(
        store,
        table,
        logger=app.logger,
        idle_timeout=int(app.config.get('SESSION_IDLE_SEC', 3600)),
    )
    return LiveEngine(store, table, channel, coordinator, presence, sweeper)
