import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Set, Tuple


class PresenceTracker:
    """Ages out accounts whose connections stopped sending liveness pings.

    ``touch`` records a ping; ``sweep`` removes every account silent for
    longer than ``timeout`` seconds from each session it joined, going
    through the coordinator's ``leave`` so removal shares the session's
    serialization point and broadcasts the new roster.
    """

    def __init__(self, coordinator, timeout: float = 15, clock: Callable[[], float] = time.monotonic, logger: Optional[logging.Logger] = None):
        self.coordinator = coordinator
        self.timeout = timeout
        self.clock = clock
        self.log = logger or logging.getLogger(__name__)
        self._last_seen: Dict[int, float] = {}
        self._sessions: Dict[int, Set[str]] = {}
        self._guard = threading.Lock()

    def touch(self, account_id: int, now: Optional[float] = None) -> None:
        with self._guard:
            self._last_seen[account_id] = self.clock() if now is None else now

    def track(self, session_id: str, account_id: int, now: Optional[float] = None) -> None:
        with self._guard:
            self._last_seen[account_id] = self.clock() if now is None else now
            self._sessions.setdefault(account_id, set()).add(session_id)

    def forget(self, session_id: str, account_id: int) -> None:
        with self._guard:
            sessions = self._sessions.get(account_id)
            if sessions is None:
                return
            sessions.discard(session_id)
            if not sessions:
                self._sessions.pop(account_id, None)
                self._last_seen.pop(account_id, None)

    def last_seen(self, account_id: int) -> Optional[float]:
        return self._last_seen.get(account_id)

    def sessions_for(self, account_id: int) -> Set[str]:
        with self._guard:
            return set(self._sessions.get(account_id, ()))

    def expired(self, now: Optional[float] = None) -> List[int]:
        now = self.clock() if now is None else now
        with self._guard:
            return [aid for aid, seen in self._last_seen.items() if now - seen > self.timeout]

    def sweep(self, now: Optional[float] = None) -> List[Tuple[str, int]]:
        now = self.clock() if now is None else now
        removed: List[Tuple[str, int]] = []
        for account_id in self.expired(now):
            with self._guard:
                seen = self._last_seen.get(account_id)
                # a ping may have landed since expired() ran
                if seen is None or now - seen <= self.timeout:
                    continue
                self._last_seen.pop(account_id, None)
                sessions = self._sessions.pop(account_id, set())
            self.log.info(f"[presence] account={account_id} silent for {now - seen:.1f}s, sessions={sorted(sessions)}")
            for session_id in sorted(sessions):
                try:
                    if self.coordinator.leave(session_id, account_id):
                        removed.append((session_id, account_id))
                except Exception:
                    self.log.exception(f"[presence] session={session_id} account={account_id} cleanup failed")
        return removed
