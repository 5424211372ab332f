import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple


@dataclass(frozen=True)
class LiveScore:
    score: int = 0
    correct: int = 0

    def to_dict(self) -> dict:
        return {'score': self.score, 'correct': self.correct}


@dataclass(frozen=True)
class Bonus:
    consumed: int = 0
    armed: bool = False


class SessionState:
    """Volatile game state for one session.

    Holds live scores, per-question response sets, bonus flags and the index
    of the question currently accepting answers. Callers must hold the
    session's lock from ``SessionStateTable.lock`` while reading or mutating
    it.
    """

    def __init__(self, session_id: str, now: float = 0.0):
        self.session_id = session_id
        self.live_question: Optional[int] = None
        self.last_active = now
        self._scores: Dict[int, LiveScore] = {}
        self._bonuses: Dict[int, Bonus] = {}
        self._responses: Dict[int, Set[int]] = {}
        self._all_responded: Set[int] = set()

    # ---- scores ----
    def score_for(self, account_id: int) -> Optional[LiveScore]:
        return self._scores.get(account_id)

    def set_score(self, account_id: int, score: int, correct: int) -> LiveScore:
        current = self._scores.get(account_id)
        if current is not None and score < current.score:
            raise ValueError('live score may not decrease')
        self._scores[account_id] = LiveScore(score=score, correct=correct)
        return self._scores[account_id]

    def scores_snapshot(self) -> Dict[str, dict]:
        return {str(aid): s.to_dict() for aid, s in self._scores.items()}

    def score_rows(self) -> List[Tuple[int, int, int]]:
        return [(aid, s.score, s.correct) for aid, s in self._scores.items()]

    def restore_player(self, account_id: int, score: Optional[LiveScore], bonus: Optional[Bonus]) -> None:
        """Put an account's rows back to an earlier snapshot (None removes them)."""
        for rows, value in ((self._scores, score), (self._bonuses, bonus)):
            if value is None:
                rows.pop(account_id, None)
            else:
                rows[account_id] = value

    # ---- questions and responses ----
    def open_question(self, question_index: int) -> None:
        """Start accepting answers for ``question_index`` with an empty response set."""
        self.live_question = question_index
        self._responses[question_index] = set()
        self._all_responded.discard(question_index)

    def close_question(self) -> None:
        self.live_question = None

    def is_open(self, question_index: int) -> bool:
        return self.live_question is not None and self.live_question == question_index

    def has_responded(self, question_index: int, account_id: int) -> bool:
        return account_id in self._responses.get(question_index, ())

    def record_response(self, question_index: int, account_id: int) -> bool:
        """Add the account to the question's response set; False if already there."""
        responders = self._responses.setdefault(question_index, set())
        if account_id in responders:
            return False
        responders.add(account_id)
        return True

    def responders(self, question_index: int) -> frozenset:
        return frozenset(self._responses.get(question_index, ()))

    def mark_all_responded(self, question_index: int) -> bool:
        if question_index in self._all_responded:
            return False
        self._all_responded.add(question_index)
        return True

    # ---- bonuses ----
    def bonus_for(self, account_id: int) -> Optional[Bonus]:
        return self._bonuses.get(account_id)

    def set_bonus(self, account_id: int, consumed: int, armed: bool) -> Bonus:
        self._bonuses[account_id] = Bonus(consumed=consumed, armed=armed)
        return self._bonuses[account_id]


class SessionLock:
    """Re-entrant lock that admits waiting threads in arrival order."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._next_ticket = 0
        self._serving = 0
        self._owner: Optional[int] = None
        self._depth = 0
        # threads holding or queued on this lock, maintained by the table
        self.users = 0

    def acquire(self) -> None:
        me = threading.get_ident()
        with self._cond:
            if self._owner == me:
                self._depth += 1
                return
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._serving:
                self._cond.wait()
            self._owner = me
            self._depth = 1

    def release(self) -> None:
        with self._cond:
            if self._owner != threading.get_ident():
                raise RuntimeError('cannot release un-acquired session lock')
            self._depth -= 1
            if self._depth == 0:
                self._owner = None
                self._serving += 1
                self._cond.notify_all()


class SessionStateTable:
    """Owns every live SessionState, keyed by session id.

    ``lock(session_id)`` serializes work on one session in arrival order;
    different sessions never share a lock. A session's lock exists only
    while some thread holds or waits on it, so ids that never resolve to a
    session leave nothing behind.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._states: Dict[str, SessionState] = {}
        self._locks: Dict[str, SessionLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = SessionLock()
            lock.users += 1
        try:
            lock.acquire()
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                lock.users -= 1
                if lock.users == 0:
                    del self._locks[session_id]

    def lock_count(self) -> int:
        with self._guard:
            return len(self._locks)

    def lock_users(self, session_id: str) -> int:
        with self._guard:
            lock = self._locks.get(session_id)
            return lock.users if lock else 0

    def get(self, session_id: str) -> Optional[SessionState]:
        return self._states.get(session_id)

    def load(self, session_id: str) -> SessionState:
        """Return the session's state, creating it when absent, and mark it active."""
        now = self.clock()
        with self._guard:
            state = self._states.get(session_id)
            if state is None:
                state = self._states[session_id] = SessionState(session_id, now)
            state.last_active = now
            return state

    def drop(self, session_id: str) -> None:
        with self._guard:
            self._states.pop(session_id, None)

    def session_ids(self) -> List[str]:
        with self._guard:
            return list(self._states.keys())

    def is_idle(self, session_id: str, timeout: float) -> bool:
        state = self._states.get(session_id)
        return state is not None and self.clock() - state.last_active > timeout

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._states

    def __len__(self) -> int:
        return len(self._states)
