import logging
from typing import Optional

from .errors import StoreFailure
from .state import SessionStateTable


class PersistenceSweeper:
    """Mirrors live scores into the durable store.

    Upserts keyed by (session, account); the in-memory copy wins. Each
    session's rows are written under that session's lock, and a failing
    row is logged without stopping the rest of the sweep. A session with no
    intents for ``idle_timeout`` seconds is evicted from memory once all of
    its rows are saved; a later join rehydrates it from the store.
    """

    def __init__(self, store, table: SessionStateTable, logger: Optional[logging.Logger] = None,
                 idle_timeout: Optional[float] = None):
        self.store = store
        self.table = table
        self.log = logger or logging.getLogger(__name__)
        self.idle_timeout = idle_timeout

    def flush(self) -> int:
        written = failed = evicted = 0
        for session_id in self.table.session_ids():
            with self.table.lock(session_id):
                state = self.table.get(session_id)
                if state is None:
                    continue
                session_failed = 0
                for account_id, score, correct in state.score_rows():
                    try:
                        self.store.upsert_score(session_id, account_id, score, correct)
                        written += 1
                    except StoreFailure as exc:
                        session_failed += 1
                        self.log.error(f"[flush] session={session_id} account={account_id} score={score} not saved: {exc.message}")
                failed += session_failed
                if not session_failed and self.idle_timeout and self.table.is_idle(session_id, self.idle_timeout):
                    self.table.drop(session_id)
                    evicted += 1
                    self.log.info(f"[flush] session={session_id} idle, evicted from memory")
        if written or failed or evicted:
            self.log.info(f"[flush] rows_written={written} rows_failed={failed} sessions_evicted={evicted}")
        return written
