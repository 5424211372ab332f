import threading
from contextlib import contextmanager
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from quizroom import db
from quizroom.models import ActionLog, BonusState, Quiz, QuizSession, RosterMember, Score
from quizroom.services.live.errors import StoreFailure


class DurableStore:
    """Row store consumed by the live session engine.

    Each write commits on its own unless it runs inside ``transaction()``,
    in which case the outermost block commits everything or nothing.
    SQLAlchemy failures are rolled back and surface as ``StoreFailure``.
    """

    def __init__(self):
        self._local = threading.local()

    @property
    def session(self):
        return db.session

    @contextmanager
    def transaction(self):
        depth = getattr(self._local, 'depth', 0)
        self._local.depth = depth + 1
        try:
            yield self
            if depth == 0:
                self.session.commit()
        except Exception as exc:
            if depth == 0:
                self.session.rollback()
                if isinstance(exc, SQLAlchemyError):
                    raise StoreFailure(f"store write failed: {exc.__class__.__name__}") from exc
            raise
        finally:
            self._local.depth = depth

    def run_in_transaction(self, fn: Callable[['DurableStore'], object]):
        with self.transaction():
            return fn(self)

    def _read(self, fn):
        try:
            return fn()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreFailure(f"store read failed: {exc.__class__.__name__}") from exc

    # ---- quizzes and sessions ----
    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        return self._read(lambda: db.session.get(Quiz, quiz_id))

    def get_session(self, session_id: str) -> Optional[QuizSession]:
        return self._read(lambda: db.session.get(QuizSession, session_id))

    def set_session_status(self, session_id: str, status: str) -> None:
        with self.transaction():
            session = db.session.get(QuizSession, session_id)
            if session is None:
                raise StoreFailure(f"session {session_id} vanished")
            session.status = status
            db.session.add(session)

    def set_current_question(self, session_id: str, index: int) -> None:
        with self.transaction():
            session = db.session.get(QuizSession, session_id)
            if session is None:
                raise StoreFailure(f"session {session_id} vanished")
            session.current_question = index
            db.session.add(session)

    # ---- roster ----
    def upsert_roster_member(self, session_id: str, account_id: int) -> None:
        with self.transaction():
            db.session.merge(RosterMember(session_id=session_id, account_id=account_id))

    def remove_roster_member(self, session_id: str, account_id: int) -> None:
        with self.transaction():
            RosterMember.query.filter_by(session_id=session_id, account_id=account_id).delete()

    def list_roster_members(self, session_id: str) -> List[int]:
        def _query():
            rows = RosterMember.query.filter_by(session_id=session_id).order_by(RosterMember.account_id).all()
            return [r.account_id for r in rows]
        return self._read(_query)

    # ---- scores and bonuses ----
    def get_score(self, session_id: str, account_id: int) -> Optional[Score]:
        return self._read(lambda: db.session.get(Score, (session_id, account_id)))

    def upsert_score(self, session_id: str, account_id: int, score: int, correct: int) -> None:
        with self.transaction():
            db.session.merge(Score(
                session_id=session_id,
                account_id=account_id,
                score=score,
                correct_answers=correct,
                time_taken=0,
            ))

    def list_scores(self, session_id: str) -> List[Score]:
        return self._read(lambda: Score.query.filter_by(session_id=session_id).all())

    def get_bonus_state(self, session_id: str, account_id: int) -> Optional[BonusState]:
        return self._read(lambda: db.session.get(BonusState, (session_id, account_id)))

    def upsert_bonus_state(self, session_id: str, account_id: int, consumed: int, armed: bool) -> None:
        with self.transaction():
            db.session.merge(BonusState(
                session_id=session_id,
                account_id=account_id,
                consumed=consumed,
                armed=armed,
            ))

    # ---- audit ----
    def append_action_log(self, account_id: Optional[int], action: str) -> None:
        """Best-effort audit entry; failures are logged, never raised."""
        try:
            with self.transaction():
                db.session.add(ActionLog(account_id=account_id, action=action))
        except StoreFailure as exc:
            current_app.logger.warning(f"[audit] account={account_id} action={action} dropped: {exc}")
