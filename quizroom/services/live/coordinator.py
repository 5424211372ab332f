import logging
from typing import Any, Dict, List, Optional, Tuple

from quizroom.models import STATUS_FINISHED, STATUS_IN_PROGRESS, STATUS_WAITING, QuizSession
from .channel import RoomChannel
from .errors import InvalidState, LiveSessionError, NotFound, Rejected, StoreFailure, Unauthorized
from .events import Intent, Outbound
from .state import LiveScore, SessionState, SessionStateTable


def public_question(question: Any) -> Optional[Dict[str, Any]]:
    """Question as shown to players: prompt and options, never the answer."""
    if not isinstance(question, dict):
        return None
    return {
        'question': question.get('question'),
        'options': question.get('options'),
    }


class SessionCoordinator:
    """Applies game-progression intents to live session state.

    All work for one session happens under that session's lock from the
    state table, durable write-through included, so intents for a session
    are applied and broadcast in arrival order. Operations raise
    ``LiveSessionError`` subclasses; ``dispatch`` turns those into an
    ``operation_error`` for the requester.
    """

    def __init__(
        self,
        store,
        table: SessionStateTable,
        channel: RoomChannel,
        logger: Optional[logging.Logger] = None,
        points_per_correct: int = 10,
        bonus_multiplier: int = 2,
        max_bonuses: int = 3,
        question_duration: int = 20,
    ):
        self.store = store
        self.table = table
        self.channel = channel
        self.log = logger or logging.getLogger(__name__)
        self.points_per_correct = points_per_correct
        self.bonus_multiplier = bonus_multiplier
        self.max_bonuses = max_bonuses
        self.question_duration = question_duration
        self._handlers = {
            Intent.JOIN: self.join,
            Intent.LEAVE: self.leave,
            Intent.START: self.start,
            Intent.START_QUESTION: self.start_question,
            Intent.SUBMIT_ANSWER: self.submit_answer,
            Intent.NEXT_QUESTION: self.next_question,
            Intent.END_QUIZ: self.end_quiz,
            Intent.ACTIVATE_BONUS: self.activate_bonus,
        }

    @classmethod
    def from_config(cls, config, store, table, channel, logger=None) -> 'SessionCoordinator':
        return cls(
            store,
            table,
            channel,
            logger=logger,
            points_per_correct=int(config.get('POINTS_PER_CORRECT', 10)),
            bonus_multiplier=int(config.get('BONUS_MULTIPLIER', 2)),
            max_bonuses=int(config.get('MAX_BONUSES', 3)),
            question_duration=int(config.get('QUESTION_DURATION_SEC', 20)),
        )

    # ---- entry point for transports ----
    def dispatch(self, intent: Intent, session_id: str, account_id: int, sid: Optional[str] = None, **kwargs):
        """Run one intent; never lets an error escape to the transport."""
        intent = Intent(intent)
        handler = self._handlers.get(intent)
        if handler is None:
            raise ValueError(f"{intent.value} is not a session intent")
        try:
            return handler(session_id, account_id, sid=sid, **kwargs)
        except StoreFailure as exc:
            self.log.error(
                f"[{intent.value}] session={session_id} account={account_id} store failure: {exc.message}",
                exc_info=exc,
            )
            self._send_error(sid, intent, exc.to_dict())
        except LiveSessionError as exc:
            self.log.info(f"[{intent.value}] session={session_id} account={account_id} refused: {exc.code} {exc.message}")
            self._send_error(sid, intent, exc.to_dict())
        except Exception:
            self.log.exception(f"[{intent.value}] session={session_id} account={account_id} failed")
            self._send_error(sid, intent, {'code': 'internal_error', 'message': 'internal error'})
        return None

    def _send_error(self, sid: Optional[str], intent: Intent, error: Dict[str, Any]) -> None:
        payload = dict(error)
        payload['intent'] = intent.value
        self.channel.send(sid, Outbound.OPERATION_ERROR, payload)

    # ---- lookups and guards ----
    def _require_session(self, session_id: str) -> QuizSession:
        session = self.store.get_session(session_id) if session_id else None
        if session is None:
            raise NotFound('Session not found')
        return session

    def _require_host(self, session: QuizSession, account_id: int) -> None:
        if session.creator_id != account_id:
            raise Unauthorized('Only the host can do that')

    def _require_in_progress(self, session: QuizSession) -> None:
        if session.status != STATUS_IN_PROGRESS:
            raise InvalidState(f"Session is {session.status}")

    def _questions(self, session: QuizSession) -> List[Dict[str, Any]]:
        quiz = self.store.get_quiz(session.quiz_id)
        if quiz is None:
            raise NotFound('Quiz not found')
        return quiz.questions

    def _state_for(self, session: QuizSession) -> SessionState:
        return self.table.load(session.id)

    def _ensure_player(self, state: SessionState, session_id: str, account_id: int) -> Tuple[LiveScore, bool]:
        """Make sure the account has score and bonus rows in memory.

        Rows are rehydrated from the store when present there; otherwise
        they are created at zero / unarmed and written through. The flag
        tells whether an existing score was found.
        """
        score = state.score_for(account_id)
        restored = score is not None
        if score is None:
            row = self.store.get_score(session_id, account_id)
            if row is not None:
                score = state.set_score(account_id, row.score, row.correct_answers)
                restored = True
        if state.bonus_for(account_id) is None:
            row = self.store.get_bonus_state(session_id, account_id)
            if row is not None:
                state.set_bonus(account_id, row.consumed, bool(row.armed))
            else:
                self.store.upsert_bonus_state(session_id, account_id, 0, False)
                state.set_bonus(account_id, 0, False)
        if score is None:
            self.store.upsert_score(session_id, account_id, 0, 0)
            score = state.set_score(account_id, 0, 0)
        return score, restored

    def _remaining_bonuses(self, consumed: int, armed: bool) -> int:
        return max(0, self.max_bonuses - consumed - (1 if armed else 0))

    def _publish_roster(self, session_id: str) -> List[int]:
        players = self.store.list_roster_members(session_id)
        self.channel.publish(session_id, Outbound.ROSTER_CHANGED, {
            'session_id': session_id,
            'players': players,
        })
        return players

    # ---- intents ----
    def join(self, session_id: str, account_id: int, sid: Optional[str] = None) -> List[int]:
        with self.table.lock(session_id):
            session = self._require_session(session_id)
            questions = self._questions(session) if session.status == STATUS_IN_PROGRESS else None
            state = self._state_for(session) if questions is not None else None
            before = (state.score_for(account_id), state.bonus_for(account_id)) if state else None
            try:
                # roster row and rehydrated player rows land together or not at all
                with self.store.transaction():
                    self.store.upsert_roster_member(session_id, account_id)
                    if state is not None:
                        score, restored = self._ensure_player(state, session_id, account_id)
            except Exception:
                if state is not None:
                    state.restore_player(account_id, *before)
                raise
            self.channel.subscribe(sid, session_id)
            if state is not None:
                self._resume(session, questions, state, account_id, score, restored, sid)
            players = self._publish_roster(session_id)
        self.log.info(f"[join] session={session_id} account={account_id} players={len(players)}")
        self.store.append_action_log(account_id, 'join_session')
        return players

    def _resume(self, session: QuizSession, questions: List[Dict[str, Any]], state: SessionState,
                account_id: int, score: LiveScore, restored: bool, sid: Optional[str]) -> None:
        bonus = state.bonus_for(account_id)
        index = session.current_question
        self.channel.send(sid, Outbound.RESUMED_STATE, {
            'session_id': session.id,
            'current_question': index,
            'total_questions': len(questions),
            'question': public_question(questions[index]) if 0 <= index < len(questions) else None,
            'question_open': state.is_open(index),
            'bonus': {
                'armed': bonus.armed,
                'remaining': self._remaining_bonuses(bonus.consumed, bonus.armed),
            },
        })
        if restored:
            self.log.info(f"[resume] session={session.id} account={account_id} restored score={score.score}")
            self.channel.send(sid, Outbound.SCORE_RESTORED, {'session_id': session.id, **score.to_dict()})

    def leave(self, session_id: str, account_id: int, sid: Optional[str] = None) -> bool:
        with self.table.lock(session_id):
            self._require_session(session_id)
            self.channel.unsubscribe(sid, session_id)
            if account_id not in self.store.list_roster_members(session_id):
                return False
            self.store.remove_roster_member(session_id, account_id)
            self._publish_roster(session_id)
        self.log.info(f"[leave] session={session_id} account={account_id}")
        self.store.append_action_log(account_id, 'leave_session')
        return True

    def start(self, session_id: str, account_id: int, sid: Optional[str] = None) -> None:
        with self.table.lock(session_id):
            session = self._require_session(session_id)
            self._require_host(session, account_id)
            if session.status != STATUS_WAITING:
                raise InvalidState(f"Session is {session.status}")
            questions = self._questions(session)
            self.store.set_session_status(session_id, STATUS_IN_PROGRESS)
            self.table.load(session_id)
            self.channel.publish(session_id, Outbound.QUIZ_STARTED, {
                'session_id': session_id,
                'total_questions': len(questions),
            })
        self.log.info(f"[start] session={session_id} host={account_id}")
        self.store.append_action_log(account_id, 'start_quiz')

    def start_question(self, session_id: str, account_id: int, sid: Optional[str] = None) -> int:
        with self.table.lock(session_id):
            session = self._require_session(session_id)
            self._require_host(session, account_id)
            self._require_in_progress(session)
            questions = self._questions(session)
            index = session.current_question
            if not 0 <= index < len(questions):
                raise Rejected('No question to start')
            state = self._state_for(session)
            state.open_question(index)
            self.channel.publish(session_id, Outbound.QUESTION_STARTED, {
                'session_id': session_id,
                'question_index': index,
                'total_questions': len(questions),
                'question': public_question(questions[index]),
                'time_limit': self.question_duration,
            })
        self.log.info(f"[question] session={session_id} index={index} live")
        return index

    def submit_answer(self, session_id: str, account_id: int, answer: Any = None, sid: Optional[str] = None) -> Optional[LiveScore]:
        with self.table.lock(session_id):
            session = self.store.get_session(session_id) if session_id else None
            if session is None:
                self.log.warning(f"[answer] session={session_id} account={account_id} ignored: no session")
                return None
            if session.status != STATUS_IN_PROGRESS:
                self.log.warning(f"[answer] session={session_id} account={account_id} ignored: status={session.status}")
                return None
            quiz = self.store.get_quiz(session.quiz_id)
            if quiz is None:
                self.log.warning(f"[answer] session={session_id} account={account_id} ignored: no quiz")
                return None
            questions = quiz.questions
            index = session.current_question
            if not 0 <= index < len(questions):
                self.log.warning(f"[answer] session={session_id} account={account_id} ignored: index={index} out of range")
                return None
            question = questions[index]
            if not isinstance(question, dict) or question.get('correct_answer') is None:
                self.log.warning(f"[answer] session={session_id} index={index} ignored: question has no correct answer")
                return None

            state = self.table.get(session_id)
            if state is None or not state.is_open(index):
                self.log.warning(f"[answer] session={session_id} account={account_id} ignored: question {index} not open")
                return None
            state = self._state_for(session)
            if state.has_responded(index, account_id):
                self.log.info(f"[answer] session={session_id} account={account_id} index={index} duplicate")
                return state.score_for(account_id)

            current, _ = self._ensure_player(state, session_id, account_id)
            if answer == question['correct_answer']:
                bonus = state.bonus_for(account_id)
                points = self.points_per_correct
                if bonus.armed:
                    points *= self.bonus_multiplier
                new_score = current.score + points
                new_correct = current.correct + 1
                with self.store.transaction():
                    self.store.upsert_score(session_id, account_id, new_score, new_correct)
                    if bonus.armed:
                        self.store.upsert_bonus_state(session_id, account_id, bonus.consumed + 1, False)
                current = state.set_score(account_id, new_score, new_correct)
                if bonus.armed:
                    state.set_bonus(account_id, bonus.consumed + 1, False)
                    self.log.info(f"[bonus] session={session_id} account={account_id} consumed={bonus.consumed + 1}")
            state.record_response(index, account_id)

            self.channel.publish(session_id, Outbound.SCORE_CHANGED, {
                'session_id': session_id,
                'scores': state.scores_snapshot(),
            })
            roster = set(self.store.list_roster_members(session_id))
            if roster and roster <= state.responders(index) and state.mark_all_responded(index):
                self.channel.publish(session_id, Outbound.ALL_RESPONDED, {
                    'session_id': session_id,
                    'question_index': index,
                })
        return current

    def next_question(self, session_id: str, account_id: int, sid: Optional[str] = None) -> int:
        with self.table.lock(session_id):
            session = self._require_session(session_id)
            self._require_host(session, account_id)
            self._require_in_progress(session)
            questions = self._questions(session)
            index = session.current_question + 1
            if index >= len(questions):
                raise Rejected('No more questions')
            self.store.set_current_question(session_id, index)
            self._state_for(session).close_question()
            self.channel.publish(session_id, Outbound.QUESTION_ADVANCED, {
                'session_id': session_id,
                'question_index': index,
                'total_questions': len(questions),
            })
        self.log.info(f"[next] session={session_id} index={index}")
        return index

    def end_quiz(self, session_id: str, account_id: int, sid: Optional[str] = None) -> Dict[str, dict]:
        with self.table.lock(session_id):
            session = self._require_session(session_id)
            self._require_host(session, account_id)
            self._require_in_progress(session)
            state = self.table.get(session_id)
            rows = state.score_rows() if state else []

            def _finish(store):
                store.set_session_status(session_id, STATUS_FINISHED)
                for aid, score, correct in rows:
                    store.upsert_score(session_id, aid, score, correct)

            self.store.run_in_transaction(_finish)
            scores = {
                str(row.account_id): {'score': row.score, 'correct': row.correct_answers}
                for row in self.store.list_scores(session_id)
            }
            if state:
                scores.update(state.scores_snapshot())
            self.channel.publish(session_id, Outbound.QUIZ_ENDED, {
                'session_id': session_id,
                'scores': scores,
            })
            self.table.drop(session_id)
        self.log.info(f"[end] session={session_id} players_scored={len(scores)}")
        self.store.append_action_log(account_id, 'end_quiz')
        return scores

    def activate_bonus(self, session_id: str, account_id: int, sid: Optional[str] = None) -> int:
        with self.table.lock(session_id):
            session = self._require_session(session_id)
            self._require_in_progress(session)
            state = self._state_for(session)
            self._ensure_player(state, session_id, account_id)
            bonus = state.bonus_for(account_id)
            if bonus.armed:
                raise Rejected('Bonus already active')
            if bonus.consumed >= self.max_bonuses:
                raise Rejected('No bonuses remaining')
            self.store.upsert_bonus_state(session_id, account_id, bonus.consumed, True)
            bonus = state.set_bonus(account_id, bonus.consumed, True)
            remaining = self._remaining_bonuses(bonus.consumed, bonus.armed)
            self.channel.send(sid, Outbound.BONUS_STATUS, {
                'session_id': session_id,
                'armed': True,
                'remaining': remaining,
            })
        self.log.info(f"[bonus] session={session_id} account={account_id} armed remaining={remaining}")
        return remaining
