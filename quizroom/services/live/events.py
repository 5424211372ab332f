"""Closed sets of Socket.IO event names for the live quiz namespace."""
from enum import Enum

NAMESPACE = '/ws'


class Intent(str, Enum):
    """Inbound events a connection may emit after authenticating."""
    JOIN = 'join_session'
    LEAVE = 'leave_session'
    PING = 'ping'
    START = 'start_quiz'
    START_QUESTION = 'start_question'
    SUBMIT_ANSWER = 'submit_answer'
    NEXT_QUESTION = 'next_question'
    END_QUIZ = 'end_quiz'
    ACTIVATE_BONUS = 'activate_bonus'


class Outbound(str, Enum):
    """Events published to a room or sent to a single connection."""
    CONNECTED = 'connected'
    PONG = 'pong'
    ROSTER_CHANGED = 'roster_changed'
    QUIZ_STARTED = 'quiz_started'
    QUESTION_STARTED = 'question_started'
    SCORE_CHANGED = 'score_changed'
    QUESTION_ADVANCED = 'question_advanced'
    ALL_RESPONDED = 'all_responded'
    QUIZ_ENDED = 'quiz_ended'
    BONUS_STATUS = 'bonus_status'
    RESUMED_STATE = 'resumed_state'
    SCORE_RESTORED = 'score_restored'
    OPERATION_ERROR = 'operation_error'


def room_name(session_id: str) -> str:
    return f"session:{session_id}"
