from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit

from quizroom import socketio
from quizroom.services.live.events import NAMESPACE, Intent, Outbound


def _engine():
    return current_app.extensions['live']


def _session_id(intent: Intent, data):
    session_id = (data or {}).get('session_id')
    if not session_id:
        emit(Outbound.OPERATION_ERROR.value, {
            'intent': intent.value,
            'code': 'bad_request',
            'message': 'session_id is required',
        })
        return None
    return str(session_id)


def _dispatch(intent: Intent, data, **kwargs):
    session_id = _session_id(intent, data)
    if session_id is None:
        return None
    return _engine().coordinator.dispatch(intent, session_id, current_user.id, sid=request.sid, **kwargs)


def handle_connect(auth=None):
    # Refuse sockets that did not log in over HTTP first
    if not current_user.is_authenticated:
        return False
    _engine().presence.touch(current_user.id)
    emit(Outbound.CONNECTED.value, {'message': f'Connected to {NAMESPACE}', 'account_id': current_user.id})


def handle_disconnect(reason=None):
    # Roster cleanup is left to the presence sweep so a quick reconnect keeps the seat
    if current_user.is_authenticated:
        current_app.logger.info(f"[disconnect] account={current_user.id} sid={request.sid}")


def handle_ping(data=None):
    _engine().presence.touch(current_user.id)
    emit(Outbound.PONG.value, data or {})


def handle_join_session(data=None):
    players = _dispatch(Intent.JOIN, data)
    if players is not None:
        _engine().presence.track(str(data['session_id']), current_user.id)


def handle_leave_session(data=None):
    left = _dispatch(Intent.LEAVE, data)
    if left is not None:
        _engine().presence.forget(str(data['session_id']), current_user.id)


def handle_start_quiz(data=None):
    _dispatch(Intent.START, data)


def handle_start_question(data=None):
    _dispatch(Intent.START_QUESTION, data)


def handle_submit_answer(data=None):
    _dispatch(Intent.SUBMIT_ANSWER, data, answer=(data or {}).get('answer'))


def handle_next_question(data=None):
    _dispatch(Intent.NEXT_QUESTION, data)


def handle_end_quiz(data=None):
    _dispatch(Intent.END_QUIZ, data)


def handle_activate_bonus(data=None):
    _dispatch(Intent.ACTIVATE_BONUS, data)


_INTENT_HANDLERS = {
    Intent.JOIN: handle_join_session,
    Intent.LEAVE: handle_leave_session,
    Intent.PING: handle_ping,
    Intent.START: handle_start_quiz,
    Intent.START_QUESTION: handle_start_question,
    Intent.SUBMIT_ANSWER: handle_submit_answer,
    Intent.NEXT_QUESTION: handle_next_question,
    Intent.END_QUIZ: handle_end_quiz,
    Intent.ACTIVATE_BONUS: handle_activate_bonus,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the live quiz namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    for intent, handler in _INTENT_HANDLERS.items():
        socketio.on_event(intent.value, handler, namespace=NAMESPACE)
