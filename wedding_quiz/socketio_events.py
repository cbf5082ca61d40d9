from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict

from wedding_quiz.services.quiz import presence
from wedding_quiz.services.quiz.errors import QuizError
from wedding_quiz.services.quiz.realtime import NAMESPACE, QUIZ_ROOM
from wedding_quiz.services.quiz.state import snapshot
from wedding_quiz import socketio

# sid -> line id of the participant on that socket
_sid_to_line_id: Dict[str, str] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    line_id = _sid_to_line_id.pop(_get_sid(), None)
    if line_id and line_id not in _sid_to_line_id.values():
        _leave_quietly(line_id)


def handle_join_quiz(data):
    """Subscribe to game state pushes; a lineId also counts as a heartbeat."""
    line_id = (data or {}).get('lineId')
    join_room(QUIZ_ROOM)
    if line_id:
        try:
            presence.heartbeat(line_id, (data or {}).get('displayName'))
        except QuizError as exc:
            emit('error', exc.to_dict())
            return
        _sid_to_line_id[_get_sid()] = line_id
    emit('joined', {'room': QUIZ_ROOM})
    emit('state_update', snapshot())


def handle_heartbeat(data):
    line_id = (data or {}).get('lineId') or _sid_to_line_id.get(_get_sid())
    if not line_id:
        emit('error', {'message': 'lineId is required'})
        return
    try:
        presence.heartbeat(line_id)
    except QuizError as exc:
        emit('error', exc.to_dict())
        return
    emit('heartbeat_ack', {'lineId': line_id})


def handle_leave_quiz(data):
    leave_room(QUIZ_ROOM)
    joined_as = _sid_to_line_id.pop(_get_sid(), None)
    line_id = (data or {}).get('lineId') or joined_as
    if line_id:
        _leave_quietly(line_id)
    emit('left', {'room': QUIZ_ROOM})


def handle_ping(data):
    emit('pong', data or {})


def _leave_quietly(line_id: str) -> None:
    # Leaving is best effort; a failure must not break the socket
    try:
        presence.leave(line_id)
    except QuizError as exc:
        current_app.logger.info(f"[presence] leave ignored line_id={line_id}: {exc.message}")


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE] + (['/'] if testing else [])
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('join_quiz', handle_join_quiz, namespace=ns)
        socketio.on_event('heartbeat', handle_heartbeat, namespace=ns)
        socketio.on_event('leave_quiz', handle_leave_quiz, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
