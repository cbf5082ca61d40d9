from flask import current_app

from wedding_quiz import socketio

NAMESPACE = '/ws'
QUIZ_ROOM = 'quiz'


def broadcast_state(payload: dict) -> None:
    """Push the latest game snapshot to every client in the quiz room.

    Clients re-derive everything from the newest snapshot, so a dropped
    notification is repaired by the next one or by polling /api/game/state.
    """
    socketio.emit('state_update', payload, to=QUIZ_ROOM, namespace=NAMESPACE)
    current_app.logger.debug(f"[realtime] state_update status={payload.get('status')}")


def broadcast_scores(payload: dict) -> None:
    socketio.emit('scores_update', payload, to=QUIZ_ROOM, namespace=NAMESPACE)
