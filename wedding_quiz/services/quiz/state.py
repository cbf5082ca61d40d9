"""Reading the singleton game state row and deriving its machine state."""

from typing import Optional

from flask import current_app
from sqlalchemy import and_, or_

from wedding_quiz import db
from wedding_quiz.models import GAME_STATE_ID, DISPLAY_QUESTION, GameState, Question
from . import clock
from .presence import count_present

IDLE = 'IDLE'
WAITING_FOR_PLAYERS = 'WAITING_FOR_PLAYERS'
QUESTION_ACTIVE = 'QUESTION_ACTIVE'
PAUSED = 'PAUSED'
ENDED = 'ENDED'

ACTIVE_STATUSES = (WAITING_FOR_PLAYERS, QUESTION_ACTIVE, PAUSED)


def status_of(state: GameState) -> str:
    if state.is_active:
        if state.current_question_id is None:
            return WAITING_FOR_PLAYERS
        return PAUSED if state.is_paused else QUESTION_ACTIVE
    return ENDED if state.ended_at is not None else IDLE


def get_state(for_update: bool = False) -> GameState:
    """Return the game state row, creating it on first use.

    ``for_update`` takes a row lock where the backend supports it; the
    version column catches concurrent writers either way.
    """
    query = GameState.query.filter_by(id=GAME_STATE_ID)
    if for_update:
        query = query.with_for_update().populate_existing()
    state = query.first()
    if state is None:
        state = GameState(
            id=GAME_STATE_ID,
            is_active=False,
            is_paused=False,
            display_phase=DISPLAY_QUESTION,
            active_question_set=current_app.config.get('DEFAULT_QUESTION_SET', 'default'),
            question_time_limit=int(current_app.config.get('QUESTION_TIME_LIMIT_SEC', 15)),
            completed_questions=0,
            total_questions=0,
        )
        db.session.add(state)
        db.session.flush()
    return state


def active_questions(question_set: str):
    return (
        Question.query
        .filter(Question.is_active.is_(True), Question.category == question_set)
        .order_by(Question.display_order.asc(), Question.id.asc())
    )


def first_question(question_set: str) -> Optional[Question]:
    return active_questions(question_set).first()


def successor_of(question: Optional[Question], question_set: str) -> Optional[Question]:
    """Next question by (display_order, id) within the active set."""
    if question is None:
        return None
    return (
        active_questions(question_set)
        .filter(or_(
            and_(Question.display_order == question.display_order, Question.id > question.id),
            Question.display_order > question.display_order,
        ))
        .first()
    )


def count_questions(question_set: str) -> int:
    return active_questions(question_set).count()


def snapshot(state: Optional[GameState] = None, current: Optional[float] = None) -> dict:
    """Public view of the game state sent to every client."""
    state = state or get_state()
    current = clock.now() if current is None else current
    status = status_of(state)
    question = state.current_question
    payload = state.to_dict()
    payload['status'] = status
    payload['time_remaining'] = clock.state_remaining_ms(state, current)
    payload['server_time'] = current
    payload['current_question'] = question.to_dict(include_answer=False) if question else None
    payload['has_next_question'] = (
        successor_of(question, state.active_question_set) is not None
        if question is not None
        else status == WAITING_FOR_PLAYERS and first_question(state.active_question_set) is not None
    )
    payload['online_players'] = count_present(current)
    return payload
