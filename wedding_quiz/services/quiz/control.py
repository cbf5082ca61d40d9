"""Admin-driven game control state machine.

Each command runs as one transaction: lock the game state row, validate the
transition, mutate, append an ``AdminAction`` and commit. Nothing is pushed
to clients until the commit succeeds.
"""

import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from wedding_quiz import db
from wedding_quiz.models import (
    DISPLAY_QUESTION, DISPLAY_RANKINGS, AdminAction, AdminLineId, AnswerRecord,
    GameState, Question, ScoreAdjustment, User,
)
from . import clock, presence, realtime
from .errors import (
    ConcurrentModification, InvalidRequest, InvalidTransition, NotFound, QuizError,
    StoreFailure, Unauthorized,
)
from .state import (
    ACTIVE_STATUSES, ENDED, IDLE, PAUSED, QUESTION_ACTIVE, WAITING_FOR_PLAYERS,
    count_questions, first_question, get_state, snapshot, status_of, successor_of,
)


class Command(str, Enum):
    START_GAME = 'start_game'
    START_FIRST_QUESTION = 'start_first_question'
    PAUSE_GAME = 'pause_game'
    RESUME_GAME = 'resume_game'
    NEXT_QUESTION = 'next_question'
    SHOW_RANKINGS = 'show_rankings'
    JUMP_TO_QUESTION = 'jump_to_question'
    END_GAME = 'end_game'
    RESET_GAME = 'reset_game'
    UPDATE_SETTINGS = 'update_settings'

    @classmethod
    def parse(cls, raw: Any) -> 'Command':
        try:
            return cls(raw)
        except ValueError:
            raise InvalidRequest(f'Unknown action: {raw}')


SETTINGS_FIELDS = ('question_time_limit', 'active_question_set')


class Outcome:
    """What a handler did: audit details plus whether anything changed."""

    def __init__(self, details: Optional[dict] = None, noop: bool = False, target_id=None):
        self.details = details or {}
        self.noop = noop
        self.target_id = target_id


def is_admin(line_id: Optional[str]) -> bool:
    if not line_id:
        return False
    return AdminLineId.query.filter_by(line_id=line_id).first() is not None


def _new_session_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:16]}"


def _set_current(state: GameState, question: Question, now: float) -> None:
    state.current_question_id = question.id
    state.current_question = question
    state.question_start_time = now
    state.is_paused = False
    state.paused_at = None
    state.display_phase = DISPLAY_QUESTION


def _clear_current(state: GameState) -> None:
    state.current_question_id = None
    state.current_question = None
    state.question_start_time = None
    state.is_paused = False
    state.paused_at = None


def _require(status: str, allowed, command: Command) -> None:
    if status not in allowed:
        raise InvalidTransition(f'{command.value} is not allowed while game is {status}', status=status)


# ---- Handlers ----

def _start_game(state, status, now, params):
    if status not in (IDLE, ENDED):
        raise InvalidTransition('Game is already active', status=status)
    _clear_current(state)
    state.is_active = True
    state.ended_at = None
    state.completed_questions = 0
    state.total_questions = count_questions(state.active_question_set)
    state.display_phase = DISPLAY_QUESTION
    state.game_session_id = _new_session_id('game')
    return Outcome({'game_session_id': state.game_session_id, 'total_questions': state.total_questions})


def _start_first_question(state, status, now, params):
    _require(status, (WAITING_FOR_PLAYERS,), Command.START_FIRST_QUESTION)
    question = first_question(state.active_question_set)
    if question is None:
        raise InvalidTransition('No questions available', question_set=state.active_question_set)
    _set_current(state, question, now)
    state.total_questions = count_questions(state.active_question_set)
    return Outcome({'question_id': question.id}, target_id=question.id)


def _pause_game(state, status, now, params):
    if status == PAUSED:
        return Outcome({'already_paused': True}, noop=True)
    _require(status, (QUESTION_ACTIVE,), Command.PAUSE_GAME)
    state.is_paused = True
    state.paused_at = now
    return Outcome({'question_id': state.current_question_id, 'paused_at': now})


def _resume_game(state, status, now, params):
    if status != PAUSED:
        return Outcome({'not_paused': True}, noop=True)
    # The answer window restarts from now rather than continuing the frozen countdown
    state.is_paused = False
    state.paused_at = None
    state.question_start_time = now
    return Outcome({'question_id': state.current_question_id, 'question_start_time': now})


def _next_question(state, status, now, params):
    if status == ENDED:
        return Outcome({'game_ended': True}, noop=True)
    _require(status, (QUESTION_ACTIVE, PAUSED), Command.NEXT_QUESTION)
    previous_id = state.current_question_id
    successor = successor_of(state.current_question, state.active_question_set)
    if successor is None:
        _clear_current(state)
        state.is_active = False
        state.ended_at = now
        presence.clear_all()
        return Outcome({'previous_question_id': previous_id, 'game_ended': True})
    _set_current(state, successor, now)
    state.completed_questions = (state.completed_questions or 0) + 1
    return Outcome(
        {'previous_question_id': previous_id, 'next_question_id': successor.id},
        target_id=successor.id,
    )


def _show_rankings(state, status, now, params):
    _require(status, ACTIVE_STATUSES, Command.SHOW_RANKINGS)
    state.display_phase = DISPLAY_RANKINGS
    return Outcome({'question_id': state.current_question_id})


def _jump_to_question(state, status, now, params):
    _require(status, ACTIVE_STATUSES, Command.JUMP_TO_QUESTION)
    question_id = params.get('question_id')
    try:
        question_id = int(question_id)
    except (TypeError, ValueError):
        raise InvalidRequest('questionId is required')
    question = db.session.get(Question, question_id)
    if question is None or not question.is_active:
        raise NotFound('Question does not exist or is not active', question_id=question_id)
    previous_id = state.current_question_id
    _set_current(state, question, now)
    return Outcome(
        {'previous_question_id': previous_id, 'jumped_to_question_id': question.id},
        target_id=question.id,
    )


def _end_game(state, status, now, params):
    _clear_current(state)
    state.is_active = False
    state.ended_at = now
    cleared = presence.clear_all()
    return Outcome({'previous_status': status, 'players_cleared': cleared})


def _reset_game(state, status, now, params):
    answers = AnswerRecord.query.delete(synchronize_session=False)
    adjustments = ScoreAdjustment.query.delete(synchronize_session=False)
    User.query.update(
        {User.quiz_score: 0, User.is_in_quiz_page: False},
        synchronize_session=False,
    )
    _clear_current(state)
    state.is_active = True
    state.ended_at = None
    state.completed_questions = 0
    state.total_questions = count_questions(state.active_question_set)
    state.display_phase = DISPLAY_QUESTION
    state.game_session_id = _new_session_id('reset')
    return Outcome({
        'reset_complete': True,
        'answers_deleted': answers,
        'adjustments_deleted': adjustments,
    })


def _update_settings(state, status, now, params):
    settings = params.get('settings')
    if not isinstance(settings, dict) or not settings:
        raise InvalidRequest('settings must be a non-empty object')
    unknown = sorted(set(settings) - set(SETTINGS_FIELDS))
    if unknown:
        raise InvalidRequest(f"Unknown settings: {', '.join(unknown)}", fields=unknown)
    applied = {}
    if 'question_time_limit' in settings:
        value = settings['question_time_limit']
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidRequest('question_time_limit must be a positive integer')
        state.question_time_limit = value
        applied['question_time_limit'] = value
    if 'active_question_set' in settings:
        value = settings['active_question_set']
        if not isinstance(value, str) or not value.strip():
            raise InvalidRequest('active_question_set must be a non-empty string')
        state.active_question_set = value.strip()
        state.total_questions = count_questions(state.active_question_set)
        applied['active_question_set'] = state.active_question_set
    return Outcome({'settings': applied})


HANDLERS: Dict[Command, Callable[..., Outcome]] = {
    Command.START_GAME: _start_game,
    Command.START_FIRST_QUESTION: _start_first_question,
    Command.PAUSE_GAME: _pause_game,
    Command.RESUME_GAME: _resume_game,
    Command.NEXT_QUESTION: _next_question,
    Command.SHOW_RANKINGS: _show_rankings,
    Command.JUMP_TO_QUESTION: _jump_to_question,
    Command.END_GAME: _end_game,
    Command.RESET_GAME: _reset_game,
    Command.UPDATE_SETTINGS: _update_settings,
}


def apply_command(command: Command, admin_id: Optional[str], question_id=None,
                  settings: Optional[dict] = None) -> dict:
    """Validate and apply one control command.

    Returns ``{'action', 'details', 'noop', 'state'}``. Raises a
    ``QuizError`` subclass on rejection; the game state is unchanged then.
    """
    log = current_app.logger
    try:
        if not is_admin(admin_id):
            raise Unauthorized('Admin permission required')
        state = get_state(for_update=True)
        status = status_of(state)
        now = clock.now()
        outcome = HANDLERS[command](state, status, now, {
            'question_id': question_id,
            'settings': settings,
        })
        if outcome.noop:
            db.session.rollback()
            log.info(f"[control] {command.value} no-op by admin={admin_id} status={status}")
            return {
                'action': command.value,
                'details': outcome.details,
                'noop': True,
                'state': snapshot(),
            }
        db.session.add(AdminAction(
            admin_id=admin_id,
            action_type=command.value,
            target_type='game',
            target_id=str(outcome.target_id) if outcome.target_id is not None else None,
            details=outcome.details,
        ))
        db.session.commit()
    except QuizError as exc:
        db.session.rollback()
        log.info(f"[control] rejected {command.value} by admin={admin_id}: {exc.message}")
        raise
    except StaleDataError as exc:
        db.session.rollback()
        log.warning(f"[control] {command.value} lost a concurrent update: {exc}")
        raise ConcurrentModification('Game state changed concurrently; reload and retry') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.error(f"[control] {command.value} store failure: {exc}")
        raise StoreFailure('Database operation failed') from exc

    payload = snapshot(state)
    log.info(f"[control] {command.value} by admin={admin_id} {status} -> {payload['status']} details={outcome.details}")
    realtime.broadcast_state(payload)
    if command is Command.RESET_GAME:
        realtime.broadcast_scores({'reset': True})
    return {
        'action': command.value,
        'details': outcome.details,
        'noop': False,
        'state': payload,
    }
