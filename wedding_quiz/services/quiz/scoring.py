"""Answer scoring.

``calculate_score`` is pure; ``submit_answer`` wraps it with the submission
guards, persists the ``AnswerRecord`` and increments the participant's
``quiz_score`` in the same transaction.

Speed bonus is linear in the time left of the answer window::

    bonus = floor(max_bonus_points * (window_ms - answer_time_ms) / window_ms)

clamped to ``[0, max_bonus_points]``, so an instant answer earns the full
bonus and anything at or past the end of the window earns nothing.
"""

from dataclasses import asdict, dataclass
from typing import List, Optional, Sequence

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from wedding_quiz import db
from wedding_quiz.models import ANSWER_CHOICES, AnswerRecord, Question, User
from . import clock, realtime
from .errors import (
    AnswersNotOpen, DuplicateSubmission, InvalidRequest, NotFound, QuizError, StaleSubmission, StoreFailure,
)
from .state import get_state


@dataclass
class ScoreBreakdown:
    base_score: int = 0
    speed_bonus: int = 0
    rank_bonus: int = 0
    penalty: int = 0
    final_score: int = 0
    is_correct: bool = False

    def to_dict(self):
        return asdict(self)


def speed_bonus(max_bonus_points: int, answer_time_ms: int, window_ms: int) -> int:
    if max_bonus_points <= 0 or window_ms <= 0:
        return 0
    left = window_ms - max(0, answer_time_ms)
    if left <= 0:
        return 0
    return min(max_bonus_points, (max_bonus_points * left) // window_ms)


def rank_bonus_for(rank: Optional[int], table: Sequence[int]) -> int:
    if not rank or rank < 1 or rank > len(table):
        return 0
    return int(table[rank - 1])


def calculate_score(question: Question, selected_answer: Optional[str], answer_time_ms: int,
                    is_timeout: bool, window_ms: int, rank: Optional[int] = None,
                    rank_table: Sequence[int] = ()) -> ScoreBreakdown:
    """Score one submission against the question's rules.

    ``rank`` is the 1-based position of this answer among correct answers
    to the question and only matters when ``rank_table`` is non-empty.
    """
    result = ScoreBreakdown()
    if is_timeout:
        if question.timeout_penalty_enabled:
            result.penalty = int(question.timeout_penalty_score or 0)
        result.final_score = -result.penalty
        return result

    if selected_answer != question.correct_answer:
        if question.penalty_enabled:
            result.penalty = int(question.penalty_score or 0)
        result.final_score = -result.penalty
        return result

    result.is_correct = True
    result.base_score = int(question.points or 0)
    if question.speed_bonus_enabled:
        result.speed_bonus = speed_bonus(int(question.max_bonus_points or 0), answer_time_ms, window_ms)
    result.rank_bonus = rank_bonus_for(rank, rank_table)
    result.final_score = result.base_score + result.speed_bonus + result.rank_bonus
    return result


def rank_bonus_table() -> List[int]:
    raw = current_app.config.get('RANK_BONUS_POINTS') or ''
    if isinstance(raw, (list, tuple)):
        return [int(x) for x in raw]
    return [int(x) for x in str(raw).split(',') if x.strip()]


def normalize_answer(selected_answer) -> Optional[str]:
    if selected_answer is None or selected_answer == '':
        return None
    if not isinstance(selected_answer, str) or selected_answer.upper() not in ANSWER_CHOICES:
        raise InvalidRequest(f'selected_answer must be one of {", ".join(ANSWER_CHOICES)}')
    return selected_answer.upper()


def _already_answered(user_id: int, question_id: int) -> bool:
    return AnswerRecord.query.filter_by(user_id=user_id, question_id=question_id).first() is not None


def submit_answer(line_id: str, question_id: int, selected_answer: Optional[str],
                  answer_time_ms: int, is_timeout: bool) -> dict:
    """Score and record one answer.

    Raises ``StaleSubmission`` when the question is no longer live,
    ``AnswersNotOpen`` during the pre-roll and ``DuplicateSubmission``
    when the user already answered it; none of them touches the score.
    """
    log = current_app.logger
    selected_answer = normalize_answer(selected_answer)
    if not isinstance(is_timeout, bool):
        raise InvalidRequest('is_timeout must be a boolean')
    if not is_timeout and selected_answer is None:
        raise InvalidRequest('selected_answer is required unless is_timeout is set')
    if isinstance(answer_time_ms, bool) or not isinstance(answer_time_ms, (int, float)) or answer_time_ms < 0:
        raise InvalidRequest('answer_time must be a non-negative number of milliseconds')
    answer_time_ms = int(answer_time_ms)

    try:
        user = User.query.filter_by(line_id=line_id).first()
        if user is None:
            raise NotFound('User not found')
        state = get_state()
        if not state.is_active or state.current_question_id != question_id:
            raise StaleSubmission('Question is closed', current_question_id=state.current_question_id)
        question = db.session.get(Question, question_id)
        if question is None:
            raise NotFound('Question not found')
        if _already_answered(user.id, question_id):
            raise DuplicateSubmission('Already answered this question')

        now = clock.now()
        window = int(state.question_time_limit or 0) * 1000
        grace = int(current_app.config.get('SUBMISSION_GRACE_MS', 2000))
        server_elapsed = clock.answer_elapsed_ms(
            state.question_start_time, question.time_limit, now, state.is_paused, state.paused_at,
        )
        if server_elapsed < 0:
            raise AnswersNotOpen('Answers are not open yet')
        if not is_timeout and server_elapsed > window + grace:
            log.info(f"[scoring] late answer treated as timeout user={line_id} question={question_id} elapsed={server_elapsed}ms")
            is_timeout = True
        effective_time = max(answer_time_ms, server_elapsed - grace, 0)

        rank = None
        table = rank_bonus_table()
        if table and not is_timeout and selected_answer == question.correct_answer:
            rank = AnswerRecord.query.filter_by(question_id=question_id, is_correct=True).count() + 1

        breakdown = calculate_score(question, selected_answer, effective_time, is_timeout, window, rank, table)
        record = AnswerRecord(
            user_id=user.id,
            question_id=question_id,
            selected_answer=None if is_timeout else selected_answer,
            answer_time_ms=effective_time,
            is_timeout=is_timeout,
            is_correct=breakdown.is_correct,
            speed_bonus=breakdown.speed_bonus,
            rank_bonus=breakdown.rank_bonus,
            score_delta=breakdown.final_score,
        )
        db.session.add(record)
        db.session.flush()
        # Additive UPDATE so concurrent submissions never overwrite each other
        User.query.filter_by(id=user.id).update(
            {User.quiz_score: User.quiz_score + breakdown.final_score},
            synchronize_session=False,
        )
        db.session.commit()
    except QuizError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        log.info(f"[scoring] duplicate answer user={line_id} question={question_id}")
        raise DuplicateSubmission('Already answered this question') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.error(f"[scoring] store failure user={line_id} question={question_id}: {exc}")
        raise StoreFailure('Failed to record answer') from exc

    log.info(
        f"[scoring] user={line_id} question={question_id} answer={record.selected_answer} "
        f"timeout={is_timeout} delta={breakdown.final_score}"
    )
    realtime.broadcast_scores({'user_line_id': line_id, 'question_id': question_id})
    return {
        'record': record.to_dict(),
        'score_details': breakdown.to_dict(),
    }


def question_statistics(question_id: int) -> dict:
    if db.session.get(Question, question_id) is None:
        raise NotFound('Question not found')
    records = (
        AnswerRecord.query.filter_by(question_id=question_id)
        .order_by(AnswerRecord.answer_time_ms.asc(), AnswerRecord.id.asc())
        .all()
    )
    distribution = {choice: 0 for choice in ANSWER_CHOICES}
    distribution['timeout'] = 0
    answered_times = []
    for r in records:
        if r.is_timeout or r.selected_answer is None:
            distribution['timeout'] += 1
        else:
            distribution[r.selected_answer] += 1
            answered_times.append(r.answer_time_ms)
    correct = [r for r in records if r.is_correct]
    top = []
    for position, r in enumerate(correct[:3], start=1):
        top.append({
            'rank': position,
            'user': {'line_id': r.user.line_id, 'display_name': r.user.display_name},
            'score': r.score_delta,
            'answer_time': r.answer_time_ms,
        })
    return {
        'question_id': question_id,
        'total_answers': len(records),
        'correct_answers': len(correct),
        'wrong_answers': sum(1 for r in records if not r.is_correct and not r.is_timeout),
        'timeout_answers': distribution['timeout'],
        'average_answer_time': round(sum(answered_times) / len(answered_times)) if answered_times else 0,
        'score_distribution': distribution,
        'top_scorers': top,
        'points_awarded': int(
            db.session.query(func.coalesce(func.sum(AnswerRecord.score_delta), 0))
            .filter(AnswerRecord.question_id == question_id).scalar()
        ),
    }
