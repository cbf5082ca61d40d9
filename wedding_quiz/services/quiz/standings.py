"""Leaderboard, admin score adjustments and per-user score history."""

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from wedding_quiz import db
from wedding_quiz.models import AdminAction, AnswerRecord, ScoreAdjustment, User
from . import realtime
from .control import is_admin
from .errors import InvalidRequest, NotFound, StoreFailure, Unauthorized


def _adjustment_totals():
    return (
        db.session.query(
            ScoreAdjustment.user_id.label('user_id'),
            func.sum(ScoreAdjustment.adjustment_score).label('total'),
        )
        .group_by(ScoreAdjustment.user_id)
        .subquery()
    )


def adjustment_total(user_id: int) -> int:
    return int(
        db.session.query(func.coalesce(func.sum(ScoreAdjustment.adjustment_score), 0))
        .filter(ScoreAdjustment.user_id == user_id).scalar()
    )


def leaderboard(limit=None):
    if limit is None:
        limit = current_app.config.get('LEADERBOARD_LIMIT', 50)
    limit = int(limit)
    adjustments = _adjustment_totals()
    total = (User.quiz_score + func.coalesce(adjustments.c.total, 0)).label('total_score')
    rows = (
        db.session.query(User, func.coalesce(adjustments.c.total, 0), total)
        .outerjoin(adjustments, adjustments.c.user_id == User.id)
        .order_by(total.desc(), User.display_name.asc(), User.id.asc())
        .limit(limit)
        .all()
    )
    board = []
    for position, (user, adjusted, total_score) in enumerate(rows, start=1):
        board.append({
            'rank': position,
            'line_id': user.line_id,
            'display_name': user.display_name,
            'avatar_url': user.avatar_url,
            'quiz_score': user.quiz_score,
            'adjustment_score': int(adjusted),
            'total_score': int(total_score),
        })
    return board


def adjust_score(admin_id, line_id, adjustment_score, reason) -> dict:
    log = current_app.logger
    if not is_admin(admin_id):
        raise Unauthorized('Admin permission required')
    if not line_id or adjustment_score is None or not (reason or '').strip():
        raise InvalidRequest('user_line_id, adjustment_score and reason are required')
    try:
        adjustment_score = int(adjustment_score)
    except (TypeError, ValueError):
        raise InvalidRequest('adjustment_score must be an integer')
    bound = int(current_app.config.get('MAX_SCORE_ADJUSTMENT', 1000))
    if abs(adjustment_score) > bound:
        raise InvalidRequest(f'A single adjustment cannot exceed ±{bound}')

    try:
        user = User.query.filter_by(line_id=line_id).first()
        if user is None:
            raise NotFound('User not found')
        before = user.quiz_score + adjustment_total(user.id)
        if before + adjustment_score < 0:
            raise InvalidRequest(
                f'Adjusted score cannot be negative (current {before}, adjustment {adjustment_score})'
            )
        entry = ScoreAdjustment(
            user_id=user.id,
            admin_line_id=admin_id,
            adjustment_score=adjustment_score,
            reason=reason.strip(),
        )
        db.session.add(entry)
        db.session.add(AdminAction(
            admin_id=admin_id,
            action_type='adjust_score',
            target_type='user',
            target_id=line_id,
            details={'adjustment_score': adjustment_score, 'reason': entry.reason},
        ))
        db.session.commit()
    except (NotFound, InvalidRequest):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        log.error(f"[scores] adjustment failed user={line_id}: {exc}")
        raise StoreFailure('Score adjustment failed') from exc

    log.info(f"[scores] admin={admin_id} adjusted user={line_id} by {adjustment_score}")
    realtime.broadcast_scores({'user_line_id': line_id})
    return {
        'adjustment': entry.to_dict(),
        'user': {
            'line_id': user.line_id,
            'display_name': user.display_name,
            'old_score': before,
            'new_score': before + adjustment_score,
        },
    }


def recent_adjustments(limit=50):
    return [
        a.to_dict()
        for a in ScoreAdjustment.query.order_by(ScoreAdjustment.created_at.desc(), ScoreAdjustment.id.desc())
        .limit(limit).all()
    ]


def score_history(line_id, limit=50, offset=0) -> dict:
    user = User.query.filter_by(line_id=line_id).first()
    if user is None:
        raise NotFound('User not found')
    entries = []
    for r in AnswerRecord.query.filter_by(user_id=user.id).all():
        entries.append({
            'id': f'answer_{r.id}',
            'type': 'answer',
            'score_change': r.score_delta,
            'description': r.question.question_text if r.question else None,
            'details': {
                'question_id': r.question_id,
                'selected_answer': r.selected_answer,
                'answer_time': r.answer_time_ms,
                'is_correct': r.is_correct,
                'is_timeout': r.is_timeout,
            },
            'created_at': r.created_at,
        })
    for a in ScoreAdjustment.query.filter_by(user_id=user.id).all():
        entries.append({
            'id': f'adjustment_{a.id}',
            'type': 'adjustment',
            'score_change': a.adjustment_score,
            'description': a.reason,
            'details': {'admin_line_id': a.admin_line_id},
            'created_at': a.created_at,
        })
    entries.sort(key=lambda e: (e['created_at'], e['id']), reverse=True)
    page = entries[offset:offset + limit]
    for e in page:
        e['created_at'] = e['created_at'].isoformat() if e['created_at'] else None
    return {
        'user': {'line_id': user.line_id, 'display_name': user.display_name},
        'total_score': user.quiz_score + adjustment_total(user.id),
        'records': page,
        'total_records': len(entries),
    }
