"""Who is currently looking at the quiz page.

Informational only: scoring never depends on presence.
"""

from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from wedding_quiz import db
from wedding_quiz.models import User
from . import clock
from .errors import InvalidRequest, NotFound, StoreFailure


def heartbeat(line_id: str, display_name: Optional[str] = None) -> User:
    if not line_id:
        raise InvalidRequest('lineId is required')
    try:
        user = User.query.filter_by(line_id=line_id).first()
        if user is None:
            user = User(line_id=line_id, display_name=display_name or line_id, quiz_score=0)
            db.session.add(user)
            current_app.logger.info(f"[presence] new participant line_id={line_id}")
        elif display_name:
            user.display_name = display_name
        user.last_heartbeat = clock.now()
        user.is_in_quiz_page = True
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[presence] heartbeat failed line_id={line_id}: {exc}")
        raise StoreFailure('Failed to update heartbeat') from exc
    return user


def leave(line_id: str) -> None:
    if not line_id:
        raise InvalidRequest('lineId is required')
    try:
        updated = (
            User.query.filter_by(line_id=line_id)
            .update({User.is_in_quiz_page: False}, synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[presence] leave failed line_id={line_id}: {exc}")
        raise StoreFailure('Failed to update leave status') from exc
    if not updated:
        raise NotFound('User not found')


def clear_all() -> int:
    """Mark everyone as away. Runs inside the caller's transaction."""
    return (
        User.query.filter(User.is_in_quiz_page.is_(True))
        .update({User.is_in_quiz_page: False}, synchronize_session=False)
    )


def count_present(current: Optional[float] = None) -> int:
    current = clock.now() if current is None else current
    stale_after = float(current_app.config.get('PRESENCE_STALE_SEC', 60))
    return (
        User.query
        .filter(User.is_in_quiz_page.is_(True), User.last_heartbeat >= current - stale_after)
        .count()
    )


def summary(current: Optional[float] = None) -> dict:
    return {
        'present': count_present(current),
        'flagged': User.query.filter(User.is_in_quiz_page.is_(True)).count(),
        'total': User.query.count(),
    }
