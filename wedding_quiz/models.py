from datetime import datetime, timezone

from wedding_quiz import db

GAME_STATE_ID = 1

ANSWER_CHOICES = ('A', 'B', 'C', 'D')

DISPLAY_QUESTION = 'question'
DISPLAY_RANKINGS = 'rankings'


def utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    line_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(128), nullable=False)
    avatar_url = db.Column(db.String(512), nullable=True)
    quiz_score = db.Column(db.Integer, default=0, nullable=False)
    is_in_quiz_page = db.Column(db.Boolean, default=False, nullable=False)
    last_heartbeat = db.Column(db.Float, nullable=True)  # epoch seconds
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'line_id': self.line_id,
            'display_name': self.display_name,
            'avatar_url': self.avatar_url,
            'quiz_score': self.quiz_score,
            'is_in_quiz_page': self.is_in_quiz_page,
            'last_heartbeat': self.last_heartbeat,
        }


class AdminLineId(db.Model):
    __tablename__ = 'admin_line_id'
    id = db.Column(db.Integer, primary_key=True)
    line_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)


class Question(db.Model):
    __tablename__ = 'question'
    id = db.Column(db.Integer, primary_key=True)
    question_text = db.Column(db.Text, nullable=False, default='')
    option_a = db.Column(db.String(256), nullable=True)
    option_b = db.Column(db.String(256), nullable=True)
    option_c = db.Column(db.String(256), nullable=True)
    option_d = db.Column(db.String(256), nullable=True)
    correct_answer = db.Column(db.String(1), nullable=False)
    display_order = db.Column(db.Integer, default=0, nullable=False, index=True)
    category = db.Column(db.String(64), default='default', nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    points = db.Column(db.Integer, default=100, nullable=False)
    # Seconds the question is shown before answers open
    time_limit = db.Column(db.Integer, default=0, nullable=False)
    penalty_enabled = db.Column(db.Boolean, default=False, nullable=False)
    penalty_score = db.Column(db.Integer, default=0, nullable=False)
    timeout_penalty_enabled = db.Column(db.Boolean, default=False, nullable=False)
    timeout_penalty_score = db.Column(db.Integer, default=0, nullable=False)
    speed_bonus_enabled = db.Column(db.Boolean, default=False, nullable=False)
    max_bonus_points = db.Column(db.Integer, default=0, nullable=False)

    def to_dict(self, include_answer=True):
        data = {
            'id': self.id,
            'question_text': self.question_text,
            'option_a': self.option_a,
            'option_b': self.option_b,
            'option_c': self.option_c,
            'option_d': self.option_d,
            'display_order': self.display_order,
            'category': self.category,
            'points': self.points,
            'time_limit': self.time_limit,
            'speed_bonus_enabled': self.speed_bonus_enabled,
            'max_bonus_points': self.max_bonus_points,
        }
        if include_answer:
            data['correct_answer'] = self.correct_answer
        return data


class GameState(db.Model):
    __tablename__ = 'game_state'
    id = db.Column(db.Integer, primary_key=True)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    is_paused = db.Column(db.Boolean, default=False, nullable=False)
    current_question_id = db.Column(db.Integer, db.ForeignKey('question.id', ondelete='SET NULL'), nullable=True)
    # Epoch seconds; every client derives its countdown from this value
    question_start_time = db.Column(db.Float, nullable=True)
    paused_at = db.Column(db.Float, nullable=True)
    ended_at = db.Column(db.Float, nullable=True)
    display_phase = db.Column(db.String(16), default=DISPLAY_QUESTION, nullable=False)
    active_question_set = db.Column(db.String(64), default='default', nullable=False)
    completed_questions = db.Column(db.Integer, default=0, nullable=False)
    total_questions = db.Column(db.Integer, default=0, nullable=False)
    question_time_limit = db.Column(db.Integer, default=15, nullable=False)
    game_session_id = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version = db.Column(db.Integer, nullable=False)

    current_question = db.relationship('Question', foreign_keys=[current_question_id])

    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'is_active': self.is_active,
            'is_paused': self.is_paused,
            'current_question_id': self.current_question_id,
            'question_start_time': self.question_start_time,
            'paused_at': self.paused_at,
            'display_phase': self.display_phase,
            'active_question_set': self.active_question_set,
            'completed_questions': self.completed_questions,
            'total_questions': self.total_questions,
            'question_time_limit': self.question_time_limit,
            'game_session_id': self.game_session_id,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class AnswerRecord(db.Model):
    __tablename__ = 'answer_record'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'question_id', name='uq_answer_record_user_question'),
    )
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False, index=True)
    selected_answer = db.Column(db.String(1), nullable=True)
    answer_time_ms = db.Column(db.Integer, default=0, nullable=False)
    is_timeout = db.Column(db.Boolean, default=False, nullable=False)
    is_correct = db.Column(db.Boolean, default=False, nullable=False)
    speed_bonus = db.Column(db.Integer, default=0, nullable=False)
    rank_bonus = db.Column(db.Integer, default=0, nullable=False)
    score_delta = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User')
    question = db.relationship('Question')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'question_id': self.question_id,
            'selected_answer': self.selected_answer,
            'answer_time_ms': self.answer_time_ms,
            'is_timeout': self.is_timeout,
            'is_correct': self.is_correct,
            'speed_bonus': self.speed_bonus,
            'rank_bonus': self.rank_bonus,
            'score_delta': self.score_delta,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class ScoreAdjustment(db.Model):
    __tablename__ = 'score_adjustment'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    admin_line_id = db.Column(db.String(64), nullable=False)
    adjustment_score = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'user_line_id': self.user.line_id if self.user else None,
            'display_name': self.user.display_name if self.user else None,
            'admin_line_id': self.admin_line_id,
            'adjustment_score': self.adjustment_score,
            'reason': self.reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class AdminAction(db.Model):
    __tablename__ = 'admin_action'
    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.String(64), nullable=False, index=True)
    action_type = db.Column(db.String(32), nullable=False)
    target_type = db.Column(db.String(32), nullable=False)
    target_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'admin_id': self.admin_id,
            'action_type': self.action_type,
            'target_type': self.target_type,
            'target_id': self.target_id,
            'details': self.details,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
