"""initial quiz schema

Revision ID: 4c2d9e7a1b30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c2d9e7a1b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('line_id', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('avatar_url', sa.String(length=512), nullable=True),
        sa.Column('quiz_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_in_quiz_page', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_heartbeat', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_line_id', 'user', ['line_id'], unique=True)

    op.create_table(
        'admin_line_id',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('line_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_line_id_line_id', 'admin_line_id', ['line_id'], unique=True)

    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('option_a', sa.String(length=256), nullable=True),
        sa.Column('option_b', sa.String(length=256), nullable=True),
        sa.Column('option_c', sa.String(length=256), nullable=True),
        sa.Column('option_d', sa.String(length=256), nullable=True),
        sa.Column('correct_answer', sa.String(length=1), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('category', sa.String(length=64), nullable=False, server_default='default'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('points', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('time_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('penalty_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('penalty_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('timeout_penalty_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('timeout_penalty_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('speed_bonus_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_bonus_points', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_question_display_order', 'question', ['display_order'])
    op.create_index('ix_question_category', 'question', ['category'])

    op.create_table(
        'game_state',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_paused', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('current_question_id', sa.Integer(), nullable=True),
        sa.Column('question_start_time', sa.Float(), nullable=True),
        sa.Column('paused_at', sa.Float(), nullable=True),
        sa.Column('ended_at', sa.Float(), nullable=True),
        sa.Column('display_phase', sa.String(length=16), nullable=False, server_default='question'),
        sa.Column('active_question_set', sa.String(length=64), nullable=False, server_default='default'),
        sa.Column('completed_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_questions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('question_time_limit', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('game_session_id', sa.String(length=64), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['current_question_id'], ['question.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'answer_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('selected_answer', sa.String(length=1), nullable=True),
        sa.Column('answer_time_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_timeout', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('speed_bonus', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rank_bonus', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['question_id'], ['question.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'question_id', name='uq_answer_record_user_question'),
    )
    op.create_index('ix_answer_record_user_id', 'answer_record', ['user_id'])
    op.create_index('ix_answer_record_question_id', 'answer_record', ['question_id'])

    op.create_table(
        'score_adjustment',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('admin_line_id', sa.String(length=64), nullable=False),
        sa.Column('adjustment_score', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=256), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_score_adjustment_user_id', 'score_adjustment', ['user_id'])

    op.create_table(
        'admin_action',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.String(length=64), nullable=False),
        sa.Column('action_type', sa.String(length=32), nullable=False),
        sa.Column('target_type', sa.String(length=32), nullable=False),
        sa.Column('target_id', sa.String(length=64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_action_admin_id', 'admin_action', ['admin_id'])


def downgrade():
    op.drop_index('ix_admin_action_admin_id', table_name='admin_action')
    op.drop_table('admin_action')
    op.drop_index('ix_score_adjustment_user_id', table_name='score_adjustment')
    op.drop_table('score_adjustment')
    op.drop_index('ix_answer_record_question_id', table_name='answer_record')
    op.drop_index('ix_answer_record_user_id', table_name='answer_record')
    op.drop_table('answer_record')
    op.drop_table('game_state')
    op.drop_index('ix_question_category', table_name='question')
    op.drop_index('ix_question_display_order', table_name='question')
    op.drop_table('question')
    op.drop_index('ix_admin_line_id_line_id', table_name='admin_line_id')
    op.drop_table('admin_line_id')
    op.drop_index('ix_user_line_id', table_name='user')
    op.drop_table('user')
