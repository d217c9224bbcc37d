"""initial coordinator tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

def base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    ]

def base_indexes(table: str):
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'])
    op.create_index(op.f(f'ix_{table}_created_at'), table, ['created_at'])
    op.create_index(op.f(f'ix_{table}_is_deleted'), table, ['is_deleted'])

def upgrade() -> None:
    op.create_table('profiles',
        *base_columns(),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('user_type', sa.String(length=32), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=True),
        sa.Column('subject', sa.String(length=100), nullable=True),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('verification_status', sa.String(length=32), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    base_indexes('profiles')
    op.create_index(op.f('ix_profiles_email'), 'profiles', ['email'], unique=True)
    op.create_index(op.f('ix_profiles_user_type'), 'profiles', ['user_type'])
    op.create_index(op.f('ix_profiles_tutor_id'), 'profiles', ['tutor_id'], unique=True)

    op.create_table('subscriptions',
        *base_columns(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    base_indexes('subscriptions')
    op.create_index(op.f('ix_subscriptions_user_id'), 'subscriptions', ['user_id'])

    op.create_table('payments',
        *base_columns(),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('subscription_id', sa.Uuid(), nullable=True),
        sa.Column('gateway_order_id', sa.String(length=100), nullable=False),
        sa.Column('gateway_payment_id', sa.String(length=100), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gateway_payment_id')
    )
    base_indexes('payments')
    op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'])

    op.create_table('student_tutor_assignments',
        *base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('subscription_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    base_indexes('student_tutor_assignments')
    op.create_index(op.f('ix_student_tutor_assignments_student_id'), 'student_tutor_assignments', ['student_id'])
    op.create_index(op.f('ix_student_tutor_assignments_tutor_id'), 'student_tutor_assignments', ['tutor_id'])
    op.create_index('idx_assignment_tutor_student_status', 'student_tutor_assignments', ['tutor_id', 'student_id', 'status'])

    op.create_table('messages',
        *base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('sender_type', sa.String(length=32), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('file_url', sa.String(length=1000), nullable=True),
        sa.Column('client_token', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'tutor_id', 'sender_type', 'client_token', name='uq_message_client_token')
    )
    base_indexes('messages')
    op.create_index(op.f('ix_messages_student_id'), 'messages', ['student_id'])
    op.create_index(op.f('ix_messages_tutor_id'), 'messages', ['tutor_id'])
    op.create_index('idx_message_conversation_time', 'messages', ['tutor_id', 'student_id', 'created_at'])

    op.create_table('scheduled_sessions',
        *base_columns(),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('tutor_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('meeting_link', sa.String(length=1000), nullable=True),
        sa.Column('idempotency_key', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key')
    )
    base_indexes('scheduled_sessions')
    op.create_index(op.f('ix_scheduled_sessions_student_id'), 'scheduled_sessions', ['student_id'])
    op.create_index(op.f('ix_scheduled_sessions_tutor_id'), 'scheduled_sessions', ['tutor_id'])
    op.create_index('idx_session_conversation_status', 'scheduled_sessions', ['tutor_id', 'student_id', 'status'])

    op.create_table('teacher_ratings',
        *base_columns(),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('student_id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['teacher_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['student_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['session_id'], ['scheduled_sessions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('teacher_id', 'student_id', 'session_id', name='uq_rating_per_session'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_rating_range')
    )
    base_indexes('teacher_ratings')
    op.create_index(op.f('ix_teacher_ratings_teacher_id'), 'teacher_ratings', ['teacher_id'])
    op.create_index(op.f('ix_teacher_ratings_student_id'), 'teacher_ratings', ['student_id'])

    op.create_table('teacher_verifications',
        *base_columns(),
        sa.Column('teacher_id', sa.Uuid(), nullable=False),
        sa.Column('demo_video_url', sa.String(length=1000), nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(['teacher_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    base_indexes('teacher_verifications')
    op.create_index(op.f('ix_teacher_verifications_teacher_id'), 'teacher_verifications', ['teacher_id'])

def downgrade() -> None:
    for table in (
        'teacher_verifications',
        'teacher_ratings',
        'scheduled_sessions',
        'messages',
        'student_tutor_assignments',
        'payments',
        'subscriptions',
        'profiles',
    ):
        op.drop_table(table)
