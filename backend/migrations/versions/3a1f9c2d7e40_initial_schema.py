"""Initial schema: profiles, sessions, workouts, meal plans, progress and messages

Revision ID: 3a1f9c2d7e40
Revises:
Create Date: 2026-10-17 10:12:31.402118
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a1f9c2d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', PK, primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('avatar', sa.Text(), nullable=True),
        sa.Column('trainer_id', PK, sa.ForeignKey('profiles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('goal', sa.String(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('height', sa.Float(), nullable=True),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("role in ('trainer','student')", name='ck_profiles_role'),
        sa.CheckConstraint("status in ('new','active','inactive')", name='ck_profiles_status'),
    )
    op.create_index('ix_profiles_id', 'profiles', ['id'])
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('idx_profiles_trainer_status', 'profiles', ['trainer_id', 'status'])

    op.create_table(
        'auth_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_auth_sessions_user_id', 'auth_sessions', ['user_id'])

    op.create_table(
        'workouts',
        sa.Column('id', PK, primary_key=True),
        sa.Column('student_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('trainer_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('focus', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_workouts_id', 'workouts', ['id'])
    op.create_index('ix_workouts_student_id', 'workouts', ['student_id'])

    op.create_table(
        'workout_exercises',
        sa.Column('id', PK, primary_key=True),
        sa.Column('workout_id', PK, sa.ForeignKey('workouts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('exercise_name', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('sets', sa.Integer(), nullable=True),
        sa.Column('reps', sa.String(), nullable=True),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('rest_seconds', sa.Integer(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=True),
        sa.Column('video_url', sa.Text(), nullable=True),
    )
    op.create_index('ix_workout_exercises_id', 'workout_exercises', ['id'])

    op.create_table(
        'meal_plans',
        sa.Column('id', PK, primary_key=True),
        sa.Column('student_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('trainer_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('total_calories', sa.Integer(), nullable=True),
        sa.Column('protein', sa.Integer(), nullable=True),
        sa.Column('carbs', sa.Integer(), nullable=True),
        sa.Column('fat', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_meal_plans_id', 'meal_plans', ['id'])
    op.create_index('idx_meal_plans_student_time', 'meal_plans', ['student_id', 'created_at'])

    op.create_table(
        'meals',
        sa.Column('id', PK, primary_key=True),
        sa.Column('meal_plan_id', PK, sa.ForeignKey('meal_plans.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('time', sa.String(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=True),
    )
    op.create_index('ix_meals_id', 'meals', ['id'])

    op.create_table(
        'meal_foods',
        sa.Column('id', PK, primary_key=True),
        sa.Column('meal_id', PK, sa.ForeignKey('meals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('food_name', sa.String(), nullable=False),
        sa.Column('amount', sa.String(), nullable=True),
        sa.Column('calories', sa.Integer(), nullable=True),
    )
    op.create_index('ix_meal_foods_id', 'meal_foods', ['id'])

    op.create_table(
        'progress_photos',
        sa.Column('id', PK, primary_key=True),
        sa.Column('student_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('photo_url', sa.Text(), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=True),
        sa.Column('label', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_progress_photos_id', 'progress_photos', ['id'])
    op.create_index('idx_progress_photos_student_time', 'progress_photos', ['student_id', 'created_at'])

    op.create_table(
        'photo_comparisons',
        sa.Column('id', PK, primary_key=True),
        sa.Column('student_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('before_url', sa.Text(), nullable=False),
        sa.Column('after_url', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_photo_comparisons_id', 'photo_comparisons', ['id'])
    op.create_index('idx_photo_comparisons_student_time', 'photo_comparisons', ['student_id', 'created_at'])

    op.create_table(
        'messages',
        sa.Column('id', PK, primary_key=True),
        sa.Column('sender_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', PK, sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_messages_id', 'messages', ['id'])
    op.create_index('idx_messages_pair_time', 'messages', ['sender_id', 'receiver_id', 'created_at'])


def downgrade() -> None:
    # ordem inversa das FKs
    for table in (
        'messages', 'photo_comparisons', 'progress_photos', 'meal_foods', 'meals',
        'meal_plans', 'workout_exercises', 'workouts', 'auth_sessions', 'profiles',
    ):
        op.drop_table(table)
