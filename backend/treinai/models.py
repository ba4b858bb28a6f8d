from __future__ import annotations
from typing import Optional
from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    BigInteger, Integer, Float, String, Text, DateTime, CheckConstraint,
    ForeignKey, Index
)
from sqlalchemy.sql import func

from treinai.db import Base
from treinai.schemas import AccountStatus, Role

# SQLite only autoincrements plain INTEGER primary keys
PK = BigInteger().with_variant(Integer(), "sqlite")


class User(Base):
    """
    Conta (perfil) de treinador ou aluno.
    Alunos apontam para o treinador dono via trainer_id. Nunca são apagados:
    a desativação é uma troca de status para 'inactive'.
    """
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role in ('trainer','student')", name="ck_profiles_role"),
        CheckConstraint("status in ('new','active','inactive')", name="ck_profiles_status"),
        Index("idx_profiles_trainer_status", "trainer_id", "status"),
    )

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String, default=Role.STUDENT.value, nullable=False)
    status: Mapped[str] = mapped_column(String, default=AccountStatus.ACTIVE.value, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    trainer_id: Mapped[Optional[int]] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    goal: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    height: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def set_status(self, new_status: AccountStatus) -> None:
        current = AccountStatus(self.status)
        if not current.can_transition(new_status):
            raise ValueError(f"status transition {current.value} -> {new_status.value} not allowed")
        self.status = new_status.value


class AuthSession(Base):
    """Sessão do lado do servidor. O token JWT carrega o id (claim 'sid')."""
    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Workout(Base):
    __tablename__ = "workouts"

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    trainer_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    focus: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    exercises: Mapped[list["WorkoutExercise"]] = relationship(
        back_populates="workout", cascade="all, delete-orphan",
        order_by="WorkoutExercise.order_index",
    )


class WorkoutExercise(Base):
    __tablename__ = "workout_exercises"

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    workout_id: Mapped[int] = mapped_column(
        PK, ForeignKey("workouts.id", ondelete="CASCADE"), nullable=False
    )
    exercise_name: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    sets: Mapped[int] = mapped_column(Integer, default=3)
    reps: Mapped[str] = mapped_column(String, default="12")
    weight: Mapped[float] = mapped_column(Float, default=0)
    rest_seconds: Mapped[int] = mapped_column(Integer, default=60)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    workout: Mapped["Workout"] = relationship(back_populates="exercises")


class MealPlan(Base):
    __tablename__ = "meal_plans"
    __table_args__ = (
        Index("idx_meal_plans_student_time", "student_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    trainer_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    total_calories: Mapped[int] = mapped_column(Integer, default=2000)
    protein: Mapped[int] = mapped_column(Integer, default=160)
    carbs: Mapped[int] = mapped_column(Integer, default=200)
    fat: Mapped[int] = mapped_column(Integer, default=60)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    meals: Mapped[list["Meal"]] = relationship(
        back_populates="plan", cascade="all, delete-orphan", order_by="Meal.order_index"
    )


class Meal(Base):
    __tablename__ = "meals"

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    meal_plan_id: Mapped[int] = mapped_column(
        PK, ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    time: Mapped[str] = mapped_column(String, default="08:00")
    order_index: Mapped[int] = mapped_column(Integer, default=0)

    plan: Mapped["MealPlan"] = relationship(back_populates="meals")
    foods: Mapped[list["MealFood"]] = relationship(
        back_populates="meal", cascade="all, delete-orphan", order_by="MealFood.id"
    )


class MealFood(Base):
    __tablename__ = "meal_foods"

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    meal_id: Mapped[int] = mapped_column(
        PK, ForeignKey("meals.id", ondelete="CASCADE"), nullable=False
    )
    food_name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[str] = mapped_column(String, default="A gosto")
    calories: Mapped[int] = mapped_column(Integer, default=0)

    meal: Mapped["Meal"] = relationship(back_populates="foods")


class ProgressPhoto(Base):
    __tablename__ = "progress_photos"
    __table_args__ = (
        Index("idx_progress_photos_student_time", "student_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    photo_url: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    label: Mapped[Optional[str]] = mapped_column(String, default="Atual")
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class PhotoComparison(Base):
    __tablename__ = "photo_comparisons"
    __table_args__ = (
        Index("idx_photo_comparisons_student_time", "student_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    before_url: Mapped[str] = mapped_column(Text, nullable=False)
    after_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_pair_time", "sender_id", "receiver_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(PK, primary_key=True, index=True)
    # histórico é mantido mesmo se a conta for desativada
    sender_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        PK, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
