from __future__ import annotations
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treinai.db import get_db
from treinai.models import User, Workout, WorkoutExercise
from treinai.schemas import WorkoutIn, WorkoutOut, ExerciseOut
from treinai.services.auth_service import (
    get_current_user, get_current_trainer, get_student_for_trainer, check_student_access,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workouts", tags=["workouts"])


def workout_to_out(w: Workout) -> WorkoutOut:
    return WorkoutOut(
        id=w.id,
        name=w.name,
        focus=w.focus or "Geral",
        created_at=w.created_at,
        exercises=[
            ExerciseOut(
                id=ex.id,
                name=ex.exercise_name,
                category=ex.category or "Geral",
                sets=ex.sets or 3,
                reps=ex.reps or "12",
                weight=ex.weight or 0,
                rest=ex.rest_seconds or 60,
                video_url=ex.video_url or None,
            )
            for ex in w.exercises
        ],
    )


@router.get("/{student_id}", response_model=List[WorkoutOut])
async def get_workouts(
    student_id: int,
    newest_first: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Treinos do aluno. O editor lê em ordem de criação, o dashboard do aluno ao contrário."""
    await check_student_access(db, student_id, current_user)
    order = Workout.created_at.desc() if newest_first else Workout.created_at.asc()
    q = (
        select(Workout)
        .options(selectinload(Workout.exercises))
        .where(Workout.student_id == student_id)
        .order_by(order, Workout.id.desc() if newest_first else Workout.id.asc())
    )
    workouts = (await db.execute(q)).scalars().all()
    return [workout_to_out(w) for w in workouts]


@router.put("/{student_id}", response_model=List[WorkoutOut])
async def replace_workouts(
    student_id: int,
    sessions: List[WorkoutIn],
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    """
    Publica os treinos: apaga os antigos e grava os novos numa única transação.
    Sessões sem exercícios são ignoradas.
    """
    if any(not s.name.strip() for s in sessions):
        raise HTTPException(status_code=400, detail="Nomeie todos os treinos.")
    await get_student_for_trainer(db, student_id, current_user)

    try:
        old = await db.execute(
            select(Workout).options(selectinload(Workout.exercises)).where(Workout.student_id == student_id)
        )
        for w in old.scalars().all():
            await db.delete(w)
        await db.flush()
        for session in sessions:
            if not session.exercises:
                continue
            workout = Workout(
                student_id=student_id,
                trainer_id=current_user.id,
                name=session.name,
                focus=session.focus,
            )
            workout.exercises = [
                WorkoutExercise(
                    exercise_name=ex.name or "Exercício",
                    category=ex.category or session.focus,
                    sets=ex.sets or 3,
                    reps=ex.reps or "12",
                    weight=ex.weight or 0,
                    rest_seconds=ex.rest or 60,
                    order_index=index,
                    video_url=ex.video_url or None,
                )
                for index, ex in enumerate(session.exercises)
            ]
            db.add(workout)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("saving workouts for student %s failed", student_id)
        raise HTTPException(status_code=500, detail=f"Erro ao salvar no banco: {e}")

    return await get_workouts(student_id, False, db, current_user)
