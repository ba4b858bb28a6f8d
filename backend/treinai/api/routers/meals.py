from __future__ import annotations
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from treinai.db import get_db
from treinai.models import User, MealPlan, Meal, MealFood
from treinai.schemas import MealPlanIn, MealPlanOut, MealOut, FoodOut, MacroTargets
from treinai.services.auth_service import (
    get_current_user, get_current_trainer, get_student_for_trainer, check_student_access,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meal-plans", tags=["meal-plans"])


def plan_to_out(plan: MealPlan) -> MealPlanOut:
    return MealPlanOut(
        id=plan.id,
        created_at=plan.created_at,
        macros=MacroTargets(
            calories=plan.total_calories, protein=plan.protein, carbs=plan.carbs, fat=plan.fat
        ),
        meals=[
            MealOut(
                id=m.id,
                name=m.name,
                time=m.time or "08:00",
                foods=[
                    FoodOut(id=f.id, name=f.food_name, amount=f.amount, calories=f.calories)
                    for f in m.foods
                ],
            )
            for m in plan.meals
        ],
    )


async def load_latest_plan(db: AsyncSession, student_id: int) -> Optional[MealPlan]:
    q = (
        select(MealPlan)
        .options(selectinload(MealPlan.meals).selectinload(Meal.foods))
        .where(MealPlan.student_id == student_id)
        .order_by(MealPlan.created_at.desc(), MealPlan.id.desc())
        .limit(1)
    )
    return (await db.execute(q)).scalar_one_or_none()


@router.get("/{student_id}/latest", response_model=Optional[MealPlanOut])
async def get_latest_plan(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Dieta vigente = o plano mais recente. null se o aluno ainda não tem dieta."""
    await check_student_access(db, student_id, current_user)
    plan = await load_latest_plan(db, student_id)
    return plan_to_out(plan) if plan else None


@router.post("/{student_id}", response_model=MealPlanOut, status_code=status.HTTP_201_CREATED)
async def create_plan(
    student_id: int,
    req: MealPlanIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    """
    Grava cabeçalho + refeições + alimentos numa única transação:
    ou o plano inteiro entra, ou nada entra.
    """
    if any(not m.name.strip() for m in req.meals):
        raise HTTPException(status_code=400, detail="Todas as refeições precisam de um nome.")
    await get_student_for_trainer(db, student_id, current_user)

    plan = MealPlan(
        student_id=student_id,
        trainer_id=current_user.id,
        total_calories=req.macros.calories,
        protein=req.macros.protein,
        carbs=req.macros.carbs,
        fat=req.macros.fat,
    )
    plan.meals = [
        Meal(
            name=m.name,
            time=m.time,
            order_index=idx,
            foods=[
                MealFood(
                    food_name=f.name or "Alimento",
                    amount=f.amount or "A gosto",
                    calories=f.calories or 0,
                )
                for f in m.foods
            ],
        )
        for idx, m in enumerate(req.meals)
    ]
    try:
        db.add(plan)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("saving meal plan for student %s failed", student_id)
        raise HTTPException(status_code=500, detail=f"Erro ao salvar dieta: {e}")

    saved = await load_latest_plan(db, student_id)
    return plan_to_out(saved)
