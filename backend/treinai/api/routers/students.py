from __future__ import annotations
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.config import STUDENT_LIMIT
from treinai.db import get_db
from treinai.models import User
from treinai.schemas import (
    StudentSummary, StudentCreate, ProfilePublic, TrainerStats, AccountStatus, Role,
)
from treinai.services.auth_service import (
    get_current_trainer, get_student_for_trainer, hash_password,
)
from treinai.api.routers.auth import get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/students", tags=["students"])


def active_roster_query(trainer_id: int):
    return (
        select(User)
        .where(
            User.trainer_id == trainer_id,
            User.role == Role.STUDENT.value,
            User.status == AccountStatus.ACTIVE.value,
        )
        .order_by(func.lower(User.full_name).asc(), User.id.asc())
    )


async def count_active_students(db: AsyncSession, trainer_id: int) -> int:
    q = select(func.count(User.id)).where(
        User.trainer_id == trainer_id,
        User.role == Role.STUDENT.value,
        User.status == AccountStatus.ACTIVE.value,
    )
    return (await db.execute(q)).scalar() or 0


@router.get("", response_model=List[StudentSummary])
async def list_my_students(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    """Roster: alunos ativos do treinador, ordenados por nome."""
    students = (await db.execute(active_roster_query(current_user.id))).scalars().all()
    return [StudentSummary.from_profile(s) for s in students]


@router.get("/stats", response_model=TrainerStats)
async def get_my_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    total = await count_active_students(db, current_user.id)
    return TrainerStats(total_students=total, student_limit=STUDENT_LIMIT)


@router.post("", response_model=ProfilePublic, status_code=status.HTTP_201_CREATED)
async def create_student(
    req: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    """Treinador cadastra um aluno (conta + perfil). Respeita o limite do plano."""
    if await count_active_students(db, current_user.id) >= STUDENT_LIMIT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Seu plano atual atingiu o limite de {STUDENT_LIMIT} alunos.",
        )
    if await get_user_by_email(db, req.email):
        raise HTTPException(status_code=400, detail="E-mail inválido ou em uso.")

    student = User(
        email=req.email.lower(),
        password_hash=hash_password(req.password),
        role=Role.STUDENT.value,
        status=AccountStatus.ACTIVE.value,
        full_name=req.name,
        trainer_id=current_user.id,
        goal=req.goal,
        weight=req.weight,
        height=req.height,
    )
    try:
        db.add(student)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("student creation failed")
        raise HTTPException(status_code=500, detail=f"Falha ao cadastrar aluno: {e}")
    await db.refresh(student)
    return student


@router.post("/{student_id}/deactivate", response_model=ProfilePublic)
async def deactivate_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    """
    Soft-delete: status -> inactive. Histórico de treinos/dietas/mensagens é mantido.
    A sessão do aluno é encerrada na próxima requisição, pelo portão de status.
    """
    student = await get_student_for_trainer(db, student_id, current_user)
    if student.status != AccountStatus.INACTIVE.value:
        try:
            student.set_status(AccountStatus.INACTIVE)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e))
        await db.commit()
        await db.refresh(student)
    return student
