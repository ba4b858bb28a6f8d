from __future__ import annotations
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.db import get_db
from treinai.models import User
from treinai.schemas import ExerciseSuggestReq, ExerciseSuggestion, MacroSuggestReq, MacroTargets
from treinai.services.auth_service import get_current_trainer, get_student_for_trainer
from treinai.services.openai_client import (
    suggest_exercises, suggest_macros, GenerationError, GenerationTimeout,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def _generation_http_error(e: GenerationError) -> HTTPException:
    if isinstance(e, GenerationTimeout):
        return HTTPException(status_code=504, detail=str(e))
    return HTTPException(status_code=502, detail=f"A IA falhou: {e}")


@router.post("/exercises", response_model=List[ExerciseSuggestion])
async def ai_exercises(
    req: ExerciseSuggestReq,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    student = await get_student_for_trainer(db, req.student_id, current_user)
    focus = req.muscle_group or "Geral"
    info = f"Aluno: {student.full_name}, Objetivo: {student.goal}, Nível: Intermediário. Foco: {focus}."
    try:
        return await suggest_exercises(info, req.muscle_group)
    except GenerationError as e:
        logger.warning("exercise suggestion failed for student %s: %s", student.id, e)
        raise _generation_http_error(e)


@router.post("/macros", response_model=MacroTargets)
async def ai_macros(
    req: MacroSuggestReq,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_trainer),
):
    student = await get_student_for_trainer(db, req.student_id, current_user)
    info = (
        f"Aluno: {student.full_name}, Objetivo: {student.goal}, "
        f"Peso: {student.weight}kg, Altura: {student.height}m"
    )
    try:
        return await suggest_macros(info)
    except GenerationError as e:
        logger.warning("macro suggestion failed for student %s: %s", student.id, e)
        raise _generation_http_error(e)
