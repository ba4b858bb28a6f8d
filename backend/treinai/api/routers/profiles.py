from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.db import get_db
from treinai.models import User
from treinai.schemas import ProfilePublic, Role
from treinai.services.auth_service import get_current_user

router = APIRouter(prefix="/profiles", tags=["profiles"])


def can_view_profile(viewer: User, target: User) -> bool:
    if viewer.id == target.id:
        return True
    if viewer.role == Role.STUDENT.value:
        return target.id == viewer.trainer_id
    return target.trainer_id == viewer.id


@router.get("/me", response_model=ProfilePublic)
async def get_my_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/{profile_id}", response_model=ProfilePublic)
async def get_profile(
    profile_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Perfil próprio, do treinador (para o aluno) ou de um aluno (para o treinador dono)."""
    target = await db.get(User, profile_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Perfil não encontrado.")
    if not can_view_profile(current_user, target):
        raise HTTPException(status_code=403, detail="Sem permissão.")
    return target
