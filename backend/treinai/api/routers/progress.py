from __future__ import annotations
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.db import get_db
from treinai.models import User, ProgressPhoto, PhotoComparison
from treinai.schemas import PHOTO_BUCKET, ProgressPhotoCreate, ProgressPhotoOut, ComparisonCreate, ComparisonOut
from treinai.services import storage
from treinai.services.auth_service import get_current_user, check_student_access

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/{student_id}/photos", response_model=List[ProgressPhotoOut])
async def list_photos(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await check_student_access(db, student_id, current_user)
    q = (
        select(ProgressPhoto)
        .where(ProgressPhoto.student_id == student_id)
        .order_by(ProgressPhoto.created_at.desc(), ProgressPhoto.id.desc())
    )
    return (await db.execute(q)).scalars().all()


@router.post("/{student_id}/photos", response_model=ProgressPhotoOut, status_code=status.HTTP_201_CREATED)
async def add_photo(
    student_id: int,
    req: ProgressPhotoCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await check_student_access(db, student_id, current_user)
    path = req.storage_path or storage.path_from_public_url(PHOTO_BUCKET, req.photo_url)
    if path and not storage.belongs_to(student_id, path):
        raise HTTPException(status_code=400, detail="A foto deve estar na pasta do aluno.")
    photo = ProgressPhoto(
        student_id=student_id,
        photo_url=req.photo_url,
        storage_path=path,
        label=req.label,
    )
    db.add(photo)
    await db.commit()
    await db.refresh(photo)
    return photo


@router.delete("/photos/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_photo(
    photo_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Remove o arquivo do storage e depois o registro."""
    photo = await db.get(ProgressPhoto, photo_id)
    if photo is None:
        raise HTTPException(status_code=404, detail="Foto não encontrada.")
    await check_student_access(db, photo.student_id, current_user)

    path = photo.storage_path or storage.path_from_public_url(PHOTO_BUCKET, photo.photo_url)
    if path and not storage.belongs_to(photo.student_id, path):
        logger.warning("photo %s points outside its owner folder: %r", photo_id, path)
    elif path:
        try:
            await storage.remove(PHOTO_BUCKET, [path])
        except storage.StorageError:
            logger.warning("photo %s has an invalid storage path %r", photo_id, path)
    await db.delete(photo)
    await db.commit()
    return None


@router.get("/{student_id}/comparisons", response_model=List[ComparisonOut])
async def list_comparisons(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await check_student_access(db, student_id, current_user)
    q = (
        select(PhotoComparison)
        .where(PhotoComparison.student_id == student_id)
        .order_by(PhotoComparison.created_at.desc(), PhotoComparison.id.desc())
    )
    return (await db.execute(q)).scalars().all()


@router.post("/{student_id}/comparisons", response_model=ComparisonOut, status_code=status.HTTP_201_CREATED)
async def add_comparison(
    student_id: int,
    req: ComparisonCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """O cliente só chama isto depois que os dois uploads deram certo."""
    await check_student_access(db, student_id, current_user)
    comp = PhotoComparison(student_id=student_id, before_url=req.before_url, after_url=req.after_url)
    db.add(comp)
    await db.commit()
    await db.refresh(comp)
    return comp


@router.delete("/comparisons/{comparison_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comparison(
    comparison_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # só o registro: as imagens podem ser reaproveitadas
    comp = await db.get(PhotoComparison, comparison_id)
    if comp is None:
        raise HTTPException(status_code=404, detail="Comparativo não encontrado.")
    await check_student_access(db, comp.student_id, current_user)
    await db.delete(comp)
    await db.commit()
    return None
