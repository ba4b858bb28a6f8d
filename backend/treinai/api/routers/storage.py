from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.db import get_db
from treinai.models import User
from treinai.schemas import StorageObject, StorageRemoveReq
from treinai.services import storage
from treinai.services.auth_service import get_current_user, check_student_access

router = APIRouter(prefix="/storage", tags=["storage"])


async def check_owner_prefix(db: AsyncSession, path: str, current_user: User):
    """Objetos ficam em '<student_id>/...'; só o aluno e o treinador dono escrevem ali."""
    owner = path.split("/", 1)[0]
    try:
        owner_id = int(owner)
    except ValueError:
        raise HTTPException(status_code=400, detail="Path deve começar com o id do aluno.")
    await check_student_access(db, owner_id, current_user)


@router.put("/{bucket}/{path:path}", response_model=StorageObject, status_code=status.HTTP_201_CREATED)
async def upload_object(
    bucket: str,
    path: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await check_owner_prefix(db, path, current_user)
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Arquivo vazio.")
    try:
        url = await storage.upload(bucket, path, data)
    except storage.StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return StorageObject(bucket=bucket, path=path, public_url=url)


@router.post("/{bucket}/remove")
async def remove_objects(
    bucket: str,
    req: StorageRemoveReq,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for path in req.paths:
        await check_owner_prefix(db, path, current_user)
    try:
        removed = await storage.remove(bucket, req.paths)
    except storage.StorageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"removed": removed}
