import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, WebSocket, WebSocketDisconnect, Query
from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.db import get_db
from treinai.models import User, Message
from treinai.schemas import MessageCreate, MessageOut, Role
from treinai.services.auth_service import get_current_user, resolve_token
from treinai.services.connection_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messenger", tags=["messenger"])


async def check_chat_partner(db: AsyncSession, current_user: User, partner_id: int) -> User:
    """Aluno conversa só com o próprio treinador; treinador só com os próprios alunos."""
    partner = await db.get(User, partner_id)
    if partner is None:
        raise HTTPException(status_code=404, detail="Usuário não encontrado.")
    if current_user.role == Role.STUDENT.value:
        allowed = partner.id == current_user.trainer_id
    else:
        allowed = partner.trainer_id == current_user.id
    if not allowed:
        raise HTTPException(status_code=403, detail="Sem permissão para esta conversa.")
    return partner


# 1. Histórico do par (carga inicial)
@router.get("/{partner_id}", response_model=List[MessageOut])
async def get_messages(
    partner_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await check_chat_partner(db, current_user, partner_id)
    q = select(Message).where(
        or_(
            and_(Message.sender_id == current_user.id, Message.receiver_id == partner_id),
            and_(Message.sender_id == partner_id, Message.receiver_id == current_user.id)
        )
    ).order_by(Message.created_at.asc(), Message.id.asc())
    return (await db.execute(q)).scalars().all()


# 2. Envio: grava e publica no feed realtime (o remetente recebe o eco)
@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    req: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    content = req.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Mensagem vazia.")
    await check_chat_partner(db, current_user, req.receiver_id)

    new_msg = Message(sender_id=current_user.id, receiver_id=req.receiver_id, content=content)
    db.add(new_msg)
    await db.commit()
    await db.refresh(new_msg)

    out = MessageOut.model_validate(new_msg)
    await manager.publish_insert(
        "messages", out.model_dump(mode="json"), [current_user.id, req.receiver_id]
    )
    return out


# 3. Feed realtime de inserções (só leitura)
@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...), # websocket recebe o token pela query
    db: AsyncSession = Depends(get_db)
):
    try:
        user, _ = await resolve_token(token, db)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = user.id
    await manager.connect(websocket, user_id)
    try:
        while True:
            # o cliente só manda ping; inserts chegam via POST /messenger
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket, user_id)
    except Exception:
        logger.exception("WebSocket Error")
        manager.disconnect(websocket, user_id)
