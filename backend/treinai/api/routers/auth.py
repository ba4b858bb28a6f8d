import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.db import get_db
from treinai.models import User
from treinai.schemas import TrainerCreate, Token, ProfilePublic, AccountStatus, Role
from treinai.services.auth_service import (
    verify_password, hash_password, open_session, revoke_session,
    get_current_session, get_current_user, INACTIVE_DETAIL,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def get_user_by_email(db: AsyncSession, email: str):
    q = select(User).where(User.email == email.lower())
    res = await db.execute(q)
    return res.scalar_one_or_none()


@router.post("/register", response_model=ProfilePublic, status_code=status.HTTP_201_CREATED)
async def register_trainer(user_in: TrainerCreate, db: AsyncSession = Depends(get_db)):
    """Cadastro de treinador. Alunos são cadastrados pelo treinador em POST /students."""
    existing_user = await get_user_by_email(db, user_in.email)
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered.")

    user = User(
        email=user_in.email.lower(),
        password_hash=hash_password(user_in.password),
        role=Role.TRAINER.value,
        status=AccountStatus.ACTIVE.value,
        full_name=user_in.name,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/login", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    user = await get_user_by_email(db, form_data.username)

    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    # conta desativada: nenhuma sessão é aberta
    if user.status == AccountStatus.INACTIVE.value:
        logger.info("login refused for inactive account %s", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=INACTIVE_DETAIL)

    access_token = await open_session(db, user)
    return Token(access_token=access_token, token_type="bearer")


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current=Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    _, sid = current
    await revoke_session(db, sid)
    return None


@router.get("/session", response_model=ProfilePublic)
async def get_session_account(current_user: User = Depends(get_current_user)):
    """
    Conta dona da sessão atual (papel + status).
    Conta inativa recebe 403 e a sessão é encerrada no servidor.
    """
    return current_user
