import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from treinai.db import get_db
from treinai.models import User, AuthSession
from treinai.schemas import AccountStatus, Role, INACTIVE_DETAIL

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def verify_password(plain_password, password_hash):
    return pwd_context.verify(plain_password, password_hash)

def hash_password(password):
    if not isinstance(password, (str, bytes)):
        raise TypeError("Password must be a string or bytes.")
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

def verify_access_token(token: str) -> dict:
    """Decodifica o JWT. Levanta JWTError se inválido/expirado."""
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    if payload.get("sub") is None or payload.get("sid") is None:
        raise JWTError("token sem sub/sid")
    return payload


async def open_session(db: AsyncSession, user: User) -> str:
    """Cria a sessão do lado do servidor e devolve o token que a referencia."""
    sid = str(uuid.uuid4())
    db.add(AuthSession(id=sid, user_id=user.id))
    await db.commit()
    return create_access_token(data={"sub": str(user.id), "role": user.role, "sid": sid})

async def revoke_session(db: AsyncSession, sid: str) -> None:
    await db.execute(
        update(AuthSession)
        .where(AuthSession.id == sid, AuthSession.revoked_at.is_(None))
        .values(revoked_at=datetime.now(timezone.utc))
    )
    await db.commit()


async def resolve_token(token: str, db: AsyncSession) -> tuple[User, str]:
    """
    Valida token + sessão + status da conta.
    O status é checado em toda requisição: uma conta inativa nunca passa,
    mesmo que o token ainda seja tecnicamente válido.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = verify_access_token(token)
        user_id = int(payload["sub"])
        sid = payload["sid"]
    except (JWTError, ValueError, TypeError):
        raise credentials_exception

    auth_session = await db.get(AuthSession, sid)
    if auth_session is None or auth_session.revoked_at is not None or auth_session.user_id != user_id:
        raise credentials_exception

    res = await db.execute(select(User).where(User.id == user_id))
    user = res.scalar_one_or_none()
    if user is None:
        raise credentials_exception

    if user.status == AccountStatus.INACTIVE.value:
        await revoke_session(db, sid)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=INACTIVE_DETAIL)
    return user, sid


async def get_current_session(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)):
    return await resolve_token(token, db)

async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> User:
    """
    Dependência que protege as rotas: token -> sessão ativa -> usuário ativo.
    """
    user, _ = await resolve_token(token, db)
    return user

async def get_current_trainer(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != Role.TRAINER.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Apenas treinadores.")
    return current_user


async def get_student_for_trainer(db: AsyncSession, student_id: int, trainer: User) -> User:
    """(helper) Garante que o aluno existe e pertence ao treinador."""
    student = await db.get(User, student_id)
    if student is None or student.role != Role.STUDENT.value:
        raise HTTPException(status_code=404, detail="Aluno não encontrado.")
    if student.trainer_id != trainer.id:
        raise HTTPException(status_code=403, detail="Este aluno não pertence a você.")
    return student

async def check_student_access(db: AsyncSession, student_id: int, current_user: User) -> User:
    """
    Acesso a dados de um aluno: o próprio aluno ou o treinador dono.
    """
    if current_user.role == Role.STUDENT.value:
        if current_user.id != student_id:
            raise HTTPException(status_code=403, detail="Sem permissão.")
        return current_user
    return await get_student_for_trainer(db, student_id, current_user)
