from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from treinai.config import ASYNC_DB_URL

class Base(DeclarativeBase):
    pass

if ASYNC_DB_URL.startswith("sqlite"):
    # aiosqlite: uma conexão por sessão, no loop de quem pediu
    engine = create_async_engine(ASYNC_DB_URL, echo=False, poolclass=NullPool)
else:
    engine = create_async_engine(ASYNC_DB_URL, echo=False, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def init_models():
    """Cria as tabelas que faltam (dev/testes; em produção use alembic)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
