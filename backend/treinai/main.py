# /backend/treinai/main.py

from __future__ import annotations
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from treinai.config import CORS_ORIGINS, STORAGE_DIR
from treinai.db import get_db, init_models
from treinai.api.routers import auth, profiles, students, workouts, meals, progress, storage, messenger, ai

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # alembic cuida do schema em produção; aqui só garante as tabelas em dev
    if os.getenv("AUTO_CREATE_TABLES", "true").lower() == "true":
        await init_models()
    yield


app = FastAPI(
    title="TreinAí API",
    lifespan=lifespan,
)

# CORS primeiro, para valer em todas as rotas
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# storage de objetos servido como arquivos estáticos
os.makedirs(STORAGE_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=STORAGE_DIR), name="static")
logger.info("Serving storage objects from: %s", STORAGE_DIR)

app.include_router(auth.router)
app.include_router(profiles.router)
app.include_router(students.router)
app.include_router(workouts.router)
app.include_router(meals.router)
app.include_router(progress.router)
app.include_router(storage.router)
app.include_router(messenger.router)
app.include_router(ai.router)


@app.get("/health")
async def health():
    return {"ok": True}

@app.get("/db-health")
async def db_health(db: AsyncSession = Depends(get_db)):
    result = await db.execute(text("SELECT 1"))
    return {"db": "ok", "result": result.scalar_one()}
