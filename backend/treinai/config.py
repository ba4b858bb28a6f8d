# backend/treinai/config.py
import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

ASYNC_DB_URL = os.getenv("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./treinai.db")

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT_S = float(os.getenv("OPENAI_TIMEOUT_S", "20"))

# object storage lives on disk and is served under /static
STORAGE_DIR = os.getenv(
    "STORAGE_DIR", os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "storage")
)
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

STUDENT_LIMIT = int(os.getenv("STUDENT_LIMIT", "5"))

CORS_ORIGINS = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()
]

TRAINER_SYSTEM_PROMPT = """
Você é um Personal Trainer especialista em hipertrofia e nutrição esportiva.
Regras:
- Responda sempre em português do Brasil.
- Retorne estritamente JSON no formato pedido, sem markdown nem comentários.
- Sugira apenas exercícios e valores seguros para um aluno de nível intermediário.
"""
