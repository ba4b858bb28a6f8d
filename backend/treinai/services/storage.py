"""
Armazenamento de objetos em disco, servido via /static.

Mesmo contrato de um bucket hospedado: upload(bucket, path, data),
public_url(bucket, path) e remove(bucket, paths).
"""
from __future__ import annotations
import os
import asyncio
import logging
from pathlib import PurePosixPath
from typing import Iterable, List

from treinai.config import STORAGE_DIR, PUBLIC_BASE_URL

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def _safe_parts(bucket: str, path: str) -> List[str]:
    parts = [bucket, *PurePosixPath(path).parts]
    if not path or any(p in ("", ".", "..") or p.startswith("/") for p in parts):
        raise StorageError(f"invalid object path: {bucket}/{path}")
    return parts


def object_file(bucket: str, path: str) -> str:
    return os.path.join(STORAGE_DIR, *_safe_parts(bucket, path))


def public_url(bucket: str, path: str) -> str:
    _safe_parts(bucket, path)
    return f"{PUBLIC_BASE_URL}/static/{bucket}/{path}"


def belongs_to(student_id: int, path: str) -> bool:
    """Objetos de um aluno vivem sob '<student_id>/'."""
    parts = PurePosixPath(path).parts
    return len(parts) > 1 and parts[0] == str(student_id) and ".." not in parts


def path_from_public_url(bucket: str, url: str) -> str | None:
    """Recupera o path do objeto a partir da URL pública (None se não for deste bucket)."""
    marker = f"/{bucket}/"
    if marker not in url:
        return None
    return url.split(marker, 1)[1] or None


async def upload(bucket: str, path: str, data: bytes) -> str:
    target = object_file(bucket, path)
    if os.path.exists(target):
        raise StorageError(f"object already exists: {bucket}/{path}")

    def _write():
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)

    await asyncio.to_thread(_write)
    return public_url(bucket, path)


async def remove(bucket: str, paths: Iterable[str]) -> int:
    removed = 0
    for path in paths:
        target = object_file(bucket, path)
        try:
            await asyncio.to_thread(os.remove, target)
            removed += 1
        except FileNotFoundError:
            logger.warning("storage remove: %s/%s not found", bucket, path)
    return removed
