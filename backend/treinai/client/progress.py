from __future__ import annotations
import os
import uuid
import asyncio
import logging
from typing import List, Optional, Tuple

from treinai.schemas import PHOTO_BUCKET, ProgressPhotoCreate, ProgressPhotoOut, ComparisonCreate, ComparisonOut, StorageObject
from treinai.client.errors import BackendError, UploadError

logger = logging.getLogger(__name__)


def object_path(student_id: int, filename: str) -> str:
    """{student_id}/{uuid}.{ext}: o primeiro segmento é o dono do objeto."""
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower() or "jpg"
    return f"{student_id}/{uuid.uuid4().hex}.{ext}"


async def upload_image(backend, student_id: int, content: bytes, filename: str) -> StorageObject:
    try:
        return await backend.upload(PHOTO_BUCKET, object_path(student_id, filename), content)
    except BackendError as e:
        raise UploadError(f"Falha no upload: {e}", e.status_code) from e


async def add_progress_photo(backend, student_id: int, content: bytes, filename: str,
                             label: str = "Atual") -> ProgressPhotoOut:
    obj = await upload_image(backend, student_id, content, filename)
    try:
        return await backend.add_photo(
            student_id, ProgressPhotoCreate(photo_url=obj.public_url, storage_path=obj.path, label=label)
        )
    except BackendError:
        await _discard(backend, [obj])
        raise


async def create_comparison(backend, student_id: int,
                            before: Tuple[bytes, str], after: Tuple[bytes, str]) -> ComparisonOut:
    """
    Sobe o antes e o depois juntos. Se qualquer upload falhar, o que subiu é
    removido e nenhum registro de comparação é criado.
    """
    results = await asyncio.gather(
        upload_image(backend, student_id, *before),
        upload_image(backend, student_id, *after),
        return_exceptions=True,
    )
    uploaded = [r for r in results if isinstance(r, StorageObject)]
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        await _discard(backend, uploaded)
        if isinstance(failures[0], UploadError):
            raise failures[0]
        raise UploadError(f"Falha no upload: {failures[0]}") from failures[0]

    before_obj, after_obj = uploaded
    try:
        return await backend.add_comparison(
            student_id, ComparisonCreate(before_url=before_obj.public_url, after_url=after_obj.public_url)
        )
    except BackendError:
        await _discard(backend, uploaded)
        raise


async def _discard(backend, objects: List[StorageObject]) -> None:
    if not objects:
        return
    try:
        await backend.remove(PHOTO_BUCKET, [o.path for o in objects])
    except BackendError:
        logger.exception("could not remove orphaned uploads %s", [o.path for o in objects])


class ComparisonSlider:
    """Posição do divisor antes/depois, em porcentagem."""

    def __init__(self, position: float = 50):
        self._position = 50.0
        self.position = position

    @property
    def position(self) -> float:
        return self._position

    @position.setter
    def position(self, value: float):
        self._position = max(0.0, min(100.0, float(value)))


class ProgressGallery:
    """Fotos e comparações de um aluno, com upload e exclusão."""

    def __init__(self, backend, student_id: int):
        self.backend = backend
        self.student_id = student_id
        self.photos: List[ProgressPhotoOut] = []
        self.comparisons: List[ComparisonOut] = []
        self.uploading = False
        self.error: Optional[str] = None

    async def load(self) -> None:
        try:
            self.photos, self.comparisons = await asyncio.gather(
                self.backend.list_photos(self.student_id),
                self.backend.list_comparisons(self.student_id),
            )
        except BackendError as e:
            logger.exception("Erro ao carregar progresso")
            self.error = str(e)

    async def add_photo(self, content: bytes, filename: str, label: str = "Atual") -> Optional[ProgressPhotoOut]:
        self.uploading = True
        self.error = None
        try:
            photo = await add_progress_photo(self.backend, self.student_id, content, filename, label)
        except BackendError as e:
            logger.warning("photo upload failed: %s", e)
            self.error = str(e)
            return None
        finally:
            self.uploading = False
        self.photos.insert(0, photo)
        return photo

    async def add_comparison(self, before: Tuple[bytes, str], after: Tuple[bytes, str]) -> Optional[ComparisonOut]:
        self.uploading = True
        self.error = None
        try:
            comparison = await create_comparison(self.backend, self.student_id, before, after)
        except BackendError as e:
            logger.warning("comparison upload failed: %s", e)
            self.error = str(e)
            return None
        finally:
            self.uploading = False
        self.comparisons.insert(0, comparison)
        return comparison

    async def delete_photo(self, photo_id: int) -> bool:
        try:
            await self.backend.delete_photo(photo_id)
        except BackendError as e:
            logger.exception("Erro ao excluir foto")
            self.error = str(e)
            return False
        self.photos = [p for p in self.photos if p.id != photo_id]
        return True

    async def delete_comparison(self, comparison_id: int) -> bool:
        try:
            await self.backend.delete_comparison(comparison_id)
        except BackendError as e:
            logger.exception("Erro ao excluir comparação")
            self.error = str(e)
            return False
        self.comparisons = [c for c in self.comparisons if c.id != comparison_id]
        return True
