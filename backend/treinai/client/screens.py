"""
Controladores das telas que não são editores nem chat.

Cada um guarda o que a tela mostra (dados, `loading`, `error`) e traduz
erros do backend em estado visível. Nenhum deixa exceção escapar para a UI,
com exceção do NavigationError, que é bug de quem chamou.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from treinai.schemas import (
    INACTIVE_DETAIL, ProfilePublic, StudentCreate, StudentSummary, TrainerStats,
    WorkoutOut, MealPlanOut,
)
from treinai.client.errors import AccountInactive, AuthError, BackendError
from treinai.client.progress import ProgressGallery
from treinai.client.router import ViewRouter
from treinai.client.state import AppState, View

logger = logging.getLogger(__name__)


class LoginForm:
    def __init__(self, backend, notify: Callable[[str], None]):
        self.backend = backend
        self.notify = notify
        self.loading = False
        self.error: Optional[str] = None

    async def submit(self, email: str, password: str) -> bool:
        """
        Entra com e-mail e senha. A navegação vem depois, pelo SessionResolver
        (notificação SIGNED_IN), nunca daqui.
        """
        self.loading = True
        self.error = None
        try:
            await self.backend.sign_in(email.strip(), password)
            return True
        except AccountInactive:
            self.notify(INACTIVE_DETAIL)
            return False
        except AuthError:
            self.error = "E-mail ou senha incorretos."
            return False
        except BackendError as e:
            logger.exception("login failed")
            self.error = str(e)
            return False
        finally:
            self.loading = False


class AddStudentForm:
    def __init__(self, backend, router: ViewRouter):
        self.backend = backend
        self.router = router
        self.loading = False
        self.error: Optional[str] = None

    async def submit(self, name: str, email: str, password: str, confirm_password: str,
                     goal: Optional[str] = None, weight: Optional[float] = None,
                     height: Optional[float] = None) -> Optional[ProfilePublic]:
        if password != confirm_password:
            self.error = "As senhas não coincidem."
            return None
        try:
            req = StudentCreate(name=name.strip(), email=email.strip(), password=password,
                                goal=goal, weight=weight, height=height)
        except ValidationError as e:
            self.error = _first_validation_message(e)
            return None

        self.loading = True
        self.error = None
        try:
            created = await self.backend.create_student(req)
        except BackendError as e:
            # 403 = limite do plano; a mensagem do servidor já explica
            logger.warning("student creation failed: %s", e)
            self.error = str(e)
            return None
        finally:
            self.loading = False

        await self.router.navigate(View.ROSTER_LIST)
        return created


def _first_validation_message(e: ValidationError) -> str:
    err = e.errors()[0]
    field = err["loc"][0] if err.get("loc") else ""
    if field == "password":
        return "A senha deve ter pelo menos 6 caracteres."
    if field == "email":
        return "E-mail inválido."
    if field == "name":
        return "Informe o nome do aluno."
    return err.get("msg", "Dados inválidos.")


class TrainerHome:
    def __init__(self, backend, router: ViewRouter):
        self.backend = backend
        self.router = router
        self.stats: Optional[TrainerStats] = None
        self.error: Optional[str] = None

    @property
    def students(self):
        return self.router.roster.students

    async def load(self) -> None:
        try:
            self.stats = await self.backend.get_stats()
        except BackendError as e:
            logger.warning("could not load trainer stats: %s", e)
            self.error = str(e)


class StudentDetailScreen:
    """Detalhe de um aluno do treinador: perfil do roster, galeria e desativação."""

    def __init__(self, backend, router: ViewRouter):
        self.backend = backend
        self.router = router
        self.deactivating = False
        self.error: Optional[str] = None
        self.gallery: Optional[ProgressGallery] = None

    @property
    def student(self) -> Optional[StudentSummary]:
        return self.router.current_student()

    async def load(self) -> None:
        student = self.student
        if student is None:
            return
        self.gallery = ProgressGallery(self.backend, student.id)
        await self.gallery.load()

    async def deactivate(self) -> bool:
        student = self.student
        if student is None:
            return False
        self.deactivating = True
        self.error = None
        try:
            await self.backend.deactivate_student(student.id)
        except BackendError as e:
            logger.exception("Erro ao desativar aluno")
            self.error = str(e)
            return False
        finally:
            self.deactivating = False
        # leitura do servidor pode ainda trazer o aluno: remoção local, sem refresh
        self.router.after_deletion(student.id)
        return True


class StudentDashboard:
    """Tela inicial do aluno: perfil, treinos (mais recentes primeiro), dieta atual e progresso."""

    def __init__(self, backend, state: AppState):
        self.backend = backend
        self.state = state
        self.profile: Optional[ProfilePublic] = None
        self.workouts: List[WorkoutOut] = []
        self.meal_plan: Optional[MealPlanOut] = None
        self.gallery: Optional[ProgressGallery] = None
        self.loading = False
        self.error: Optional[str] = None

    async def load(self) -> None:
        student_id = self.state.user_id
        if student_id is None:
            return
        self.loading = True
        self.error = None
        self.gallery = ProgressGallery(self.backend, student_id)
        try:
            self.profile, self.workouts, self.meal_plan = await asyncio.gather(
                self.backend.get_account(),
                self.backend.get_workouts(student_id, newest_first=True),
                self.backend.get_latest_meal_plan(student_id),
            )
        except BackendError as e:
            logger.exception("Erro ao carregar painel do aluno")
            self.error = str(e)
            return
        finally:
            self.loading = False
        await self.gallery.load()
