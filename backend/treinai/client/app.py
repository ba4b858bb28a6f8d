from __future__ import annotations
import logging
from typing import Callable, List, Optional

from treinai.client.backend import BackendClient
from treinai.client.chat import ChatScreen
from treinai.client.editors import WorkoutEditor, MealPlanEditor
from treinai.client.roster import RosterCache
from treinai.client.router import ViewRouter
from treinai.client.screens import LoginForm, AddStudentForm, TrainerHome, StudentDetailScreen, StudentDashboard
from treinai.client.session import SessionResolver, Resolution
from treinai.client.state import AppState, View

logger = logging.getLogger(__name__)


class TreinaiApp:
    """
    Raiz de composição do cliente: um estado, um roster, um roteador e um
    resolvedor de sessão compartilhados por todas as telas.
    """

    def __init__(self, backend=None, notify: Optional[Callable[[str], None]] = None):
        self.backend = backend or BackendClient()
        self.notices: List[str] = []
        self._notify = notify
        self.state = AppState()
        self.roster = RosterCache(self.backend, self.state)
        self.router = ViewRouter(self.state, self.roster)
        self.resolver = SessionResolver(self.backend, self.state, self.roster, self.router, notify=self.notify)

    def notify(self, message: str) -> None:
        """Aviso bloqueante (ex.: conta desativada)."""
        self.notices.append(message)
        if self._notify is not None:
            self._notify(message)

    async def start(self) -> Resolution:
        return await self.resolver.start()

    async def stop(self) -> None:
        self.resolver.stop()
        aclose = getattr(self.backend, "aclose", None)
        if aclose is not None:
            await aclose()

    async def logout(self) -> None:
        # a navegação para o login vem da notificação SIGNED_OUT
        await self.backend.sign_out()

    # fábricas de tela

    def login_form(self) -> LoginForm:
        return LoginForm(self.backend, self.notify)

    def add_student_form(self) -> AddStudentForm:
        return AddStudentForm(self.backend, self.router)

    def trainer_home(self) -> TrainerHome:
        return TrainerHome(self.backend, self.router)

    def student_detail(self) -> StudentDetailScreen:
        return StudentDetailScreen(self.backend, self.router)

    def student_dashboard(self) -> StudentDashboard:
        return StudentDashboard(self.backend, self.state)

    def workout_editor(self) -> WorkoutEditor:
        return WorkoutEditor(self.backend, self._selected())

    def meal_editor(self) -> MealPlanEditor:
        return MealPlanEditor(self.backend, self._selected())

    def chat(self) -> ChatScreen:
        return ChatScreen(self.backend, self.state)

    def _selected(self) -> int:
        if self.state.current_view not in (View.WORKOUT_EDITOR, View.MEAL_EDITOR) \
                or self.state.selected_student_id is None:
            raise RuntimeError("abra o editor pelo roteador antes de criá-lo")
        return self.state.selected_student_id
