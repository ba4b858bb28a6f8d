from __future__ import annotations
import logging
from typing import Optional

from treinai.schemas import Role, StudentSummary
from treinai.client.errors import NavigationError
from treinai.client.roster import RosterCache
from treinai.client.state import AppState, View

logger = logging.getLogger(__name__)

# telas que carregam um aluno selecionado
STUDENT_SCOPED = frozenset({View.STUDENT_DETAIL, View.WORKOUT_EDITOR, View.MEAL_EDITOR, View.CHAT})
EDITORS = frozenset({View.WORKOUT_EDITOR, View.MEAL_EDITOR})
# entrar nestas telas recarrega o roster
REFRESHING = frozenset({View.ROSTER_LIST, View.TRAINER_HOME})

ALLOWED_VIEWS = {
    None: frozenset({View.LOGIN}),
    Role.TRAINER: frozenset({
        View.LOGIN, View.TRAINER_HOME, View.ROSTER_LIST, View.STUDENT_DETAIL,
        View.WORKOUT_EDITOR, View.MEAL_EDITOR, View.ADD_STUDENT, View.CHAT,
    }),
    Role.STUDENT: frozenset({View.LOGIN, View.STUDENT_HOME, View.CHAT}),
}


class ViewRouter:
    """Única porta de entrada para mudar de tela."""

    def __init__(self, state: AppState, roster: RosterCache):
        self.state = state
        self.roster = roster

    @property
    def view(self) -> View:
        return self.state.current_view

    def current_student(self) -> Optional[StudentSummary]:
        return self.roster.get(self.state.selected_student_id)

    async def navigate(self, view: View, student_id: Optional[int] = None) -> View:
        """
        Vai para `view`. Com student_id, ele vira o aluno selecionado.
        Retorna a tela efetivamente aberta (student-detail sem aluno no cache
        cai para trainer-home).
        """
        view = View(view)
        if view not in ALLOWED_VIEWS[self.state.role]:
            raise NavigationError(f"{view.value} não permitido para {self.state.role}")

        if student_id is not None:
            selected = student_id
        elif view in STUDENT_SCOPED:
            selected = self.state.selected_student_id
        else:
            selected = None

        if view in EDITORS and selected is None:
            raise NavigationError(f"{view.value} exige um aluno selecionado")
        if view == View.CHAT and self.state.role == Role.TRAINER and selected is None:
            raise NavigationError("chat do treinador exige um aluno selecionado")

        if view == View.STUDENT_DETAIL and self.roster.get(selected) is None:
            logger.info("student %s not in roster, falling back to trainer-home", selected)
            view, selected = View.TRAINER_HOME, None

        self.state.selected_student_id = selected
        self.state.current_view = view

        if view in REFRESHING:
            await self.roster.refresh()
        return view

    def after_deletion(self, student_id: int) -> View:
        """Caminho pós-desativação: remoção local + roster-list, sem refresh."""
        self.roster.remove_locally(student_id)
        self.state.selected_student_id = None
        self.state.current_view = View.ROSTER_LIST
        return View.ROSTER_LIST

    def back_target(self) -> View:
        view = self.state.current_view
        if view in EDITORS:
            return View.STUDENT_DETAIL
        if view == View.CHAT:
            return View.STUDENT_DETAIL if self.state.role == Role.TRAINER else View.STUDENT_HOME
        if view == View.STUDENT_DETAIL:
            return View.ROSTER_LIST
        if view in (View.ROSTER_LIST, View.ADD_STUDENT):
            return View.TRAINER_HOME
        return view

    async def back(self) -> View:
        target = self.back_target()
        if target == View.STUDENT_DETAIL:
            return await self.navigate(target, self.state.selected_student_id)
        return await self.navigate(target)

    def home(self) -> View:
        if self.state.role == Role.TRAINER:
            return View.TRAINER_HOME
        if self.state.role == Role.STUDENT:
            return View.STUDENT_HOME
        return View.LOGIN

    def reset(self) -> None:
        self.roster.clear()
        self.state.reset()
