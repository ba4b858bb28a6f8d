from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from treinai.schemas import Role


class View(str, Enum):
    LOGIN = "login"
    TRAINER_HOME = "trainer-home"
    STUDENT_HOME = "student-home"
    ROSTER_LIST = "roster-list"
    STUDENT_DETAIL = "student-detail"
    WORKOUT_EDITOR = "workout-editor"
    MEAL_EDITOR = "meal-editor"
    ADD_STUDENT = "add-student"
    CHAT = "chat"


@dataclass
class AppState:
    """
    Estado único do cliente. Toda transição de tela passa pelo ViewRouter;
    volta para o login sempre que a sessão some.
    """
    current_view: View = View.LOGIN
    selected_student_id: Optional[int] = None
    role: Optional[Role] = None
    user_id: Optional[int] = None
    loading: bool = True

    def reset(self) -> None:
        self.current_view = View.LOGIN
        self.selected_student_id = None
        self.role = None
        self.user_id = None
