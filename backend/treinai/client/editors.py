from __future__ import annotations
import logging
import string
from typing import List, Optional

from treinai.schemas import ExerciseIn, WorkoutIn, WorkoutOut, MacroTargets, MealIn, FoodIn, MealPlanIn, MealPlanOut
from treinai.client.errors import BackendError, GenerationError

logger = logging.getLogger(__name__)

MUSCLE_GROUPS = (
    "Peito", "Costas", "Pernas", "Ombros", "Bíceps",
    "Tríceps", "Core", "Full Body", "Cardio", "Mobilidade",
)

QUICK_MEALS = ("Café", "Lanche", "Almoço", "Pré-Treino", "Pós-Treino", "Jantar", "Ceia")


def session_name(index: int) -> str:
    letters = string.ascii_uppercase
    return f"Treino {letters[index % len(letters)]}"


class WorkoutEditor:
    """
    Editor de treinos de um aluno: várias sessões (Treino A, B, ...),
    cada uma com foco e lista de exercícios. Salvar substitui tudo no servidor.
    """

    def __init__(self, backend, student_id: int):
        self.backend = backend
        self.student_id = student_id
        self.sessions: List[WorkoutIn] = [WorkoutIn(name=session_name(0), focus=MUSCLE_GROUPS[0])]
        self.loading = False
        self.saving = False
        self.ai_loading = False
        self.error: Optional[str] = None
        self.ai_error: Optional[str] = None

    async def load(self) -> None:
        self.loading = True
        try:
            existing = await self.backend.get_workouts(self.student_id)
        except BackendError as e:
            logger.exception("Erro ao carregar treinos")
            self.error = str(e)
            return
        finally:
            self.loading = False
        if existing:
            self.sessions = [_workout_in(w) for w in existing]

    def add_session(self) -> WorkoutIn:
        session = WorkoutIn(name=session_name(len(self.sessions)), focus=MUSCLE_GROUPS[0])
        self.sessions.append(session)
        return session

    def remove_session(self, index: int) -> None:
        if len(self.sessions) <= 1:
            return
        del self.sessions[index]

    def add_exercise(self, index: int) -> ExerciseIn:
        exercise = ExerciseIn(category=self.sessions[index].focus)
        self.sessions[index].exercises.append(exercise)
        return exercise

    def remove_exercise(self, index: int, exercise_index: int) -> None:
        del self.sessions[index].exercises[exercise_index]

    async def suggest(self, index: int) -> int:
        """Pede exercícios à IA para o foco da sessão e anexa ao fim. Retorna quantos entraram."""
        session = self.sessions[index]
        self.ai_loading = True
        self.ai_error = None
        try:
            suggestions = await self.backend.suggest_exercises(self.student_id, session.focus)
        except GenerationError as e:
            logger.warning("AI exercise suggestion failed: %s", e)
            self.ai_error = "Não foi possível gerar sugestões agora. Tente novamente."
            return 0
        except BackendError as e:
            # sessão encerrada: o aviso de auth já levou o app ao login
            self.error = str(e)
            return 0
        finally:
            self.ai_loading = False

        for s in suggestions:
            session.exercises.append(ExerciseIn(
                name=s.name,
                category=s.category or session.focus,
                sets=s.sets,
                reps=s.reps,
                weight=0,
                rest=s.rest,
            ))
        return len(suggestions)

    def dismiss_ai_error(self) -> None:
        self.ai_error = None

    async def save(self) -> bool:
        if any(not s.name.strip() for s in self.sessions):
            self.error = "Dê um nome a cada treino."
            return False

        self.saving = True
        self.error = None
        try:
            # sessões vazias são descartadas pelo servidor
            await self.backend.save_workouts(self.student_id, self.sessions)
            return True
        except BackendError as e:
            logger.exception("Erro ao salvar treinos")
            self.error = str(e)
            return False
        finally:
            self.saving = False


def _workout_in(w: WorkoutOut) -> WorkoutIn:
    return WorkoutIn(
        name=w.name,
        focus=w.focus,
        exercises=[ExerciseIn(**e.model_dump(exclude={"id"})) for e in w.exercises],
    )


class MealPlanEditor:
    def __init__(self, backend, student_id: int):
        self.backend = backend
        self.student_id = student_id
        self.macros = MacroTargets()
        self.meals: List[MealIn] = [MealIn(name="Café da Manhã", time="07:00")]
        self.loading = False
        self.saving = False
        self.ai_loading = False
        self.error: Optional[str] = None
        self.ai_error: Optional[str] = None

    async def load(self) -> None:
        self.loading = True
        try:
            plan = await self.backend.get_latest_meal_plan(self.student_id)
        except BackendError as e:
            logger.exception("Erro ao carregar dieta")
            self.error = str(e)
            return
        finally:
            self.loading = False
        if plan is not None:
            self.macros = plan.macros.model_copy()
            self.meals = [_meal_in(m) for m in plan.meals] or self.meals

    def add_meal(self, label: Optional[str] = None) -> MealIn:
        meal = MealIn(name=label or f"Refeição {len(self.meals) + 1}")
        self.meals.append(meal)
        return meal

    def remove_meal(self, index: int) -> None:
        del self.meals[index]

    def add_food(self, meal_index: int) -> FoodIn:
        food = FoodIn()
        self.meals[meal_index].foods.append(food)
        return food

    def remove_food(self, meal_index: int, food_index: int) -> None:
        del self.meals[meal_index].foods[food_index]

    async def suggest_macros(self) -> bool:
        self.ai_loading = True
        self.ai_error = None
        try:
            suggested = await self.backend.suggest_macros(self.student_id)
        except GenerationError as e:
            logger.warning("AI macro suggestion failed: %s", e)
            self.ai_error = "Não foi possível calcular as metas agora. Tente novamente."
            return False
        except BackendError as e:
            self.error = str(e)
            return False
        finally:
            self.ai_loading = False

        # campo ausente ou zerado mantém o padrão
        defaults = MacroTargets()
        self.macros = MacroTargets(**{
            field: getattr(suggested, field) or getattr(defaults, field)
            for field in MacroTargets.model_fields
        })
        return True

    def dismiss_ai_error(self) -> None:
        self.ai_error = None

    async def save(self) -> Optional[MealPlanOut]:
        named = [m for m in self.meals if m.name.strip()]
        if not named:
            self.error = "Adicione pelo menos uma refeição."
            return None

        self.saving = True
        self.error = None
        try:
            return await self.backend.save_meal_plan(
                self.student_id, MealPlanIn(macros=self.macros, meals=named)
            )
        except BackendError as e:
            logger.exception("Erro ao salvar dieta")
            self.error = str(e)
            return None
        finally:
            self.saving = False


def _meal_in(m) -> MealIn:
    return MealIn(
        name=m.name,
        time=m.time,
        foods=[FoodIn(**f.model_dump(exclude={"id"})) for f in m.foods],
    )
