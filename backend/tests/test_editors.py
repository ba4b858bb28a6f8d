import pytest

from treinai.schemas import ExerciseSuggestion, MacroTargets, Role, ExerciseIn, INACTIVE_DETAIL
from treinai.client.backend import Session
from treinai.client.editors import WorkoutEditor, MealPlanEditor, MUSCLE_GROUPS, QUICK_MEALS
from treinai.client.errors import AccountInactive, AuthError, BackendError, GenerationError


@pytest.fixture
def student(fake_backend):
    trainer = fake_backend.add_profile(Role.TRAINER, "Carla")
    fake_backend.session = Session(access_token="t", user_id=trainer.id)
    return fake_backend.add_profile(Role.STUDENT, "Ana", trainer_id=trainer.id)


async def test_workout_sessions_never_drop_below_one(fake_backend, student):
    editor = WorkoutEditor(fake_backend, student.id)
    assert [s.name for s in editor.sessions] == ["Treino A"]

    editor.add_session()
    editor.add_session()
    assert [s.name for s in editor.sessions] == ["Treino A", "Treino B", "Treino C"]

    editor.remove_session(0)
    editor.remove_session(0)
    editor.remove_session(0)
    assert [s.name for s in editor.sessions] == ["Treino C"]


async def test_ai_suggestions_are_appended_with_zero_weight(fake_backend, student):
    fake_backend.ai_exercises = [
        ExerciseSuggestion(name="Agachamento", category="Pernas", sets=4, reps="10", rest=90),
        ExerciseSuggestion(name="Stiff", category="", sets=3, reps="12", rest=60),
    ]
    editor = WorkoutEditor(fake_backend, student.id)
    editor.sessions[0].focus = "Pernas"
    editor.add_exercise(0).name = "Leg Press"

    assert await editor.suggest(0) == 2
    exercises = editor.sessions[0].exercises
    assert [e.name for e in exercises] == ["Leg Press", "Agachamento", "Stiff"]
    assert [e.weight for e in exercises[1:]] == [0, 0]
    assert exercises[2].category == "Pernas"
    assert exercises[1].reps == "10" and exercises[1].rest == 90
    assert editor.ai_loading is False


async def test_ai_failure_is_dismissible(fake_backend, student):
    fake_backend.fail["suggest_exercises"] = GenerationError("timeout")
    editor = WorkoutEditor(fake_backend, student.id)

    assert await editor.suggest(0) == 0
    assert editor.ai_error
    assert editor.sessions[0].exercises == []
    editor.dismiss_ai_error()
    assert editor.ai_error is None


async def test_workout_save_replaces_and_skips_empty_sessions(fake_backend, student):
    editor = WorkoutEditor(fake_backend, student.id)
    editor.sessions[0].exercises.append(ExerciseIn(name="Supino"))
    editor.add_session()

    assert await editor.save() is True
    assert [w.name for w in fake_backend.workouts[student.id]] == ["Treino A"]

    reloaded = WorkoutEditor(fake_backend, student.id)
    await reloaded.load()
    assert [e.name for e in reloaded.sessions[0].exercises] == ["Supino"]


async def test_workout_save_requires_names(fake_backend, student):
    editor = WorkoutEditor(fake_backend, student.id)
    editor.sessions[0].name = "  "
    assert await editor.save() is False
    assert editor.error
    assert "save_workouts" not in fake_backend.calls


async def test_workout_save_error_is_inline(fake_backend, student):
    fake_backend.fail["save_workouts"] = BackendError("Erro ao salvar no banco")
    editor = WorkoutEditor(fake_backend, student.id)
    assert await editor.save() is False
    assert editor.error == "Erro ao salvar no banco"
    assert editor.saving is False


def test_muscle_groups_and_quick_meals():
    assert MUSCLE_GROUPS[0] == "Peito"
    assert "Mobilidade" in MUSCLE_GROUPS
    assert QUICK_MEALS[0] == "Café" and QUICK_MEALS[-1] == "Ceia"


async def test_meal_editor_defaults(fake_backend, student):
    editor = MealPlanEditor(fake_backend, student.id)
    await editor.load()
    assert editor.macros == MacroTargets(calories=2000, protein=160, carbs=200, fat=60)
    assert len(editor.meals) == 1


async def test_ai_macros_fall_back_per_field(fake_backend, student):
    fake_backend.ai_macros = MacroTargets(calories=2600, protein=0, carbs=310, fat=0)
    editor = MealPlanEditor(fake_backend, student.id)
    assert await editor.suggest_macros() is True
    assert editor.macros == MacroTargets(calories=2600, protein=160, carbs=310, fat=60)


async def test_ai_macros_failure_keeps_current_targets(fake_backend, student):
    fake_backend.fail["suggest_macros"] = GenerationError("A IA falhou")
    editor = MealPlanEditor(fake_backend, student.id)
    editor.macros = MacroTargets(calories=1800)
    assert await editor.suggest_macros() is False
    assert editor.macros.calories == 1800
    assert editor.ai_error


async def test_meal_plan_save_and_reload(fake_backend, student):
    editor = MealPlanEditor(fake_backend, student.id)
    editor.add_food(0).name = "Ovos"
    lunch = editor.add_meal(QUICK_MEALS[2])
    lunch.time = "12:30"
    editor.add_meal("   ")

    saved = await editor.save()
    assert [m.name for m in saved.meals] == ["Café da Manhã", "Almoço"]

    reloaded = MealPlanEditor(fake_backend, student.id)
    await reloaded.load()
    assert [m.name for m in reloaded.meals] == ["Café da Manhã", "Almoço"]
    assert reloaded.meals[0].foods[0].name == "Ovos"
    assert reloaded.meals[1].time == "12:30"


async def test_meal_plan_needs_a_named_meal(fake_backend, student):
    editor = MealPlanEditor(fake_backend, student.id)
    editor.remove_meal(0)
    assert await editor.save() is None
    assert editor.error == "Adicione pelo menos uma refeição."

    editor.add_meal(" ")
    assert await editor.save() is None
    assert "save_meal_plan" not in fake_backend.calls


async def test_meal_food_removal(fake_backend, student):
    editor = MealPlanEditor(fake_backend, student.id)
    editor.add_food(0).name = "Pão"
    editor.add_food(0).name = "Café"
    editor.remove_food(0, 0)
    assert [f.name for f in editor.meals[0].foods] == ["Café"]


async def test_ai_suggestion_with_expired_session_becomes_an_inline_error(fake_backend, student):
    fake_backend.fail["suggest_exercises"] = AuthError("Sessão expirada", 401)
    editor = WorkoutEditor(fake_backend, student.id)

    assert await editor.suggest(0) == 0
    assert editor.error == "Sessão expirada"
    assert editor.ai_loading is False
    assert editor.sessions[0].exercises == []
    assert fake_backend.session is None


async def test_macro_suggestion_on_inactive_account_becomes_an_inline_error(fake_backend, student):
    fake_backend.fail["suggest_macros"] = AccountInactive(INACTIVE_DETAIL, 403)
    editor = MealPlanEditor(fake_backend, student.id)

    assert await editor.suggest_macros() is False
    assert editor.error == INACTIVE_DETAIL
    assert editor.macros == MacroTargets()
    assert editor.ai_loading is False
