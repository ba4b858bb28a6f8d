from __future__ import annotations
from typing import Optional, List
from urllib.parse import quote
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    TRAINER = "trainer"
    STUDENT = "student"


class AccountStatus(str, Enum):
    """
    Estado da conta. Único caminho permitido: new/active -> inactive
    (e new -> active na ativação). 'inactive' é terminal: aluno nunca é apagado.
    """
    NEW = "new"
    ACTIVE = "active"
    INACTIVE = "inactive"

    def can_transition(self, target: "AccountStatus") -> bool:
        return target in _STATUS_TRANSITIONS[self]


_STATUS_TRANSITIONS = {
    AccountStatus.NEW: {AccountStatus.ACTIVE, AccountStatus.INACTIVE},
    AccountStatus.ACTIVE: {AccountStatus.INACTIVE},
    AccountStatus.INACTIVE: set(),
}


INACTIVE_DETAIL = "Esta conta foi desativada pelo treinador."
PHOTO_BUCKET = "progress-photos"


def default_avatar(name: Optional[str]) -> str:
    return f"https://ui-avatars.com/api/?name={quote(name or 'S')}&background=random"


# Autenticação
class Token(BaseModel):
    """
    Resposta de /auth/login. Entrega o JWT ao cliente.
    """
    access_token: str
    token_type: str = "bearer"


class TrainerCreate(BaseModel):
    """/auth/register (treinador se cadastra sozinho)."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str


class SessionInfo(BaseModel):
    user_id: int
    role: Role
    status: AccountStatus


class ProfilePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: Optional[str] = None
    role: Role
    status: AccountStatus
    full_name: Optional[str] = None
    avatar: Optional[str] = None
    trainer_id: Optional[int] = None
    goal: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    age: Optional[int] = None


# Alunos / roster
class StudentSummary(BaseModel):
    """Projeção de leitura usada pela lista de alunos e pelo dashboard."""
    id: int
    name: str
    avatar: str
    status: AccountStatus = AccountStatus.ACTIVE
    goal: str = ""
    weight: float = 0
    height: float = 0

    @classmethod
    def from_profile(cls, profile) -> "StudentSummary":
        name = profile.full_name or "Aluno"
        return cls(
            id=profile.id,
            name=name,
            avatar=profile.avatar or default_avatar(profile.full_name),
            status=profile.status or AccountStatus.ACTIVE,
            goal=profile.goal or "",
            weight=profile.weight or 0,
            height=profile.height or 0,
        )


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    goal: Optional[str] = None
    weight: Optional[float] = None
    height: Optional[float] = None


class TrainerStats(BaseModel):
    total_students: int
    student_limit: int


# Treinos
class ExerciseIn(BaseModel):
    name: str = "Exercício"
    category: Optional[str] = None
    sets: int = 3
    reps: str = "12"
    weight: float = 0
    rest: int = 60
    video_url: Optional[str] = None


class ExerciseOut(ExerciseIn):
    id: int


class WorkoutIn(BaseModel):
    name: str = Field(..., min_length=1)
    focus: Optional[str] = None
    exercises: List[ExerciseIn] = []


class WorkoutOut(BaseModel):
    id: int
    name: str
    focus: str = "Geral"
    exercises: List[ExerciseOut] = []
    created_at: Optional[datetime] = None


# Dieta
class FoodIn(BaseModel):
    name: str = "Alimento"
    amount: str = "A gosto"
    calories: int = 0


class FoodOut(FoodIn):
    id: int


class MealIn(BaseModel):
    name: str = Field(..., min_length=1)
    time: str = "08:00"
    foods: List[FoodIn] = []


class MealOut(BaseModel):
    id: int
    name: str
    time: str = "08:00"
    foods: List[FoodOut] = []


class MacroTargets(BaseModel):
    calories: int = 2000
    protein: int = 160
    carbs: int = 200
    fat: int = 60


class MealPlanIn(BaseModel):
    macros: MacroTargets = MacroTargets()
    meals: List[MealIn] = Field(..., min_length=1)


class MealPlanOut(BaseModel):
    id: int
    macros: MacroTargets
    meals: List[MealOut] = []
    created_at: Optional[datetime] = None


# Progresso
class ProgressPhotoCreate(BaseModel):
    photo_url: str
    storage_path: Optional[str] = None
    label: str = "Atual"


class ProgressPhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    photo_url: str
    storage_path: Optional[str] = None
    label: Optional[str] = None
    created_at: Optional[datetime] = None


class ComparisonCreate(BaseModel):
    before_url: str
    after_url: str


class ComparisonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    before_url: str
    after_url: str
    created_at: Optional[datetime] = None


class StorageObject(BaseModel):
    bucket: str
    path: str
    public_url: str


class StorageRemoveReq(BaseModel):
    paths: List[str]


# Chat
class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(..., min_length=1)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    content: str
    created_at: datetime


# IA
class ExerciseSuggestReq(BaseModel):
    student_id: int
    muscle_group: Optional[str] = None


class ExerciseSuggestion(BaseModel):
    name: str
    category: str
    sets: int
    reps: str
    rest: int

    @field_validator("reps", mode="before")
    @classmethod
    def reps_as_text(cls, v):
        # o modelo às vezes devolve 12 em vez de "12"
        return str(v) if isinstance(v, (int, float)) else v


class MacroSuggestReq(BaseModel):
    student_id: int
