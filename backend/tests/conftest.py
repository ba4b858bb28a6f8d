import os
import uuid
import tempfile
import itertools
from datetime import datetime, timedelta

import pytest

# o app lê a configuração na importação: ambiente de teste antes de qualquer import do treinai
_TMP = tempfile.mkdtemp(prefix="treinai-tests-")
os.environ["ASYNC_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["STORAGE_DIR"] = os.path.join(_TMP, "storage")
os.environ["SECRET_KEY"] = "test-secret"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ.setdefault("OPENAI_API_KEY", "sk-test")

from fastapi.testclient import TestClient  # noqa: E402

from treinai.main import app  # noqa: E402
from treinai.schemas import (  # noqa: E402
    AccountStatus, Role, ProfilePublic, StudentSummary, MessageOut, StorageObject,
    WorkoutOut, ExerciseOut, MealPlanOut, MealOut, FoodOut, ProgressPhotoOut, ComparisonOut,
    TrainerStats, INACTIVE_DETAIL,
)
from treinai.client.backend import Session, SIGNED_IN, SIGNED_OUT, ACCOUNT_INACTIVE  # noqa: E402
from treinai.client.errors import AccountInactive, AuthError, BackendError  # noqa: E402


# --- servidor -----------------------------------------------------------------

@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


def unique_email(prefix="user"):
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def login(client, email, password="secret123"):
    resp = client.post("/auth/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture
def trainer(client):
    email = unique_email("trainer")
    resp = client.post("/auth/register", json={"email": email, "password": "secret123", "name": "Carla Treinadora"})
    assert resp.status_code == 201, resp.text
    return {"id": resp.json()["id"], "email": email, "headers": login(client, email)}


@pytest.fixture
def make_student(client, trainer):
    def _make(name="Aluno Teste", trainer_info=None):
        owner = trainer_info or trainer
        email = unique_email("student")
        resp = client.post(
            "/students",
            json={"name": name, "email": email, "password": "secret123", "goal": "Hipertrofia",
                  "weight": 80, "height": 1.8},
            headers=owner["headers"],
        )
        assert resp.status_code == 201, resp.text
        return {"id": resp.json()["id"], "email": email, "headers": login(client, email)}
    return _make


# --- cliente: backend falso em memória ------------------------------------------

class FakeBackend:
    """
    Mesmos métodos do BackendClient, com tabelas em memória.
    `fail` força erro por método; `gates` segura uma chamada até o teste liberar.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, 8, 0, 0)
        self.profiles = {}
        self.passwords = {}
        self.session = None
        self.listeners = []
        self.fail = {}
        self.gates = {}
        self.calls = []
        self.messages = []
        self.subscriptions = []
        self.objects = {}
        self.workouts = {}
        self.meal_plans = {}
        self.photos = []
        self.comparisons = []
        self.signed_out = 0
        self.ai_exercises = []
        self.ai_macros = None
        self.hide_status_from_roster = False

    # helpers de teste
    def next_id(self):
        return next(self._ids)

    def tick(self):
        self._clock += timedelta(seconds=1)
        return self._clock

    def add_profile(self, role, name, status=AccountStatus.ACTIVE, trainer_id=None, email=None, password="secret123"):
        pid = self.next_id()
        profile = ProfilePublic(id=pid, email=email or f"p{pid}@example.com", role=role, status=status,
                                full_name=name, trainer_id=trainer_id)
        self.profiles[pid] = profile
        self.passwords[profile.email] = (pid, password)
        return profile

    def set_status(self, pid, status):
        self.profiles[pid] = self.profiles[pid].model_copy(update={"status": status})

    async def _call(self, name):
        self.calls.append(name)
        session = self.session
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        err = self.fail.get(name)
        if name == "sign_in":
            if err is not None:
                raise err
            return
        # portão do servidor: conta desativada perde a sessão na próxima chamada
        if err is None and session is not None and self.profiles[session.user_id].status == AccountStatus.INACTIVE:
            err = AccountInactive(INACTIVE_DETAIL, 403)
        if isinstance(err, AccountInactive):
            await self._drop_session(session, ACCOUNT_INACTIVE)
        elif isinstance(err, AuthError):
            await self._drop_session(session, SIGNED_OUT)
        if err is not None:
            raise err

    async def _drop_session(self, session, event):
        if session is None or self.session is not session:
            return
        self.session = None
        await self._emit(event, None)

    # auth
    def on_auth_change(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener) if listener in self.listeners else None

    async def _emit(self, event, session):
        for listener in list(self.listeners):
            await listener(event, session)

    async def get_session(self):
        return self.session

    async def sign_in(self, email, password):
        await self._call("sign_in")
        found = self.passwords.get(email)
        if found is None or found[1] != password:
            raise AuthError("Incorrect email or password", 401)
        pid = found[0]
        if self.profiles[pid].status == AccountStatus.INACTIVE:
            raise AccountInactive(INACTIVE_DETAIL, 403)
        self.session = Session(access_token=f"token-{pid}", user_id=pid)
        await self._emit(SIGNED_IN, self.session)
        return self.session

    async def sign_out(self):
        self.signed_out += 1
        if self.session is None:
            return
        self.session = None
        await self._emit(SIGNED_OUT, None)

    async def get_account(self):
        await self._call("get_account")
        if self.session is None:
            raise AuthError("sem sessão", 401)
        profile = self.profiles[self.session.user_id]
        if profile.status == AccountStatus.INACTIVE:
            raise AccountInactive(INACTIVE_DETAIL, 403)
        return profile

    async def get_profile(self, profile_id):
        await self._call("get_profile")
        return self.profiles[profile_id]

    # alunos
    async def list_students(self):
        await self._call("list_students")
        me = self.session.user_id
        rows = [p for p in self.profiles.values() if p.role == Role.STUDENT and p.trainer_id == me]
        if not self.hide_status_from_roster:
            rows = [p for p in rows if p.status == AccountStatus.ACTIVE]
        return [StudentSummary.from_profile(p) for p in rows]

    async def get_stats(self):
        await self._call("get_stats")
        return TrainerStats(total_students=len(await self.list_students()), student_limit=5)

    async def create_student(self, req):
        await self._call("create_student")
        return self.add_profile(Role.STUDENT, req.name, trainer_id=self.session.user_id, email=req.email)

    async def deactivate_student(self, student_id):
        await self._call("deactivate_student")
        self.set_status(student_id, AccountStatus.INACTIVE)
        return self.profiles[student_id]

    # treinos / dieta
    async def get_workouts(self, student_id, newest_first=False):
        await self._call("get_workouts")
        rows = list(self.workouts.get(student_id, []))
        return list(reversed(rows)) if newest_first else rows

    async def save_workouts(self, student_id, sessions):
        await self._call("save_workouts")
        saved = []
        for s in sessions:
            if not s.exercises:
                continue
            saved.append(WorkoutOut(
                id=self.next_id(), name=s.name, focus=s.focus or "Geral",
                exercises=[ExerciseOut(id=self.next_id(), **e.model_dump()) for e in s.exercises],
            ))
        self.workouts[student_id] = saved
        return saved

    async def get_latest_meal_plan(self, student_id):
        await self._call("get_latest_meal_plan")
        plans = self.meal_plans.get(student_id)
        return plans[-1] if plans else None

    async def save_meal_plan(self, student_id, plan):
        await self._call("save_meal_plan")
        out = MealPlanOut(
            id=self.next_id(), macros=plan.macros,
            meals=[MealOut(id=self.next_id(), name=m.name, time=m.time,
                           foods=[FoodOut(id=self.next_id(), **f.model_dump()) for f in m.foods])
                   for m in plan.meals],
        )
        self.meal_plans.setdefault(student_id, []).append(out)
        return out

    # progresso / storage
    async def list_photos(self, student_id):
        await self._call("list_photos")
        return [p for p in self.photos if p.student_id == student_id]

    async def add_photo(self, student_id, req):
        await self._call("add_photo")
        photo = ProgressPhotoOut(id=self.next_id(), student_id=student_id, **req.model_dump())
        self.photos.insert(0, photo)
        return photo

    async def delete_photo(self, photo_id):
        await self._call("delete_photo")
        self.photos = [p for p in self.photos if p.id != photo_id]

    async def list_comparisons(self, student_id):
        await self._call("list_comparisons")
        return [c for c in self.comparisons if c.student_id == student_id]

    async def add_comparison(self, student_id, req):
        await self._call("add_comparison")
        comparison = ComparisonOut(id=self.next_id(), student_id=student_id, **req.model_dump())
        self.comparisons.insert(0, comparison)
        return comparison

    async def delete_comparison(self, comparison_id):
        await self._call("delete_comparison")
        self.comparisons = [c for c in self.comparisons if c.id != comparison_id]

    async def upload(self, bucket, path, content):
        await self._call("upload")
        if content == b"broken":
            raise BackendError("upload recusado", 400)
        self.objects[(bucket, path)] = content
        return StorageObject(bucket=bucket, path=path, public_url=f"http://test/static/{bucket}/{path}")

    async def remove(self, bucket, paths):
        await self._call("remove")
        removed = 0
        for p in paths:
            if self.objects.pop((bucket, p), None) is not None:
                removed += 1
        return removed

    # chat
    async def get_messages(self, partner_id):
        await self._call("get_messages")
        me = self.session.user_id
        pair = {(me, partner_id), (partner_id, me)}
        return [m for m in self.messages if (m.sender_id, m.receiver_id) in pair]

    async def send_message(self, receiver_id, content):
        await self._call("send_message")
        msg = MessageOut(id=self.next_id(), sender_id=self.session.user_id, receiver_id=receiver_id,
                         content=content, created_at=self.tick())
        self.messages.append(msg)
        self.push(msg)
        return msg

    def push(self, msg):
        """Entrega no feed realtime, como o servidor faria."""
        record = msg.model_dump(mode="json")
        for sub in list(self.subscriptions):
            if sub.active:
                sub.callback(record)

    async def subscribe_inserts(self, table, callback):
        await self._call("subscribe_inserts")
        sub = FakeSubscription(self, table, callback)
        self.subscriptions.append(sub)
        return sub

    # IA
    async def suggest_exercises(self, student_id, muscle_group):
        await self._call("suggest_exercises")
        return list(self.ai_exercises)

    async def suggest_macros(self, student_id):
        await self._call("suggest_macros")
        return self.ai_macros


class FakeSubscription:
    def __init__(self, backend, table, callback):
        self.backend = backend
        self.table = table
        self.callback = callback
        self.active = True

    async def close(self):
        self.active = False


@pytest.fixture
def fake_backend():
    return FakeBackend()
