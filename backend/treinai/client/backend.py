"""
Cliente do backend (REST via httpx + feed realtime via websockets).

Expõe o contrato que as telas usam: auth, consultas/gravações por tabela,
storage de objetos, feed de inserções e sugestões da IA.
"""
from __future__ import annotations
import os
import json
import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import websockets
from jose import jwt, JWTError
from pydantic import TypeAdapter

from treinai.schemas import (
    ProfilePublic, StudentSummary, StudentCreate, TrainerStats,
    WorkoutIn, WorkoutOut, MealPlanIn, MealPlanOut,
    ProgressPhotoCreate, ProgressPhotoOut, ComparisonCreate, ComparisonOut,
    StorageObject, MessageOut, ExerciseSuggestion, MacroTargets, INACTIVE_DETAIL,
)
from treinai.client.errors import BackendError, AuthError, AccountInactive, GenerationError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8000"
AI_TIMEOUT_S = float(os.getenv("TREINAI_AI_TIMEOUT_S", "45"))

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
# o servidor recusou a sessão porque a conta foi desativada
ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"

AuthListener = Callable[[str, Optional["Session"]], Awaitable[None]]
InsertCallback = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class Session:
    access_token: str
    user_id: int

    @classmethod
    def from_token(cls, token: str) -> "Session":
        # o cliente não tem a chave: só lê as claims, o servidor valida
        try:
            claims = jwt.get_unverified_claims(token)
            return cls(access_token=token, user_id=int(claims["sub"]))
        except (JWTError, KeyError, ValueError) as e:
            raise AuthError(f"token inválido: {e}") from e


class RealtimeSubscription:
    """
    Assinatura do feed de INSERT de uma tabela. close() cancela o handler.

    start() só retorna depois do handshake: o que for inserido depois disso
    chega no callback.
    """

    def __init__(self, url: str, table: str, callback: InsertCallback):
        self.url = url
        self.table = table
        self.callback = callback
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> "RealtimeSubscription":
        ws = await websockets.connect(self.url)
        self._task = asyncio.create_task(self._run(ws))
        return self

    async def _run(self, ws):
        await self._read(ws)
        # websockets.connect como iterador reconecta sozinho
        async for ws in websockets.connect(self.url):
            await self._read(ws)

    async def _read(self, ws):
        try:
            async for raw in ws:
                self._dispatch(raw)
        except websockets.ConnectionClosed:
            logger.info("realtime connection closed, reconnecting")
        finally:
            await ws.close()

    def _dispatch(self, raw):
        try:
            event = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("realtime: ignoring non-JSON frame")
            return
        if not isinstance(event, dict):
            logger.warning("realtime: ignoring frame that is not an event object")
            return
        record = event.get("record")
        if event.get("type") == "INSERT" and event.get("table") == self.table and isinstance(record, dict):
            self.callback(record)

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def close(self):
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None


class BackendClient:
    def __init__(self, base_url: Optional[str] = None, *, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = 15.0):
        self.base_url = (base_url or os.getenv("TREINAI_API_URL") or DEFAULT_API_URL).rstrip("/")
        self._http = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)
        self._session: Optional[Session] = None
        self._listeners: List[AuthListener] = []

    async def aclose(self):
        await self._http.aclose()

    # --- auth -------------------------------------------------------------

    def on_auth_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    async def _emit(self, event: str, session: Optional[Session]):
        for listener in list(self._listeners):
            try:
                await listener(event, session)
            except Exception:
                logger.exception("auth listener failed on %s", event)

    async def get_session(self) -> Optional[Session]:
        return self._session

    async def sign_in(self, email: str, password: str) -> Session:
        data = await self._request(
            "POST", "/auth/login", data={"username": email, "password": password}, auth=False
        )
        self._session = Session.from_token(data["access_token"])
        await self._emit(SIGNED_IN, self._session)
        return self._session

    async def sign_up(self, email: str, password: str, name: str) -> ProfilePublic:
        data = await self._request(
            "POST", "/auth/register", json={"email": email, "password": password, "name": name}, auth=False
        )
        return ProfilePublic.model_validate(data)

    async def sign_out(self):
        """Encerra a sessão no servidor (se ainda existir) e localmente. Nunca falha."""
        if self._session is None:
            return
        session = self._session
        try:
            await self._request("POST", "/auth/logout")
        except BackendError as e:
            # 401/403: o servidor já tinha encerrado a sessão
            logger.info("server sign-out skipped: %s", e)
        await self._drop_session(session, SIGNED_OUT)

    async def _drop_session(self, session: Optional[Session], event: str):
        # só descarta se ninguém entrou de novo nesse meio tempo
        if session is None or self._session is not session:
            return
        self._session = None
        await self._emit(event, None)

    async def get_account(self) -> ProfilePublic:
        """Papel e status da conta dona da sessão. AccountInactive se desativada."""
        return ProfilePublic.model_validate(await self._request("GET", "/auth/session"))

    async def get_profile(self, profile_id: int) -> ProfilePublic:
        return ProfilePublic.model_validate(await self._request("GET", f"/profiles/{profile_id}"))

    # --- alunos -------------------------------------------------------------

    async def list_students(self) -> List[StudentSummary]:
        data = await self._request("GET", "/students")
        return TypeAdapter(List[StudentSummary]).validate_python(data)

    async def get_stats(self) -> TrainerStats:
        return TrainerStats.model_validate(await self._request("GET", "/students/stats"))

    async def create_student(self, req: StudentCreate) -> ProfilePublic:
        data = await self._request("POST", "/students", json=req.model_dump(mode="json"))
        return ProfilePublic.model_validate(data)

    async def deactivate_student(self, student_id: int) -> ProfilePublic:
        data = await self._request("POST", f"/students/{student_id}/deactivate")
        return ProfilePublic.model_validate(data)

    # --- treinos / dieta ------------------------------------------------------

    async def get_workouts(self, student_id: int, newest_first: bool = False) -> List[WorkoutOut]:
        data = await self._request(
            "GET", f"/workouts/{student_id}", params={"newest_first": str(newest_first).lower()}
        )
        return TypeAdapter(List[WorkoutOut]).validate_python(data)

    async def save_workouts(self, student_id: int, sessions: List[WorkoutIn]) -> List[WorkoutOut]:
        payload = [s.model_dump(mode="json") for s in sessions]
        data = await self._request("PUT", f"/workouts/{student_id}", json=payload)
        return TypeAdapter(List[WorkoutOut]).validate_python(data)

    async def get_latest_meal_plan(self, student_id: int) -> Optional[MealPlanOut]:
        data = await self._request("GET", f"/meal-plans/{student_id}/latest")
        return MealPlanOut.model_validate(data) if data else None

    async def save_meal_plan(self, student_id: int, plan: MealPlanIn) -> MealPlanOut:
        data = await self._request("POST", f"/meal-plans/{student_id}", json=plan.model_dump(mode="json"))
        return MealPlanOut.model_validate(data)

    # --- progresso / storage --------------------------------------------------

    async def list_photos(self, student_id: int) -> List[ProgressPhotoOut]:
        data = await self._request("GET", f"/progress/{student_id}/photos")
        return TypeAdapter(List[ProgressPhotoOut]).validate_python(data)

    async def add_photo(self, student_id: int, req: ProgressPhotoCreate) -> ProgressPhotoOut:
        data = await self._request("POST", f"/progress/{student_id}/photos", json=req.model_dump(mode="json"))
        return ProgressPhotoOut.model_validate(data)

    async def delete_photo(self, photo_id: int):
        await self._request("DELETE", f"/progress/photos/{photo_id}")

    async def list_comparisons(self, student_id: int) -> List[ComparisonOut]:
        data = await self._request("GET", f"/progress/{student_id}/comparisons")
        return TypeAdapter(List[ComparisonOut]).validate_python(data)

    async def add_comparison(self, student_id: int, req: ComparisonCreate) -> ComparisonOut:
        data = await self._request(
            "POST", f"/progress/{student_id}/comparisons", json=req.model_dump(mode="json")
        )
        return ComparisonOut.model_validate(data)

    async def delete_comparison(self, comparison_id: int):
        await self._request("DELETE", f"/progress/comparisons/{comparison_id}")

    async def upload(self, bucket: str, path: str, content: bytes) -> StorageObject:
        data = await self._request("PUT", f"/storage/{bucket}/{path}", content=content)
        return StorageObject.model_validate(data)

    async def remove(self, bucket: str, paths: List[str]) -> int:
        data = await self._request("POST", f"/storage/{bucket}/remove", json={"paths": paths})
        return data.get("removed", 0)

    # --- chat -------------------------------------------------------------------

    async def get_messages(self, partner_id: int) -> List[MessageOut]:
        data = await self._request("GET", f"/messenger/{partner_id}")
        return TypeAdapter(List[MessageOut]).validate_python(data)

    async def send_message(self, receiver_id: int, content: str) -> MessageOut:
        data = await self._request("POST", "/messenger", json={"receiver_id": receiver_id, "content": content})
        return MessageOut.model_validate(data)

    async def subscribe_inserts(self, table: str, callback: InsertCallback) -> RealtimeSubscription:
        if self._session is None:
            raise AuthError("sem sessão para assinar o feed realtime")
        ws_base = self.base_url.replace("https://", "wss://").replace("http://", "ws://")
        url = f"{ws_base}/messenger/ws?token={self._session.access_token}"
        try:
            return await RealtimeSubscription(url, table, callback).start()
        except (OSError, websockets.WebSocketException) as e:
            raise BackendError(f"Erro ao conectar no feed realtime: {e}") from e

    # --- IA -----------------------------------------------------------------------

    async def suggest_exercises(self, student_id: int, muscle_group: Optional[str]) -> List[ExerciseSuggestion]:
        try:
            data = await self._request(
                "POST", "/ai/exercises",
                json={"student_id": student_id, "muscle_group": muscle_group},
                timeout=AI_TIMEOUT_S,
            )
        except BackendError as e:
            if isinstance(e, (AuthError, AccountInactive)):
                raise
            raise GenerationError(str(e), e.status_code) from e
        if not data:
            raise GenerationError("A IA não retornou exercícios.")
        return TypeAdapter(List[ExerciseSuggestion]).validate_python(data)

    async def suggest_macros(self, student_id: int) -> MacroTargets:
        try:
            data = await self._request(
                "POST", "/ai/macros", json={"student_id": student_id}, timeout=AI_TIMEOUT_S
            )
        except BackendError as e:
            if isinstance(e, (AuthError, AccountInactive)):
                raise
            raise GenerationError(str(e), e.status_code) from e
        if not data:
            raise GenerationError("A IA não retornou metas de macros.")
        return MacroTargets.model_validate(data)

    # --- transporte ---------------------------------------------------------------

    async def _request(self, method: str, url: str, *, auth: bool = True, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        session = self._session if auth else None
        if auth:
            if self._session is None:
                raise AuthError("Sessão expirada. Entre novamente.")
            headers["Authorization"] = f"Bearer {self._session.access_token}"
        try:
            resp = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise BackendError(f"Tempo esgotado: {method} {url}") from e
        except httpx.HTTPError as e:
            raise BackendError(f"Erro de conexão: {e}") from e

        if resp.status_code >= 400:
            detail = _error_detail(resp)
            # sessão recusada pelo servidor: descarta e avisa os ouvintes antes de propagar
            if resp.status_code == 401:
                await self._drop_session(session, SIGNED_OUT)
                raise AuthError(detail, 401)
            if resp.status_code == 403 and detail == INACTIVE_DETAIL:
                await self._drop_session(session, ACCOUNT_INACTIVE)
                raise AccountInactive(detail, 403)
            raise BackendError(detail, resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()


def _error_detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, str):
        return detail
    return f"HTTP {resp.status_code}"
