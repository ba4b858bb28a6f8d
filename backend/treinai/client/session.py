from __future__ import annotations
import logging
from enum import Enum
from typing import Callable, Optional

from treinai.schemas import AccountStatus, Role, INACTIVE_DETAIL
from treinai.client.backend import ACCOUNT_INACTIVE
from treinai.client.errors import AccountInactive, BackendError
from treinai.client.roster import RosterCache
from treinai.client.router import ViewRouter
from treinai.client.state import AppState, View

logger = logging.getLogger(__name__)


class Resolution(str, Enum):
    NO_SESSION = "no-session"
    ACTIVE_TRAINER = "active-trainer"
    ACTIVE_STUDENT = "active-student"
    REJECTED_INACTIVE = "rejected-inactive"


def _log_notice(message: str) -> None:
    logger.warning("notice: %s", message)


class SessionResolver:
    """
    Decide a tela inicial a partir da sessão. Roda no carregamento e a cada
    mudança de auth.

    Pode ser chamado duas vezes quase juntas (busca explícita + notificação de
    auth). Cada chamada pega um ticket; só a mais recente grava navegação.
    A checagem de status inativo acontece antes de qualquer tela de papel.
    Se o backend recusar a sessão por conta desativada no meio do uso
    (evento ACCOUNT_INACTIVE), o mesmo portão roda: aviso bloqueante e login.
    """

    def __init__(self, backend, state: AppState, roster: RosterCache, router: ViewRouter,
                 notify: Optional[Callable[[str], None]] = None):
        self.backend = backend
        self.state = state
        self.roster = roster
        self.router = router
        self.notify = notify or _log_notice
        self._ticket = 0
        self._rejections = 0
        self._rejecting = False
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def start(self) -> Resolution:
        self._unsubscribe = self.backend.on_auth_change(self._on_auth_change)
        return await self.resolve(await self.backend.get_session())

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _on_auth_change(self, event, session):
        if event == ACCOUNT_INACTIVE:
            # invalida resoluções em andamento
            self._ticket += 1
            await self._reject_inactive()
            return
        await self.resolve(session)

    def _is_current(self, ticket: int) -> bool:
        return ticket == self._ticket

    async def resolve(self, session) -> Resolution:
        self._ticket += 1
        ticket = self._ticket

        if session is None:
            self.router.reset()
            self.state.loading = False
            return Resolution.NO_SESSION

        rejections = self._rejections
        try:
            account = await self.backend.get_account()
        except AccountInactive:
            if self._rejections != rejections:
                return Resolution.REJECTED_INACTIVE
            account = None
        except BackendError:
            logger.exception("Erro na navegação pós-login")
            if self._is_current(ticket):
                self.router.reset()
                self.state.loading = False
            return Resolution.NO_SESSION

        if account is None or account.status == AccountStatus.INACTIVE:
            await self._reject_inactive()
            return Resolution.REJECTED_INACTIVE

        if not self._is_current(ticket):
            return self._stale_result(account.role)

        # papel desconhecido cai para aluno (menor privilégio), nunca treinador
        role = Role(account.role) if account.role else Role.STUDENT
        self.roster.clear()
        self.state.role = role
        self.state.user_id = account.id
        self.state.selected_student_id = None

        if role == Role.TRAINER:
            await self.roster.refresh()
            if not self._is_current(ticket):
                return Resolution.ACTIVE_TRAINER
            self.state.current_view = View.TRAINER_HOME
            self.state.loading = False
            return Resolution.ACTIVE_TRAINER

        self.state.current_view = View.STUDENT_HOME
        self.state.loading = False
        return Resolution.ACTIVE_STUDENT

    async def _reject_inactive(self):
        if self._rejecting:
            return
        self._rejecting = True
        self._rejections += 1
        # portão de segurança: limpa tudo antes de encerrar a sessão
        self.router.reset()
        self.state.loading = False
        self.notify(INACTIVE_DETAIL)
        try:
            await self.backend.sign_out()
        except BackendError:
            logger.exception("sign-out after inactive account failed")
        finally:
            self._rejecting = False

    @staticmethod
    def _stale_result(role) -> Resolution:
        return Resolution.ACTIVE_TRAINER if role == Role.TRAINER else Resolution.ACTIVE_STUDENT
