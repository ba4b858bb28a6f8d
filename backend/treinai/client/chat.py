from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from treinai.schemas import MessageOut, Role
from treinai.client.errors import BackendError, SendInProgress
from treinai.client.state import AppState

logger = logging.getLogger(__name__)

QUICK_INCENTIVES = (
    "Bora esmagar hoje! 🔥",
    "Não para agora, o resultado vem! 💪",
    "Orgulho da sua constância! 🚀",
    "Bebeu água hoje? 💧",
    "Treino pago é treino feito! ✅",
    "Foco na dieta, você consegue! 🥗",
)


class RealtimeMirror:
    """
    Log local de uma conversa, sincronizado com o feed de inserções.

    O feed entrega at-least-once e pode correr junto com a busca inicial,
    então o log é um dict por id: aceitar a mesma mensagem duas vezes não
    muda nada. Mensagens de outros pares são ignoradas.
    """

    def __init__(self, backend):
        self.backend = backend
        self.self_id: Optional[int] = None
        self.partner_id: Optional[int] = None
        self._log: Dict[int, MessageOut] = {}
        self._subscription = None
        self.loading = False
        self.sending = False
        self.error: Optional[str] = None

    @property
    def pair(self) -> Optional[Tuple[int, int]]:
        if self.self_id is None or self.partner_id is None:
            return None
        return (self.self_id, self.partner_id)

    @property
    def messages(self) -> List[MessageOut]:
        return sorted(self._log.values(), key=lambda m: (m.created_at, m.id))

    def __len__(self) -> int:
        return len(self._log)

    def belongs(self, message: MessageOut) -> bool:
        if self.pair is None:
            return False
        a, b = self.pair
        return (message.sender_id, message.receiver_id) in ((a, b), (b, a))

    def accept(self, message: MessageOut) -> bool:
        """Merge idempotente. True se a mensagem entrou no log agora."""
        if not self.belongs(message) or message.id in self._log:
            return False
        self._log[message.id] = message
        return True

    def _handler_for(self, pair: Tuple[int, int]):
        def on_insert(record: Dict[str, Any]):
            # handler de um par antigo que ainda recebeu algo: descarta
            if self.pair != pair:
                return
            try:
                message = MessageOut.model_validate(record)
            except ValidationError:
                logger.warning("realtime: malformed message record %r", record)
                return
            self.accept(message)
        return on_insert

    async def open(self, self_id: int, partner_id: int) -> None:
        """
        (Re)abre a conversa: assina o feed, busca o histórico do par e junta
        com o que chegou pelo feed nesse meio tempo.
        """
        await self.close()
        self.self_id, self.partner_id = self_id, partner_id
        self._log = {}
        self.error = None
        self.loading = True
        pair = (self_id, partner_id)
        try:
            self._subscription = await self.backend.subscribe_inserts("messages", self._handler_for(pair))
            history = await self.backend.get_messages(partner_id)
        except BackendError as e:
            logger.exception("Erro ao carregar chat")
            self.error = str(e)
            return
        finally:
            self.loading = False

        if self.pair != pair:
            return
        pushed = self._log
        self._log = {m.id: m for m in history if self.belongs(m)}
        for message in pushed.values():
            self._log.setdefault(message.id, message)

    async def send(self, text: str) -> Optional[MessageOut]:
        """
        Grava a mensagem e espera o eco do feed para exibi-la.
        Sem retry: em falha, `error` fica preenchido e o usuário pode reenviar.
        """
        content = (text or "").strip()
        if not content or self.partner_id is None:
            return None
        if self.sending:
            raise SendInProgress("envio em andamento")

        self.sending = True
        self.error = None
        try:
            return await self.backend.send_message(self.partner_id, content)
        except BackendError as e:
            logger.warning("Erro ao enviar: %s", e)
            self.error = str(e)
            return None
        finally:
            self.sending = False

    async def close(self) -> None:
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            await subscription.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()


async def resolve_partner(backend, state: AppState, student_name: Optional[str] = None) -> Tuple[Optional[int], Optional[str]]:
    """Treinador fala com o aluno selecionado; aluno fala com o próprio treinador."""
    if state.role == Role.TRAINER:
        return state.selected_student_id, student_name

    me = await backend.get_account()
    if me.trainer_id is None:
        return None, None
    try:
        trainer = await backend.get_profile(me.trainer_id)
        name = trainer.full_name or "Meu Treinador"
    except BackendError:
        logger.warning("could not load trainer profile %s", me.trainer_id)
        name = "Meu Treinador"
    return me.trainer_id, name


class ChatScreen:
    """Tela de chat: resolve o parceiro, abre o espelho e fecha ao sair."""

    def __init__(self, backend, state: AppState):
        self.backend = backend
        self.state = state
        self.mirror = RealtimeMirror(backend)
        self.partner_id: Optional[int] = None
        self.partner_name: Optional[str] = None

    @property
    def quick_incentives(self) -> Tuple[str, ...]:
        return QUICK_INCENTIVES if self.state.role == Role.TRAINER else ()

    async def enter(self, student_name: Optional[str] = None) -> None:
        try:
            self.partner_id, self.partner_name = await resolve_partner(self.backend, self.state, student_name)
        except BackendError as e:
            logger.exception("Erro ao carregar chat")
            self.mirror.error = str(e)
            return
        if self.partner_id is None or self.state.user_id is None:
            return
        await self.mirror.open(self.state.user_id, self.partner_id)

    async def send(self, text: str) -> Optional[MessageOut]:
        return await self.mirror.send(text)

    async def exit(self) -> None:
        await self.mirror.close()
