from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple

from treinai.schemas import AccountStatus, StudentSummary
from treinai.client.errors import BackendError
from treinai.client.state import AppState

logger = logging.getLogger(__name__)


class RosterCache:
    """
    Lista local dos alunos ativos do treinador.

    Duas operações distintas, escolhidas por quem chama:
      refresh()          -> busca no servidor e troca a lista inteira
      remove_locally(id) -> tira da lista na hora, sem ir ao servidor

    remove_locally existe porque a desativação pode demorar a aparecer nas
    leituras; um refresh logo depois de desativar traria o aluno de volta.
    """

    def __init__(self, backend, state: AppState):
        self.backend = backend
        self.state = state
        self._students: Tuple[StudentSummary, ...] = ()
        self._epoch = 0
        self._removal_seq = 0
        # id -> número de sequência da remoção local
        self._removed: Dict[int, int] = {}

    @property
    def students(self) -> Tuple[StudentSummary, ...]:
        return self._students

    def __len__(self) -> int:
        return len(self._students)

    def __iter__(self):
        return iter(self._students)

    def get(self, student_id: Optional[int]) -> Optional[StudentSummary]:
        if student_id is None:
            return None
        for s in self._students:
            if s.id == student_id:
                return s
        return None

    async def refresh(self) -> bool:
        """
        Recarrega do servidor. Em erro, loga e mantém a lista atual.
        Refreshes sobrepostos: o último a terminar vence, sempre com troca atômica.
        """
        epoch = self._epoch
        started_at = self._removal_seq
        try:
            fetched = await self.backend.list_students()
        except BackendError:
            logger.exception("Erro ao buscar alunos")
            return False

        if epoch != self._epoch:
            # cache limpo (logout/troca de conta) enquanto a busca rodava
            return False

        # remoções locais feitas durante esta busca ainda valem
        pending = {sid for sid, seq in self._removed.items() if seq > started_at}
        students = sorted(
            (s for s in fetched if s.status == AccountStatus.ACTIVE and s.id not in pending),
            key=lambda s: (s.name.casefold(), s.id),
        )
        self._students = tuple(students)
        self._removed = {sid: seq for sid, seq in self._removed.items() if sid in pending}
        return True

    def remove_locally(self, student_id: int) -> None:
        """Tira o aluno da lista e da seleção. Não dispara refresh. Idempotente."""
        self._removal_seq += 1
        self._removed[student_id] = self._removal_seq
        self._students = tuple(s for s in self._students if s.id != student_id)
        if self.state.selected_student_id == student_id:
            self.state.selected_student_id = None

    def clear(self) -> None:
        self._epoch += 1
        self._students = ()
        self._removed = {}
