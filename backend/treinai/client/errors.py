"""Erros do cliente. As telas convertem todos em estado visível (inline ou aviso bloqueante)."""
from typing import Optional


class BackendError(Exception):
    """Falha de rede ou resposta de erro do backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(BackendError):
    """Credenciais inválidas ou sessão expirada/encerrada."""


class AccountInactive(BackendError):
    """Conta desativada. Portão de segurança: nunca chega a uma tela de papel."""


class GenerationError(BackendError):
    """IA falhou, demorou demais ou devolveu algo fora do formato."""


class UploadError(BackendError):
    pass


class NavigationError(Exception):
    """Transição inválida no roteador (ex.: editor sem aluno selecionado)."""


class SendInProgress(Exception):
    """Já existe um envio de mensagem em andamento."""
