"""
Error Taxonomy

Every failure that reaches the UI is one of four kinds:

- AuthError: bad credentials, rate limiting, unconfirmed registration,
  profile creation failure after a successful sign in
- ValidationError: rejected locally, before any network call
- StorageError: any failed read/write against the hosted database
  (policy denials included, they are not distinguishable)
- AIServiceError: network or parse failures talking to the LLM

Provider messages are translated into these kinds at the gateway
boundary (see `translate_auth_message` and the storage client),
never in UI code.
"""

from typing import Optional


class FinanceError(Exception):
    """Base exception for all application errors."""
    
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthError(FinanceError):
    """Authentication or profile bootstrap failed."""
    pass


class RegistrationPendingError(AuthError):
    """Sign up succeeded but the e-mail must be confirmed before login."""
    
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Registro iniciado! Verifique seu email para confirmar a conta "
            "antes de fazer login."
        )


class ValidationError(FinanceError):
    """Input rejected before reaching storage."""
    
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class StorageError(FinanceError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not reach the storage backend (or it timed out)."""
    pass


class AIServiceError(FinanceError):
    """Failure talking to the AI collaborator."""
    pass


class ReceiptExtractionError(AIServiceError):
    """Receipt could not be read. The user may retry with another photo."""
    
    retryable = True
    
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Não foi possível extrair dados da imagem. "
            "Tente novamente com uma foto mais nítida."
        )


# Substring -> friendly message. Order matters: first match wins.
_AUTH_MESSAGE_RULES: list[tuple[tuple[str, ...], str]] = [
    (
        ("invalid login", "invalid_grant", "invalid credentials"),
        "E-mail ou senha incorretos.",
    ),
    (
        ("already registered", "user already exists"),
        "Este e-mail já está cadastrado. Tente fazer login.",
    ),
    (
        ("rate limit", "too many requests"),
        "Muitas tentativas. Por favor, aguarde alguns minutos antes de "
        "tentar novamente.",
    ),
    (
        ("security purposes",),
        "Bloqueado por segurança. Aguarde um momento.",
    ),
]


def translate_auth_message(raw: Optional[str]) -> str:
    """
    Map a raw auth provider message to a user-facing one.
    
    Unknown messages pass through unchanged.
    """
    if not raw:
        return "Ocorreu um erro desconhecido."
    
    lower = raw.lower()
    for needles, friendly in _AUTH_MESSAGE_RULES:
        if any(needle in lower for needle in needles):
            return friendly
    return raw
