"""
Auth Provider Interface

The account service only needs four things from an identity provider:
sign up, sign in, sign out and "is there a live session". Everything
provider-specific (response shapes, error classes, message wording)
stays behind this interface.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from family_finance.errors import AuthError


class AuthIdentity(BaseModel):
    """The authenticated subject returned by sign up / sign in."""
    
    user_id: UUID
    email: Optional[str] = None
    name: Optional[str] = None
    has_session: bool = True
    
    def display_name(self, fallback_email: str) -> str:
        """Name from the user metadata, else the e-mail local part."""
        if self.name and self.name.strip():
            return self.name.strip()
        email = self.email or fallback_email
        return email.split("@")[0] or "Usuário"


class AuthProviderInterface(ABC):
    """Abstract identity provider."""
    
    @abstractmethod
    async def sign_up(self, name: str, email: str, password: str) -> AuthIdentity:
        """
        Create an identity.
        
        `has_session` is False when the provider requires e-mail
        confirmation before the first sign in.
        
        Raises:
            AuthError: With a user-facing message
        """
        pass
    
    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthIdentity:
        """
        Authenticate with e-mail and password.
        
        Raises:
            AuthError: With a user-facing message
        """
        pass
    
    @abstractmethod
    async def sign_out(self) -> None:
        """End the provider session."""
        pass
    
    @abstractmethod
    async def has_session(self) -> bool:
        """Is there a live provider session?"""
        pass


__all__ = ["AuthError", "AuthIdentity", "AuthProviderInterface"]
