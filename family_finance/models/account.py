"""
Account Models

An account is a person able to log in (primary) or a managed profile
created by a primary account (member).

INVARIANTS:
- `data_context_id` is either the account's own id (it owns its data)
  or another account's id (it shares that account's data).
- `parent_id` is set if and only if the account is a member.
- `members` is never persisted. It is rebuilt from `parent_id` on
  every load.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Account(BaseModel):
    """A primary account or a managed member profile."""
    model_config = ConfigDict(str_strip_whitespace=True)
    
    id: UUID = Field(
        ...,
        description="Auth subject id (primary) or generated id (member)"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    email: Optional[str] = Field(
        default=None,
        max_length=320,
    )
    parent_id: Optional[UUID] = Field(
        default=None,
        description="Owner of this profile, if it is a member"
    )
    data_context_id: UUID = Field(
        ...,
        description="Partition key for categories and transactions"
    )
    created_at: Optional[datetime] = None
    
    members: list["Account"] = Field(
        default_factory=list,
        description="Managed profiles (reconstructed on load)"
    )
    
    @property
    def is_member(self) -> bool:
        return self.parent_id is not None
    
    @property
    def owns_data(self) -> bool:
        return self.data_context_id == self.id
    
    @property
    def shares_parent_data(self) -> bool:
        return self.is_member and self.data_context_id == self.parent_id
    
    def profile_fields(self) -> dict:
        """The account's own fields, without the member list."""
        return self.model_dump(exclude={"members"})


Account.model_rebuild()
