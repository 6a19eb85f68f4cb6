"""User models.

The API-facing ``User`` carries no credential material: the password hash and
the refresh token digest live only in the database row.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class User(BaseModel):
    """A registered channel owner / viewer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: UUID
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: Optional[str] = None
    watch_history: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class UserCredentials(BaseModel):
    """A user together with the stored hashes needed for session checks.

    Never serialized into a response.
    """

    user: User
    password_hash: str
    refresh_token_hash: Optional[str] = None
