"""Base classes for identity providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, Optional

from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class AuthenticatedIdentity:
    """Identity produced by a provider after the token has been validated.

    ``user_id`` is the portal's own user id. Built-in tokens carry it as the
    ``sub`` claim; Entra tokens are mapped through ``users.entra_object_id``.
    """

    user_id: int
    provider: str           # 'builtin' or 'entra'
    subject: str
    email: str
    groups: list = field(default_factory=list)
    raw_claims: dict = field(default_factory=dict)


class IdentityProvider(ABC):
    """Abstract base for all identity providers."""

    provider_name: ClassVar[str]

    @abstractmethod
    def can_handle(self, token: str) -> bool:
        """Cheap pre-check on the unverified header or issuer.

        Must not raise; return False on any parse error.
        """

    @abstractmethod
    async def validate_token(
        self, token: str, db: AsyncSession
    ) -> Optional[AuthenticatedIdentity]:
        """Fully validate the token and resolve the portal user.

        Returns ``None`` when the token is not acceptable; the chain turns
        that into an ``unauthorized`` error.
        """
