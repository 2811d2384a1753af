"""
Owner identity.

Every record lives under an owner ID. The provider decides where that ID
comes from; the anonymous provider mints one per session, the way an
anonymous sign-in would.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

import structlog


logger = structlog.get_logger(__name__)


class IdentityProvider(ABC):
    """Source of the current owner ID."""

    @abstractmethod
    async def sign_in(self) -> str:
        """Establish an identity and return its owner ID."""
        pass

    @property
    @abstractmethod
    def owner_id(self) -> Optional[str]:
        """Current owner ID, or None before sign_in()."""
        pass


class AnonymousIdentityProvider(IdentityProvider):
    """Issues a random owner ID once and keeps it for the session."""

    def __init__(self, owner_id: Optional[str] = None):
        self._owner_id = owner_id

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    async def sign_in(self) -> str:
        if self._owner_id is None:
            self._owner_id = uuid4().hex
            logger.info("anonymous_identity_issued", owner_id=self._owner_id)
        return self._owner_id
