# -*- coding: utf-8 -*-
"""
Identity and Ownership Checks

Authentication is an external collaborator; the service only needs the id
of the user making the current call. ``OwnershipGuard`` turns that id into
the farmer-level authorization every owner-scoped operation performs
before reading or mutating anything.

Author: AgriMRV Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from agrimrv.exceptions import OwnershipError
from agrimrv.store import FARMERS, EvidenceStore

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Source of the authenticated user id for the current call."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """Return the current user id, or None when unauthenticated."""


class StaticIdentityProvider(IdentityProvider):
    """IdentityProvider holding a settable user id.

    The id is thread-local when set through ``acting_as`` so that request
    handlers running on different threads do not see each other's user.
    """

    def __init__(self, user_id: Optional[str] = None) -> None:
        self._default = user_id
        self._local = threading.local()

    def current_user_id(self) -> Optional[str]:
        return getattr(self._local, "user_id", self._default)

    def set_user(self, user_id: Optional[str]) -> None:
        self._default = user_id

    @contextmanager
    def acting_as(self, user_id: Optional[str]) -> Iterator[None]:
        """Temporarily act as ``user_id`` on the calling thread."""
        previous = getattr(self._local, "user_id", self._default)
        self._local.user_id = user_id
        try:
            yield
        finally:
            self._local.user_id = previous


class OwnershipGuard:
    """Authorizes the current user against a farmer's ``user_id``."""

    def __init__(self, store: EvidenceStore, identity: IdentityProvider) -> None:
        self.store = store
        self.identity = identity

    def require_user(self) -> str:
        """Return the current user id.

        Raises:
            OwnershipError: If no user is authenticated.
        """
        user_id = self.identity.current_user_id()
        if not user_id:
            raise OwnershipError("Not authenticated")
        return user_id

    def authorize_farmer(self, farmer_id: str) -> Dict[str, Any]:
        """Return the farmer document if the current user owns it.

        A missing farmer is reported as an ownership failure as well.

        Raises:
            OwnershipError: If unauthenticated, the farmer does not exist or
                belongs to another user.
        """
        user_id = self.require_user()
        farmer = self.store.get(FARMERS, farmer_id)
        if farmer is None or farmer.get("user_id") != user_id:
            logger.warning(
                "Ownership check failed: user=%s farmer=%s exists=%s",
                user_id, farmer_id, farmer is not None,
            )
            raise OwnershipError(
                "Not authorized for farmer", farmer_id=farmer_id, user_id=user_id,
            )
        return farmer


__all__ = [
    "IdentityProvider",
    "StaticIdentityProvider",
    "OwnershipGuard",
]
