"""
Visitor identity tokens.

The core only consumes identities. Persisting them (cookie, header) is the
job of the surrounding session layer, behind the IdentityStore interface.
"""

import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

IDENTITY_COOKIE = "ab-uid"
IDENTITY_HEADER = "x-ab-uid"
IDENTITY_MAX_AGE = 60 * 60 * 24 * 365  # one year, in seconds
IDENTITY_PATH = "/"


def new_identity() -> str:
    """Random 128-bit token (UUIDv4)."""
    return str(uuid.uuid4())


def resolve(existing_token: Optional[str] = None) -> Tuple[str, bool]:
    """
    Return (token, is_new).
    
    A present, non-empty token is returned unchanged. Otherwise a new one is
    generated and the caller is expected to persist it for IDENTITY_MAX_AGE.
    """
    if existing_token:
        return existing_token, False
    return new_identity(), True


class IdentityStore(ABC):
    """Identity persistence collaborator (cookie jar, session, KV store)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, token: str, ttl: int) -> None:
        ...


class InMemoryIdentityStore(IdentityStore):
    """Process-local store with expiry, for tests and single-process demos."""

    def __init__(self):
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            token, expires_at = item
            if expires_at < time.time():
                del self._data[key]
                return None
            return token

    def set(self, key: str, token: str, ttl: int) -> None:
        with self._lock:
            self._data[key] = (token, time.time() + ttl)


def resolve_identity(store: IdentityStore, key: str = IDENTITY_COOKIE) -> Tuple[str, bool]:
    """
    Resolve an identity through a store, persisting new tokens.
    
    If the store is unavailable, a fresh token is returned for this call
    only and is not saved.
    """
    try:
        existing = store.get(key)
    except Exception as e:
        logger.warning(f"Identity store read failed, using a one-off identity: {e}")
        return new_identity(), True

    token, is_new = resolve(existing)
    if is_new:
        try:
            store.set(key, token, IDENTITY_MAX_AGE)
        except Exception as e:
            logger.warning(f"Identity store write failed, identity not persisted: {e}")
    return token, is_new
