"""Credential lifecycle for the catalog API session."""

import logging
import sqlite3
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Callable, Optional

from config import SERVICE_NAME, TOKEN_TTL_HOURS
from db import delete_token, get_token, save_token
from errors import AuthError, MonitorError, PersistenceError
from models import Credential, utcnow

logger = logging.getLogger(__name__)


def _mask(token: str) -> str:
    return f"{token[:8]}..." if len(token) > 8 else "***"


class CredentialManager:
    """Keeps one catalog token valid across cycles and process restarts.

    ``authenticate`` performs the login exchange and returns an object with
    ``token``, ``expires_at`` and ``expires_in`` attributes (see
    ``catalog.models.LoginResponse``). At most one exchange runs at a time;
    callers that arrive while it is running wait for the same outcome.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        authenticate: Callable[[], object],
        service_name: str = SERVICE_NAME,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta = timedelta(hours=TOKEN_TTL_HOURS),
    ):
        self.conn = conn
        self.service_name = service_name
        self.clock = clock
        self.ttl = ttl
        self._authenticate = authenticate
        self._credential: Optional[Credential] = None
        self._lock = threading.Lock()
        self._inflight: Optional[Future] = None

    def is_valid(self) -> bool:
        with self._lock:
            return self._credential is not None and self._credential.is_valid(self.clock())

    def get_valid_token(self) -> str:
        """Return a valid token, loading or logging in only when needed."""
        with self._lock:
            if self._credential and self._credential.is_valid(self.clock()):
                return self._credential.token
            future = self._inflight
            leader = future is None
            if leader:
                future = self._inflight = Future()

        if leader:
            try:
                credential = self._refresh()
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(credential)
            finally:
                with self._lock:
                    self._inflight = None

        return future.result().token

    def invalidate(self):
        """Drop the cached and persisted token after the API rejected it."""
        with self._lock:
            self._credential = None
        try:
            delete_token(self.conn, self.service_name)
        except PersistenceError as e:
            logger.error(f"Failed to delete rejected token: {e}")
        logger.info("Token invalidated, next request will re-authenticate")

    def status(self) -> dict:
        with self._lock:
            credential = self._credential
        now = self.clock()
        if credential is None:
            return {"has_token": False, "is_valid": False, "expires_at": None, "seconds_left": 0}
        return {
            "has_token": True,
            "is_valid": credential.is_valid(now),
            "expires_at": credential.expires_at,
            "seconds_left": max(0, int((credential.expires_at - now).total_seconds())),
        }

    # --- Internals ---

    def _refresh(self) -> Credential:
        now = self.clock()
        credential = self._load_persisted(now)
        if credential is None:
            credential = self._login(now)
            self._persist(credential)
        with self._lock:
            self._credential = credential
        return credential

    def _load_persisted(self, now: datetime) -> Optional[Credential]:
        try:
            stored = get_token(self.conn, self.service_name)
            if stored is None:
                return None
            if stored.is_valid(now):
                logger.info(f"Token loaded from database, valid until {stored.expires_at:%Y-%m-%d %H:%M:%S}")
                return stored
            logger.warning("Stored token expired, deleting it")
            delete_token(self.conn, self.service_name)
        except PersistenceError as e:
            logger.error(f"Failed to load token from database: {e}")
        return None

    def _persist(self, credential: Credential):
        try:
            save_token(self.conn, credential)
        except PersistenceError as e:
            logger.error(f"Failed to save token to database: {e}")

    def _login(self, now: datetime) -> Credential:
        logger.info("Token missing or expired, logging in...")
        try:
            response = self._authenticate()
        except AuthError:
            raise
        except MonitorError as e:
            raise AuthError(f"Login failed: {e}") from e

        token = getattr(response, "token", None)
        if not token:
            raise AuthError("Login response did not contain a token")

        expires_at = getattr(response, "expires_at", None)
        expires_in = getattr(response, "expires_in", None)
        if expires_at is None and expires_in is not None:
            expires_at = now + timedelta(seconds=expires_in)
        if expires_at is None:
            expires_at = now + self.ttl

        logger.info(f"Logged in, token {_mask(token)} valid until {expires_at:%Y-%m-%d %H:%M:%S}")
        return Credential(service_name=self.service_name, token=token, expires_at=expires_at)
