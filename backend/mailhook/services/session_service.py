"""
Session management service.

This module handles:
1. Binding a provider account id to a new session
2. Validating session cookies (JWT-based)
3. Resolving the signed-in account for protected routes
4. Holding sign-in flows between /auth/signin and /auth/callback

The JWT carries only the session id; the account id lives server-side.
Sessions are stored in-memory, so a single process is assumed. Swap
SessionStore for an external store to run more than one instance.
"""
import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from mailhook.config import Settings
from mailhook.models.session import Session
from mailhook.utils.errors import NotSignedInError
from mailhook.utils.logger import get_logger

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """
    In-memory session store keyed by session id.

    Usage:
        store = SessionStore(settings)
        token = store.create(home_account_id)
        session = store.get(token)
        store.delete(token)
    """

    def __init__(self, settings: Settings):
        self.secret = settings.session_secret
        self.expire_hours = settings.session_expire_hours
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, home_account_id: str) -> str:
        """
        Create a session bound to an account and return a JWT session token.
        """
        now = _utcnow()
        session = Session(
            session_id=secrets.token_urlsafe(24),
            home_account_id=home_account_id,
            created_at=now,
            session_expiry=now + timedelta(hours=self.expire_hours),
        )

        with self._lock:
            self._sweep(now)
            self._sessions[session.session_id] = session

        token = jwt.encode(
            {"session_id": session.session_id, "exp": session.session_expiry, "iat": now},
            self.secret,
            algorithm=JWT_ALGORITHM,
        )
        logger.info("Created session")
        return token

    def _sweep(self, now: datetime) -> None:
        # Caller holds the lock
        expired = [sid for sid, s in self._sessions.items() if now > s.session_expiry]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Evicted {len(expired)} expired sessions")

    def _session_id(self, token: str, verify_exp: bool = True) -> Optional[str]:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[JWT_ALGORITHM],
                options={"verify_exp": verify_exp},
            )
        except jwt.ExpiredSignatureError:
            logger.info("Session JWT expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid session JWT: {e}")
            return None
        return payload.get("session_id")

    def get(self, token: str) -> Optional[Session]:
        """
        Retrieve the session for a token. Returns None if the JWT is
        invalid, the session is unknown, or it has expired.
        """
        session_id = self._session_id(token)
        if not session_id:
            return None

        with self._lock:
            session = self._sessions.get(session_id)
            if session and _utcnow() > session.session_expiry:
                del self._sessions[session_id]
                logger.info("Session expired")
                return None
        return session

    def delete(self, token: str) -> Optional[Session]:
        """Delete a session. Expired tokens are accepted. Returns the removed session."""
        session_id = self._session_id(token, verify_exp=False)
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session:
            logger.info("Deleted session")
        return session

    def __len__(self) -> int:
        return len(self._sessions)


class AuthFlowStore:
    """
    Sign-in flows started but not yet completed, keyed by their state.

    A flow can be completed once. Flows older than auth_flow_ttl_minutes
    are dropped.

    Usage:
        flows = AuthFlowStore(settings)
        flows.put(flow)
        flow = flows.pop(state)
    """

    def __init__(self, settings: Settings):
        self.ttl = timedelta(minutes=settings.auth_flow_ttl_minutes)
        self._flows: dict[str, tuple[dict, datetime]] = {}
        self._lock = threading.Lock()

    def put(self, flow: dict) -> str:
        now = _utcnow()
        state = flow["state"]
        with self._lock:
            for key in [k for k, (_, started) in self._flows.items() if now - started > self.ttl]:
                del self._flows[key]
            self._flows[state] = (flow, now)
        return state

    def pop(self, state: Optional[str]) -> Optional[dict]:
        """Remove and return the flow for a state, or None if unknown or stale."""
        if not state:
            return None
        with self._lock:
            entry = self._flows.pop(state, None)
        if not entry:
            return None
        flow, started = entry
        if _utcnow() - started > self.ttl:
            logger.info("Sign-in flow expired")
            return None
        return flow

    def __len__(self) -> int:
        return len(self._flows)


def get_session_token(request: Request, settings: Settings) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


def resolve_account(request: Request, store: SessionStore, settings: Settings) -> str:
    """
    Return the home account id bound to the request's session.

    Raises:
        NotSignedInError: No cookie, unknown or expired session
    """
    token = get_session_token(request, settings)
    if not token:
        raise NotSignedInError()

    session = store.get(token)
    if not session:
        raise NotSignedInError()

    return session.home_account_id
