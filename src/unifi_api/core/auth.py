"""
UniFi API Client - Session and Authentication Management

This module owns the login session: it logs in and out, decorates outgoing
requests with the session cookie and anti-forgery token, and coalesces
concurrent session refreshes into a single login.
"""

import asyncio
import base64
import binascii
import json
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from ..shared.constants import (
    CSRF_HEADER,
    CSRF_HEADER_UPDATED,
    LOGIN_PATH,
    LOGOUT_PATH,
    SESSION_COOKIE_NAMES,
)
from .cancellation import CancelToken, ensure_token
from .exceptions import (
    AuthenticationError,
    InvalidCSRFTokenError,
    NotConnectedError,
    SessionExpiredError,
    UniFiError,
    error_for_response,
)
from .messages import Request, Response
from .models import DEFAULT_SESSION_LIFETIME, Session

logger = logging.getLogger("unifi-api")


class AuthState(str, Enum):
    """Lifecycle of the session held by an AuthManager."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


def _jwt_claims(token: str) -> Dict[str, Any]:
    """Decode the payload of a JWT session cookie without verifying it."""
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return {}
    return claims if isinstance(claims, dict) else {}


def _login_failure_message(response: Response) -> str:
    try:
        payload = json.loads(response.body) if response.body else {}
    except ValueError:
        payload = {}
    if isinstance(payload, dict):
        if payload.get("message"):
            return payload["message"]
        meta = payload.get("meta")
        if isinstance(meta, dict) and (meta.get("msg") or meta.get("message")):
            return meta.get("msg") or meta.get("message")
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            return str(errors[0])
    return f"status {response.status_code} (check credentials)"


class AuthManager:
    """Owns exactly one live Session and wraps a transport with it.

    Reads of the current session are a plain attribute read of an immutable
    ``Session``. Logins run under ``_lock``; callers that queued behind a
    login reuse its outcome instead of logging in again.
    """

    def __init__(
        self,
        transport,
        username: str,
        password: str,
        session_lifetime: timedelta = DEFAULT_SESSION_LIFETIME,
    ):
        self.transport = transport
        self.username = username
        self._password = password
        self.session_lifetime = session_lifetime

        self._session: Optional[Session] = None
        self._state = AuthState.UNAUTHENTICATED
        self._lock = asyncio.Lock()
        # Bumped whenever a login attempt finishes
        self._generation = 0
        self._last_error: Optional[Exception] = None
        # Bumped by logout/invalidate so an in-flight login cannot resurrect a session
        self._epoch = 0

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> AuthState:
        return self._state

    def is_authenticated(self) -> bool:
        session = self._session
        return session is not None and session.is_valid()

    def decorate(self, request: Request, session: Optional[Session] = None) -> Request:
        """Attach the session cookie, and the CSRF token for state-changing requests."""
        session = session or self._session
        if session is None:
            return request
        headers = {"Cookie": f"{session.cookie_name}={session.token}"}
        if not request.is_safe and session.csrf_token:
            headers[CSRF_HEADER] = session.csrf_token
        return request.with_headers(headers)

    async def login(self, cancel: Optional[CancelToken] = None) -> Session:
        """Authenticate and install a new session, replacing any previous one.

        Raises:
            AuthenticationError: Credentials rejected
            ConnectionError: Controller unreachable
            OperationCancelledError: ``cancel`` fired
        """
        token = ensure_token(cancel)
        await self._acquire(token)
        try:
            return await self._login_locked(token)
        finally:
            self._lock.release()

    async def refresh(self, stale: Optional[Session] = None, cancel: Optional[CancelToken] = None) -> Session:
        """Replace ``stale`` with a fresh session, sharing any login already under way.

        Args:
            stale: The session the caller saw rejected, or None if it had none
            cancel: Cancellation token

        Returns:
            A session other than ``stale``
        """
        token = ensure_token(cancel)
        generation = self._generation
        await self._acquire(token)
        try:
            current = self._session
            if (current is not None and current is not stale
                    and current.is_valid() and not current.needs_refresh()):
                logger.debug("Session already refreshed by a concurrent caller")
                return current
            if self._generation != generation and self._last_error is not None:
                # The login we queued behind failed; share its outcome
                raise self._last_error
            return await self._login_locked(token)
        finally:
            self._lock.release()

    async def ensure_authenticated(self, cancel: Optional[CancelToken] = None) -> Session:
        """Return a usable session, logging in if there is none or it is about to expire."""
        session = self._session
        if session is not None and session.is_valid() and not session.needs_refresh():
            return session
        return await self.refresh(stale=session, cancel=cancel)

    async def _acquire(self, token: CancelToken) -> None:
        """Take the refresh lock unless ``token`` fires first."""
        acquire = asyncio.ensure_future(self._lock.acquire())
        try:
            await token.run(acquire)
        except BaseException:
            # The acquire can complete in the same step the caller is cancelled
            if acquire.done() and not acquire.cancelled() and acquire.exception() is None:
                self._lock.release()
            raise

    async def _login_locked(self, token: CancelToken) -> Session:
        epoch = self._epoch
        self._state = AuthState.REFRESHING if self._session is not None else AuthState.AUTHENTICATING
        logger.info(f"Logging in to controller as '{self.username}'")
        try:
            session = await self._perform_login(token)
        except AuthenticationError as e:
            self._session = None
            self._state = AuthState.UNAUTHENTICATED
            self._last_error = e
            logger.warning(f"Login failed: {e.message}")
            raise
        except UniFiError as e:
            self._state = AuthState.AUTHENTICATED if self._session is not None else AuthState.UNAUTHENTICATED
            # Cancellation is the caller's own outcome, not one to share
            self._last_error = None if token.cancelled else e
            raise
        except BaseException:
            self._state = AuthState.AUTHENTICATED if self._session is not None else AuthState.UNAUTHENTICATED
            self._last_error = None
            raise
        finally:
            self._generation += 1

        if epoch != self._epoch:
            logger.info("Discarding session from a login that raced a logout")
            # A discarded login is not a failure for queued callers to share
            self._last_error = None
            raise NotConnectedError("Logged out while a login was in flight")

        self._session = session
        self._state = AuthState.AUTHENTICATED
        self._last_error = None
        logger.info(f"Logged in as '{self.username}' (cookie: {session.cookie_name})")
        return session

    async def _perform_login(self, token: CancelToken) -> Session:
        request = Request("POST", LOGIN_PATH, body={"username": self.username, "password": self._password})
        response = await self.transport.execute(request, token)

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Login failed: {_login_failure_message(response)}",
                status_code=response.status_code,
                endpoint=LOGIN_PATH,
            )
        error = error_for_response(response, LOGIN_PATH)
        if error is not None:
            raise error

        try:
            payload = json.loads(response.body) if response.body else {}
        except ValueError:
            payload = {}
        if isinstance(payload, dict):
            errors = payload.get("errors")
            meta = payload.get("meta")
            if isinstance(errors, list) and errors:
                raise AuthenticationError(f"Login failed: {errors[0]}", status_code=response.status_code,
                                          endpoint=LOGIN_PATH)
            if isinstance(meta, dict) and meta.get("rc") not in (None, "", "ok"):
                raise AuthenticationError(f"Login failed: {meta.get('msg') or meta.get('rc')}",
                                          status_code=response.status_code, rc=meta.get("rc"),
                                          endpoint=LOGIN_PATH)

        cookies = response.cookies
        cookie_name = next((name for name in SESSION_COOKIE_NAMES if cookies.get(name)), None)
        if cookie_name is None:
            raise AuthenticationError("Login response did not set a session cookie",
                                      status_code=response.status_code, endpoint=LOGIN_PATH)
        cookie = cookies[cookie_name]

        claims = _jwt_claims(cookie)
        csrf_token = (
            response.headers.get(CSRF_HEADER)
            or response.headers.get(CSRF_HEADER_UPDATED)
            or claims.get("csrfToken", "")
        )

        now = datetime.now()
        expires_at = now + self.session_lifetime
        if isinstance(claims.get("exp"), (int, float)):
            expires_at = datetime.fromtimestamp(claims["exp"])

        return Session(
            token=cookie,
            csrf_token=csrf_token,
            username=self.username,
            cookie_name=cookie_name,
            created_at=now,
            expires_at=expires_at,
        )

    async def logout(self, cancel: Optional[CancelToken] = None) -> None:
        """End the session. Local state is always cleared; never raises for server failures."""
        session = self._session
        self.invalidate()
        if session is None:
            return

        request = self.decorate(Request("POST", LOGOUT_PATH), session)
        try:
            response = await self.transport.execute(request, cancel)
            if not response.is_success:
                logger.warning(f"Logout returned status {response.status_code}; local session cleared")
        except UniFiError as e:
            logger.warning(f"Logout request failed: {e.message}; local session cleared")
        logger.info(f"Logged out '{self.username}'")

    def invalidate(self) -> None:
        """Drop the local session without contacting the controller."""
        self._epoch += 1
        self._session = None
        self._state = AuthState.UNAUTHENTICATED

    async def execute(self, request: Request, cancel: Optional[CancelToken] = None) -> Response:
        """Run ``request`` with session credentials, recovering once from a rejected session.

        A 401 or CSRF-mismatch 403 triggers exactly one coalesced re-login and
        one replay of the request; a second rejection is raised to the caller.

        Raises:
            SessionExpiredError: Session rejected again after re-login
            InvalidCSRFTokenError: CSRF token rejected again after re-login
            APIError: Any other non-success status, as its typed subclass
        """
        request.validate()
        token = ensure_token(cancel)

        session = await self.ensure_authenticated(token)
        response = await self.transport.execute(self.decorate(request, session), token)
        error = error_for_response(response, request.path)
        if error is None:
            return response

        if isinstance(error, (SessionExpiredError, InvalidCSRFTokenError)):
            logger.info(f"{type(error).__name__} on {request.method} {request.path}; re-authenticating once")
            session = await self.refresh(stale=session, cancel=token)
            response = await self.transport.execute(self.decorate(request, session), token)
            error = error_for_response(response, request.path)
            if error is None:
                return response
            if isinstance(error, SessionExpiredError) and self._session is session:
                self.invalidate()

        raise error

    async def close(self) -> None:
        await self.transport.close()
