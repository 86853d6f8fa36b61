"""
codifyr.identity.gotrue — Supabase GoTrue REST Provider
========================================================

:class:`GoTrueProvider` implements :class:`IdentityProvider` against the
GoTrue endpoints under ``{provider_url}/auth/v1``.  It keeps the current
session in memory and notifies subscribers after every local change
(sign-in, sign-out, refresh), the same way the browser client does.

HTTP failures never raise: they come back as a :class:`ProviderResult`
with a :class:`ProviderError` carrying GoTrue's ``error_code`` (when
present), the HTTP status, and its human-readable message.

A session is only dropped on sign-out or when GoTrue rejects its refresh
token with a 4xx.  Network errors and 5xx answers during a refresh leave
the stored session in place.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import httpx

from codifyr.identity.provider import (
    AuthChangeEvent,
    ListenerRegistry,
    ProviderResult,
    Session,
    SessionCallback,
    Subscription,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
# Refresh a little before the token actually expires
EXPIRY_MARGIN_SECONDS = 30


def _anon_key_from_env() -> str:
    key = os.getenv("SUPABASE_ANON_KEY", "").strip()
    if not key:
        raise RuntimeError(
            "SUPABASE_ANON_KEY is not set.  "
            "Copy .env.example → .env and paste the project's anon key."
        )
    return key


def _error_from_response(resp: httpx.Response) -> ProviderResult:
    """Turn a non-2xx GoTrue response into a failed :class:`ProviderResult`."""
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("msg")
        or body.get("error_description")
        or body.get("message")
        or body.get("error")
        or resp.reason_phrase
        or f"HTTP {resp.status_code}"
    )
    code = body.get("error_code")
    if code is None and isinstance(body.get("code"), str):
        code = body["code"]
    return ProviderResult.failure(str(message), status=resp.status_code, code=code)


def _is_rejection(result: ProviderResult) -> bool:
    """True when GoTrue answered with a 4xx, i.e. it judged the request invalid."""
    status = result.error.status if result.error is not None else None
    return status is not None and 400 <= status < 500


def _session_from_payload(payload: dict[str, Any]) -> Session | None:
    """Build a :class:`Session` from a token response (``None`` if no token)."""
    token = payload.get("access_token")
    user = payload.get("user") or {}
    if not token or not user.get("id"):
        return None
    expires_at = payload.get("expires_at")
    if expires_at is None and payload.get("expires_in") is not None:
        expires_at = int(time.time()) + int(payload["expires_in"])
    return Session(
        user_id=str(user["id"]),
        email=user.get("email", ""),
        is_active=True,
        access_token=token,
        refresh_token=payload.get("refresh_token"),
        expires_at=int(expires_at) if expires_at is not None else None,
    )


class GoTrueProvider:
    """Identity provider backed by the GoTrue REST API.

    Usage::

        async with GoTrueProvider(cfg.provider_url) as provider:
            result = await provider.sign_in_with_password(email, password)

    Parameters
    ----------
    provider_url : Supabase project URL (``https://<ref>.supabase.co``).
    anon_key : Public anon key.  Read from ``SUPABASE_ANON_KEY`` when omitted.
    client : Optional pre-built ``httpx.AsyncClient`` (tests pass one with a
        ``MockTransport``).  A client created here is closed by :meth:`aclose`.
    initial_session : Persisted session restored at startup.
    """

    def __init__(
        self,
        provider_url: str,
        anon_key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        initial_session: Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._base = provider_url.rstrip("/") + "/auth/v1"
        self._anon_key = anon_key if anon_key is not None else _anon_key_from_env()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout, transport=httpx.AsyncHTTPTransport(retries=1)
        )
        self._session = initial_session
        self._listeners = ListenerRegistry()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def __aenter__(self) -> GoTrueProvider:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {access_token or self._anon_key}",
        }

    async def _post(
        self,
        path: str,
        body: dict[str, Any] | None = None,
        *,
        params: dict[str, str] | None = None,
        access_token: str | None = None,
    ) -> ProviderResult:
        try:
            resp = await self._client.post(
                f"{self._base}{path}",
                json=body or {},
                params=params,
                headers=self._headers(access_token),
            )
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable (%s): %s", path, exc)
            return ProviderResult.failure(
                f"Could not reach the authentication service: {exc}"
            )

        if resp.is_success:
            if resp.status_code == 204 or not resp.content:
                return ProviderResult.success({})
            try:
                return ProviderResult.success(resp.json())
            except ValueError:
                logger.warning("Identity provider sent a non-JSON body for %s", path)
                return ProviderResult.failure(
                    "Unexpected response from the authentication service",
                    status=resp.status_code,
                )
        result = _error_from_response(resp)
        logger.warning(
            "Identity provider rejected %s (status=%s code=%s)",
            path,
            result.error.status,
            result.error.code,
        )
        return result

    # -------------------------------------------------------------------
    # Session state
    # -------------------------------------------------------------------
    def on_session_change(self, callback: SessionCallback) -> Subscription:
        return self._listeners.add(callback)

    def _set_session(self, session: Session | None, event: AuthChangeEvent) -> None:
        self._session = session
        self._listeners.emit(event, session)

    async def get_session(self) -> Session | None:
        """Return the current session, refreshing it if it is about to expire."""
        session = self._session
        if session is None:
            return None
        if session.expires_at is None or session.expires_at - EXPIRY_MARGIN_SECONDS > time.time():
            return session
        if not session.refresh_token:
            self._set_session(None, AuthChangeEvent.SIGNED_OUT)
            return None

        result = await self._post(
            "/token",
            {"refresh_token": session.refresh_token},
            params={"grant_type": "refresh_token"},
        )
        refreshed = _session_from_payload(result.data) if result.ok else None
        if refreshed is None:
            if not _is_rejection(result):
                # Refresh token is still good; retry on the next lookup
                logger.warning(
                    "Session refresh for %s did not complete; keeping the current session",
                    session.email,
                )
                return session
            logger.info("Refresh token rejected for %s; signing out locally", session.email)
            self._set_session(None, AuthChangeEvent.SIGNED_OUT)
            return None
        self._set_session(refreshed, AuthChangeEvent.TOKEN_REFRESHED)
        return refreshed

    # -------------------------------------------------------------------
    # Auth requests
    # -------------------------------------------------------------------
    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: dict[str, Any],
        redirect_to: str,
    ) -> ProviderResult:
        result = await self._post(
            "/signup",
            {"email": email, "password": password, "data": metadata},
            params={"redirect_to": redirect_to},
        )
        if result.ok:
            # Only projects without email confirmation hand back a session here
            session = _session_from_payload(result.data)
            if session is not None:
                self._set_session(session, AuthChangeEvent.SIGNED_IN)
        return result

    async def sign_in_with_password(self, email: str, password: str) -> ProviderResult:
        result = await self._post(
            "/token",
            {"email": email, "password": password},
            params={"grant_type": "password"},
        )
        if not result.ok:
            return result
        session = _session_from_payload(result.data)
        if session is None:
            return ProviderResult.failure("Authentication response did not include a session")
        self._set_session(session, AuthChangeEvent.SIGNED_IN)
        return ProviderResult.success(session)

    async def reset_password_for_email(self, email: str, redirect_to: str) -> ProviderResult:
        return await self._post(
            "/recover", {"email": email}, params={"redirect_to": redirect_to}
        )

    async def resend_signup_confirmation(self, email: str) -> ProviderResult:
        return await self._post("/resend", {"type": "signup", "email": email})

    async def sign_out(self) -> ProviderResult:
        session = self._session
        result = ProviderResult.success({})
        if session is not None and session.access_token:
            result = await self._post("/logout", access_token=session.access_token)
        # The local session is dropped even when the server call fails
        self._set_session(None, AuthChangeEvent.SIGNED_OUT)
        return result
