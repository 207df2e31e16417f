"""Shared-password authentication, bearer tokens and per-client rate limits."""

from __future__ import annotations

import math
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum

import structlog

from ..config import GateSettings

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(tz=timezone.utc)


class GateMode(StrEnum):
    OPEN = "open"
    GUARDED = "guarded"


class AuthError(Exception):
    """Base class for auth failures."""


class InvalidCredentialsError(AuthError):
    """Raised when the supplied password does not match."""


class UnauthenticatedError(AuthError):
    """Raised when a request carries no valid token."""


class RateLimitedError(AuthError):
    """Raised when a client exhausted its attempts for the current window."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"rate limited, retry after {retry_after}s")
        self.retry_after = retry_after


@dataclass(slots=True, frozen=True)
class AccessToken:
    value: str
    created_at: datetime
    expires_at: datetime | None = None

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass(slots=True)
class RateWindow:
    count: int
    started_at: datetime


@dataclass(slots=True)
class TokenStore:
    """Process-wide set of valid tokens."""

    ttl: timedelta | None = None
    clock: Clock = field(default=_utcnow)
    _tokens: dict[str, AccessToken] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def issue(self) -> AccessToken:
        now = self.clock()
        token = AccessToken(
            value=secrets.token_urlsafe(32),
            created_at=now,
            expires_at=now + self.ttl if self.ttl else None,
        )
        with self._lock:
            self._tokens[token.value] = token
        return token

    def contains(self, value: str) -> bool:
        now = self.clock()
        with self._lock:
            token = self._tokens.get(value)
            if token is None:
                return False
            if token.expired(now):
                del self._tokens[value]
                return False
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


@dataclass(slots=True)
class RateLimiter:
    """Fixed-window attempt counter per key."""

    max_attempts: int = 10
    window_seconds: int = 15 * 60
    clock: Clock = field(default=_utcnow)
    max_tracked_keys: int = 10_000
    _windows: dict[str, RateWindow] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def hit(self, key: str) -> None:
        """Count one attempt for ``key`` or raise :class:`RateLimitedError`."""
        now = self.clock()
        window = timedelta(seconds=self.window_seconds)
        with self._lock:
            state = self._windows.get(key)
            if state is None or now - state.started_at >= window:
                if len(self._windows) >= self.max_tracked_keys:
                    self._purge(now, window)
                state = RateWindow(count=0, started_at=now)
                self._windows[key] = state
            if state.count >= self.max_attempts:
                remaining = (state.started_at + window - now).total_seconds()
                raise RateLimitedError(retry_after=max(1, math.ceil(remaining)))
            state.count += 1

    def attempts(self, key: str) -> int:
        with self._lock:
            state = self._windows.get(key)
            return state.count if state else 0

    def _purge(self, now: datetime, window: timedelta) -> None:
        stale = [key for key, state in self._windows.items() if now - state.started_at >= window]
        for key in stale:
            del self._windows[key]


@dataclass(slots=True)
class AccessGate:
    """Guard uploads behind a shared password and per-client quotas.

    In ``OPEN`` mode every call succeeds and nothing is counted. In
    ``GUARDED`` mode a password exchange yields bearer tokens, every upload
    attempt is counted against the caller's address, and password attempts
    are counted in their own namespace.
    """

    password: str | None
    tokens: TokenStore
    limiter: RateLimiter

    @classmethod
    def from_settings(cls, settings: GateSettings, clock: Clock = _utcnow) -> "AccessGate":
        ttl = timedelta(hours=settings.token_ttl_hours) if settings.token_ttl_hours > 0 else None
        gate = cls(
            password=settings.password,
            tokens=TokenStore(ttl=ttl, clock=clock),
            limiter=RateLimiter(
                max_attempts=settings.rate_limit_max_attempts,
                window_seconds=settings.rate_limit_window_seconds,
                clock=clock,
            ),
        )
        if gate.mode is GateMode.GUARDED:
            startup = gate.tokens.issue()
            logger.info("auth.gate.startup_token", token=startup.value, expires_at=_iso(startup.expires_at))
        return gate

    @property
    def mode(self) -> GateMode:
        return GateMode.GUARDED if self.password else GateMode.OPEN

    @property
    def guarded(self) -> bool:
        return self.mode is GateMode.GUARDED

    def authenticate(self, supplied_secret: str, client_ip: str | None = None) -> AccessToken | None:
        """Exchange the shared password for a token (``None`` in open mode)."""
        if not self.guarded:
            return None
        self.limiter.hit(f"auth:{client_ip or 'unknown'}")
        expected = (self.password or "").encode("utf-8")
        if not secrets.compare_digest((supplied_secret or "").encode("utf-8"), expected):
            logger.warning("auth.login.failure", client_ip=client_ip)
            raise InvalidCredentialsError("invalid password")
        token = self.tokens.issue()
        logger.info("auth.login.success", client_ip=client_ip, expires_at=_iso(token.expires_at))
        return token

    def authorize(self, presented_token: str | None) -> None:
        if not self.guarded:
            return
        if not presented_token or not self.tokens.contains(presented_token):
            logger.warning("auth.token.rejected", token_present=bool(presented_token))
            raise UnauthenticatedError("authentication required")

    def rate_limit(self, client_address: str | None) -> None:
        if not self.guarded:
            return
        key = f"upload:{client_address or 'unknown'}"
        try:
            self.limiter.hit(key)
        except RateLimitedError as exc:
            logger.warning("auth.rate_limit.exceeded", client_ip=client_address, retry_after=exc.retry_after)
            raise


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None
