"""Basic in-memory rate limiter (per-process token bucket)."""

from __future__ import annotations

import hashlib
import os
import threading
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from .errors import TooManyRequestsError

# Login and OTP routes get their own, stricter bucket.
AUTH_PATH_SUFFIXES = ("/login", "/register/request-otp", "/register/verify-otp", "/register")


def _env_bool(name: str, default: str = "") -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None:
        return None
    val = raw.strip().lower()
    if val in {"1", "true", "yes"}:
        return True
    if val in {"0", "false", "no"}:
        return False
    return None


def _get_app_env() -> str:
    return (os.getenv("KM_ENV") or os.getenv("APP_ENV") or "dev").strip().lower()


def rate_limit_enabled() -> bool:
    explicit = _env_bool("RATE_LIMIT_ENABLED")
    if explicit is not None:
        return explicit
    return _get_app_env() == "prod"


def _env_float(name: str, default: float, minimum: float) -> float:
    try:
        val = float(os.getenv(name, str(default)))
    except ValueError:
        val = default
    return max(val, minimum)


def _env_int(name: str, default: int, minimum: int) -> int:
    try:
        val = int(os.getenv(name, str(default)))
    except ValueError:
        val = default
    return max(val, minimum)


def _get_limits(auth_route: bool) -> tuple[float, int]:
    if auth_route:
        return _env_float("RATE_LIMIT_AUTH_RPS", 0.2, 0.01), _env_int("RATE_LIMIT_AUTH_BURST", 5, 1)
    return _env_float("RATE_LIMIT_RPS", 5.0, 0.1), _env_int("RATE_LIMIT_BURST", 20, 1)


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def _path_group(path: str) -> str:
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "v1":
        return f"/api/v1/{parts[2]}"
    if len(parts) >= 1:
        return f"/{parts[0]}"
    return "/"


def is_auth_path(path: str) -> bool:
    trimmed = path.rstrip("/")
    return any(trimmed.endswith(suffix) for suffix in AUTH_PATH_SUFFIXES)


@dataclass
class Bucket:
    tokens: float
    last_ts: float


class TokenBucketLimiter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, Bucket] = {}

    def allow(self, key: str, *, rps: float, burst: int, now: Optional[float] = None) -> tuple[bool, float]:
        now = time.monotonic() if now is None else now
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = Bucket(tokens=float(burst), last_ts=now)
                self._buckets[key] = bucket
            # Refill
            elapsed = max(0.0, now - bucket.last_ts)
            bucket.tokens = min(float(burst), bucket.tokens + elapsed * rps)
            bucket.last_ts = now
            if bucket.tokens >= 1.0:
                bucket.tokens -= 1.0
                return True, 0.0
            needed = 1.0 - bucket.tokens
            retry_after = needed / rps if rps > 0 else 1.0
            return False, max(retry_after, 0.1)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()


_limiter = TokenBucketLimiter()


def rate_limit_dependency(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> None:
    if not rate_limit_enabled():
        return

    path = request.url.path
    auth_route = is_auth_path(path)
    rps, burst = _get_limits(auth_route)

    token = _extract_bearer_token(authorization)
    # Auth routes are keyed by client address so fresh tokens cannot reset the bucket.
    if token and not auth_route:
        ident = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
    else:
        ident = request.client.host if request.client else "unknown"

    group = f"{_path_group(path)}:auth" if auth_route else _path_group(path)
    key = f"{ident}:{group}"

    allowed, retry_after = _limiter.allow(key, rps=rps, burst=burst)
    if not allowed:
        raise TooManyRequestsError(retry_after=retry_after)
