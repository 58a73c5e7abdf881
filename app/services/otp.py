"""
One-time email codes for registration.

A challenge is keyed by lowercase email and stores only the sha256 of the
code. Verification checks, in order: challenge present, not expired, attempt
budget left, code match. Expired, exhausted and consumed challenges are
deleted.
"""

from __future__ import annotations

import abc
import datetime
import enum
import hashlib
import logging
import os
import secrets
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.audit import audit_log
from ..core.clock import utcnow
from .mailer import Mailer, render_otp_email

logger = logging.getLogger("otp")

DEFAULT_TTL = datetime.timedelta(minutes=5)
DEFAULT_MAX_ATTEMPTS = 3
# verify/issue serialise per email through a fixed pool of locks.
LOCK_STRIPES = 64


class OTPFailure(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    TOO_MANY_ATTEMPTS = "TOO_MANY_ATTEMPTS"
    INVALID_CODE = "INVALID_CODE"


@dataclass
class OTPChallenge:
    hashed_code: str
    expires_at: datetime.datetime
    attempts_made: int = 0


@dataclass(frozen=True)
class OTPResult:
    valid: bool
    reason: Optional[OTPFailure] = None


@dataclass(frozen=True)
class IssuedOTP:
    code: str
    delivered: bool


def _hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


def _key(email: str) -> str:
    return (email or "").strip().lower()


def _ttl_from_env() -> datetime.timedelta:
    try:
        return datetime.timedelta(seconds=max(30, int(os.getenv("OTP_TTL_SEC", "300"))))
    except ValueError:
        return DEFAULT_TTL


def _max_attempts_from_env() -> int:
    try:
        return max(1, int(os.getenv("OTP_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))))
    except ValueError:
        return DEFAULT_MAX_ATTEMPTS


class OTPStore(abc.ABC):
    @abc.abstractmethod
    def get(self, key: str) -> Optional[OTPChallenge]:
        ...

    @abc.abstractmethod
    def put(self, key: str, challenge: OTPChallenge) -> None:
        ...

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abc.abstractmethod
    def items(self) -> list[tuple[str, OTPChallenge]]:
        ...


class InMemoryOTPStore(OTPStore):
    def __init__(self) -> None:
        self._data: dict[str, OTPChallenge] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[OTPChallenge]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, challenge: OTPChallenge) -> None:
        with self._lock:
            self._data[key] = challenge

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def items(self) -> list[tuple[str, OTPChallenge]]:
        with self._lock:
            return list(self._data.items())


class OTPVerifier:
    def __init__(
        self,
        store: OTPStore,
        mailer: Mailer,
        *,
        ttl: Optional[datetime.timedelta] = None,
        max_attempts: Optional[int] = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.store = store
        self.mailer = mailer
        self.ttl = ttl or _ttl_from_env()
        self.max_attempts = max_attempts or _max_attempts_from_env()
        self.clock = clock
        self._key_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))

    def _lock_for(self, key: str) -> threading.Lock:
        return self._key_locks[hash(key) % len(self._key_locks)]

    def issue(self, email: str, display_name: str = "") -> IssuedOTP:
        key = _key(email)
        code = str(secrets.randbelow(900000) + 100000)
        challenge = OTPChallenge(hashed_code=_hash_code(code), expires_at=self.clock() + self.ttl)
        with self._lock_for(key):
            self.store.put(key, challenge)
        subject, body = render_otp_email(display_name, code, int(self.ttl.total_seconds() // 60))
        delivered = self.mailer.send(key, subject, body)
        audit_log("OTP_ISSUED", email=key, success=delivered, details={"delivered": delivered})
        return IssuedOTP(code=code, delivered=delivered)

    def verify(self, email: str, code: str) -> OTPResult:
        key = _key(email)
        with self._lock_for(key):
            result = self._verify_locked(key, (code or "").strip())
        audit_log(
            "OTP_VERIFY",
            email=key,
            success=result.valid,
            details={"reason": result.reason.value if result.reason else None},
        )
        return result

    def _verify_locked(self, key: str, code: str) -> OTPResult:
        challenge = self.store.get(key)
        if challenge is None:
            return OTPResult(False, OTPFailure.NOT_FOUND)
        if self.clock() > challenge.expires_at:
            self.store.delete(key)
            return OTPResult(False, OTPFailure.EXPIRED)
        if challenge.attempts_made >= self.max_attempts:
            self.store.delete(key)
            return OTPResult(False, OTPFailure.TOO_MANY_ATTEMPTS)
        if not secrets.compare_digest(_hash_code(code), challenge.hashed_code):
            challenge.attempts_made += 1
            self.store.put(key, challenge)
            return OTPResult(False, OTPFailure.INVALID_CODE)
        self.store.delete(key)
        return OTPResult(True)

    def sweep_expired(self) -> int:
        now = self.clock()
        removed = 0
        for key, challenge in self.store.items():
            if now > challenge.expires_at:
                with self._lock_for(key):
                    current = self.store.get(key)
                    if current is not None and now > current.expires_at:
                        self.store.delete(key)
                        removed += 1
        return removed


def run_otp_sweeper(stop_event: threading.Event, verifier: OTPVerifier) -> None:
    interval_sec = max(5, int(os.getenv("OTP_SWEEP_INTERVAL_SEC", "60")))
    logger.info("OTP sweeper started (interval=%ss)", interval_sec)
    while not stop_event.is_set():
        try:
            removed = verifier.sweep_expired()
            if removed:
                logger.debug("OTP sweeper removed %s expired challenges", removed)
        except Exception as exc:
            logger.exception("OTP sweeper cycle failed: %s", exc)
        stop_event.wait(interval_sec)
    logger.info("OTP sweeper stopped")
