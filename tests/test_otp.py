import datetime
import hashlib
import threading
import time
from collections import Counter

import pytest

from app.services import otp
from app.services.otp import InMemoryOTPStore, OTPFailure, OTPStore, OTPVerifier


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime.datetime(2026, 10, 1, 9, 0, tzinfo=datetime.timezone.utc)

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


class FakeMailer:
    def __init__(self, delivered: bool = True) -> None:
        self.delivered = delivered
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to_email: str, subject: str, body_html: str) -> bool:
        self.sent.append((to_email, subject, body_html))
        return self.delivered


def _verifier(clock=None, mailer=None, **kwargs) -> OTPVerifier:
    return OTPVerifier(
        InMemoryOTPStore(),
        mailer or FakeMailer(),
        ttl=datetime.timedelta(minutes=5),
        max_attempts=3,
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_issue_sends_six_digit_code():
    mailer = FakeMailer()
    verifier = _verifier(mailer=mailer)
    issued = verifier.issue("Ravi@Example.com", "Ravi")
    assert issued.delivered is True
    assert len(issued.code) == 6 and issued.code.isdigit()
    to_email, _subject, body = mailer.sent[0]
    assert to_email == "ravi@example.com"
    assert issued.code in body


def test_code_is_not_stored_in_plaintext():
    verifier = _verifier()
    issued = verifier.issue("ravi@example.com")
    [(_key, challenge)] = verifier.store.items()
    assert challenge.hashed_code == hashlib.sha256(issued.code.encode("utf-8")).hexdigest()
    assert challenge.hashed_code != issued.code


def test_correct_code_verifies_once():
    verifier = _verifier()
    issued = verifier.issue("ravi@example.com")
    assert verifier.verify("RAVI@example.com", issued.code).valid is True
    second = verifier.verify("ravi@example.com", issued.code)
    assert second.valid is False
    assert second.reason is OTPFailure.NOT_FOUND


def test_expired_code_rejected():
    clock = FakeClock()
    verifier = _verifier(clock=clock)
    issued = verifier.issue("ravi@example.com")
    clock.advance(minutes=5, seconds=1)
    result = verifier.verify("ravi@example.com", issued.code)
    assert result.reason is OTPFailure.EXPIRED
    assert verifier.verify("ravi@example.com", issued.code).reason is OTPFailure.NOT_FOUND


def test_code_valid_at_expiry_instant():
    clock = FakeClock()
    verifier = _verifier(clock=clock)
    issued = verifier.issue("ravi@example.com")
    clock.advance(minutes=5)
    assert verifier.verify("ravi@example.com", issued.code).valid is True


def test_lockout_after_max_attempts_even_with_right_code():
    verifier = _verifier()
    issued = verifier.issue("ravi@example.com")
    wrong = "000000" if issued.code != "000000" else "111111"
    for _ in range(3):
        assert verifier.verify("ravi@example.com", wrong).reason is OTPFailure.INVALID_CODE
    result = verifier.verify("ravi@example.com", issued.code)
    assert result.valid is False
    assert result.reason is OTPFailure.TOO_MANY_ATTEMPTS
    assert verifier.verify("ravi@example.com", issued.code).reason is OTPFailure.NOT_FOUND


def test_reissue_replaces_previous_code():
    verifier = _verifier()
    first = verifier.issue("ravi@example.com")
    second = verifier.issue("ravi@example.com")
    if first.code != second.code:
        assert verifier.verify("ravi@example.com", first.code).reason is OTPFailure.INVALID_CODE
    assert verifier.verify("ravi@example.com", second.code).valid is True


def test_unknown_email_not_found():
    assert _verifier().verify("nobody@example.com", "123456").reason is OTPFailure.NOT_FOUND


def test_sweep_removes_only_expired():
    clock = FakeClock()
    verifier = _verifier(clock=clock)
    verifier.issue("old@example.com")
    clock.advance(minutes=4)
    fresh = verifier.issue("new@example.com")
    clock.advance(minutes=2)
    assert verifier.sweep_expired() == 1
    assert verifier.verify("new@example.com", fresh.code).valid is True


def test_undelivered_mail_reported():
    issued = _verifier(mailer=FakeMailer(delivered=False)).issue("ravi@example.com")
    assert issued.delivered is False


def test_sweep_keeps_lock_pool_bounded():
    clock = FakeClock()
    verifier = _verifier(clock=clock)
    for i in range(1000):
        verifier.issue(f"farmer{i}@example.com")
    clock.advance(minutes=10)
    assert verifier.sweep_expired() == 1000
    assert verifier.store.items() == []
    assert len(verifier._key_locks) == otp.LOCK_STRIPES


class SlowOTPStore(InMemoryOTPStore):
    """Widens the read-modify-write window so unserialised verifies would race."""

    def get(self, key):
        challenge = super().get(key)
        time.sleep(0.005)
        return challenge


def test_parallel_wrong_guesses_respect_attempt_budget():
    verifier = OTPVerifier(
        SlowOTPStore(),
        FakeMailer(),
        ttl=datetime.timedelta(minutes=5),
        max_attempts=3,
        clock=FakeClock(),
    )
    issued = verifier.issue("ravi@example.com")
    wrong = "000000" if issued.code != "000000" else "111111"
    workers = 12
    barrier = threading.Barrier(workers)
    results: list[OTPFailure] = []
    results_lock = threading.Lock()

    def _guess():
        barrier.wait()
        result = verifier.verify("ravi@example.com", wrong)
        with results_lock:
            results.append(result.reason)

    threads = [threading.Thread(target=_guess) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    counts = Counter(results)
    assert counts[OTPFailure.INVALID_CODE] == 3
    assert counts[OTPFailure.TOO_MANY_ATTEMPTS] + counts[OTPFailure.NOT_FOUND] == workers - 3
    assert verifier.verify("ravi@example.com", issued.code).valid is False


def test_incomplete_store_rejected_at_construction():
    class PartialStore(OTPStore):
        def get(self, key):
            return None

    with pytest.raises(TypeError):
        PartialStore()
