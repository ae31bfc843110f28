import threading
import pytest
from unittest.mock import patch, MagicMock

from pirequest.api.schemas import MfaCodeRequest, MfaVerifyRequest
from pirequest.core.errors import (
    AlreadyVerified,
    AttemptsExhausted,
    CodeExpired,
    HumanVerificationRequired,
    InvalidCode,
    InvalidSession,
    PhoneMismatch,
)
from pirequest.core.mfa import generate_mfa_code, issue_mfa_code, verify_mfa_code
from pirequest.store.session_repo import InMemorySessionStore
from pirequest.utils.time import FixedClock

PERSONAL_INFO = {
    "firstName": "Jane",
    "lastName": "Doe",
    "address": "123 Main Street",
    "state": "NY",
    "email": "jane@example.com",
    "dateOfBirth": "1985-04-12",
    "ssn": "123456789",
}


def _issue(store, clock, phone="555-123-4567", code="482913"):
    req = MfaCodeRequest.model_validate(
        {"personalInfo": PERSONAL_INFO, "mobileNumber": phone, "captchaVerified": True}
    )
    deliver = MagicMock()
    with patch("pirequest.core.mfa.generate_mfa_code", return_value=code):
        issued = issue_mfa_code(req, store, clock, deliver=deliver)
    return issued, deliver


def _verify_req(session_id, code, phone="555-123-4567"):
    return MfaVerifyRequest(mobileNumber=phone, mfaCode=code, sessionId=session_id)


def test_generate_mfa_code_is_six_digits():
    for _ in range(200):
        c = generate_mfa_code()
        assert len(c) == 6 and c.isdigit()
        assert 100000 <= int(c) <= 999999


def test_issue_creates_session_and_delivers_code():
    clock = FixedClock(1_700_000_000_000)
    store = InMemorySessionStore(clock=clock)
    issued, deliver = _issue(store, clock)

    assert issued.phoneNumber == "***-***-4567"
    assert issued.expiresIn == 300

    s = store.get(issued.sessionId)
    assert s.code == "482913"
    assert s.phoneNumber == "5551234567"
    assert s.personalInfo["dateOfBirth"] == "1985-04-12"
    assert s.createdAt == 1_700_000_000_000
    assert s.expiresAt == 1_700_000_300_000
    assert (s.attempts, s.maxAttempts, s.verified) == (0, 3, False)
    deliver.assert_called_once_with(issued.sessionId, "5551234567", "482913")


def test_issue_requires_literal_true_captcha():
    store = InMemorySessionStore()
    req = MfaCodeRequest.model_validate({"personalInfo": PERSONAL_INFO, "mobileNumber": "5551234567"})
    with pytest.raises(HumanVerificationRequired):
        issue_mfa_code(req, store, FixedClock(), deliver=MagicMock())
    assert len(store) == 0


def test_issue_logs_masked_identity_not_code():
    store = InMemorySessionStore()
    with patch("pirequest.core.mfa.log") as mock_log:
        _issue(store, FixedClock())
    kwargs = mock_log.call_args.kwargs
    assert kwargs["event"] == "mfa_code_requested"
    assert kwargs["phoneNumber"] == "***-***-4567"
    assert kwargs["personalInfo"]["ssn"] == "***-**-6789"
    assert kwargs["personalInfo"]["email"] == "ja***@example.com"
    assert "482913" not in str(kwargs)


def test_correct_code_verifies_once():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)

    clock.advance(seconds=30)
    out = verify_mfa_code(_verify_req(issued.sessionId, "482913"), store, clock)
    assert out.verified is True

    s = store.get(issued.sessionId)
    assert s.verified is True
    assert s.verifiedAt == clock.now_ms()
    assert s.attempts == 1

    with pytest.raises(AlreadyVerified):
        verify_mfa_code(_verify_req(issued.sessionId, "482913"), store, clock)
    assert store.get(issued.sessionId).attempts == 1


def test_wrong_codes_report_remaining_and_delete_on_cap():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)
    sid = issued.sessionId

    remaining = []
    for _ in range(3):
        with pytest.raises(InvalidCode) as ei:
            verify_mfa_code(_verify_req(sid, "482914"), store, clock)
        remaining.append(ei.value.attempts_remaining)
    assert remaining == [2, 1, 0]
    assert str(ei.value) == "Invalid MFA code. 0 attempts remaining."

    assert store.get(sid) is None
    with pytest.raises(InvalidSession):
        verify_mfa_code(_verify_req(sid, "482913"), store, clock)


def test_correct_code_on_last_attempt_still_verifies():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)
    for _ in range(2):
        with pytest.raises(InvalidCode):
            verify_mfa_code(_verify_req(issued.sessionId, "000000"), store, clock)
    assert verify_mfa_code(_verify_req(issued.sessionId, "482913"), store, clock).verified


def test_expiry_boundary():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)

    # Exactly at expiresAt the code is still accepted (only now > expiresAt expires)
    clock.advance(seconds=300)
    assert verify_mfa_code(_verify_req(issued.sessionId, "482913"), store, clock).verified

    issued, _ = _issue(store, clock)
    clock.advance(seconds=300, ms=1)
    with pytest.raises(CodeExpired):
        verify_mfa_code(_verify_req(issued.sessionId, "482913"), store, clock)
    assert store.get(issued.sessionId) is None


def test_exhausted_session_is_deleted_before_phone_check():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)
    s = store.get(issued.sessionId)
    s.attempts = 3
    assert store.compare_and_swap(s, s.version)

    with pytest.raises(AttemptsExhausted) as ei:
        verify_mfa_code(_verify_req(issued.sessionId, "482913", phone="5550000000"), store, clock)
    assert ei.value.status_code == 429
    assert store.get(issued.sessionId) is None


def test_phone_mismatch_is_not_counted():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)
    with pytest.raises(PhoneMismatch):
        verify_mfa_code(_verify_req(issued.sessionId, "482913", phone="5559999999"), store, clock)
    assert store.get(issued.sessionId).attempts == 0


def test_lost_cas_race_rereads_and_retries():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)

    real_cas = store.compare_and_swap
    calls = {"n": 0}

    def flaky_cas(session, expected_version):
        calls["n"] += 1
        if calls["n"] == 1:
            return False
        return real_cas(session, expected_version)

    with patch.object(store, "compare_and_swap", side_effect=flaky_cas):
        with pytest.raises(InvalidCode) as ei:
            verify_mfa_code(_verify_req(issued.sessionId, "111111"), store, clock)
    assert calls["n"] == 2
    assert ei.value.attempts_remaining == 2
    assert store.get(issued.sessionId).attempts == 1


def test_cas_never_succeeding_is_an_internal_error():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)
    with patch.object(store, "compare_and_swap", return_value=False):
        with pytest.raises(RuntimeError):
            verify_mfa_code(_verify_req(issued.sessionId, "482913"), store, clock)
    assert store.get(issued.sessionId).attempts == 0


def test_concurrent_wrong_codes_never_overspend_budget():
    clock = FixedClock()
    store = InMemorySessionStore(clock=clock)
    issued, _ = _issue(store, clock)
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(12)

    def worker():
        barrier.wait()
        try:
            verify_mfa_code(_verify_req(issued.sessionId, "000000"), store, clock)
            outcome = "verified"
        except InvalidCode as e:
            outcome = ("invalid", e.attempts_remaining)
        except (InvalidSession, AttemptsExhausted) as e:
            outcome = type(e).__name__
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    counted = sorted(r[1] for r in results if isinstance(r, tuple))
    assert counted == [0, 1, 2]
    assert "verified" not in results
    assert len(results) == 12
    assert store.get(issued.sessionId) is None
