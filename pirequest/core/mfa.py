import random
import uuid
from dataclasses import replace
from typing import Callable, Optional

from pirequest.api.schemas import MfaCodeRequest, MfaIssued, MfaVerified, MfaVerifyRequest
from pirequest.core.delivery import dispatch_code
from pirequest.core.errors import (
    AlreadyVerified,
    AttemptsExhausted,
    CodeExpired,
    HumanVerificationRequired,
    InvalidCode,
    InvalidSession,
    PhoneMismatch,
)
from pirequest.core.masking import mask_personal_info, mask_phone, normalize_phone
from pirequest.observability.logging import log
from pirequest.settings import settings
from pirequest.store.models import MfaSession
from pirequest.store.session_repo import SessionStore
from pirequest.utils.time import Clock, iso_from_ms, system_clock

DeliverFn = Callable[[str, str, str], None]


def generate_mfa_code() -> str:
    # Not a CSPRNG on purpose: the code is only ever shown in the simulated SMS log
    return str(random.randint(100000, 999999))


def issue_mfa_code(
    req: MfaCodeRequest,
    store: SessionStore,
    clock: Clock = system_clock,
    deliver: Optional[DeliverFn] = None,
) -> MfaIssued:
    """
    Start a verification round: create a session bound to the normalized phone
    number, store it with a fresh code and attempt budget, and hand the code to
    the delivery channel.
    """
    if req.captchaVerified is not True:
        raise HumanVerificationRequired()

    phone = normalize_phone(req.mobileNumber)
    now = clock.now_ms()
    ttl_sec = int(settings.MFA_CODE_TTL_SEC)

    session = MfaSession(
        sessionId=str(uuid.uuid4()),
        code=generate_mfa_code(),
        phoneNumber=phone,
        personalInfo=req.personalInfo.model_dump(mode="json"),
        createdAt=now,
        expiresAt=now + ttl_sec * 1000,
        attempts=0,
        maxAttempts=int(settings.MFA_MAX_ATTEMPTS),
    )
    store.put(session)

    log(
        event="mfa_code_requested",
        sessionId=session.sessionId,
        timestamp=iso_from_ms(now),
        phoneNumber=mask_phone(phone),
        personalInfo=mask_personal_info(session.personalInfo),
    )

    (deliver or dispatch_code)(session.sessionId, phone, session.code)

    return MfaIssued(sessionId=session.sessionId, phoneNumber=mask_phone(phone), expiresIn=ttl_sec)


def verify_mfa_code(req: MfaVerifyRequest, store: SessionStore, clock: Clock = system_clock) -> MfaVerified:
    """
    Check a claimed code against the session.

    Order: unknown session, expiry, exhausted budget, phone mismatch, already
    verified. Only a call that gets past all of these consumes an attempt.
    The attempt write is a compare-and-swap on the version read, so concurrent
    calls cannot spend the same attempt twice; a lost race re-reads and re-checks.
    """
    phone = normalize_phone(req.mobileNumber)
    retries = max(1, int(settings.MFA_CAS_RETRIES))

    for _ in range(retries):
        current = store.get(req.sessionId)
        if current is None:
            raise InvalidSession()

        now = clock.now_ms()
        if current.is_expired(now):
            store.delete(req.sessionId)
            log(event="mfa_session_expired", sessionId=req.sessionId)
            raise CodeExpired()

        if current.attempts_exhausted():
            store.delete(req.sessionId)
            log(event="mfa_attempts_exhausted", sessionId=req.sessionId, attempts=current.attempts)
            raise AttemptsExhausted()

        if current.phoneNumber != phone:
            raise PhoneMismatch()

        if current.verified:
            raise AlreadyVerified()

        attempts = current.attempts + 1
        matched = current.code == req.mfaCode

        if matched:
            nxt = replace(current, attempts=attempts, verified=True, verifiedAt=now)
        else:
            nxt = replace(current, attempts=attempts)

        if not store.compare_and_swap(nxt, current.version):
            continue

        if matched:
            log(
                event="mfa_verification_succeeded",
                sessionId=req.sessionId,
                timestamp=iso_from_ms(now),
                phoneNumber=mask_phone(phone),
                attempts=attempts,
            )
            return MfaVerified(sessionId=req.sessionId, verified=True)

        remaining = nxt.attempts_remaining
        log(event="mfa_verification_failed", sessionId=req.sessionId, attempts=attempts, remaining=remaining)
        if remaining == 0:
            # The attempt that reaches the cap consumes the session
            store.delete(req.sessionId)
            log(event="mfa_attempts_exhausted", sessionId=req.sessionId, attempts=attempts)
        raise InvalidCode(remaining)

    raise RuntimeError(f"Could not update MFA session {req.sessionId} after {retries} attempts")
