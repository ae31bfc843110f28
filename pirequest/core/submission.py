import random
import re
import string

from pirequest.api.schemas import RequestStatus, RequestSubmitted, SubmitRequest
from pirequest.core.errors import InvalidRequestId, VerificationRequired
from pirequest.core.masking import mask_personal_info
from pirequest.observability.logging import log
from pirequest.settings import settings
from pirequest.store.session_repo import SessionStore
from pirequest.utils.time import Clock, iso_from_ms, system_clock

REQUEST_ID_RE = re.compile(r"^PIR-\d{13}-[A-Z0-9]{9}$")
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits

DAY_MS = 24 * 60 * 60 * 1000


def generate_request_id(now_ms: int) -> str:
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=9))
    return f"PIR-{now_ms}-{suffix}"


def submit_request(req: SubmitRequest, store: SessionStore, clock: Clock = system_clock) -> RequestSubmitted:
    """
    Accept a personal information request for a verified session.
    Nothing is persisted: the request is logged (redacted) and the session is consumed.
    """
    session = store.get(req.sessionId)
    if session is None or not session.verified:
        raise VerificationRequired()

    now = clock.now_ms()
    request_id = generate_request_id(now)
    submitted_at = iso_from_ms(now)

    # Single use: if another submit already consumed the session, this one is unauthorized
    if not store.delete(req.sessionId):
        raise VerificationRequired()

    log(
        event="pi_request_submitted",
        requestId=request_id,
        requestType=req.requestType,
        deliveryMethod=req.deliveryMethod,
        timestamp=submitted_at,
        personalInfo=mask_personal_info(req.personalInfo.model_dump(mode="json")),
    )

    return RequestSubmitted(
        requestId=request_id,
        status="submitted",
        estimatedProcessingTime=settings.ESTIMATED_PROCESSING_TIME,
        submittedAt=submitted_at,
    )


def get_request_status(request_id: str, clock: Clock = system_clock) -> RequestStatus:
    """Synthesized status; there is no request table behind this."""
    if not REQUEST_ID_RE.match(request_id or ""):
        raise InvalidRequestId()

    now = clock.now_ms()
    return RequestStatus(
        requestId=request_id,
        status="processing",
        submittedAt=iso_from_ms(now - 2 * DAY_MS),
        estimatedCompletionDate=iso_from_ms(now + 5 * DAY_MS),
        lastUpdated=iso_from_ms(now),
    )
