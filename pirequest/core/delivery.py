"""
One-time code delivery
----------------------
No SMS provider is integrated. The "send" is an operational log line carrying
the code, either written inline during issuance or from an RQ worker when
CODE_DELIVERY_MODE=rq. Swapping in a real provider means replacing deliver_code().
"""
from pirequest.core.masking import mask_phone
from pirequest.observability.logging import log
from pirequest.settings import settings


def deliver_code(session_id: str, phone_number: str, code: str) -> None:
    log(
        event="mfa_code_delivered",
        sessionId=session_id,
        phoneNumber=mask_phone(phone_number),
        channel="sms-simulated",
        mfaCode=code,
    )


def dispatch_code(session_id: str, phone_number: str, code: str) -> None:
    """Route the code to the configured delivery mode."""
    if settings.CODE_DELIVERY_MODE == "rq":
        # Deferred imports keep the inline path free of a Redis connection
        from pirequest.queue.jobs import deliver_code_job
        from pirequest.queue.rq_conn import get_queue

        q = get_queue()
        job = q.enqueue(deliver_code_job, session_id, phone_number, code)
        log(event="mfa_code_enqueued", sessionId=session_id, jobId=getattr(job, "id", None))
        return

    deliver_code(session_id, phone_number, code)
