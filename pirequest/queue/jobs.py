from pirequest.core.delivery import deliver_code
from pirequest.observability.logging import log


def deliver_code_job(session_id: str, phone_number: str, code: str):
    """
    Background job for the out-of-band code channel.
    """
    try:
        log(event="mfa_delivery_job_start", sessionId=session_id)
        deliver_code(session_id, phone_number, code)
    except Exception as e:
        log(event="mfa_delivery_job_exception", sessionId=session_id, error=str(e))
        raise
