import asyncio

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from pirequest.api.rate_limit import enforce_rate_limits
from pirequest.api.schemas import ApiResponse, MfaCodeRequest, MfaVerifyRequest, SubmitRequest
from pirequest.core.mfa import issue_mfa_code, verify_mfa_code
from pirequest.core.submission import get_request_status, submit_request
from pirequest.settings import settings
from pirequest.store.session_repo import SessionStore, get_session_store
from pirequest.utils.time import Clock, system_clock

router = APIRouter(
    prefix="/api/pi-request",
    tags=["pi-request"],
    dependencies=[Depends(enforce_rate_limits)],
)


def get_clock() -> Clock:
    return system_clock


async def _pause(seconds: float) -> None:
    # Simulated provider/processing latency
    if seconds and seconds > 0:
        await asyncio.sleep(seconds)


@router.post("/request-mfa-code", response_model=ApiResponse, response_model_exclude_none=True)
async def request_mfa_code(
    payload: MfaCodeRequest,
    store: SessionStore = Depends(get_session_store),
    clock: Clock = Depends(get_clock),
):
    issued = await run_in_threadpool(issue_mfa_code, payload, store, clock)
    await _pause(settings.ISSUE_DELAY_SEC)
    return ApiResponse(success=True, message="MFA code sent successfully", data=issued.model_dump())


@router.post("/verify-mfa-code", response_model=ApiResponse, response_model_exclude_none=True)
async def verify_code(
    payload: MfaVerifyRequest,
    store: SessionStore = Depends(get_session_store),
    clock: Clock = Depends(get_clock),
):
    verified = await run_in_threadpool(verify_mfa_code, payload, store, clock)
    return ApiResponse(success=True, message="MFA verification successful", data=verified.model_dump())


@router.post("/submit", status_code=201, response_model=ApiResponse, response_model_exclude_none=True)
async def submit(
    payload: SubmitRequest,
    store: SessionStore = Depends(get_session_store),
    clock: Clock = Depends(get_clock),
):
    submitted = await run_in_threadpool(submit_request, payload, store, clock)
    await _pause(settings.SUBMIT_DELAY_SEC)
    return ApiResponse(
        success=True,
        message="Personal information request submitted successfully",
        data=submitted.model_dump(),
    )


@router.get("/status/{request_id}", response_model=ApiResponse, response_model_exclude_none=True)
def request_status(request_id: str, clock: Clock = Depends(get_clock)):
    """Mock status view. Request ids are never stored, so any well-formed id reports 'processing'."""
    status = get_request_status(request_id, clock)
    return ApiResponse(success=True, message="Request status retrieved", data=status.model_dump())
