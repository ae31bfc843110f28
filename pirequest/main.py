from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pirequest.api.routes import router
from pirequest.core.errors import PiRequestError, RateLimited
from pirequest.observability.logging import log
from pirequest.settings import settings
from pirequest.utils.time import iso_from_ms, now_ms

app = FastAPI(title="Personal Information Request API")

origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health")
def health():
    return {
        "status": "OK",
        "message": "PI Request API is running",
        "timestamp": iso_from_ms(now_ms()),
    }


def _envelope(status_code: int, message: str, details=None, headers=None) -> JSONResponse:
    content = {"success": False, "message": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _format_validation_error(err: dict) -> str:
    # Drop the "body" root so paths read like the JSON the client sent
    loc = [str(p) for p in err.get("loc", ()) if p != "body"]
    path = ".".join(loc) or "body"
    msg = str(err.get("msg", "Invalid input"))
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{path}: {msg}"


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [_format_validation_error(e) for e in exc.errors()] or ["Invalid input"]
    return _envelope(400, "Validation failed", details=details)


@app.exception_handler(PiRequestError)
async def pi_request_exception_handler(request: Request, exc: PiRequestError):
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {"Retry-After": str(exc.retry_after)}
    return _envelope(exc.status_code, exc.message, details=exc.details, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _envelope(404, "Endpoint not found")
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    # Internals stay in the log; the caller only sees the generic envelope
    log(
        event="unhandled_error",
        path=request.url.path,
        errorType=type(exc).__name__,
        error=str(exc)[:500],
    )
    return _envelope(500, "Internal server error")
