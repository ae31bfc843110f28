import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Session storage: "memory" keeps sessions in-process (lost on restart), "redis" shares them
    SESSION_BACKEND: str = os.getenv("SESSION_BACKEND", "memory").lower()
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    SESSION_KEY_PREFIX: str = os.getenv("SESSION_KEY_PREFIX", "mfa:session:")
    # Extra time a session key survives in Redis after its code expired (verified sessions awaiting submit)
    SESSION_RETENTION_SEC: int = int(os.getenv("SESSION_RETENTION_SEC", "900"))

    # MFA round
    MFA_CODE_TTL_SEC: int = int(os.getenv("MFA_CODE_TTL_SEC", "300"))
    MFA_MAX_ATTEMPTS: int = int(os.getenv("MFA_MAX_ATTEMPTS", "3"))
    MFA_CAS_RETRIES: int = int(os.getenv("MFA_CAS_RETRIES", "5"))

    # Out-of-band code delivery. No SMS provider is wired in:
    # - "inline": write the code to the operational log
    # - "rq": enqueue a delivery job on RQ_QUEUE_NAME (the worker logs it)
    CODE_DELIVERY_MODE: str = os.getenv("CODE_DELIVERY_MODE", "inline").lower()
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "mfa-delivery")

    # Artificial response pauses
    ISSUE_DELAY_SEC: float = float(os.getenv("ISSUE_DELAY_SEC", "1.0"))
    SUBMIT_DELAY_SEC: float = float(os.getenv("SUBMIT_DELAY_SEC", "0.5"))

    ESTIMATED_PROCESSING_TIME: str = os.getenv("ESTIMATED_PROCESSING_TIME", "5-7 business days")

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")

    # Per-IP fixed window limits
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    RATE_LIMIT_BACKEND: str = os.getenv("RATE_LIMIT_BACKEND", "memory").lower()
    RATE_LIMIT_WINDOW_SEC: int = int(os.getenv("RATE_LIMIT_WINDOW_SEC", "900"))
    RATE_LIMIT_API_MAX: int = int(os.getenv("RATE_LIMIT_API_MAX", "100"))
    RATE_LIMIT_MFA_MAX: int = int(os.getenv("RATE_LIMIT_MFA_MAX", "5"))
    # Only honour X-Forwarded-For when a trusted reverse proxy sets it
    TRUST_PROXY_HEADERS: bool = os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true"

    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"

settings = Settings()
