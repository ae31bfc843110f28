from dataclasses import dataclass, field
from typing import Any, Dict, Optional

@dataclass
class MfaSession:
    sessionId: str = ""

    # Shared secret for this verification round (6 digits)
    code: str = ""
    # Normalized 10-digit destination
    phoneNumber: str = ""
    # Identity payload captured at issuance, kept until submission
    personalInfo: Dict[str, Any] = field(default_factory=dict)

    # Epoch milliseconds
    createdAt: int = 0
    expiresAt: int = 0

    attempts: int = 0
    maxAttempts: int = 3

    verified: bool = False
    verifiedAt: Optional[int] = None

    # Revision counter owned by the store; compare_and_swap checks it
    version: int = 0

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.expiresAt

    def attempts_exhausted(self) -> bool:
        return self.attempts >= self.maxAttempts

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.maxAttempts - self.attempts)
