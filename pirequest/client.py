from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

DEFAULT_BASE_URL = "http://localhost:3001/api"


class PiRequestAPIError(Exception):
    """Non-2xx answer from the API. Keeps the decoded envelope when there is one."""

    def __init__(self, status_code: int, body: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.body = body or {}
        message = self.body.get("message") or f"HTTP error! status: {status_code}"
        super().__init__(message)

    @property
    def details(self):
        return self.body.get("details") or []


class PiRequestClient:
    """Thin synchronous client for the /pi-request endpoints."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/pi-request",
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "PiRequestClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _handle(self, resp: httpx.Response) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not resp.is_success:
            raise PiRequestAPIError(resp.status_code, body if isinstance(body, dict) else None)
        return body or {}

    def request_mfa_code(self, personal_info: Dict[str, Any], mobile_number: str) -> Dict[str, Any]:
        resp = self._client.post(
            "/request-mfa-code",
            json={"personalInfo": personal_info, "mobileNumber": mobile_number, "captchaVerified": True},
        )
        return self._handle(resp)

    def verify_mfa_code(self, mobile_number: str, mfa_code: str, session_id: str) -> Dict[str, Any]:
        resp = self._client.post(
            "/verify-mfa-code",
            json={"mobileNumber": mobile_number, "mfaCode": mfa_code, "sessionId": session_id},
        )
        return self._handle(resp)

    def submit_request(
        self,
        personal_info: Dict[str, Any],
        mobile_number: str,
        request_type: str,
        delivery_method: str,
        session_id: str,
    ) -> Dict[str, Any]:
        resp = self._client.post(
            "/submit",
            json={
                "personalInfo": personal_info,
                "mobileNumber": mobile_number,
                "requestType": request_type,
                "deliveryMethod": delivery_method,
                "sessionId": session_id,
            },
        )
        return self._handle(resp)

    def get_request_status(self, request_id: str) -> Dict[str, Any]:
        return self._handle(self._client.get(f"/status/{request_id}"))
