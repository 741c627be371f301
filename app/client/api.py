import logging
from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from app.client.cache import QueryCache
from app.client.errors import ApiError, AuthenticationError, NotFoundError, error_message
from app.client.session import AuthSession
from app.core.config import API_BASE_URL

logger = logging.getLogger(__name__)


class AnchorClient:
    """
    Async REST client for the care log API.

    Holds the AuthSession for whoever logged in and a per-recipient query
    cache. Pass your own httpx.AsyncClient to point it at a different
    transport (tests mount the FastAPI app in-process).
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        http: Optional[httpx.AsyncClient] = None,
        cache: Optional[QueryCache] = None,
        timeout: float = 10.0,
    ):
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.cache = cache or QueryCache()
        self.session: Optional[AuthSession] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    # --- 1. TRANSPORT ---
    async def _request(self, method: str, path: str, *, json: Any = None, params: Dict = None, auth: bool = True) -> Any:
        headers = {}
        if auth:
            if not self.session:
                raise AuthenticationError(401, "Not logged in")
            headers = self.session.headers

        try:
            response = await self.http.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise ApiError(0, f"Network error: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
                detail = body.get("detail", body) if isinstance(body, dict) else body
            except ValueError:
                detail = response.text
            message = error_message(detail)
            if response.status_code in (401, 403):
                raise AuthenticationError(response.status_code, message, detail)
            if response.status_code == 404:
                raise NotFoundError(response.status_code, message, detail)
            raise ApiError(response.status_code, message, detail)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def _cached_get(self, care_recipient_id: int, key: tuple, path: str, params: Dict = None) -> Any:
        cache_key = self.cache.key(care_recipient_id, *key)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        result = await self._request("GET", path, params=params)
        self.cache.set(cache_key, result)
        return result

    def _invalidate(self, log: Optional[Dict[str, Any]]) -> None:
        if log and log.get("careRecipientId") is not None:
            self.cache.invalidate_recipient(log["careRecipientId"])

    # --- 2. SESSION LIFECYCLE ---
    def _start_session(self, body: Dict[str, Any], role: str) -> AuthSession:
        self.cache.clear()
        self.session = AuthSession(
            token=body["token"],
            role=role,
            user=body.get("user"),
            caregiver=body.get("caregiver"),
            care_recipient=body.get("careRecipient"),
        )
        return self.session

    async def signup_family(self, email: str, name: str, password: str, phone: str = None) -> AuthSession:
        body = await self._request(
            "POST", "/auth/signup",
            json={"email": email, "name": name, "password": password, "phone": phone},
            auth=False,
        )
        return self._start_session(body, "family_admin")

    async def login_family(self, email: str, password: str) -> AuthSession:
        body = await self._request("POST", "/auth/login", json={"email": email, "password": password}, auth=False)
        return self._start_session(body, "family_admin")

    async def login_caregiver(self, pin: str, username: str = None, caregiver_id: int = None) -> AuthSession:
        body = await self._request(
            "POST", "/auth/caregiver/login",
            json={"username": username, "caregiverId": caregiver_id, "pin": pin},
            auth=False,
        )
        return self._start_session(body, "caregiver")

    def logout(self) -> None:
        self.session = None
        self.cache.clear()

    # --- 3. ONBOARDING ---
    async def create_care_recipient(self, name: str, **fields) -> Dict[str, Any]:
        return await self._request("POST", "/care-recipients", json={"name": name, **fields})

    async def get_care_recipient(self, care_recipient_id: int) -> Dict[str, Any]:
        return await self._cached_get(care_recipient_id, ("recipient",), f"/care-recipients/{care_recipient_id}")

    async def create_caregiver(self, care_recipient_id: int, name: str, **fields) -> Dict[str, Any]:
        return await self._request(
            "POST", "/caregivers", json={"careRecipientId": care_recipient_id, "name": name, **fields}
        )

    # --- 4. CARE LOGS ---
    async def create_log(self, care_recipient_id: int, log_date: date, **fields) -> Dict[str, Any]:
        log = await self._request(
            "POST", "/care-logs",
            json={"careRecipientId": care_recipient_id, "logDate": log_date.isoformat(), **fields},
        )
        self._invalidate(log)
        return log

    async def get_caregiver_today(self) -> Dict[str, Any]:
        return await self._request("GET", "/care-logs/caregiver/today")

    async def get_recipient_today(self, care_recipient_id: int) -> Dict[str, Any]:
        return await self._cached_get(
            care_recipient_id, ("today",), f"/care-logs/recipient/{care_recipient_id}/today"
        )

    async def get_recipient_log_by_date(self, care_recipient_id: int, log_date: date) -> Dict[str, Any]:
        day = log_date.isoformat()
        return await self._cached_get(
            care_recipient_id, ("date", day), f"/care-logs/recipient/{care_recipient_id}/date/{day}"
        )

    async def patch_log(self, care_log_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
        log = await self._request("PATCH", f"/care-logs/{care_log_id}", json=changes)
        self._invalidate(log)
        return log

    async def submit_section(self, care_log_id: int, section: str) -> Dict[str, Any]:
        log = await self._request("POST", f"/care-logs/{care_log_id}/submit-section", json={"section": section})
        self._invalidate(log)
        logger.info(f"Submitted section '{section}' of care log {care_log_id}")
        return log

    async def submit_log(self, care_log_id: int) -> Dict[str, Any]:
        log = await self._request("POST", f"/care-logs/{care_log_id}/submit")
        self._invalidate(log)
        logger.info(f"Submitted care log {care_log_id}")
        return log

    async def invalidate_log(self, care_log_id: int, reason: str) -> Dict[str, Any]:
        log = await self._request("POST", f"/care-logs/{care_log_id}/invalidate", json={"reason": reason})
        self._invalidate(log)
        return log

    async def list_recipient_logs(self, care_recipient_id: int) -> List[Dict[str, Any]]:
        return await self._cached_get(care_recipient_id, ("logs",), f"/care-logs/recipient/{care_recipient_id}")

    async def mark_viewed(self, care_log_id: int, care_recipient_id: int) -> None:
        await self._request("POST", f"/care-logs/{care_log_id}/mark-viewed")
        self.cache.invalidate_recipient(care_recipient_id)

    async def get_history(self, care_log_id: int) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/care-logs/{care_log_id}/history")

    # --- 5. ALERTS ---
    async def create_alert(self, care_recipient_id: int, alert_type: str, severity: str, message: str) -> Dict[str, Any]:
        alert = await self._request(
            "POST", "/alerts",
            json={
                "careRecipientId": care_recipient_id,
                "alertType": alert_type,
                "severity": severity,
                "message": message,
            },
        )
        self.cache.invalidate_recipient(care_recipient_id)
        return alert

    async def get_alerts(self, care_recipient_id: int, active: bool = True) -> List[Dict[str, Any]]:
        params = {"active": "true"} if active else None
        return await self._cached_get(
            care_recipient_id, ("alerts", active), f"/alerts/recipient/{care_recipient_id}", params=params
        )
