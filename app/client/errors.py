from typing import Any


class ApiError(Exception):
    """Non-2xx response from the care log API (or the transport failing outright)."""

    def __init__(self, status_code: int, message: str, detail: Any = None):
        self.status_code = status_code
        self.message = message
        self.detail = detail
        super().__init__(f"{status_code}: {message}")


class AuthenticationError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


def error_message(detail: Any) -> str:
    """Flattens FastAPI's `detail` (str, dict or validation error list) into one line."""
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        return str(detail.get("message") or detail)
    if isinstance(detail, list):
        return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
    return "Request failed"
