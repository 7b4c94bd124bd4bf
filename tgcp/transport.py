"""HTTP transport for resolved API calls."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Optional

import httpx

from tgcp.dispatch import HttpCallSpec

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "tgcp"

STATUS_HINTS = {
    401: "Authentication failed. Run 'gcloud auth application-default login'.",
    403: "Permission denied. Check your GCP IAM permissions.",
    404: "Resource not found.",
    429: "Rate limit exceeded. Please try again later.",
}


class TransportError(Exception):
    """Connection failure or non-2xx response."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def api_error_message(body: str) -> Optional[str]:
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return None


def format_api_error(status_code: Optional[int], body: str) -> str:
    message = api_error_message(body)
    if message:
        return message
    if status_code in STATUS_HINTS:
        return STATUS_HINTS[status_code]
    text = (body or "").strip() or f"HTTP {status_code}"
    if len(text) > 100:
        return text[:100] + "..."
    return text


def describe_error(exc: BaseException) -> str:
    """One-line, user-facing text for any runtime error."""
    if isinstance(exc, TransportError) and exc.status_code is not None:
        return format_api_error(exc.status_code, exc.body)
    text = str(exc).strip().splitlines()[0] if str(exc).strip() else exc.__class__.__name__
    if len(text) > 100:
        return text[:100] + "..."
    return text


class Transport:
    """Sends ``HttpCallSpec`` requests with a bearer token over httpx."""

    def __init__(self, client: Optional[httpx.Client] = None, timeout: float = DEFAULT_TIMEOUT):
        self._client = client
        self._timeout = timeout
        self._lock = threading.Lock()

    def _get_http_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self._timeout, headers={"User-Agent": USER_AGENT})
            return self._client

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def send(self, spec: HttpCallSpec, token: str) -> Any:
        client = self._get_http_client()
        headers = {"Authorization": f"Bearer {token}"}
        logger.debug("%s %s", spec.verb, spec.url)
        try:
            response = client.request(spec.verb, spec.url, headers=headers, json=spec.body)
        except httpx.RequestError as exc:
            logger.error("request failed: %s %s: %s", spec.verb, spec.url, exc)
            raise TransportError(f"Cannot reach {httpx.URL(spec.url).host}: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            body = response.text
            logger.error("API error %s for %s %s", response.status_code, spec.verb, spec.url)
            raise TransportError(format_api_error(response.status_code, body), response.status_code, body)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Invalid JSON in API response", response.status_code, response.text) from exc
