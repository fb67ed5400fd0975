"""HTTP access to the property store REST API.

Every write goes to the store and every view re-reads from it; nothing here
caches responses.
"""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Any, Dict, List, Tuple

import requests

import config

logger = logging.getLogger(__name__)

PROPERTIES_PATH = "/property/properties/"
MAINTENANCES_PATH = "/maintenance/maintenances/"


class StoreError(Exception):
    """Base error for failed store requests."""

    def __init__(self, message: str, status: int = 0, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class StoreUnavailable(StoreError):
    """Network failure or 5xx response. Safe to retry."""


class StoreRejected(StoreError):
    """The store refused the payload; ``field_errors`` maps field -> message."""

    def __init__(self, message: str, status: int = 400, body: Any = None) -> None:
        super().__init__(message, status, body)
        self.field_errors = field_errors_from_body(body)


class StoreUnauthorized(StoreError):
    """Credentials missing or expired; the user has to sign in again."""


def auth_headers() -> Dict[str, str]:
    if not config.API_TOKEN:
        return {}
    return {"Authorization": f"Bearer {config.API_TOKEN}"}


def store_json_request(
    method: str,
    path: str,
    payload: Dict[str, Any] | None = None,
    params: Dict[str, Any] | None = None,
) -> Tuple[Any, int]:
    url = f"{config.API_BASE_URL}{path}"
    try:
        response = requests.request(
            method,
            url,
            json=payload,
            params=params,
            headers=auth_headers(),
            timeout=config.API_TIMEOUT_SECONDS,
        )
    except requests.RequestException:
        logger.exception("Store request %s %s failed", method, url)
        return {"error": "Property store is unavailable"}, 502

    try:
        body: Any = response.json()
    except ValueError:
        body = {"raw": response.text}

    return body, response.status_code


def field_errors_from_body(body: Any) -> Dict[str, str]:
    if not isinstance(body, dict):
        return {}
    errors: Dict[str, str] = {}
    for name, messages in body.items():
        if isinstance(messages, list) and messages:
            errors[name] = str(messages[0])
        elif isinstance(messages, str) and name not in {"detail", "error", "raw"}:
            errors[name] = messages
    return errors


def raise_for_store_status(body: Any, status: int, expected: Tuple[int, ...] = (200,)) -> None:
    if status in expected:
        return
    if status in (401, 403):
        raise StoreUnauthorized("Your session has expired. Sign in again.", status, body)
    if status in (400, 422):
        raise StoreRejected("The store rejected the changes.", status, body)
    if status >= 500:
        raise StoreUnavailable("The property store is unavailable. Try again.", status, body)
    raise StoreError(f"Unexpected response from the property store ({status}).", status, body)


def list_properties() -> List[Dict[str, Any]]:
    body, status = store_json_request("GET", PROPERTIES_PATH)
    raise_for_store_status(body, status)
    return list(body) if isinstance(body, list) else []


def update_property(property_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
    body, status = store_json_request("PATCH", f"{PROPERTIES_PATH}{property_id}/", payload=payload)
    raise_for_store_status(body, status)
    logger.info("Updated property %s", property_id)
    return body if isinstance(body, dict) else {}


def list_maintenances(property_id: Any) -> List[Dict[str, Any]]:
    body, status = store_json_request("GET", MAINTENANCES_PATH, params={"property": property_id})
    raise_for_store_status(body, status)
    return list(body) if isinstance(body, list) else []


def add_maintenance(payload: Dict[str, Any]) -> Dict[str, Any]:
    body, status = store_json_request("POST", MAINTENANCES_PATH, payload=payload)
    raise_for_store_status(body, status, expected=(200, 201))
    logger.info("Added maintenance for unit %s", payload.get("unit"))
    return body if isinstance(body, dict) else {}


class RequestTracker:
    """Hands out tickets for keyed fetches; only the newest ticket is current.

    A ticket is ``(key, sequence)``. Responses carrying an older ticket, or a
    ticket for a key other than the latest one, are dropped by the caller.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        self._latest: Tuple[Any, int] | None = None

    def begin(self, key: Any) -> Tuple[Any, int]:
        with self._lock:
            ticket = (key, next(self._counter))
            self._latest = ticket
            return ticket

    def is_current(self, ticket: Tuple[Any, int]) -> bool:
        with self._lock:
            return self._latest == ticket
