"""Async HTTP client for the expense REST API."""
import os
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

API_URL = os.getenv("EXPENSE_API_URL", "http://localhost:5000")
API_PREFIX = os.getenv("EXPENSE_API_PREFIX", "/api")
DEFAULT_TIMEOUT = 10.0

UNREACHABLE_MESSAGE = "Could not reach the expense service"


class ExpenseApiError(Exception):
    """Raised for any failed call: error status, failure envelope, bad body or transport error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


def parse_expense_list(payload: Any) -> List[Dict[str, Any]]:
    """
    Normalizes a list response into a plain list of records.

    Tries the enveloped shape ``{"data": [...]}`` first, then a bare list,
    and otherwise returns an empty list. Never raises.
    """
    if isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        return payload["data"]
    if isinstance(payload, list):
        return payload
    logger.warning(f"Unexpected list payload of type {type(payload).__name__}; treating as empty.")
    return []


def parse_expense_record(payload: Any) -> Dict[str, Any]:
    """Unwraps a single-record response: ``{"data": {...}}``, else a bare record."""
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, Mapping):
            return dict(data)
        if "id" in payload or "_id" in payload:
            return dict(payload)
    raise ExpenseApiError("Unexpected response from the expense service")


def extract_error_message(payload: Any, status_code: Optional[int] = None) -> str:
    """Human-readable message from an error envelope, with a generic fallback."""
    if isinstance(payload, Mapping):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
    if status_code is not None:
        return f"Request failed with status {status_code}"
    return "Request failed"


class ExpenseApiClient:
    """
    Client for the five expense endpoints.

    Holds one ``httpx.AsyncClient`` configured at construction (base URL,
    JSON headers, timeout); create it once and pass it where it is needed.
    """

    def __init__(
        self,
        base_url: str = API_URL,
        prefix: str = API_PREFIX,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        prefix = prefix.strip("/")
        self._path = f"/{prefix}/expenses" if prefix else "/expenses"
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ExpenseApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ExpenseApiError(UNREACHABLE_MESSAGE) from e

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        failed_envelope = isinstance(payload, Mapping) and payload.get("success") is False
        if response.is_error or failed_envelope:
            message = extract_error_message(payload, response.status_code)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            raise ExpenseApiError(message, status_code=response.status_code)
        return payload

    async def list_expenses(self) -> List[Dict[str, Any]]:
        payload = await self._request("GET", self._path)
        return parse_expense_list(payload)

    async def get_expense(self, expense_id: str) -> Dict[str, Any]:
        payload = await self._request("GET", f"{self._path}/{expense_id}")
        return parse_expense_record(payload)

    async def create_expense(self, expense: Mapping[str, Any]) -> Dict[str, Any]:
        payload = await self._request("POST", self._path, json=dict(expense))
        return parse_expense_record(payload)

    async def update_expense(self, expense_id: str, expense: Mapping[str, Any]) -> Dict[str, Any]:
        payload = await self._request("PUT", f"{self._path}/{expense_id}", json=dict(expense))
        return parse_expense_record(payload)

    async def delete_expense(self, expense_id: str) -> None:
        await self._request("DELETE", f"{self._path}/{expense_id}")
