"""
Remote persistence collaborator: the generic table API.

Architecture Decision: One thin client for every entity
The server exposes the same four verbs for every whitelisted table
(GET/POST/PATCH/DELETE /api/{table}) and answers with a {"data", "error"}
envelope. The client maps entity kinds to tables and turns every failure into a
RemoteStoreError so callers have a single exception to handle.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx
from pydantic.alias_generators import to_snake

logger = logging.getLogger(__name__)

ENTITY_TABLES: Dict[str, str] = {
    "project": "projects",
    "entry": "time_entries",
    "tag": "tags",
    "client": "clients",
}


class RemoteStoreError(Exception):
    """A remote call failed (transport, HTTP status or error envelope)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteStore:
    """
    Interface of the remote persistence collaborator.

    One method per verb; the entity kind selects the table.
    """

    async def add(self, entity: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError("Subclasses must implement add")

    async def update(self, entity: str, record_id: str, changes: Dict[str, Any]) -> None:
        raise NotImplementedError("Subclasses must implement update")

    async def delete(self, entity: str, record_id: str) -> None:
        raise NotImplementedError("Subclasses must implement delete")

    async def select(self, entity: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError("Subclasses must implement select")


def _table_for(entity: str) -> str:
    try:
        return ENTITY_TABLES[entity]
    except KeyError:
        raise RemoteStoreError(f"Unknown entity type: {entity}") from None


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])[:200]
    text = response.text.strip()
    return " ".join(text.split())[:200] if text else f"HTTP {response.status_code}"


def snake_keys(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Wire payloads are camelCase; table columns are snake_case"""
    return {to_snake(key): value for key, value in payload.items()}


def prepare_entry_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill startTime/endTime from the anchor date and duration when missing.

    The server stores explicit bounds for every entry.
    """
    prepared = dict(payload)
    anchor = prepared.get("startTime") or prepared.get("date")
    if anchor and not prepared.get("endTime"):
        start = datetime.fromisoformat(anchor) if isinstance(anchor, str) else anchor
        end = start + timedelta(seconds=int(prepared.get("duration") or 0))
        prepared.setdefault("startTime", start.isoformat())
        prepared["endTime"] = end.isoformat()
    return prepared


class ApiClient(RemoteStore):
    """
    httpx-based client for the table API.

    Args:
        base_url: Server root, e.g. http://localhost:3001
        token: Bearer token sent with every request
        http_client: Optional pre-configured client (tests inject a MockTransport)
    """

    def __init__(self, base_url: str, token: Optional[str] = None,
                 http_client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, table: str, **kwargs) -> Any:
        url = f"{self.base_url}/api/{table}"
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, url, exc)
            raise RemoteStoreError(f"{method} {table} request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise RemoteStoreError(
                f"{method} {table} failed ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{method} {table} returned invalid JSON") from exc

        if isinstance(body, dict) and body.get("error"):
            raise RemoteStoreError(f"{method} {table} failed: {body['error']}", status_code=response.status_code)
        return body.get("data") if isinstance(body, dict) else body

    async def add(self, entity: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        table = _table_for(entity)
        if entity == "entry":
            if not (payload.get("userId") or payload.get("user_id")):
                raise RemoteStoreError("userId is required for addEntry")
            payload = prepare_entry_payload(payload)
        rows = await self._request("POST", table, json=snake_keys(payload))
        if not rows:
            raise RemoteStoreError(f"Failed to create {entity}: empty response")
        return rows[0] if isinstance(rows, list) else rows

    async def update(self, entity: str, record_id: str, changes: Dict[str, Any]) -> None:
        await self._request("PATCH", _table_for(entity), json={"data": snake_keys(changes), "filters": {"id": record_id}})

    async def delete(self, entity: str, record_id: str) -> None:
        await self._request("DELETE", _table_for(entity), json={"id": record_id})

    async def select(self, entity: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        rows = await self._request("GET", _table_for(entity), params=filters or None)
        return list(rows or [])

    async def health(self) -> bool:
        """True when the server answers /health with a 2xx"""
        try:
            response = await self._http.get(f"{self.base_url}/health", timeout=5.0)
        except httpx.HTTPError as exc:
            logger.debug("Health check failed: %s", exc)
            return False
        return 200 <= response.status_code < 300

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()
