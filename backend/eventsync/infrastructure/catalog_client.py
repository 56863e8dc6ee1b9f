"""
HTTP client for the remote event catalog.

Every failure is classified before it leaves this module:
  - httpx timeouts           -> SyncTimeoutError
  - other httpx errors       -> TransportError
  - non-2xx responses        -> ProtocolError (with the server's message if any)
  - bad JSON / wrong shape   -> DecodingError (validation errors are logged so
                                schema drift between client and server can be
                                diagnosed)
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from eventsync.core.config import get_settings
from eventsync.core.errors import DecodingError, ProtocolError, SyncTimeoutError, TransportError
from eventsync.core.logging import get_logger
from eventsync.core.metrics import record_remote_request
from eventsync.schemas.event import EventChanges
from eventsync.schemas.panthi import RemotePanthi
from eventsync.schemas.program import RemoteProgram
from eventsync.schemas.ticket_type import RemoteTicketType
from eventsync.services.interfaces.catalog import CatalogSource

logger = get_logger(__name__)

_event_changes = TypeAdapter(EventChanges)
_ticket_types = TypeAdapter(list[RemoteTicketType])
_panthis = TypeAdapter(list[RemotePanthi])
_programs = TypeAdapter(list[RemoteProgram])

SERVER_MESSAGE_KEYS = ("message", "error", "detail")


def format_since(since: datetime) -> str:
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _event_path(event_id: str, resource: str) -> str:
    return f"events/{quote(event_id, safe='')}/{resource}"


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in SERVER_MESSAGE_KEYS:
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class HttpCatalogClient(CatalogSource):
    """Catalog source backed by the REST API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_events(self, since: Optional[datetime] = None) -> EventChanges:
        params = {"since": format_since(since)} if since is not None else None
        payload = await self._get("events", "events", params=params)
        # Servers without deletion support answer with a bare list
        if isinstance(payload, list):
            payload = {"changed": payload}
        return self._decode("events", _event_changes, payload)

    async def fetch_ticket_types(self, event_id: str) -> list[RemoteTicketType]:
        payload = await self._get("ticket_types", _event_path(event_id, "ticket-types"))
        return self._decode("ticket_types", _ticket_types, payload)

    async def fetch_slots(self, event_id: str) -> list[RemotePanthi]:
        payload = await self._get("slots", _event_path(event_id, "slots"))
        return self._decode("slots", _panthis, payload)

    async def fetch_programs(self, event_id: str) -> list[RemoteProgram]:
        payload = await self._get("programs", _event_path(event_id, "programs"))
        return self._decode("programs", _programs, payload)

    async def _get(self, endpoint: str, path: str, params: Optional[dict] = None) -> Any:
        headers = {}
        if self._token_provider is not None:
            token = self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.get(path, params=params, headers=headers)
        except httpx.TimeoutException as e:
            record_remote_request(endpoint, "timeout")
            logger.warning("remote_request_timeout", endpoint=endpoint, path=path, error=str(e))
            raise SyncTimeoutError(f"Request to {endpoint} timed out") from e
        except httpx.HTTPError as e:
            record_remote_request(endpoint, "transport")
            logger.warning("remote_request_failed", endpoint=endpoint, path=path, error=str(e))
            raise TransportError(f"Could not reach the event service ({e.__class__.__name__})") from e

        if not response.is_success:
            record_remote_request(endpoint, "protocol")
            server_message = _server_message(response)
            logger.warning(
                "remote_request_rejected",
                endpoint=endpoint,
                path=path,
                status_code=response.status_code,
                server_message=server_message,
            )
            raise ProtocolError(
                f"{endpoint} request returned status {response.status_code}",
                status_code=response.status_code,
                server_message=server_message,
            )

        try:
            return response.json()
        except ValueError as e:
            record_remote_request(endpoint, "decoding")
            logger.error("remote_response_not_json", endpoint=endpoint, path=path, body=response.text[:200])
            raise DecodingError(f"{endpoint} response is not valid JSON", endpoint=endpoint) from e

    def _decode(self, endpoint: str, adapter: TypeAdapter, payload: Any):
        try:
            result = adapter.validate_python(payload)
        except ValidationError as e:
            record_remote_request(endpoint, "decoding")
            details = e.errors(include_url=False, include_input=False)
            logger.error(
                "remote_response_schema_mismatch",
                endpoint=endpoint,
                error_count=e.error_count(),
                errors=details[:10],
            )
            raise DecodingError(
                f"{endpoint} response does not match the expected schema",
                endpoint=endpoint,
                details=details,
            ) from e
        record_remote_request(endpoint, "ok")
        return result
