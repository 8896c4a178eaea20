"""Client for the isulog audit log store, plus log filtering."""

import logging
from typing import Iterable, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import CollaboratorError, ErrorWithStatus
from .models import AuditEvent

logger = logging.getLogger(__name__)

_EVENT_LIST = TypeAdapter(List[AuditEvent])


class IsulogClient:
    """Reads the append-only business event log emitted by the exchange."""

    def __init__(self, base_url: str, app_id: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Authorization": f"Bearer {app_id}"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def get_user_logs(self, user_id: int) -> List[AuditEvent]:
        """All events for ``user_id`` in the order the exchange emitted them."""
        try:
            response = await self.http_client.get("/logs", params={"user_id": user_id})
        except httpx.HTTPError as e:
            raise CollaboratorError(f"isulog GET /logs failed: {e}") from e
        if response.status_code >= 400:
            raise ErrorWithStatus("GET", "isulog/logs", response.status_code, response.text[:200] or None)
        try:
            events = _EVENT_LIST.validate_python(response.json() or [])
        except (ValueError, ValidationError) as e:
            raise CollaboratorError(f"isulog GET /logs returned unexpected payload: {e}") from e
        logger.debug("Fetched %d log events for user %d", len(events), user_id)
        return events


def filter_logs(events: Iterable[AuditEvent], tag: str) -> List[AuditEvent]:
    """Events whose tag equals ``tag``, in their original order."""
    return [event for event in events if event.tag == tag]
