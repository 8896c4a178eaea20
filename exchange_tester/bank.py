"""Client for the isubank ledger used as ground truth for balances."""

import logging
from typing import Any, Dict, Optional

import httpx

from .errors import CollaboratorError, ErrorWithStatus

logger = logging.getLogger(__name__)


class IsubankClient:
    """Registers bank accounts, deposits credit and reads balances."""

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

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.http_client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise CollaboratorError(f"isubank {method} {path} failed: {e}") from e
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.status_code >= 400:
            detail = body.get("error") if isinstance(body, dict) else None
            raise ErrorWithStatus(method, f"isubank{path}", response.status_code, detail)
        if not isinstance(body, dict):
            raise CollaboratorError(f"isubank {method} {path} returned unexpected payload: {body!r}")
        return body

    async def new_bank_id(self, bank_id: str) -> None:
        """Open an account so the exchange can verify it at signup."""
        await self._call("POST", "/register", json={"bank_id": bank_id})
        logger.debug("Registered bank id %s", bank_id)

    async def add_credit(self, bank_id: str, amount: int) -> None:
        """Deposit ``amount`` into the account, simulating an external transfer."""
        await self._call("POST", "/add_credit", json={"bank_id": bank_id, "price": amount})
        logger.debug("Added credit %d to %s", amount, bank_id)

    async def get_credit(self, bank_id: str) -> int:
        """Current balance of the account."""
        body = await self._call("GET", "/credit", params={"bank_id": bank_id})
        credit = body.get("credit")
        if not isinstance(credit, int):
            raise CollaboratorError(f"isubank GET /credit returned unexpected payload: {body!r}")
        return credit
