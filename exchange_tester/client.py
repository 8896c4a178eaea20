"""HTTP client acting as one simulated user of the exchange."""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import CollaboratorError, ErrorWithStatus, RetiredError
from .models import Info, Order, SigninResponse, SimulatedUser, TradeType

logger = logging.getLogger(__name__)

_ORDER_LIST = TypeAdapter(List[Order])


class ExchangeClient:
    """
    Drives the exchange's public API on behalf of a single user.

    The session cookie issued at signin is kept by the underlying
    ``httpx.AsyncClient``, so each user needs their own instance.
    """

    def __init__(self, base_url: str, user: SimulatedUser,
                 timeout: float = 10.0, retire_timeout: float = 5.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize exchange client.

        Args:
            base_url: Exchange root URL
            user: Identity used for signup/signin
            timeout: Per-request transport timeout (seconds)
            retire_timeout: Responses slower than this are treated as failures
            transport: Optional transport override (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.retire_timeout = retire_timeout
        self._user_id: Optional[int] = None
        self.http_client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            follow_redirects=False,
        )
        self.logger = logging.getLogger(f"{__name__}.{user.bank_id}")

    @property
    def user_id(self) -> int:
        """Exchange user id, known after a successful signin."""
        if self._user_id is None:
            raise CollaboratorError(f"user {self.user.bank_id} has not signed in")
        return self._user_id

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def __aenter__(self) -> "ExchangeClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        started = time.monotonic()
        try:
            response = await self.http_client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RetiredError(f"{method} {path} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise CollaboratorError(f"{method} {path} request failed: {e}") from e
        elapsed = time.monotonic() - started
        if elapsed > self.retire_timeout:
            raise RetiredError(
                f"{method} {path} took {elapsed:.2f}s (retire timeout {self.retire_timeout:.2f}s)"
            )
        if response.status_code >= 400:
            raise ErrorWithStatus(method, path, response.status_code, _error_detail(response))
        self.logger.debug("%s %s -> %d (%.3fs)", method, path, response.status_code, elapsed)
        return response

    async def _json(self, method: str, path: str, **kwargs) -> Any:
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise CollaboratorError(f"{method} {path} returned invalid JSON: {e}") from e

    async def top(self) -> None:
        """Load the top page."""
        await self._request("GET", "/")

    async def info(self, cursor: int = 0) -> Info:
        """Fetch market info; traded orders are only reported to signed-in users."""
        data = await self._json("GET", "/info", params={"cursor": cursor})
        try:
            return Info.model_validate(data)
        except ValidationError as e:
            raise CollaboratorError(f"GET /info returned unexpected payload: {e}") from e

    async def signup(self) -> None:
        await self._request("POST", "/signup", data={
            "name": self.user.name,
            "bank_id": self.user.bank_id,
            "password": self.user.password,
        })

    async def signin(self) -> SigninResponse:
        data = await self._json("POST", "/signin", data={
            "bank_id": self.user.bank_id,
            "password": self.user.password,
        })
        try:
            signed_in = SigninResponse.model_validate(data)
        except ValidationError as e:
            raise CollaboratorError(f"POST /signin returned unexpected payload: {e}") from e
        self._user_id = signed_in.id
        return signed_in

    async def add_order(self, side: TradeType, amount: int, price: int) -> Order:
        """Place an order; the exchange answers with the new order id only."""
        data = await self._json("POST", "/orders", data={
            "type": side.value,
            "amount": str(amount),
            "price": str(price),
        })
        if not isinstance(data, dict) or not isinstance(data.get("id"), int):
            raise CollaboratorError(f"POST /orders returned unexpected payload: {data!r}")
        return Order(id=data["id"], type=side, amount=amount, price=price, user_id=self._user_id)

    async def get_orders(self) -> List[Order]:
        """List the user's orders, oldest first."""
        data = await self._json("GET", "/orders")
        try:
            return _ORDER_LIST.validate_python(data)
        except ValidationError as e:
            raise CollaboratorError(f"GET /orders returned unexpected payload: {e}") from e

    async def delete_order(self, order_id: int) -> None:
        await self._request("DELETE", f"/order/{order_id}")


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body: Dict[str, Any] = response.json()
    except ValueError:
        return response.text[:200] or None
    if isinstance(body, dict):
        return body.get("err") or body.get("error")
    return None
