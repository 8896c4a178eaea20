"""Scenario engine: conformance checks run against a live exchange."""

import asyncio
import logging
import time
from functools import partial
from typing import Awaitable, Callable, List, Optional

from pydantic import ValidationError

from .bank import IsubankClient
from .client import ExchangeClient
from .config import TesterConfiguration
from .convergence import wait_until
from .errors import CheckFailed, CollaboratorError, ErrorWithStatus, expect_equal
from .isulog import IsulogClient, filter_logs
from .models import LogTag, Order, SimulatedUser, TradeType
from .scenario import (
    BUYER,
    BUYER_CONFLICT,
    BUYER_TRACK,
    SELLER,
    SELLER_TRACK,
    UNFUNDED_ORDER,
    Persona,
    TrackPlan,
)

logger = logging.getLogger(__name__)

ClientFactory = Callable[[SimulatedUser], ExchangeClient]


async def join_all(*aws: Awaitable) -> None:
    """
    Run awaitables concurrently and wait for every one of them.

    No task is cancelled when a sibling fails. Once all have finished, the
    first failure (in completion order) is raised; later ones are logged.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    first_error: Optional[BaseException] = None
    for next_done in asyncio.as_completed(tasks):
        try:
            await next_done
        except Exception as e:
            if first_error is None:
                first_error = e
            else:
                logger.error("Concurrent task also failed: %s", e)
    if first_error is not None:
        raise first_error


async def expect_status(action: Awaitable, status: int, endpoint: str, message: str) -> None:
    """
    Await ``action`` and require it to fail with HTTP ``status``.

    A different status, or success, raises CheckFailed. Other collaborator
    failures propagate unchanged.
    """
    try:
        result = await action
    except ErrorWithStatus as e:
        if e.status_code != status:
            raise CheckFailed(
                f"{endpoint} returned an unexpected status code [got:{e.status_code}, want:{status}]"
            ) from e
        return
    if isinstance(result, Order):
        message = f"{message} [order_id:{result.id}]"
    raise CheckFailed(message)


class Tester:
    """Shared wiring for the pre- and post-flight testers."""

    def __init__(self, config: TesterConfiguration, isulog: IsulogClient,
                 isubank: IsubankClient, client_factory: Optional[ClientFactory] = None,
                 now: Optional[float] = None):
        """
        Initialize tester.

        Args:
            config: Validated tester configuration (timeouts, endpoints)
            isulog: Audit log collaborator
            isubank: Ledger collaborator
            client_factory: Builds one exchange client per simulated user
            now: Timestamp used to derive unique bank ids (defaults to now)
        """
        self.config = config
        self.isulog = isulog
        self.isubank = isubank
        self.client_factory = client_factory or self._default_client
        self.now = now
        self._clients: List[ExchangeClient] = []

    def _default_client(self, user: SimulatedUser) -> ExchangeClient:
        return ExchangeClient(
            self.config.app_url,
            user,
            timeout=self.config.client_timeout,
            retire_timeout=self.config.retire_timeout,
        )

    def new_user(self, persona: Persona) -> SimulatedUser:
        stamp = self.now if self.now is not None else time.time()
        return SimulatedUser.generate(persona.prefix, persona.name, persona.password, now=stamp)

    def new_client(self, user: SimulatedUser) -> ExchangeClient:
        client = self.client_factory(user)
        self._clients.append(client)
        return client

    async def close_clients(self) -> None:
        clients, self._clients = self._clients, []
        for client in clients:
            await client.aclose()


class PreTester(Tester):
    """
    Validates an exchange before the benchmark starts.

    Runs a fixed, fail-fast sequence of checks: anonymous access, negative
    authentication, concurrent onboarding, conflicting signup, unfunded
    orders, a sell/cancel round trip and finally two concurrent trading
    tracks reconciled against the bank and the audit log.
    """

    buyer_track: TrackPlan = BUYER_TRACK
    seller_track: TrackPlan = SELLER_TRACK

    async def run(self) -> None:
        """Run every check; raises a TesterError on the first failure."""
        buyer = self.new_user(BUYER)
        seller = self.new_user(SELLER)
        try:
            c1 = self.new_client(buyer)
            c2 = self.new_client(seller)

            await self._check_guest_info(c2)
            await self._check_unregistered(c1)

            # Accounts exist only from here on, so the signup above proved the bank lookup.
            for user in (buyer, seller):
                await self.isubank.new_bank_id(user.bank_id)

            await join_all(self._onboard(c1), self._onboard(c2))
            logger.info("signup and signin OK")

            await self._check_conflict(buyer)
            await self._check_unfunded_order(c1)
            await self._check_sell_and_cancel(c1)

            await join_all(
                self._run_track(c1, self.buyer_track),
                self._run_track(c2, self.seller_track),
            )
            logger.info("trading test finished")
        finally:
            await self.close_clients()

    async def _check_guest_info(self, client: ExchangeClient) -> None:
        await client.top()
        info = await client.info(0)
        if info.traded_orders:
            raise CheckFailed(
                f"GET /info reports traded_orders to a guest user [count:{len(info.traded_orders)}]"
            )

    async def _check_unregistered(self, client: ExchangeClient) -> None:
        await expect_status(
            client.signin(), 404, "POST /signin",
            "POST /signin succeeded for an account that does not exist",
        )
        await expect_status(
            client.signup(), 404, "POST /signup",
            "POST /signup succeeded for a bank id unknown to the bank; "
            "the exchange may not be verifying bank accounts",
        )

    async def _onboard(self, client: ExchangeClient) -> None:
        await client.top()
        await client.info(0)
        await client.signup()
        await client.signin()
        await client.get_orders()

    async def _check_conflict(self, buyer: SimulatedUser) -> None:
        duplicate = SimulatedUser(
            bank_id=buyer.bank_id, name=BUYER_CONFLICT.name, password=BUYER_CONFLICT.password,
        )
        client = self.new_client(duplicate)
        await expect_status(
            client.signup(), 409, "POST /signup",
            "POST /signup succeeded for an already registered bank id",
        )
        logger.info("conflict check OK")

    async def _check_unfunded_order(self, client: ExchangeClient) -> None:
        await expect_status(
            client.add_order(TradeType.BUY, UNFUNDED_ORDER.amount, UNFUNDED_ORDER.price),
            400, "POST /orders",
            "POST /orders accepted a buy order the bank balance cannot cover",
        )
        orders = await client.get_orders()
        expect_equal("GET /orders count after rejected order", len(orders), 0)
        logger.info("order without credit OK")

    async def _check_sell_and_cancel(self, client: ExchangeClient) -> None:
        placed = await client.add_order(TradeType.SELL, UNFUNDED_ORDER.amount, UNFUNDED_ORDER.price)
        orders = await client.get_orders()
        expect_equal("GET /orders count", len(orders), 1)
        listed = orders[0]
        expect_equal("GET /orders id", listed.id, placed.id)
        expect_equal("GET /orders price", listed.price, placed.price)
        expect_equal("GET /orders amount", listed.amount, placed.amount)
        expect_equal("GET /orders type", listed.type.value, placed.type.value)

        await client.delete_order(placed.id)
        orders = await client.get_orders()
        expect_equal("GET /orders count after delete", len(orders), 0)
        logger.info("sell order test OK")

    async def _run_track(self, client: ExchangeClient, plan: TrackPlan) -> None:
        side = plan.side.value
        bank_id = client.user.bank_id
        logger.info("Running %s track for %s", side, bank_id)

        if plan.credit > 0:
            await self.isubank.add_credit(bank_id, plan.credit)

        for step in plan.orders:
            try:
                order = await client.add_order(plan.side, step.amount, step.price)
            except CollaboratorError as e:
                logger.error("POST /orders %s order failed [amount:%d, price:%d]: %s",
                             side, step.amount, step.price, e)
                raise
            orders = await client.get_orders()
            if not orders or orders[-1].id != order.id:
                raise CheckFailed(
                    "GET /orders is not sorted by creation time ascending "
                    f"[ids:{[o.id for o in orders]}, newest:{order.id}]"
                )
        logger.info("%s orders sent: %d", side, len(plan.orders))

        traded_seen = 0

        async def trades_settled() -> bool:
            nonlocal traded_seen
            info = await client.info(0)
            traded_seen = len(info.traded_orders)
            logger.debug("%s traded_orders: %d", bank_id, traded_seen)
            return traded_seen >= plan.traded_count

        await wait_until(
            trades_settled,
            interval=self.config.polling_interval,
            timeout=self.config.trade_settlement_timeout,
            message=f"expected {side} trades did not settle [want:{plan.traded_count} traded orders]",
        )
        expect_equal(f"GET /info {side} traded_orders count", traded_seen, plan.traded_count)
        logger.info("%s trade success OK", side)

        await self._reconcile(client, plan)

        await wait_until(
            partial(self._logs_delivered, client, plan),
            interval=self.config.polling_interval,
            timeout=self.config.log_propagation_timeout,
            message=f"audit logs for the {side} track were not delivered",
        )
        logger.info("%s log check OK", side)

    async def _reconcile(self, client: ExchangeClient, plan: TrackPlan) -> None:
        """Compare settled orders against the user's own bank balance."""
        orders = await client.get_orders()
        expect_equal("GET /orders count after trades", len(orders), plan.listed_count)

        traded = 0
        for position, order in enumerate(orders):
            if position not in plan.settled_positions:
                if order.trade is not None:
                    raise CheckFailed(
                        f"GET /orders trade is set on an order that should not settle "
                        f"[index:{position}, order_id:{order.id}]"
                    )
                continue
            if order.trade is None:
                raise CheckFailed(
                    f"GET /orders trade is not set on a settled order [index:{position}, order_id:{order.id}]"
                )
            traded += order.trade.price * order.amount

        balance = await self.isubank.get_credit(client.user.bank_id)
        if plan.side is TradeType.BUY:
            expected = plan.credit - traded
        else:
            expected = plan.credit + traded
        if balance != expected:
            raise CheckFailed(
                f"bank balance does not match settled trades [balance:{balance}, want:{expected}, "
                f"credit:{plan.credit}, traded:{traded}]"
            )
        logger.info("%s balance check OK", plan.side.value)

    async def _logs_delivered(self, client: ExchangeClient, plan: TrackPlan) -> bool:
        """True once the audit log holds every expected event for the user."""
        logs = await self.isulog.get_user_logs(client.user_id)
        expected = plan.logs

        signups = filter_logs(logs, LogTag.SIGNUP)
        if not signups:
            return False
        try:
            signup = signups[0].signup
        except ValidationError as e:
            raise CheckFailed(f"log.signup payload is malformed: {e}") from e
        expect_equal("log.signup name", signup.name, client.user.name)
        expect_equal("log.signup bank_id", signup.bank_id, client.user.bank_id)

        if not filter_logs(logs, LogTag.SIGNIN):
            return False

        if expected.error_events:
            errors = filter_logs(logs, LogTag.for_side(plan.side, "error"))
            if len(errors) < expected.error_events:
                return False
            if expected.first_error is not None:
                try:
                    first = errors[0].order_error
                except ValidationError as e:
                    raise CheckFailed(f"log.{plan.side.value}.error payload is malformed: {e}") from e
                expect_equal(
                    f"log.{plan.side.value}.error",
                    (first.amount, first.price),
                    (expected.first_error.amount, expected.first_error.price),
                )

        orders = filter_logs(logs, LogTag.for_side(plan.side, "order"))
        if len(orders) < expected.order_events:
            return False
        trades = filter_logs(logs, LogTag.for_side(plan.side, "trade"))
        if len(trades) < expected.trade_events:
            return False
        return True


class PostTester(Tester):
    """Checks run after the benchmark; none are defined yet."""

    async def run(self) -> None:
        return None
