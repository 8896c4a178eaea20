"""Shared fixtures: fake services wired to real clients through ASGI transports."""

from dataclasses import dataclass
from typing import Callable, List

import httpx
import pytest

from exchange_tester.bank import IsubankClient
from exchange_tester.client import ExchangeClient
from exchange_tester.config import TesterConfiguration
from exchange_tester.isulog import IsulogClient
from exchange_tester.models import SimulatedUser
from exchange_tester.scenario import BUYER, SELLER
from exchange_tester.tester import PreTester

from tests.fake_services import FakeBank, FakeExchange, FakeLog, Settlement

EXCHANGE_URL = "http://exchange.test"
BANK_URL = "http://bank.test"
LOG_URL = "http://log.test"
FIXED_NOW = 1_530_000_000

# Matches the default trading plans: the buyer's first buy is cancelled, then
# two buys fill; three of the seller's six sells fill.
DEFAULT_SETTLEMENTS = {
    BUYER.name: Settlement(trigger_listed=5, cancel=[0], trades={2: 99, 3: 100}),
    SELLER.name: Settlement(trigger_listed=6, trades={2: 100, 4: 99, 5: 99}),
}


@pytest.fixture
def fast_config() -> TesterConfiguration:
    return TesterConfiguration(
        app_url=EXCHANGE_URL,
        bank_url=BANK_URL,
        log_url=LOG_URL,
        client_timeout=2.0,
        retire_timeout=2.0,
        trade_settlement_timeout=0.3,
        log_propagation_timeout=0.3,
        polling_interval=0.01,
    )


@dataclass
class Harness:
    """Fake services plus a factory for PreTesters wired to them."""
    bank: FakeBank
    log: FakeLog
    config: TesterConfiguration
    opened: List[ExchangeClient]

    def exchange(self, **switches) -> FakeExchange:
        return FakeExchange(self.bank, self.log, DEFAULT_SETTLEMENTS, **switches)

    def client_factory(self, exchange: FakeExchange) -> Callable[[SimulatedUser], ExchangeClient]:
        def factory(user: SimulatedUser) -> ExchangeClient:
            client = ExchangeClient(
                EXCHANGE_URL, user,
                timeout=self.config.client_timeout,
                retire_timeout=self.config.retire_timeout,
                transport=httpx.ASGITransport(app=exchange.app),
            )
            self.opened.append(client)
            return client
        return factory

    def pretester(self, exchange: FakeExchange) -> PreTester:
        isubank = IsubankClient(BANK_URL, "test-app", transport=httpx.ASGITransport(app=self.bank.app))
        isulog = IsulogClient(LOG_URL, "test-app", transport=httpx.ASGITransport(app=self.log.app))
        return PreTester(self.config, isulog, isubank,
                         client_factory=self.client_factory(exchange), now=FIXED_NOW)


@pytest.fixture
def harness(fast_config) -> Harness:
    return Harness(bank=FakeBank(), log=FakeLog(), config=fast_config, opened=[])
