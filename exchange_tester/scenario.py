"""Fixed personas and trading plans exercised by the pre-test."""

from dataclasses import dataclass
from typing import Optional, Tuple

from .models import TradeType


@dataclass(frozen=True)
class Persona:
    """Profile fields used to build a SimulatedUser."""
    prefix: str
    name: str
    password: str


@dataclass(frozen=True)
class OrderPlan:
    amount: int
    price: int


@dataclass(frozen=True)
class LogExpectation:
    """Minimum audit log contents a track must eventually show."""
    order_events: int
    trade_events: int
    error_events: int = 0
    first_error: Optional[OrderPlan] = None


@dataclass(frozen=True)
class TrackPlan:
    """
    One side of the concurrent trading phase.

    ``settled_positions`` index into the order listing as it looks once
    matching is done; every settled order is filled for its whole amount.
    """
    side: TradeType
    orders: Tuple[OrderPlan, ...]
    traded_count: int
    listed_count: int
    settled_positions: Tuple[int, ...]
    logs: LogExpectation
    credit: int = 0


BUYER = Persona(prefix="asuzuki", name="鈴木 明", password="1234567890abc")
SELLER = Persona(prefix="tmorris", name="トニー モリス", password="234567890abcd")
# Same bank id as BUYER with a different profile, must be rejected with 409.
BUYER_CONFLICT = Persona(prefix="asuzuki", name="鈴木 昭夫", password="13467890abc")

# Order that no freshly registered account can afford.
UNFUNDED_ORDER = OrderPlan(amount=1, price=2000)

BUYER_TRACK = TrackPlan(
    side=TradeType.BUY,
    credit=550,
    orders=(
        OrderPlan(5, 100),  # cancelled by the exchange: reservation exceeds credit
        OrderPlan(2, 80),
        OrderPlan(1, 90),
        OrderPlan(3, 99),
        OrderPlan(2, 100),
    ),
    traded_count=2,
    listed_count=4,
    settled_positions=(2, 3),
    logs=LogExpectation(
        order_events=5,
        trade_events=2,
        error_events=2,
        first_error=UNFUNDED_ORDER,
    ),
)

SELLER_TRACK = TrackPlan(
    side=TradeType.SELL,
    orders=(
        OrderPlan(6, 100),
        OrderPlan(2, 105),
        OrderPlan(3, 100),
        OrderPlan(7, 99),  # no buyer large enough
        OrderPlan(1, 99),
        OrderPlan(1, 99),
    ),
    traded_count=3,
    listed_count=6,
    settled_positions=(2, 4, 5),
    logs=LogExpectation(order_events=6, trade_events=3),
)
